#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Rulebook retriever module for the RAG system.
Ranks the chunks of one game partition against a question.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .chunk_store import Chunk, ChunkStore
from .relevance import RelevanceScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk paired with its relevance score for one retrieval call."""
    chunk: Chunk
    score: int


class RulebookRetriever:
    """Selects the most relevant rulebook chunks for a question."""

    def __init__(
        self,
        scorer: Optional[RelevanceScorer] = None,
        top_n: int = 5,
        config_manager=None
    ):
        """
        Initialize the RulebookRetriever.

        Args:
            scorer: Optional RelevanceScorer instance
            top_n: Default number of chunks to return
            config_manager: Optional configuration manager; overrides the scorer
                settings and default top_n from RAG_SETTINGS when given
        """
        if config_manager is not None:
            top_n = config_manager.get('RAG_SETTINGS', 'TOP_K', top_n)
            if scorer is None:
                scorer = RelevanceScorer(
                    min_token_length=config_manager.get('RAG_SETTINGS', 'MIN_TOKEN_LENGTH', 3),
                    section_bonus=config_manager.get('RAG_SETTINGS', 'SECTION_BONUS', 2),
                )

        self.scorer = scorer or RelevanceScorer()
        self.top_n = top_n

    def rank(self, question: str, chunks: Sequence[Chunk]) -> List[ScoredChunk]:
        """
        Score and order chunks for a question.

        Zero-score chunks are dropped. The sort is stable, so chunks with
        equal scores keep their input order.

        Args:
            question: The question string
            chunks: Candidate chunks in source order

        Returns:
            Scored chunks, highest score first
        """
        scored = [
            ScoredChunk(chunk=chunk, score=score)
            for chunk, score in zip(chunks, self.scorer.score_batch(question, chunks))
            if score > 0
        ]
        return sorted(scored, key=lambda item: item.score, reverse=True)

    def retrieve(self, question: str, chunks: Sequence[Chunk], top_n: Optional[int] = None) -> List[Chunk]:
        """
        Retrieve the top chunks for a question.

        Args:
            question: The question string
            chunks: Candidate chunks in source order
            top_n: Maximum number of chunks to return (defaults to the instance setting)

        Returns:
            At most top_n chunks ordered by descending score; empty when nothing scores
        """
        limit = self.top_n if top_n is None else top_n
        ranked = self.rank(question, chunks)[:max(limit, 0)]

        logger.debug(
            f"Retrieved {len(ranked)} of {len(chunks)} chunks "
            f"(scores: {[item.score for item in ranked]})"
        )
        return [item.chunk for item in ranked]

    def retrieve_for_game(
        self,
        question: str,
        store: ChunkStore,
        game_id: str,
        top_n: Optional[int] = None
    ) -> List[Chunk]:
        """
        Retrieve the top chunks for a question from one game's partition.

        Args:
            question: The question string
            store: The chunk store to read from
            game_id: Game identifier selecting the partition
            top_n: Maximum number of chunks to return

        Returns:
            Chunks that all belong to game_id
        """
        partition = [chunk for chunk in store.get_partition(game_id) if chunk.game_id == game_id]
        return self.retrieve(question, partition, top_n)
