import logging
from typing import List, Sequence

from .chunk_store import Chunk

logger = logging.getLogger(__name__)


def tokenize(text: str) -> List[str]:
    """Lower-case whitespace tokenization shared by questions and chunks."""
    return text.lower().split()


class RelevanceScorer:
    """Lexical relevance scoring of rulebook chunks against a question."""

    def __init__(self, min_token_length: int = 3, section_bonus: int = 2):
        """
        Args:
            min_token_length: Shortest question token that counts toward text matches
            section_bonus: Score added per question token found in the section label
        """
        self.min_token_length = min_token_length
        self.section_bonus = section_bonus

    def score(self, question: str, chunk: Chunk) -> int:
        """
        Score the relevance of a chunk to a question.

        Every question token of at least ``min_token_length`` characters adds
        the number of chunk tokens it matches, where a match means one token
        contains the other. Every question token contained in the section
        label adds ``section_bonus``. Substring matching absorbs simple
        plural and singular forms without a stemmer.

        Args:
            question: The question text
            chunk: The chunk to score

        Returns:
            int: Non-negative relevance score
        """
        question_tokens = tokenize(question)
        chunk_tokens = tokenize(chunk.text)

        score = 0
        for q_token in question_tokens:
            if len(q_token) < self.min_token_length:
                continue
            score += sum(1 for c_token in chunk_tokens if c_token in q_token or q_token in c_token)

        section = chunk.section.lower()
        for q_token in question_tokens:
            if q_token in section:
                score += self.section_bonus

        return score

    def score_batch(self, question: str, chunks: Sequence[Chunk]) -> List[int]:
        """
        Score multiple chunks against a question.

        Args:
            question: The question text
            chunks: Chunks to score

        Returns:
            List[int]: One score per chunk, in input order
        """
        return [self.score(question, chunk) for chunk in chunks]
