#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
RAG (Retrieval-Augmented Generation) system components.

This package provides the rulebook answer pipeline:
- ChunkStore: Rulebook excerpts partitioned by game identifier
- RelevanceScorer: Lexical relevance of a chunk to a question
- RulebookRetriever: Ranks a partition and returns the top chunks
- PromptTemplateManager: Grounded prompt construction
- AnswerComposer: Orchestrates retrieval, the model call and post-processing
"""

# Package metadata
__version__ = '0.1.0'

from .chunk_store import Chunk, ChunkStore, ChunkStoreError
from .relevance import RelevanceScorer
from .retriever import RulebookRetriever, ScoredChunk
from .templates import PromptTemplateManager, TemplateError
from .composer import AnswerComposer, AnswerResult, Source, limit_sentences

__all__ = [
    'Chunk',
    'ChunkStore',
    'ChunkStoreError',
    'RelevanceScorer',
    'RulebookRetriever',
    'ScoredChunk',
    'PromptTemplateManager',
    'TemplateError',
    'AnswerComposer',
    'AnswerResult',
    'Source',
    'limit_sentences',
]
