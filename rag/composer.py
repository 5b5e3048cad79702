"""
Grounded answer composition for the rules assistant.

This module provides the AnswerComposer class, which retrieves the rulebook
excerpts relevant to a question, asks the model service for an answer grounded
in those excerpts only, and post-processes the result into a short,
source-attributed answer. Every failure below this boundary is converted into
a fixed answer text; callers never see an exception from ``answer``.
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from config import get_config
from rag.chunk_store import Chunk, ChunkStore
from rag.retriever import RulebookRetriever
from rag.templates import PromptTemplateManager
from utils.error_handler import ErrorHandler
from utils.llm_client import LLMClient, LLMAPIError

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r'[.!?]+')


def limit_sentences(text: str, max_sentences: int = 3) -> str:
    """
    Keep at most the first ``max_sentences`` sentences of a text.

    Sentences are split on runs of ``.``, ``!`` and ``?``, stripped, and
    rejoined with ". " plus a trailing period. Applying the limit to its own
    output returns the same text.

    Returns:
        The limited text, or an empty string when no sentence survives
    """
    sentences = [part.strip() for part in _SENTENCE_END.split(text or '')]
    sentences = [sentence for sentence in sentences if sentence][:max_sentences]
    if not sentences:
        return ''
    return '. '.join(sentences) + '.'


@dataclass(frozen=True)
class Source:
    """Page and section of a rulebook excerpt used to answer a question."""
    page: int
    section: str

    def to_dict(self) -> Dict[str, Any]:
        return {'page': self.page, 'section': self.section}


@dataclass(frozen=True)
class AnswerResult:
    """Answer text plus the sources retrieved for it."""
    answer: str
    sources: List[Source] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'answer': self.answer,
            'sources': [source.to_dict() for source in self.sources],
        }


class AnswerComposer:
    """
    Answers rules questions from retrieved rulebook excerpts.

    The model service is only called when retrieval produced at least one
    excerpt, so every model answer is grounded in supplied text.
    """

    def __init__(self,
                 chunk_store: ChunkStore,
                 config_manager=None,
                 retriever: Optional[RulebookRetriever] = None,
                 template_manager: Optional[PromptTemplateManager] = None,
                 llm_client: Optional[LLMClient] = None,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Initialize the answer composer.

        Args:
            chunk_store: Rulebook chunks partitioned by game identifier
            config_manager: Optional configuration manager instance
            retriever: Optional retriever instance
            template_manager: Optional template manager instance
            llm_client: Optional model service client instance
            error_handler: Optional error handler instance
        """
        self.config = config_manager if config_manager else get_config()
        self.chunk_store = chunk_store
        self.retriever = retriever or RulebookRetriever(config_manager=self.config)
        self.template_manager = template_manager or PromptTemplateManager(self.config)
        self.llm_client = llm_client or LLMClient(self.config)
        self.error_handler = error_handler or ErrorHandler(self.config)

        self.top_n = self.config.get('RAG_SETTINGS', 'TOP_K', 5)
        self.max_sentences = self.config.get('RAG_SETTINGS', 'MAX_SENTENCES', 3)
        self.max_tokens = self.config.get('API_SETTINGS', 'MAX_TOKENS', 150)
        self.temperature = self.config.get('API_SETTINGS', 'TEMPERATURE', 0.3)

        logger.info("Initialized answer composer")

    def answer(self,
               question: str,
               game_id: str,
               cancel_token: Optional[threading.Event] = None) -> AnswerResult:
        """
        Answer a rules question for one game.

        Args:
            question: The user's question
            game_id: Game identifier selecting the rulebook partition
            cancel_token: Optional event; when set before the model call, the
                call is skipped and the degraded-service answer is returned

        Returns:
            AnswerResult with a non-empty answer
        """
        try:
            return self._answer(question, game_id, cancel_token)
        except Exception as e:
            message = self.error_handler.handle_error(
                e,
                component="answer_composer",
                details={'game_id': game_id},
            )
            return self._fixed(message)

    def _answer(self,
                question: str,
                game_id: str,
                cancel_token: Optional[threading.Event]) -> AnswerResult:
        if not question or not question.strip():
            return self._fixed(self.error_handler.message('MISSING_QUESTION_MESSAGE'))

        chunks = self.chunk_store.get_partition(game_id)
        if not chunks:
            logger.info(f"No rulebook chunks for game {game_id!r}")
            return self._fixed(self.error_handler.message('NO_RULEBOOK_MESSAGE', game_id=game_id))

        retrieved = self.retriever.retrieve(question, chunks, self.top_n)
        if not retrieved:
            logger.info(f"No excerpts matched question for game {game_id!r}")
            return self._fixed(self.error_handler.message('NOT_FOUND_MESSAGE'))

        if cancel_token is not None and cancel_token.is_set():
            logger.info("Answer cancelled before model call")
            return self._fixed(self.error_handler.message('SERVICE_UNAVAILABLE_MESSAGE'), limit=True)

        raw_answer = self._ask_model(question, retrieved)
        if raw_answer is None:
            return self._fixed(self.error_handler.message('SERVICE_UNAVAILABLE_MESSAGE'), limit=True)

        answer = limit_sentences(raw_answer.strip(), self.max_sentences)
        if not answer:
            answer = self._limit(self.error_handler.message('NO_ANSWER_MESSAGE'))

        return AnswerResult(answer=answer, sources=self.sources_for(retrieved))

    def _ask_model(self, question: str, chunks: Sequence[Chunk]) -> Optional[str]:
        """
        Ask the model service for a grounded answer.

        Returns:
            The first completion's text, or None if the service failed
        """
        messages = self.template_manager.build_messages(question, chunks)
        try:
            response = self.llm_client.chat_completion(
                messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            return self.llm_client.extract_response_text(response)
        except LLMAPIError as e:
            logger.warning(f"Model service failed: {str(e)}")
            return None

    @staticmethod
    def sources_for(chunks: Sequence[Chunk]) -> List[Source]:
        return [Source(page=chunk.page, section=chunk.section) for chunk in chunks]

    def _limit(self, text: str) -> str:
        return limit_sentences(text, self.max_sentences) or text

    def _fixed(self, message: str, limit: bool = False) -> AnswerResult:
        """Build a fallback result with no sources."""
        answer = self._limit(message) if limit else message.strip()
        if not answer:
            answer = "I couldn't generate an answer. Please try again."
        return AnswerResult(answer=answer, sources=[])
