"""
Chat Module - The question answering pipeline.
==============================================

``ChatService.chat`` runs one user message through:

1. Reset commands ("clear", "start over") that wipe the conversation
2. Typo correction and query analysis
3. Clarification for questions too vague to answer
4. The response cache, keyed by query, user type and knowledge version
5. Context retrieval and Gemini generation
6. Cache store and query analytics
"""

import threading
import time
from collections import OrderedDict
from typing import Optional

from dorsu_connect.indexing.manifest import ManifestManager
from dorsu_connect.rag.analytics import QueryAnalytics, get_query_analytics
from dorsu_connect.rag.cache import ResponseCache, get_response_cache
from dorsu_connect.rag.context import RAGService, get_rag_service
from dorsu_connect.rag.generator import ERROR_ANSWER, Generator, get_generator
from dorsu_connect.rag.guardrails import build_clarification_message, is_conversation_reset_request
from dorsu_connect.rag.query_analyzer import QueryAnalyzer, get_query_analyzer
from dorsu_connect.rag.query_types import is_schedule_query
from dorsu_connect.rag.typo import correct_typos
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import (
    ChatRequest,
    ChatResponse,
    ConversationTurn,
    GeneratedAnswer,
)

logger = get_logger(__name__)

RESET_REPLY = "Conversation cleared. What would you like to know about DOrSU?"


class ChatService:
    """
    Answers chat messages from the knowledge base.

    Example:
        >>> service = ChatService()
        >>> response = service.chat(ChatRequest(prompt="Who is the president of DOrSU?"))
        >>> response.source
        'rag'
    """

    def __init__(
        self,
        rag_service: Optional[RAGService] = None,
        generator: Optional[Generator] = None,
        cache: Optional[ResponseCache] = None,
        analytics: Optional[QueryAnalytics] = None,
        analyzer: Optional[QueryAnalyzer] = None,
        manifest_manager: Optional[ManifestManager] = None,
        history_turns: Optional[int] = None,
        max_conversations: Optional[int] = None,
    ):
        settings = get_settings()
        self.rag_service = rag_service or get_rag_service()
        self.generator = generator or get_generator()
        self.cache = cache or get_response_cache()
        self.analytics = analytics or get_query_analytics()
        self.analyzer = analyzer or get_query_analyzer()
        self.manifest_manager = manifest_manager or ManifestManager()
        self.history_turns = history_turns or settings.generation.history_turns
        self.max_conversations = max_conversations or settings.generation.max_conversations

        # Least recently used conversation first
        self._histories: OrderedDict[str, list[ConversationTurn]] = OrderedDict()
        self._lock = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────────
    # Conversation History
    # ─────────────────────────────────────────────────────────────────────────

    def get_history(self, conversation_id: str) -> list[ConversationTurn]:
        with self._lock:
            return list(self._histories.get(conversation_id, []))

    def clear_conversation(self, conversation_id: str) -> bool:
        with self._lock:
            return self._histories.pop(conversation_id, None) is not None

    def _remember(self, conversation_id: str, question: str, reply: str) -> None:
        with self._lock:
            turns = self._histories.setdefault(conversation_id, [])
            self._histories.move_to_end(conversation_id)
            turns.append(ConversationTurn(role="user", content=question))
            turns.append(ConversationTurn(role="assistant", content=reply))
            del turns[: max(0, len(turns) - self.history_turns * 2)]
            while len(self._histories) > self.max_conversations:
                evicted, _ = self._histories.popitem(last=False)
                logger.debug(f"Dropped history of idle conversation {evicted}")

    # ─────────────────────────────────────────────────────────────────────────
    # Pipeline
    # ─────────────────────────────────────────────────────────────────────────

    def chat(self, request: ChatRequest) -> ChatResponse:
        """
        Answer one chat message.

        Raises:
            ValueError: If the request carries no prompt or message
        """
        started = time.perf_counter()
        text = request.text
        if not text:
            raise ValueError("prompt required")

        conversation_id = request.conversation_id
        user_type = request.user_type

        if is_conversation_reset_request(text):
            self.clear_conversation(conversation_id)
            logger.info(f"Conversation reset: {conversation_id}")
            return ChatResponse(
                reply=RESET_REPLY,
                source="system",
                conversation_cleared=True,
                response_time_ms=self._elapsed(started),
            )

        typo = correct_typos(text)
        query = typo.corrected
        corrected_query = query if typo.has_corrections else None

        analysis = self.analyzer.analyze(query)
        if analysis.needs_clarification:
            logger.info(f"Asking for clarification: {analysis.vague_reason}")
            return ChatResponse(
                reply=build_clarification_message(analysis),
                source="clarification",
                corrected_query=corrected_query,
                needs_clarification=True,
                response_time_ms=self._elapsed(started),
            )

        knowledge_version = self.manifest_manager.current_version()
        use_cache = not analysis.is_follow_up
        if use_cache:
            cached = self.cache.get(query, user_type, knowledge_version)
            if cached is not None:
                self._remember(conversation_id, text, cached.reply)
                elapsed = self._elapsed(started)
                self.analytics.log_query(query, cached.query_type, user_type, elapsed, cached=True)
                logger.info(f"Cache hit for: '{query[:50]}'")
                return ChatResponse(
                    reply=cached.reply,
                    source="cache",
                    query_type=cached.query_type,
                    corrected_query=corrected_query,
                    sections=cached.sections,
                    cached=True,
                    response_time_ms=elapsed,
                )

        settings = analysis.settings
        retrieved = self.rag_service.retrieve(
            query,
            max_tokens=settings.rag_max_tokens,
            max_sections=settings.rag_sections,
            suggest_more=settings.suggest_more,
            user_type=user_type,
        )

        answer = self._generate(query, retrieved.text, conversation_id, settings.temperature)

        if answer.success and use_cache and retrieved.has_data:
            self.cache.set(
                query,
                answer.answer,
                user_type=user_type,
                query_type=retrieved.query_type.value,
                sections=retrieved.sections,
                knowledge_version=knowledge_version,
            )

        self._remember(conversation_id, text, answer.answer)
        elapsed = self._elapsed(started)
        self.analytics.log_query(query, retrieved.query_type.value, user_type, elapsed)

        return ChatResponse(
            reply=answer.answer,
            source="rag" if answer.success else "error",
            query_type=retrieved.query_type.value,
            corrected_query=corrected_query,
            sections=retrieved.sections,
            response_time_ms=elapsed,
        )

    def _generate(
        self,
        query: str,
        context: str,
        conversation_id: str,
        temperature: float,
    ) -> GeneratedAnswer:
        if not self.generator.is_available():
            logger.warning("Generation skipped: GEMINI_API_KEY is not configured")
            return GeneratedAnswer(
                query=query,
                answer=ERROR_ANSWER,
                success=False,
                error="Gemini API key not configured",
            )
        return self.generator.generate(
            query,
            context,
            history=self.get_history(conversation_id),
            temperature=temperature,
            is_schedule=is_schedule_query(query),
        )

    @staticmethod
    def _elapsed(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service

