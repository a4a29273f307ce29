"""
Context Module - Assemble the knowledge context handed to the LLM.
===================================================================

``RAGService`` keeps the search indexes in sync with the knowledge store and
turns a user question into a token-budgeted markdown context:

1. Typo correction and query typing
2. Typed/hybrid search, plus calendar events for schedule questions
3. Rendering within the token budget (schedule events first)
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from dorsu_connect.indexing.knowledge_store import KnowledgeStore, get_knowledge_store
from dorsu_connect.rag.query_types import (
    LISTING,
    PLURAL_KEYWORDS,
    detect_query_type,
    extract_schedule_filters,
    is_basic_university_query,
    is_comprehensive_query,
    is_schedule_query,
)
from dorsu_connect.rag.search import HybridSearchService
from dorsu_connect.rag.typo import correct_typos
from dorsu_connect.schedule.service import ScheduleService, get_schedule_service, semester_label
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import DataFileError, StoreError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import QueryType, ScheduleEvent, SearchHit
from dorsu_connect.shared.utils import to_timezone

logger = get_logger(__name__)


NO_DATA_MESSAGE = "[NO KNOWLEDGE BASE DATA AVAILABLE]"

BASIC_INFO = (
    "## DAVAO ORIENTAL STATE UNIVERSITY (DOrSU)\n"
    "**Full Name:** Davao Oriental State University\n"
    "**Type:** State-funded research-based coeducational higher education institution\n"
    "**Location:** Mati City, Davao Oriental, Philippines\n"
    "**Founded:** December 13, 1989\n\n"
)

SCHEDULE_HEADER = "\n## SCHEDULE EVENTS AND ANNOUNCEMENTS\n\n"

SUGGESTIONS = (
    "DOrSU's history and founding",
    "Academic programs and faculties",
    "Leadership and organizational structure",
    "Core values and mission",
    "Campus locations and enrollment",
)

DESCRIPTION_LIMIT = 150
MIN_TRUNCATED_CHARS = 100
TRUNCATE_BELOW_RATIO = 0.9


def estimate_tokens(text: str) -> int:
    """Rough token count: a quarter of the character count, rounded."""
    return int(len(text) / 4 + 0.5)


@dataclass
class RetrievedContext:
    """Everything retrieval produced for one question."""

    text: str
    query: str
    corrected_query: str
    query_type: QueryType
    hits: list[SearchHit] = field(default_factory=list)
    events: list[ScheduleEvent] = field(default_factory=list)
    tokens: int = 0

    @property
    def has_data(self) -> bool:
        return bool(self.hits or self.events)

    @property
    def sections(self) -> list[str]:
        """Distinct sections that contributed, in rank order."""
        return list(dict.fromkeys(h.section for h in self.hits if h.section))


class RAGService:
    """
    Retrieval front end used by the chat pipeline.

    Example:
        >>> rag = RAGService()
        >>> print(rag.get_context_for_topic("Who is the president?", max_tokens=600))
        ## leadership (president)
        ...
    """

    def __init__(
        self,
        store: Optional[KnowledgeStore] = None,
        search_service: Optional[HybridSearchService] = None,
        schedule_service: Optional[ScheduleService] = None,
    ):
        settings = get_settings()
        self._store = store
        self.search_service = search_service or HybridSearchService(store=store)
        self._schedule_service = schedule_service
        self.sync_interval = settings.refresh.sync_interval_seconds
        self.default_max_sections = settings.search.max_sections
        self.timezone = settings.schedule.timezone

        self._last_sync: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def store(self) -> KnowledgeStore:
        """Lazy load knowledge store."""
        if self._store is None:
            self._store = get_knowledge_store()
        return self._store

    @property
    def schedule_service(self) -> ScheduleService:
        if self._schedule_service is None:
            self._schedule_service = get_schedule_service()
        return self._schedule_service

    # ─────────────────────────────────────────────────────────────────────────
    # Sync
    # ─────────────────────────────────────────────────────────────────────────

    def sync_with_store(self) -> bool:
        """
        Reload the search indexes unless they were synced recently.

        Returns:
            True if a sync ran
        """
        with self._lock:
            if (
                self._last_sync is not None
                and time.monotonic() - self._last_sync < self.sync_interval
            ):
                return False
            self._sync()
            return True

    def force_sync(self) -> int:
        """Reload the search indexes now; returns the number of chunks loaded."""
        with self._lock:
            return self._sync()

    def _sync(self) -> int:
        chunks = self.store.get_all_chunks(include_embeddings=True)
        missing = [c.id for c in chunks if not c.embedding]
        if missing:
            logger.warning(
                f"{len(missing)} chunks have no embedding and are keyword-only "
                f"(first: {missing[0]})"
            )
        self.search_service.load(chunks)
        self._last_sync = time.monotonic()
        logger.info(
            f"Synced {len(chunks)} chunks ({len(chunks) - len(missing)} with embeddings)"
        )
        return len(chunks)

    # ─────────────────────────────────────────────────────────────────────────
    # Retrieval
    # ─────────────────────────────────────────────────────────────────────────

    def get_context_for_topic(
        self,
        query: str,
        max_tokens: int = 800,
        max_sections: Optional[int] = None,
        suggest_more: bool = False,
        user_type: Optional[str] = None,
    ) -> str:
        """
        Build the markdown context for a question.

        Args:
            query: User question
            max_tokens: Token budget for the context
            max_sections: Base result count (widened per query type)
            suggest_more: Append follow-up suggestions for basic questions
            user_type: ``student``, ``faculty`` or None, for event visibility

        Returns:
            Context text, or ``[NO KNOWLEDGE BASE DATA AVAILABLE]``
        """
        return self.retrieve(query, max_tokens, max_sections, suggest_more, user_type).text

    def retrieve(
        self,
        query: str,
        max_tokens: int = 800,
        max_sections: Optional[int] = None,
        suggest_more: bool = False,
        user_type: Optional[str] = None,
    ) -> RetrievedContext:
        """Same as ``get_context_for_topic`` but keeps the hits and events."""
        max_sections = max_sections or self.default_max_sections
        try:
            self.sync_with_store()
        except StoreError as e:
            logger.warning(f"Knowledge store sync failed, using last loaded index: {e}")

        corrected = correct_typos(query).corrected
        query_type = detect_query_type(corrected)
        hits = self._search(corrected, query_type, max_sections)
        events = self._schedule_events(corrected, user_type)
        event_hits = [self.schedule_service.event_to_hit(e, corrected) for e in events]
        ranked = sorted(zip(events, event_hits), key=lambda pair: -pair[1].score)
        events = [event for event, _ in ranked]
        hits = [hit for _, hit in ranked] + hits

        result = RetrievedContext(
            text=NO_DATA_MESSAGE,
            query=query,
            corrected_query=corrected,
            query_type=query_type,
            hits=hits,
            events=events,
        )
        if not result.has_data:
            logger.info(f"No knowledge base data for: '{corrected[:50]}'")
            return result

        chunk_hits = [h for h in hits if h.source != "schedule"]
        result.text, result.tokens = self._render(corrected, chunk_hits, events, max_tokens, suggest_more)
        logger.debug(
            f"Context for [{query_type.value}]: {len(chunk_hits)} hits, {len(events)} events, "
            f"{result.tokens} tokens"
        )
        return result

    def _search(self, query: str, query_type: QueryType, max_sections: int) -> list[SearchHit]:
        is_admission = query_type == QueryType.ADMISSION_REQUIREMENTS
        max_results = max_sections * (5 if is_admission else 3)

        hits = self.search_service.search(query, max_results, query_type)

        if is_admission:
            hits.sort(key=lambda h: h.type != "admission_requirements")
        if query_type == QueryType.VISION_MISSION and not hits:
            logger.debug("Vision/mission search empty, retrying comprehensively")
            hits = self.search_service.comprehensive_search(query, max_results)
        return hits

    def _schedule_events(self, query: str, user_type: Optional[str]) -> list[ScheduleEvent]:
        if not is_schedule_query(query):
            return []
        filters = extract_schedule_filters(query)
        try:
            return self.schedule_service.get_events(filters, user_type)
        except DataFileError as e:
            logger.warning(f"Schedule events unavailable: {e}")
            return []

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def _render(
        self,
        query: str,
        hits: list[SearchHit],
        events: list[ScheduleEvent],
        max_tokens: int,
        suggest_more: bool,
    ) -> tuple[str, int]:
        lower = query.lower()
        is_comprehensive = is_comprehensive_query(query)
        is_basic = is_basic_university_query(query)
        include_all = (
            is_comprehensive
            or LISTING.search(query) is not None
            or any(kw in lower for kw in PLURAL_KEYWORDS)
        )

        context = ""
        tokens = 0
        if is_basic and not is_comprehensive:
            context = BASIC_INFO
            tokens = estimate_tokens(BASIC_INFO)

        if events:
            context += SCHEDULE_HEADER
            tokens += estimate_tokens(SCHEDULE_HEADER)
            for block in self._event_blocks(events):
                block_tokens = estimate_tokens(block)
                if tokens + block_tokens > max_tokens:
                    break
                context += block
                tokens += block_tokens

        for hit in hits:
            section_text = f"## {hit.section} ({hit.type})\n{hit.text}\n\n"
            section_tokens = estimate_tokens(section_text)
            if tokens + section_tokens > max_tokens:
                if include_all and tokens < max_tokens * TRUNCATE_BELOW_RATIO:
                    remaining = (max_tokens - tokens) * 4
                    if remaining > MIN_TRUNCATED_CHARS:
                        context += section_text[:remaining] + "...\n\n"
                break
            context += section_text
            tokens += section_tokens

        if suggest_more and is_basic and not is_comprehensive:
            context += "\n\n**Would you like to know more about:**\n"
            context += "\n".join(f"• {item}" for item in SUGGESTIONS)

        return context, tokens

    def _short_date(self, value: datetime) -> str:
        local = to_timezone(value, self.timezone)
        return f"{local:%b} {local.day}"

    def _event_blocks(self, events: list[ScheduleEvent]) -> list[str]:
        """One markdown block per event title, dates merged."""
        groups: dict[str, list[ScheduleEvent]] = {}
        for event in events:
            groups.setdefault(event.title or "Untitled Event", []).append(event)

        blocks = []
        for title, group in groups.items():
            first = group[0]
            lines = [f"**{title}**"]

            label = semester_label(first.semester)
            if label:
                lines.append(f"Semester: {label}")

            ranges: dict[str, str] = {}
            for event in group:
                if event.start_date and event.end_date:
                    key = f"{event.start_date.isoformat()}_{event.end_date.isoformat()}"
                    display = f"{self._short_date(event.start_date)} - {self._short_date(event.end_date)}"
                elif event.effective_date:
                    key = event.effective_date.isoformat()
                    display = self._short_date(event.effective_date)
                else:
                    continue
                ranges.setdefault(key, display)

            if ranges:
                year = (
                    to_timezone(first.effective_date, self.timezone).year
                    if first.effective_date
                    else datetime.now().year
                )
                shown = list(ranges.values())
                if len(shown) == 1:
                    lines.append(f"Date: {shown[0]}, {year}")
                elif len(shown) <= 3:
                    lines.append(f"Dates: {', '.join(shown)}, {year}")
                else:
                    lines.append("Dates:")
                    lines.extend(f"   • {item}, {year}" for item in shown)

            if first.time:
                lines.append(f"Time: {first.time}")
            if first.category:
                lines.append(f"Category: {first.category}")
            if first.description:
                description = first.description
                if len(description) > DESCRIPTION_LIMIT:
                    description = description[:DESCRIPTION_LIMIT] + "..."
                lines.append(description)

            blocks.append("\n".join(lines) + "\n\n")
        return blocks


_rag_service: Optional[RAGService] = None


def get_rag_service() -> RAGService:
    global _rag_service
    if _rag_service is None:
        _rag_service = RAGService()
    return _rag_service
