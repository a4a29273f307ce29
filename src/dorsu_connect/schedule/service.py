"""
Schedule Service Module - Calendar events and announcements.
============================================================

Loads the academic calendar from a JSON file and answers date-window,
semester, exam-type and audience filtered lookups. Events become
``SearchHit``s so the context builder can render them next to knowledge
chunks.
"""

import re
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import DataFileError
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import ScheduleEvent, ScheduleFilters, SearchHit
from dorsu_connect.shared.utils import format_long_date, load_json, to_timezone

logger = get_logger(__name__)

EVENT_BASE_SCORE = 100

PRELIM = re.compile(r"\b(prelim|preliminary|prelims?)\b", re.IGNORECASE)
MIDTERM = re.compile(r"\b(midterm|mid-term|mid\s+term)\b", re.IGNORECASE)
FINAL = re.compile(r"\b(final|finals?)\b", re.IGNORECASE)
EXAM = re.compile(r"\b(exam|examination|exams?)\b", re.IGNORECASE)
EXAM_PATTERNS = {"prelim": PRELIM, "midterm": MIDTERM, "final": FINAL}
_WORDS = re.compile(r"[A-Za-z0-9]+")


def semester_label(semester: Optional[int]) -> str:
    """``1st Semester``, ``2nd Semester``, ``Off Semester`` or empty."""
    if semester == 1:
        return "1st Semester"
    if semester == 2:
        return "2nd Semester"
    if semester == 0:
        return "Off Semester"
    return "" if semester is None else f"Semester {semester}"


def exam_boost(event: ScheduleEvent, query: str) -> int:
    """
    Extra score for exam events when the query asks about exams.

    - +100 when the title names an exam type the query asks for
    - +50 when the query says "exam" and the title is an exam
    - +30 for a generic exam question and any prelim/midterm/final title
    """
    title = event.title
    requested = [name for name, pattern in EXAM_PATTERNS.items() if pattern.search(query)]
    asks_exam = EXAM.search(query) is not None

    points = 0
    if any(EXAM_PATTERNS[name].search(title) for name in requested):
        points += 100
    if asks_exam and re.search(r"\b(exam|examination)s?\b", title, re.IGNORECASE):
        points += 50
    if asks_exam and not requested and any(p.search(title) for p in EXAM_PATTERNS.values()):
        points += 30
    return points


class ScheduleService:
    """
    Read-only access to calendar events.

    Example:
        >>> service = ScheduleService()
        >>> filters = extract_schedule_filters("midterm exams 2nd semester")
        >>> [e.title for e in service.get_events(filters, user_type="student")]
        ['Midterm Examinations']
    """

    def __init__(self, events_file: Optional[Path] = None, timezone_name: Optional[str] = None):
        settings = get_settings()
        self.events_file = events_file or settings.resolve_path(settings.schedule.events_file)
        self.timezone = timezone_name or settings.schedule.timezone
        self._events: Optional[list[ScheduleEvent]] = None
        self._lock = threading.Lock()

    @property
    def events(self) -> list[ScheduleEvent]:
        """Lazy load events from the JSON file."""
        with self._lock:
            if self._events is None:
                self._events = self._load()
            return self._events

    def reload(self) -> int:
        """Re-read the events file; returns the number of events."""
        with self._lock:
            self._events = self._load()
            return len(self._events)

    def _load(self) -> list[ScheduleEvent]:
        if not self.events_file.exists():
            logger.warning(f"Schedule file not found: {self.events_file}")
            return []
        try:
            raw = load_json(self.events_file)
        except ValueError as e:
            raise DataFileError(f"Invalid schedule JSON: {e}", str(self.events_file)) from e

        items = raw.get("events", []) if isinstance(raw, dict) else raw
        events = []
        for item in items:
            try:
                events.append(ScheduleEvent.model_validate(item))
            except ValidationError as e:
                event_id = item.get("id", "?") if isinstance(item, dict) else "?"
                logger.warning(f"Skipping invalid schedule event {event_id}: {e}")
        logger.info(f"Loaded {len(events)} schedule events from {self.events_file.name}")
        return events

    # ─────────────────────────────────────────────────────────────────────────
    # Filtering
    # ─────────────────────────────────────────────────────────────────────────

    def _local_date(self, value: Optional[datetime]) -> Optional[date]:
        if value is None:
            return None
        return to_timezone(value, self.timezone).date()

    def _in_window(self, event: ScheduleEvent, filters: ScheduleFilters) -> bool:
        start = self._local_date(event.start_date)
        end = self._local_date(event.end_date)
        if start and end:
            return start <= filters.end and end >= filters.start
        single = self._local_date(event.date) or start
        if single is None:
            return False
        return filters.start <= single <= filters.end

    def _sort_key(self, event: ScheduleEvent) -> tuple[bool, float]:
        when = event.effective_date
        return (when is None, to_timezone(when, self.timezone).timestamp() if when else 0.0)

    @staticmethod
    def visible_to(event: ScheduleEvent, user_type: Optional[str]) -> bool:
        """No user type, or faculty, sees everything; others see ``all`` and their own."""
        if not user_type or user_type == "faculty":
            return True
        return event.user_type in ("all", user_type)

    def get_events(
        self,
        filters: ScheduleFilters,
        user_type: Optional[str] = None,
    ) -> list[ScheduleEvent]:
        """
        Events matching the filters, sorted by start date.

        Exam types use OR semantics: an event matches when its title names
        any of the requested types.
        """
        selected = []
        for event in self.events:
            if not self._in_window(event, filters):
                continue
            if filters.semester is not None and event.semester != filters.semester:
                continue
            if filters.exam_types and not any(
                EXAM_PATTERNS[name].search(event.title) for name in filters.exam_types
            ):
                continue
            if not self.visible_to(event, user_type):
                continue
            selected.append(event)

        selected.sort(key=self._sort_key)
        logger.debug(f"Schedule lookup matched {len(selected)} of {len(self.events)} events")
        return selected

    # ─────────────────────────────────────────────────────────────────────────
    # Conversion
    # ─────────────────────────────────────────────────────────────────────────

    def event_text(self, event: ScheduleEvent) -> str:
        """Searchable sentence form of an event."""
        parts = [event.title]
        if event.description:
            parts.append(event.description)
        when = event.effective_date
        if when is not None:
            parts.append(f"Date: {format_long_date(to_timezone(when, self.timezone))}")
        if event.time and event.time != "All Day":
            parts.append(f"Time: {event.time}")
        if event.category:
            parts.append(f"Category: {event.category}")
        label = semester_label(event.semester)
        if label:
            parts.append(f"Semester: {label}")
        if event.start_date and event.end_date:
            start = format_long_date(to_timezone(event.start_date, self.timezone))
            end = format_long_date(to_timezone(event.end_date, self.timezone))
            parts.append(f"Date Range: {start} to {end}")
        return ". ".join(p.rstrip(".") for p in parts) + "."

    @staticmethod
    def event_keywords(event: ScheduleEvent) -> list[str]:
        keywords = [w.lower() for w in _WORDS.findall(event.title) if len(w) > 3]
        if event.category:
            keywords.append(event.category.lower())
        keywords.extend(_WORDS.findall(semester_label(event.semester).lower()))
        keywords.extend(
            [w.lower() for w in _WORDS.findall(event.description) if len(w) > 4][:5]
        )
        return list(dict.fromkeys(keywords))

    def event_to_hit(self, event: ScheduleEvent, query: str = "") -> SearchHit:
        """
        Wrap an event as a search hit (id ``schedule-{id}``, score 100 plus
        any exam boost for ``query``).
        """
        metadata = event.model_dump(mode="json", by_alias=True)
        return SearchHit(
            id=f"schedule-{event.id}",
            section="schedule_events",
            type="schedule_event",
            category=event.category,
            text=self.event_text(event),
            score=EVENT_BASE_SCORE + (exam_boost(event, query) if query else 0),
            keywords=self.event_keywords(event),
            metadata=metadata,
            source="schedule",
        )


_schedule_service: Optional[ScheduleService] = None


def get_schedule_service() -> ScheduleService:
    global _schedule_service
    if _schedule_service is None:
        _schedule_service = ScheduleService()
    return _schedule_service
