"""
Query Types Module - Route a question to a typed search.
========================================================

``detect_query_type`` applies an ordered list of patterns; the first match
decides which topic profile the search uses. Order matters: deans are checked
before leadership ("dean" is also a leadership word), values before programs
("graduate outcomes" would otherwise look like a program query), and the broad
comprehensive pattern comes last.
"""

import calendar
import re
from datetime import date, timedelta
from typing import Callable, Optional

from dorsu_connect.schedule.service import EXAM, FINAL, MIDTERM, PRELIM
from dorsu_connect.shared.schemas import QueryType, ScheduleFilters

_I = re.IGNORECASE

HISTORY = re.compile(
    r"\b(history|historical|founded|established|background|evolution|development|kasaysayan|"
    r"itinatag|pinagmulan|gitukod|timeline|narrative|heritage|conversion|doscst|mcc|"
    r"mati community college)\b",
    _I,
)
DEANS = re.compile(r"\b(dean|deans|who\s+(is|are)\s+the\s+dean|dean\s+of)\b", _I)
LEADERSHIP = re.compile(
    r"\b(president|vice president|vice presidents|chancellor|director|directors|leadership|"
    r"board|governance|administration|executive|executives|board of regents)\b",
    _I,
)
OFFICE = re.compile(
    r"\b(who\s+(is|are)\s+(the\s+)?(head|director|chief|manager|officer)\s+(of|in)?|head\s+of|"
    r"director\s+of|chief\s+of|manager\s+of|OSPAT|OSA|OSCD|FASG|PESO|IRO|HSU|CGAD|IP-TBM|GCTC)\b",
    _I,
)
VALUES = re.compile(
    r"\b(core\s+values?|values?\s+of|graduate\s+outcomes?|outcomes?|quality\s+policy|mandate|charter)\b",
    _I,
)
PROGRAMS = re.compile(
    r"\b(program|programs|programme|course|courses|degree|degrees|bachelor|BS|BA|MA|MS|PhD|EdD|"
    r"undergraduate|graduate\s+(program|programs|degree|degrees)|masters|doctorate|"
    r"what\s+programs?\s+are|what\s+courses?\s+are)\b",
    _I,
)
GRADUATE_OUTCOMES = re.compile(r"\bgraduate\s+outcomes?\b", _I)
FACULTIES = re.compile(
    r"\b(faculty|faculties|FACET|FALS|FTED|FBM|FCJE|FNAHS|FHUSOCOM|college|colleges|"
    r"what\s+faculties?\s+are|list\s+faculties?)\b",
    _I,
)
STUDENT_ORG = re.compile(
    r"\b(usc|university\s+student\s+council|student\s+council|ang.*sidlakan|catalyst|"
    r"student\s+organization|student\s+organizations|student\s+publication)\b",
    _I,
)
ADMISSION = re.compile(
    r"\b(admission\s+requirements?|requirements?\s+for\s+admission|admission\s+req|"
    r"what\s+(are|do|does)\s+.*\s+(need|required|requirement))\b",
    _I,
)
ADMISSION_WORD = re.compile(r"\b(admission|admissions)\b", _I)
REQUIREMENT_WORD = re.compile(r"\b(requirements?|required|need|needed)\b", _I)
HYMN = re.compile(
    r"\b(hymn|anthem|university\s+hymn|university\s+anthem|dorsu\s+hymn|dorsu\s+anthem|"
    r"lyrics|song|composer)\b",
    _I,
)
VISION_MISSION = re.compile(
    r"\b(vision|mission|what\s+is\s+.*\s+(vision|mission)|dorsu.*\s+(vision|mission)|"
    r"university.*\s+(vision|mission))\b",
    _I,
)
CALENDAR = re.compile(
    r"\b(date|dates|event|events|announcement|announcements|schedule|schedules|calendar|when|"
    r"upcoming|coming|next|this\s+(week|month|year)|deadline|deadlines|holiday|holidays|"
    r"academic\s+calendar|semester|enrollment\s+period|registration|exam\s+schedule|"
    r"class\s+schedule|timeline|time\s+table)\b",
    _I,
)
SCHEDULE_EXTRA = re.compile(
    r"\b(graduation|seminar|workshop|conference|meeting|activity|activities)\b", _I
)
CALENDAR_INTENT = re.compile(
    r"\b(when\s+(is|are|will|does)|what\s+(date|dates|time|schedule)|"
    r"tell\s+me\s+(about\s+)?(the\s+)?(schedule|dates?|events?))\b",
    _I,
)
SCHOLARSHIP = re.compile(
    r"\b(scholarship|scholarships|scholar|scholars|recipients?|beneficiaries?|"
    r"total\s+(number|count|students?|recipients?)|how\s+many\s+students?\s+.*scholarship|"
    r"students?\s+with\s+scholarship|scholarship\s+(statistics?|data|information|numbers?|counts?))\b",
    _I,
)
COMPREHENSIVE = re.compile(
    r"\b(list|all|every|show\s+all|what\s+are\s+the|enumerate|faculties|programs|campuses|"
    r"missions|objectives)\b",
    _I,
)
LISTING = re.compile(r"\b(list|all|every|show\s+all|what\s+are\s+the|enumerate)\b", _I)
BASIC_UNIVERSITY = re.compile(
    r"^(what is|what's|tell me about)\s+(dorsu|davao oriental state university)", _I
)

COMPREHENSIVE_KEYWORDS = (
    "core values", "mission", "missions", "mandate", "objectives",
    "graduate outcomes", "quality commitments", "president", "vice president", "vice presidents",
    "leadership", "chancellor", "board", "governance", "administration",
    "history", "faculties", "faculty", "programs", "programme", "enrollment",
    "campuses", "campus", "deans", "dean", "directors", "director",
    "events", "schedules", "calendar", "announcements", "dates", "deadlines",
)
PLURAL_KEYWORDS = (
    "faculties", "programs", "courses", "deans", "directors", "campuses",
    "values", "missions", "objectives", "commitments", "outcomes",
    "events", "schedules", "announcements", "dates", "deadlines",
    "presidents", "vice presidents", "chancellors", "executives",
)


def _is_admission(query: str) -> bool:
    return bool(ADMISSION.search(query)) or (
        bool(ADMISSION_WORD.search(query)) and bool(REQUIREMENT_WORD.search(query))
    )


def is_schedule_query(query: str) -> bool:
    """Calendar, event or deadline question."""
    return bool(CALENDAR.search(query) or CALENDAR_INTENT.search(query))


_RULES: list[tuple[QueryType, Callable[[str], bool]]] = [
    (QueryType.HISTORY, lambda q: bool(HISTORY.search(q))),
    (QueryType.DEANS, lambda q: bool(DEANS.search(q))),
    (QueryType.LEADERSHIP, lambda q: bool(LEADERSHIP.search(q))),
    (QueryType.OFFICE, lambda q: bool(OFFICE.search(q))),
    (QueryType.VALUES, lambda q: bool(VALUES.search(q))),
    (QueryType.PROGRAMS, lambda q: bool(PROGRAMS.search(q)) and not GRADUATE_OUTCOMES.search(q)),
    (QueryType.FACULTIES, lambda q: bool(FACULTIES.search(q))),
    (QueryType.STUDENT_ORG, lambda q: bool(STUDENT_ORG.search(q))),
    (QueryType.ADMISSION_REQUIREMENTS, _is_admission),
    (QueryType.HYMN, lambda q: bool(HYMN.search(q))),
    (QueryType.VISION_MISSION, lambda q: bool(VISION_MISSION.search(q))),
    (QueryType.SCHEDULE, lambda q: is_schedule_query(q) or bool(SCHEDULE_EXTRA.search(q))),
    (QueryType.SCHOLARSHIP, lambda q: bool(SCHOLARSHIP.search(q))),
    (QueryType.COMPREHENSIVE, lambda q: bool(COMPREHENSIVE.search(q))),
]


def detect_query_type(query: str) -> QueryType:
    """
    Pick the search route for a query; the first matching rule wins.

    Example:
        >>> detect_query_type("Who is the dean of FACET?")
        <QueryType.DEANS: 'deans'>
        >>> detect_query_type("What are the graduate outcomes?")
        <QueryType.VALUES: 'values'>
    """
    for query_type, matches in _RULES:
        if matches(query):
            return query_type
    return QueryType.GENERAL


def is_comprehensive_query(query: str) -> bool:
    """True when the user seems to want every item of a kind."""
    lower = query.lower()
    return (
        any(kw in lower for kw in COMPREHENSIVE_KEYWORDS)
        or any(kw in lower for kw in PLURAL_KEYWORDS)
        or bool(LISTING.search(query))
    )


def is_basic_university_query(query: str) -> bool:
    """Questions like "What is DOrSU?" that get the fixed identity block."""
    return bool(BASIC_UNIVERSITY.search(query.strip()))


# ─────────────────────────────────────────────────────────────────────────────
# Schedule Filters
# ─────────────────────────────────────────────────────────────────────────────


MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
MONTH_ABBR = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

SEMESTER_PATTERNS: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"\b(1st|first)\s+semester\b", _I), 1),
    (re.compile(r"\b(2nd|second)\s+semester\b", _I), 2),
    (re.compile(r"\boff\s+semester\b", _I), 0),
    (re.compile(r"\bsemester\s+1\b|\bsemester\s+one\b", _I), 1),
    (re.compile(r"\bsemester\s+2\b|\bsemester\s+two\b", _I), 2),
    (re.compile(r"\b1\s+sem\b|\bfirst\s+sem\b", _I), 1),
    (re.compile(r"\b2\s+sem\b|\bsecond\s+sem\b", _I), 2),
)

SCHEDULE_WORD = re.compile(r"\b(schedule|schedules?|date|dates?|when)\b", _I)

DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_LOOKAHEAD_DAYS = 365


def _requested_month(lower: str) -> Optional[int]:
    """Last month name mentioned (1-12), falling back to abbreviations."""
    month = None
    for index, name in enumerate(MONTHS, start=1):
        if name in lower:
            month = index
    if month is None:
        for index, abbr in enumerate(MONTH_ABBR, start=1):
            if re.search(rf"\b{abbr}\b", lower):
                month = index
    return month


def extract_schedule_filters(query: str, today: Optional[date] = None) -> ScheduleFilters:
    """
    Read a date window, semester and exam types out of a schedule question.

    - Month and year: that month
    - Year only: that calendar year
    - Otherwise: 30 days back to 365 days ahead of ``today``

    Exam types are only kept when the query has exam context ("exam",
    "schedule", "when", ... or more than one exam type).

    Example:
        >>> f = extract_schedule_filters("final and prelim exams March 2025")
        >>> (f.start.isoformat(), f.end.isoformat(), f.exam_types)
        ('2025-03-01', '2025-03-31', ['prelim', 'final'])
    """
    today = today or date.today()
    lower = query.lower()

    year_match = re.search(r"\b(20\d{2})\b", lower)
    year = int(year_match.group(1)) if year_match else None
    month = _requested_month(lower)

    if month is not None and year is not None:
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
    elif year is not None:
        start = date(year, 1, 1)
        end = date(year, 12, 31)
    else:
        start = today - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        end = today + timedelta(days=DEFAULT_LOOKAHEAD_DAYS)

    semester = None
    for pattern, value in SEMESTER_PATTERNS:
        if pattern.search(lower):
            semester = value
            break

    mentioned = [
        name
        for name, pattern in (("prelim", PRELIM), ("midterm", MIDTERM), ("final", FINAL))
        if pattern.search(query)
    ]
    has_exam_context = bool(EXAM.search(query) or SCHEDULE_WORD.search(query)) or len(mentioned) > 1

    return ScheduleFilters(
        start=start,
        end=end,
        semester=semester,
        exam_types=mentioned if has_exam_context else [],
        has_exam_context=has_exam_context,
    )
