"""
Topic Profiles Module - Declarative rules for typed search.
===========================================================

Each typed query (history, leadership, admission requirements, ...) is
answered from chunks picked by a ``TopicProfile``:

- match rules decide which chunks belong to the topic at all
- boosts add points for the strongest signals (section, type, phrases)
- exclusions drop chunks that match but answer a different question
- the vector filter decides which semantic hits may top up the results

Example:
    >>> profile = profile_for(QueryType.HISTORY, "When was DOrSU founded?")
    >>> ranked = profile.rank(chunks)
    >>> ranked[0][1]   # relevance of the best chunk
    360
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from dorsu_connect.rag.query_analyzer import extract_entities
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import KnowledgeChunk, QueryType, SearchHit

logger = get_logger(__name__)

Item = Union[KnowledgeChunk, SearchHit]

_EPOCH = datetime.min


# ─────────────────────────────────────────────────────────────────────────────
# Rule Primitives
# ─────────────────────────────────────────────────────────────────────────────


def _field_value(item: Item, name: str) -> str:
    """
    Text of a chunk field that a rule can test.

    ``metadata.<key>`` reads a metadata entry; ``keywords`` joins the keyword
    list; ``updated_at`` is non-empty when the chunk carries a timestamp.
    """
    if name.startswith("metadata."):
        value = item.metadata.get(name.split(".", 1)[1])
        return "" if value is None else str(value)
    if name == "keywords":
        return " ".join(item.keywords)
    if name == "updated_at":
        value = getattr(item, "updated_at", None)
        return value.isoformat() if value else ""
    return str(getattr(item, name, "") or "")


@dataclass(frozen=True)
class FieldRule:
    """
    One test against a chunk: a case-insensitive regex on a field, or exact
    membership of ``keyword`` in the chunk's keyword list.
    """

    field: str
    pattern: str = ""
    keyword: Optional[str] = None

    def matches(self, item: Item) -> bool:
        if self.keyword is not None:
            return self.keyword in (k.lower() for k in item.keywords)
        return re.search(self.pattern, _field_value(item, self.field), re.IGNORECASE) is not None


@dataclass(frozen=True)
class Boost:
    """Points awarded when every rule in ``when`` matches."""

    points: int
    when: tuple[FieldRule, ...]

    def applies(self, item: Item) -> bool:
        return all(rule.matches(item) for rule in self.when)


def rx(field_name: str, pattern: str) -> FieldRule:
    return FieldRule(field=field_name, pattern=pattern)


def kw(keyword: str) -> FieldRule:
    return FieldRule(field="keywords", keyword=keyword.lower())


def boost(points: int, *rules: FieldRule) -> Boost:
    return Boost(points=points, when=tuple(rules))


FRESHNESS = boost(10, rx("updated_at", "."))


# ─────────────────────────────────────────────────────────────────────────────
# Topic Profile
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TopicProfile:
    """
    Match, boost and exclusion rules for one query type.

    Attributes:
        query_type: The route this profile serves
        match_rules: A chunk matches when any rule matches
        boosts: Relevance contributions; relevance is their sum
        exclusions: A chunk is dropped when any rule matches
        vector_rules: A vector hit may supplement when any rule matches
        default_size: Result size used when the caller gives none
    """

    query_type: QueryType
    match_rules: tuple[FieldRule, ...]
    boosts: tuple[Boost, ...] = ()
    exclusions: tuple[FieldRule, ...] = ()
    vector_rules: tuple[FieldRule, ...] = ()
    default_size: int = 15

    def matches(self, item: Item) -> bool:
        return any(rule.matches(item) for rule in self.match_rules)

    def relevance(self, item: Item) -> int:
        return sum(b.points for b in self.boosts if b.applies(item))

    def is_excluded(self, item: Item) -> bool:
        return any(rule.matches(item) for rule in self.exclusions)

    def accepts_vector_hit(self, hit: SearchHit) -> bool:
        if self.is_excluded(hit):
            return False
        if not self.vector_rules:
            return self.matches(hit)
        return any(rule.matches(hit) for rule in self.vector_rules)

    def rank(self, chunks: list[KnowledgeChunk]) -> list[tuple[KnowledgeChunk, int]]:
        """
        Matching, non-excluded chunks with their relevance.

        Ordered by relevance descending, then most recently updated first.
        """
        ranked = [
            (chunk, self.relevance(chunk))
            for chunk in chunks
            if self.matches(chunk) and not self.is_excluded(chunk)
        ]
        ranked.sort(key=lambda pair: pair[0].updated_at or _EPOCH, reverse=True)
        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked


# ─────────────────────────────────────────────────────────────────────────────
# Profiles
# ─────────────────────────────────────────────────────────────────────────────

HISTORY_PROFILE = TopicProfile(
    query_type=QueryType.HISTORY,
    match_rules=(
        rx("section", r"^history$"),
        rx("type", r"timeline|history|narrative|heritage|conversion"),
        rx("category", r"\b(19|20)\d{2}\b"),
        rx("text", r"\b(founded|established|history|timeline|conversion|DOSCST|Davao Oriental State College)\b"),
        kw("history"),
        kw("timeline"),
        kw("founded"),
        kw("established"),
    ),
    boosts=(
        boost(200, rx("section", r"^history$")),
        boost(150, rx("type", r"^(timeline_event|history_narrative)$")),
        boost(100, rx("type", r"^(history|timeline)$")),
        boost(80, rx("text", r"2018.*may|may.*28|converted.*university|dorsu.*university")),
        boost(60, kw("history")),
        FRESHNESS,
    ),
    exclusions=(rx("type", r"^(conversion_process|heritage_info|current_mission)$"),),
    vector_rules=(
        rx("section", r"^history$"),
        rx("type", r"timeline|history"),
        rx("text", r"founded|established|dorsu|doscst"),
    ),
    default_size=60,
)

LEADERSHIP_PROFILE = TopicProfile(
    query_type=QueryType.LEADERSHIP,
    match_rules=(
        rx("section", r"leadership|organizationalStructure"),
        rx("type", r"^(president|vice_president|chancellor|director|leadership_position)$"),
        rx("text", r"\b(president|vice president|chancellor|board of regents)\b"),
        kw("president"),
        kw("leadership"),
        kw("chancellor"),
    ),
    boosts=(
        boost(300, rx("section", r"^leadership$"), rx("type", r"^president$")),
        boost(250, rx("text", r"roy.*ponce")),
        boost(250, rx("text", r"VP for|vice president for")),
        boost(200, rx("section", r"^leadership$")),
        boost(150, rx("type", r"^president$")),
        boost(100, kw("president")),
        boost(80, rx("text", r"education|expertise|achievement")),
        FRESHNESS,
    ),
    vector_rules=(
        rx("section", r"leadership|organizational"),
        rx("type", r"president|chancellor|leadership"),
    ),
    default_size=50,
)

DEANS_PROFILE = TopicProfile(
    query_type=QueryType.DEANS,
    match_rules=(
        rx("type", r"^dean$"),
        rx("category", r"\bdean\b"),
        rx("text", r"\bdeans?\b"),
        kw("dean"),
    ),
    boosts=(
        boost(200, rx("type", r"^dean$")),
        boost(150, rx("category", r"\bdean\b")),
        boost(100, kw("dean")),
        boost(50, rx("text", r"faculty of")),
        FRESHNESS,
    ),
    vector_rules=(rx("type", r"dean"), rx("text", r"\bdean\b")),
    default_size=10,
)

GENERIC_OFFICE_PROFILE = TopicProfile(
    query_type=QueryType.OFFICE,
    match_rules=(
        rx("section", r"offices|OfficeServices|OfficesAndCenters"),
        rx("type", r"office"),
        kw("office"),
    ),
    boosts=(
        boost(100, rx("type", r"^office_info$")),
        boost(80, rx("section", r"^offices$")),
        boost(50, rx("type", r"office")),
        FRESHNESS,
    ),
    vector_rules=(rx("section", r"office"), rx("type", r"office")),
    default_size=15,
)

VALUES_PROFILE = TopicProfile(
    query_type=QueryType.VALUES,
    match_rules=(
        rx("metadata.field", r"coreValues|graduateOutcomes|mandate|qualityPolicy|qualityCommitments"),
        rx("section", r"^(mandate|qualityPolicy)$"),
        rx("type", r"^charter_mandates$"),
        rx("text", r"core values|graduate outcomes|quality policy|mandate"),
        kw("values"),
        kw("outcomes"),
    ),
    boosts=(
        boost(200, rx("metadata.field", r"coreValues|graduateOutcomes")),
        boost(150, rx("metadata.field", r"mandate|qualityPolicy|qualityCommitments")),
        boost(100, rx("text", r"core values|graduate outcomes")),
        boost(60, rx("text", r"\b(excellence|integrity|innovation|service|unity|resilience)\b")),
        FRESHNESS,
    ),
    exclusions=(rx("metadata.field", r"hymn"),),
    vector_rules=(rx("text", r"values|outcomes|mandate|quality policy"),),
    default_size=15,
)

PROGRAMS_PROFILE = TopicProfile(
    query_type=QueryType.PROGRAMS,
    match_rules=(
        rx("section", r"^programs$"),
        rx("type", r"^academic_program$"),
        rx("metadata.programCode", r"."),
        kw("program"),
        kw("course"),
        kw("degree"),
    ),
    boosts=(
        boost(200, rx("type", r"^academic_program$")),
        boost(150, rx("section", r"^programs$")),
        boost(80, rx("metadata.facultyCode", r".")),
        boost(60, kw("program")),
        FRESHNESS,
    ),
    vector_rules=(rx("section", r"programs"), rx("text", r"\bbachelor|\bprogram\b")),
    default_size=30,
)

FACULTIES_PROFILE = TopicProfile(
    query_type=QueryType.FACULTIES,
    match_rules=(
        rx("section", r"^faculties$"),
        rx("type", r"^faculty$"),
        rx("category", r"^(facet|fals|fted|fbm|fcje|fnahs|fhusocom)$"),
    ),
    boosts=(
        boost(200, rx("type", r"^faculty$")),
        boost(150, rx("section", r"^faculties$")),
        boost(100, rx("text", r"faculty of")),
        FRESHNESS,
    ),
    vector_rules=(rx("section", r"facult"), rx("text", r"faculty of")),
    default_size=15,
)

STUDENT_ORG_PROFILE = TopicProfile(
    query_type=QueryType.STUDENT_ORG,
    match_rules=(
        rx("section", r"^studentOrganizations$"),
        rx("text", r"\b(USC|student council|sidlakan|catalyst)\b"),
        rx("category", r"officer|council|organization"),
        kw("usc"),
        kw("organization"),
    ),
    boosts=(
        boost(200, rx("section", r"^studentOrganizations$")),
        boost(150, rx("text", r"\b(USC|student council)\b")),
        boost(100, rx("text", r"sidlakan|catalyst")),
        boost(60, rx("category", r"officer")),
        FRESHNESS,
    ),
    vector_rules=(rx("section", r"student"), rx("text", r"council|organization|publication")),
    default_size=15,
)

ADMISSION_PROFILE = TopicProfile(
    query_type=QueryType.ADMISSION_REQUIREMENTS,
    match_rules=(
        rx("type", r"^admission_requirements$"),
        rx("category", "|".join(
            ("returningStudents", "continuingStudents", "transferringStudents",
             "secondDegreeStudents", "incomingFirstYearStudents")
        )),
        rx("text", r"SUAST|Form 138|Good Moral|Requirements?:"),
        kw("requirements"),
        kw("admission"),
    ),
    boosts=(
        boost(300, rx("type", r"^admission_requirements$")),
        boost(250, rx("category", r"Students$")),
        boost(200, rx("text", r"SUAST.*Examination|Form 138|Good Moral|PSA.*Birth|Drug.*Test|Medical.*certificate")),
        boost(150, rx("text", r"Requirements?:")),
        boost(80, kw("requirements")),
        boost(60, kw("admission")),
        FRESHNESS,
    ),
    vector_rules=(rx("type", r"admission"), rx("text", r"requirement|admission|enrol")),
    default_size=15,
)

HYMN_PROFILE = TopicProfile(
    query_type=QueryType.HYMN,
    match_rules=(
        rx("metadata.field", r"hymn|anthem"),
        rx("text", r"\b(hymn|anthem|lyrics)\b"),
        kw("hymn"),
        kw("anthem"),
        kw("lyrics"),
        kw("song"),
    ),
    boosts=(
        boost(300, rx("metadata.field", r"hymn")),
        boost(150, rx("text", r"\bhymn\b")),
        boost(100, kw("hymn")),
        boost(50, rx("text", r"lyrics|verse|chorus")),
        FRESHNESS,
    ),
    vector_rules=(rx("text", r"hymn|anthem|lyrics"),),
    default_size=30,
)

VISION_MISSION_PROFILE = TopicProfile(
    query_type=QueryType.VISION_MISSION,
    match_rules=(
        rx("metadata.field", r"visionMission|\bvision\b|\bmission\b"),
        rx("section", r"^visionMission$"),
        kw("vision"),
        kw("mission"),
    ),
    boosts=(
        boost(250, rx("section", r"^visionMission$")),
        boost(150, rx("metadata.field", r"vision")),
        boost(150, rx("metadata.field", r"mission")),
        boost(80, rx("text", r"\b(vision|mission)\b")),
        FRESHNESS,
    ),
    exclusions=(rx("metadata.field", r"hymn"), rx("type", r"^current_mission$")),
    vector_rules=(rx("text", r"\b(vision|mission)\b"),),
    default_size=15,
)

SCHEDULE_PROFILE = TopicProfile(
    query_type=QueryType.SCHEDULE,
    match_rules=(
        rx("section", r"schedule|calendar|announcement"),
        rx("type", r"schedule|event|announcement"),
        kw("schedule"),
        kw("calendar"),
        kw("exam"),
    ),
    boosts=(
        boost(150, rx("section", r"schedule|calendar")),
        boost(100, rx("type", r"schedule_event")),
        boost(50, kw("exam")),
        FRESHNESS,
    ),
    exclusions=(rx("type", r"^timeline_event$"),),
    vector_rules=(rx("text", r"schedule|calendar|deadline|exam|semester"),),
    default_size=30,
)

SCHOLARSHIP_PROFILE = TopicProfile(
    query_type=QueryType.SCHOLARSHIP,
    match_rules=(
        rx("section", r"scholarship"),
        rx("type", r"scholarship"),
        rx("text", r"scholarship|scholars\b|financial assistance|grant"),
        kw("scholarship"),
    ),
    boosts=(
        boost(250, rx("section", r"scholarship")),
        boost(200, rx("text", r"(total|with) scholarship")),
        boost(150, rx("type", r"scholarship")),
        boost(120, kw("scholarship")),
        boost(100, kw("students")),
        FRESHNESS,
    ),
    vector_rules=(rx("text", r"scholar|financial|grant"),),
    default_size=30,
)

PROFILES: dict[QueryType, TopicProfile] = {
    profile.query_type: profile
    for profile in (
        HISTORY_PROFILE,
        LEADERSHIP_PROFILE,
        DEANS_PROFILE,
        GENERIC_OFFICE_PROFILE,
        VALUES_PROFILE,
        PROGRAMS_PROFILE,
        FACULTIES_PROFILE,
        STUDENT_ORG_PROFILE,
        ADMISSION_PROFILE,
        HYMN_PROFILE,
        VISION_MISSION_PROFILE,
        SCHEDULE_PROFILE,
        SCHOLARSHIP_PROFILE,
    )
}

DEFAULT_SIZES: dict[QueryType, int] = {
    **{query_type: profile.default_size for query_type, profile in PROFILES.items()},
    QueryType.COMPREHENSIVE: 30,
    QueryType.GENERAL: 10,
}


def office_profile(acronym: str) -> TopicProfile:
    """Profile for questions about one office, keyed by its acronym."""
    escaped = re.escape(acronym)
    return TopicProfile(
        query_type=QueryType.OFFICE,
        match_rules=(
            rx("metadata.acronym", rf"^{escaped}$"),
            rx("category", rf"^{escaped}$"),
            rx("text", rf"\b{escaped}\b"),
            kw(acronym),
        ),
        boosts=(
            boost(300, rx("metadata.acronym", rf"^{escaped}$")),
            boost(200, rx("category", rf"^{escaped}$")),
            boost(100, rx("text", rf"\b{escaped}\b")),
            boost(50, rx("type", r"office")),
            FRESHNESS,
        ),
        vector_rules=(rx("text", rf"\b{escaped}\b"),),
        default_size=15,
    )


def profile_for(query_type: QueryType, query: str = "") -> Optional[TopicProfile]:
    """
    Profile for a query type, or None for untyped routes.

    Office questions that name an acronym ("Where is the OSA?") get a profile
    keyed on that office.
    """
    if query_type == QueryType.OFFICE:
        acronyms = extract_entities(query).office_acronyms
        if acronyms:
            logger.debug(f"Office profile for acronym {acronyms[0]}")
            return office_profile(acronyms[0])
    return PROFILES.get(query_type)
