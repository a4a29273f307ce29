"""
Query Analyzer Module - Decide how much context a question needs.
=================================================================

Looks at a user question and estimates how broad the answer is:
- Topics (identity, leadership, academic, campus, ...) in English,
  Tagalog and Bisaya
- Intents such as listing, counting or follow-up
- Plural subjects ("programs", "deans") that imply "all of them"
- Structured entities (office acronyms, years, names)

The result is a RAG multiplier that scales how many sections and tokens are
retrieved, plus a vagueness verdict used to ask the user for clarification.
"""

import math
import re
from typing import Optional

from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import (
    ComplexityLevel,
    DetectedTopic,
    ExtractedEntities,
    QueryAnalysis,
    RetrievalSettings,
)

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Vocabulary
# ─────────────────────────────────────────────────────────────────────────────


OFFICE_ACRONYMS = ("OSPAT", "OSA", "OSCD", "FASG", "PESO", "IRO", "HSU", "CGAD", "IP-TBM", "GCTC")

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

TOPIC_CATEGORIES: dict[str, tuple[str, ...]] = {
    "identity": (
        "core values", "mission", "vision", "mandate", "objectives", "hymn", "motto",
        "halaga", "misyon", "bisyon", "mandato", "mithi", "panan-awon",
    ),
    "leadership": (
        "president", "vice president", "chancellor", "dean", "director", "administration",
        "leadership", "board", "governance", "presidente", "bise presidente", "dekano",
        "direktor", "dire",
    ),
    "academic": (
        "programs", "courses", "faculties", "departments", "college", "baccalaureate",
        "degree", "curriculum", "programa", "kurso", "fakultad", "departamento", "kolehiyo",
    ),
    "campus": (
        "campus", "campuses", "location", "facilities", "building", "extension", "main campus",
        "kampus", "pasilidad", "gusali", "lokasyon",
    ),
    "calendar": (
        "date", "dates", "event", "events", "announcement", "announcements", "schedule",
        "schedules", "calendar", "when", "upcoming", "coming", "next", "deadline", "deadlines",
        "holiday", "holidays", "academic calendar", "semester", "enrollment period",
        "registration", "exam schedule", "class schedule", "petsa", "pangyayari", "anunsyo",
        "iskedyul", "panghitabo",
    ),
    "enrollment": (
        "enrollment", "admission", "requirements", "steps", "process", "how to enroll",
        "register", "pag-enrol", "kinakailangan", "hakbang", "proseso", "pagpalista",
        "kinahanglan",
    ),
    "quality": (
        "quality commitments", "graduate outcomes", "accreditation", "standards", "kalidad",
        "akreditasyon",
    ),
    "historical": (
        "history", "founded", "established", "evolution", "development", "background",
        "kasaysayan", "itinatag", "pinagmulan", "gitukod",
    ),
}

INTENT_PATTERNS: dict[str, re.Pattern] = {
    "listing": re.compile(
        r"\b(list|all|every|show\s+all|give\s+me\s+all|enumerate|name\s+all|tell\s+me\s+the|"
        r"what\s+are\s+the|the\s+(programs|faculties|courses|campuses|deans|values|missions|requirements)|"
        r"lahat|ilista|itala|ipakita\s+lahat|tanan|lista|ipakita\s+tanan)\b",
        re.IGNORECASE,
    ),
    "counting": re.compile(r"\b(how\s+many|count|number\s+of|total|ilan|bilang|pila|ihap)\b", re.IGNORECASE),
    "multiple": re.compile(
        r"\b(what\s+are|who\s+are|can\s+you\s+(tell|list|show)|ano\s+ang|sino\s+ang|"
        r"maaari\s+mo\s+bang|unsa\s+ang|kinsa\s+ang|mahimo\s+ba\s+nimo)\b",
        re.IGNORECASE,
    ),
    "comprehensive": re.compile(
        r"\b(explain|describe|tell\s+me\s+about|what\s+is|who\s+is|ipaliwanag|sabihin|"
        r"ano\s+(ba\s+)?ang|sino\s+(ba\s+)?ang|ipasabot|sultihi|unsa\s+ang|kinsa\s+ang)\b",
        re.IGNORECASE,
    ),
    "followUp": re.compile(
        r"\b(he|she|his|her|their|it|that|this|them|those|siya|niya|kanyang|kanila|ito|iyan|iya|kana|kini)\b",
        re.IGNORECASE,
    ),
    "multiPart": re.compile(r"\?\s*.*\?"),
}

PLURAL_KEYWORDS = (
    "programs", "courses", "deans", "faculties", "departments",
    "campuses", "values", "outcomes", "members", "leaders",
    "requirements", "steps", "processes", "policies", "missions",
    "objectives", "commitments", "buildings", "facilities", "colleges",
)

EXPLICIT_SUBJECT = re.compile(
    r"\b(programs?|courses?|faculties?|deans?|students?|campus|campuses|university|dorsu|office|"
    r"offices|department|departments|schedule|schedules|calendar|event|events|exam|exams|"
    r"requirements?|admission|tuition|history|mission|vision|values?|outcomes?|organization|"
    r"usc|sidlakan|catalyst|leadership|president|vice\s+president)\b",
    re.IGNORECASE,
)

GREETING_PATTERNS = (
    re.compile(r"\b(hi|hello|hey|good\s+(morning|afternoon|evening|day)|greetings|sup|yo)\b", re.IGNORECASE),
    re.compile(r"\b(kumusta|kamusta|musta|kumusta\s+ka|oy|hoy)\b", re.IGNORECASE),
    re.compile(r"\b(magandang\s+(umaga|hapon|gabi|araw))\b", re.IGNORECASE),
)

QUESTION_WORD = re.compile(
    r"\b(what|who|when|where|why|how|which|list|show|tell|explain|describe|ano|sino|kailan|"
    r"saan|bakit|paano|unsa|kinsa|kanus-a|asa|ngano|giunsa)\b",
    re.IGNORECASE,
)
SHORT_QUESTION_WORD = re.compile(
    r"\b(what|who|when|where|why|how|which|ano|sino|kailan|saan|bakit|paano|unsa|kinsa)\b",
    re.IGNORECASE,
)
VAGUE_TERMS = re.compile(
    r"\b(final\s+exam|midterm|prelim|quiz|test|exam|mcc|schedule|deadline|event|announcement|"
    r"program|course|faculty|dean|director|president|office|department|building|campus|"
    r"location|link|url|website|manual|guide|form|requirement|process|step|procedure)\b",
    re.IGNORECASE,
)
ACRONYM = re.compile(r"\b[A-Z]{2,5}\d?\b")
PRONOUN = re.compile(
    r"\b(it|that|this|they|them|he|she|his|her|their|siya|niya|kanyang|ito|iyan|kana|kini)\b",
    re.IGNORECASE,
)
AMBIGUOUS_ACADEMIC = re.compile(r"\b(final\s+exam|midterm|prelim|quiz|test|mcc|schedule)\b", re.IGNORECASE)
AMBIGUOUS_ACADEMIC_QUESTION = re.compile(
    r"\b(when|date|time|what|where|how|which|kailan|ano|saan|paano)\b", re.IGNORECASE
)

NAME_PATTERN = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")
NAME_STOP_STARTS = frozenset({"What", "Who", "When", "Where", "Why", "How", "The", "This", "That"})

BASE_SETTINGS = RetrievalSettings()
MAX_TOKENS_CAP = 1000
SECTIONS_CAP = 15
RAG_TOKENS_CAP = 1500
MULTIPLIER_CAP = 6.0


# ─────────────────────────────────────────────────────────────────────────────
# Analyzer
# ─────────────────────────────────────────────────────────────────────────────


def extract_entities(query: str) -> ExtractedEntities:
    """
    Pull structured entities out of a query.

    Example:
        >>> extract_entities("Who heads OSA since 2021?").office_acronyms
        ['OSA']
    """
    lower = query.lower()
    acronyms = [
        acronym
        for acronym in OFFICE_ACRONYMS
        if re.search(rf"\b{re.escape(acronym)}\b", query, re.IGNORECASE)
    ]
    years = [int(m.group(0)) for m in re.finditer(r"\b(?:19|20)\d{2}\b", query)]
    numbers = [int(n) for n in re.findall(r"\b\d{3,}\b", query)]
    dates = [month for month in MONTH_NAMES if month in lower]
    names = [
        name for name in NAME_PATTERN.findall(query) if name.split(" ")[0] not in NAME_STOP_STARTS
    ]
    return ExtractedEntities(
        office_acronyms=acronyms,
        years=years,
        names=names,
        dates=dates,
        numbers=numbers,
    )


def is_greeting(query: str) -> bool:
    return any(pattern.search(query) for pattern in GREETING_PATTERNS)


def complexity_for(multiplier: float) -> ComplexityLevel:
    if multiplier >= 3.0:
        return ComplexityLevel.MAXIMUM
    if multiplier >= 2.0:
        return ComplexityLevel.HIGH
    if multiplier >= 1.5:
        return ComplexityLevel.MODERATE
    return ComplexityLevel.STANDARD


_DESCRIPTIONS = {
    ComplexityLevel.MAXIMUM: "Maximum data retrieval (comprehensive answer)",
    ComplexityLevel.HIGH: "High data retrieval (detailed answer)",
    ComplexityLevel.MODERATE: "Moderate data retrieval (enhanced answer)",
    ComplexityLevel.STANDARD: "Standard retrieval",
}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def get_optimal_settings(multiplier: float, entities: ExtractedEntities) -> RetrievalSettings:
    """
    Scale the base retrieval budget by the RAG multiplier.

    Example:
        >>> get_optimal_settings(2.0, ExtractedEntities()).rag_sections
        15
    """
    return RetrievalSettings(
        max_tokens=min(MAX_TOKENS_CAP, _round_half_up(BASE_SETTINGS.max_tokens * multiplier)),
        rag_sections=min(SECTIONS_CAP, _round_half_up(BASE_SETTINGS.rag_sections * multiplier)),
        rag_max_tokens=min(RAG_TOKENS_CAP, _round_half_up(BASE_SETTINGS.rag_max_tokens * multiplier)),
        temperature=BASE_SETTINGS.temperature,
        use_native_search=entities.is_structured,
        description=_DESCRIPTIONS[complexity_for(multiplier)],
        suggest_more=False,
    )


class QueryAnalyzer:
    """
    Scores a query's breadth and vagueness.

    Example:
        >>> analysis = QueryAnalyzer().analyze("List all the programs of FACET")
        >>> analysis.complexity.value
        'maximum-retrieval'
    """

    def analyze(self, query: str) -> QueryAnalysis:
        lower = query.lower().strip()
        word_count = len(lower.split())
        entities = extract_entities(query)

        topics = []
        multiplier = 1.0
        for category, keywords in TOPIC_CATEGORIES.items():
            matched = [kw for kw in keywords if kw in lower]
            if matched:
                topics.append(DetectedTopic(category=category, keywords=matched))
                multiplier += 0.5

        intents = []
        for intent, pattern in INTENT_PATTERNS.items():
            if not pattern.search(lower):
                continue
            intents.append(intent)
            if intent in ("listing", "counting"):
                multiplier += 1.5
            elif intent in ("multiple", "multiPart"):
                multiplier += 1.0
            elif intent == "followUp":
                multiplier += 0.5
            else:
                multiplier += 0.3

        follow_up = "followUp" in intents
        if follow_up and EXPLICIT_SUBJECT.search(lower) and word_count > 8:
            intents.remove("followUp")
            follow_up = False
            multiplier = max(1.0, multiplier - 0.5)

        plurals = [kw for kw in PLURAL_KEYWORDS if kw in lower]
        if plurals:
            multiplier += len(plurals) * 1.5
            if any(lower.find(p) < 20 for p in plurals):
                multiplier += 1.0

        # Complexity is judged before the entity boosts
        complexity = complexity_for(multiplier)

        greeting = is_greeting(query)
        is_vague, reason, needs_clarification = self.detect_vague(
            query, topics, follow_up, greeting
        )

        if entities.office_acronyms:
            multiplier += 0.5
        if entities.years:
            multiplier += 0.3
        if entities.names:
            multiplier += 0.4

        analysis = QueryAnalysis(
            original_query=query,
            complexity=complexity,
            confidence=min(100, _round_half_up(multiplier * 25)),
            detected_topics=topics,
            detected_intents=intents,
            found_plurals=plurals,
            entities=entities,
            rag_multiplier=min(MULTIPLIER_CAP, multiplier),
            settings=get_optimal_settings(multiplier, entities),
            is_multi_part="multiPart" in intents,
            is_follow_up=follow_up,
            is_greeting=greeting,
            is_vague=is_vague,
            vague_reason=reason,
            needs_clarification=needs_clarification,
        )
        logger.debug(format_analysis(analysis))
        return analysis

    @staticmethod
    def detect_vague(
        query: str,
        topics: list[DetectedTopic],
        is_follow_up: bool,
        greeting: bool = False,
    ) -> tuple[bool, Optional[str], bool]:
        """
        Decide whether a query is too vague to answer well.

        Returns:
            ``(is_vague, reason, needs_clarification)``; reasons are joined
            with ", " when several apply
        """
        if greeting:
            return False, None, False

        lower = query.lower().strip()
        words = lower.split()
        word_count = len(words)
        reasons: list[str] = []

        if word_count <= 3 and len(query) < 30 and not is_follow_up:
            reasons.append("short query without clear context")

        term = VAGUE_TERMS.search(lower)
        if term and not topics and not is_follow_up:
            reasons.append(f'vague term "{term.group(0)}" without context')

        acronym = ACRONYM.search(query)
        if acronym and not is_follow_up:
            reasons.append(f'unclear acronym "{acronym.group(0)}"')

        if word_count == 1 and not QUESTION_WORD.search(lower) and not is_follow_up:
            reasons.append("single word query without question word")

        if is_follow_up and not topics and PRONOUN.search(lower):
            reasons.append("pronoun reference without clear topic")

        if AMBIGUOUS_ACADEMIC.search(lower) and not AMBIGUOUS_ACADEMIC_QUESTION.search(lower):
            reasons.append("ambiguous academic term without specific question")

        is_vague = bool(reasons)
        needs_clarification = is_vague and not topics and not is_follow_up

        if word_count <= 2 and not SHORT_QUESTION_WORD.search(lower):
            needs_clarification = True
            if not is_vague:
                is_vague = True
                reasons.append("very short query without question words")

        return is_vague, (", ".join(reasons) if reasons else None), needs_clarification


def format_analysis(analysis: QueryAnalysis) -> str:
    """One-line summary for logs."""
    topics = (
        "Topics: " + ", ".join(t.category for t in analysis.detected_topics)
        if analysis.detected_topics
        else "No specific topics"
    )
    intents = (
        "Intents: " + ", ".join(analysis.detected_intents)
        if analysis.detected_intents
        else "Basic query"
    )
    return (
        f"{analysis.complexity.value.upper()} ({analysis.rag_multiplier:.2f}x RAG) - "
        f"{analysis.settings.rag_sections} sections, {analysis.settings.rag_max_tokens} tokens - "
        f"{topics} | {intents}"
    )


_query_analyzer: Optional[QueryAnalyzer] = None


def get_query_analyzer() -> QueryAnalyzer:
    global _query_analyzer
    if _query_analyzer is None:
        _query_analyzer = QueryAnalyzer()
    return _query_analyzer
