"""
Keyword Extraction - Searchable terms for knowledge chunks.
==========================================================

Keywords are stored on every chunk and feed both the keyword search score and
the hashing embedding. Structured values (acronyms, numbers, dates, stats
fields) go first so they survive the frequency cut-off.
"""

import re
from collections import Counter
from typing import Any, Optional

from dorsu_connect.shared.config import get_settings

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    }
)

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

_ACRONYM = re.compile(r"\b[A-Z]{2,5}\b")
_HYPHEN_ACRONYM = re.compile(r"\b[A-Z]+-[A-Z]+\b")
_WORD3 = re.compile(r"\b[A-Za-z]{3,}\b")
_PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+\b")
_NUMBER = re.compile(r"\b\d+\b")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_NON_WORD = re.compile(r"[^\w\s-]")

# Metadata fields whose values are codes worth matching verbatim
_CODE_FIELDS = ("programCode", "facultyCode", "studentCategory")


def _date_terms(year: str, month: str, day: str) -> list[str]:
    month_index = int(month)
    if not 1 <= month_index <= 12:
        return [year]
    month_name = MONTH_NAMES[month_index - 1]
    day_number = int(day)
    return [f"{month_name} {day_number}, {year}", f"{month_name} {day_number}", year]


def _structured_terms(text: str, metadata: dict[str, Any]) -> list[str]:
    terms: list[str] = []

    terms.extend(a.lower() for a in _ACRONYM.findall(text))
    terms.extend(a.lower() for a in _HYPHEN_ACRONYM.findall(text))

    if metadata.get("acronym"):
        terms.append(str(metadata["acronym"]).lower())
    if metadata.get("fullName"):
        terms.extend(w.lower() for w in _WORD3.findall(str(metadata["fullName"])))
    if metadata.get("head"):
        terms.extend(n.lower() for n in _PROPER_NOUN.findall(str(metadata["head"])))
    if metadata.get("title"):
        terms.extend(w.lower() for w in _WORD3.findall(str(metadata["title"])))

    terms.extend(_NUMBER.findall(text))

    for year, month, day in _ISO_DATE.findall(text):
        terms.append(f"{year}-{month}-{day}")
        terms.extend(_date_terms(year, month, day))

    if metadata.get("date"):
        date_str = str(metadata["date"])
        match = _ISO_PREFIX.match(date_str)
        if match:
            terms.extend(_date_terms(*match.groups()))
        terms.append(date_str)

    if metadata.get("year"):
        terms.extend([str(metadata["year"]), "year"])
    if metadata.get("numberOfApplicants"):
        terms.extend([str(metadata["numberOfApplicants"]), "applicants"])
    if metadata.get("numberOfPassers"):
        terms.extend([str(metadata["numberOfPassers"]), "passers"])
    if metadata.get("students"):
        terms.extend([str(metadata["students"]), "students", "enrollment"])
    if metadata.get("campus"):
        terms.append(str(metadata["campus"]).lower())

    for field in _CODE_FIELDS:
        if metadata.get(field):
            terms.append(str(metadata[field]).lower())

    return terms


def top_words(text: str, limit: int) -> list[str]:
    """
    Most frequent words of ``text``, ties kept in first-occurrence order.

    Example:
        >>> top_words("Campus campus library", 2)
        ['campus', 'library']
    """
    words = [
        word
        for word in _NON_WORD.sub(" ", text.lower()).split()
        if len(word) >= 2 and word not in STOP_WORDS
    ]
    # Counter preserves insertion order and sorted() is stable
    counts = Counter(words)
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [word for word, _ in ranked[:limit]]


def extract_keywords(text: str, metadata: Optional[dict[str, Any]] = None) -> list[str]:
    """
    Extract searchable keywords from chunk text and its metadata.

    Args:
        text: Chunk text
        metadata: Structured fields of the source object (acronym, year, ...)

    Returns:
        Deduplicated keyword list, structured terms first

    Example:
        >>> extract_keywords("OSA (Office of Student Affairs).", {"acronym": "OSA"})[:2]
        ['osa', 'office']
    """
    metadata = metadata or {}
    chunking = get_settings().chunking

    keywords = _structured_terms(text, metadata)

    structured = bool(metadata.get("acronym") or metadata.get("year"))
    limit = chunking.keywords_structured if structured else chunking.keywords_default
    keywords.extend(top_words(text, limit))

    return list(dict.fromkeys(k for k in keywords if k))
