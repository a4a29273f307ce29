"""
Typo Correction Module - Edit-distance correction against a domain vocabulary.
==============================================================================

Corrects misspelled query words ("presidnet", "enrolment", "sceduel") against
a fixed dictionary of terms that appear in the knowledge base, so keyword
search and query typing see the intended words.
"""

import re
from typing import Optional

from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import Correction, TypoCorrection

logger = get_logger(__name__)


COMMON_TERMS: tuple[str, ...] = (
    # leadership
    "president", "presidents", "vice president", "vice presidents", "chancellor", "chancellors",
    "dean", "deans", "director", "directors", "leadership", "administration", "board", "governance",
    "executive", "executives", "officer", "officers",
    # offices
    "office", "offices", "unit", "units", "head", "heads", "chief", "manager", "ospat", "osa",
    "oscd", "fasg", "peso", "iro", "hsu", "cgad", "ip-tbm", "gctc",
    # academics
    "program", "programs", "programme", "course", "courses", "faculty", "faculties",
    "department", "departments", "college", "colleges", "curriculum", "degree", "degrees",
    "baccalaureate", "undergraduate", "graduate", "enrollment", "admission",
    # campus
    "campus", "campuses", "location", "locations", "facility", "facilities", "building", "buildings",
    "extension", "main campus",
    # calendar
    "date", "dates", "event", "events", "announcement", "announcements", "schedule", "schedules",
    "calendar", "deadline", "deadlines", "holiday", "holidays", "semester", "registration",
    "exam", "exams", "examination", "examinations", "midterm", "prelim", "final",
    # statistics
    "statistics", "stats", "suast", "applicants", "passers", "passing rate", "enrolled",
    "entrance exam", "admission test", "results", "data", "numbers",
    # identity
    "dorsu", "davao oriental state university", "mission", "vision", "mandate", "objectives",
    "core values", "graduate outcomes", "quality commitments", "history", "founded", "established",
    # question and function words
    "what", "who", "when", "where", "why", "how", "which", "tell", "me", "about", "is", "are",
    "the", "of", "and", "or", "for", "to", "in", "on", "at", "by", "with", "from",
    # faculties
    "facet", "fals", "fted", "fbm", "fcje", "fnahs", "fhusocom",
    # misc
    "requirement", "requirements", "process", "steps", "procedure", "policy", "policies",
    "news", "article", "articles", "post", "posts",
)

QUESTION_WORDS = frozenset({"what", "who", "when", "where", "why", "how", "which"})

_TERM_SET = frozenset(COMMON_TERMS)
_ACRONYM = re.compile(r"^[A-Z]{2,5}(-[A-Z0-9]+)?$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^A-Za-z0-9_]")
_LEADING_PUNCT = re.compile(r"^[^A-Za-z0-9_]*")
_TRAILING_PUNCT = re.compile(r"[^A-Za-z0-9_]*$")


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between two strings (insert, delete, substitute).

    Example:
        >>> levenshtein_distance("presidnet", "president")
        2
    """
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


class TypoCorrector:
    """
    Dictionary-based typo corrector.

    Example:
        >>> TypoCorrector().correct("Who is the presidnet?").corrected
        'Who is the president?'
    """

    def __init__(self, terms: Optional[tuple[str, ...]] = None):
        self.terms = terms or COMMON_TERMS
        self._term_set = frozenset(t.lower() for t in self.terms) if terms else _TERM_SET

    def find_similar(self, word: str, max_distance: int = 2) -> list[Correction]:
        """
        Dictionary terms within ``max_distance`` edits of ``word``.

        Exact matches are excluded. Results are ordered by similarity
        (``1 - distance / longer length``) descending, then distance ascending.
        """
        word = word.lower()
        if len(word) <= 2:
            return []

        candidates = []
        for term in self.terms:
            if abs(len(word) - len(term)) > max_distance:
                continue
            distance = levenshtein_distance(word, term)
            if 0 < distance <= max_distance:
                similarity = 1 - distance / max(len(word), len(term))
                candidates.append(
                    Correction(original=word, corrected=term, similarity=similarity, distance=distance)
                )

        candidates.sort(key=lambda c: (-c.similarity, c.distance))
        return candidates

    def correct(
        self,
        query: str,
        max_distance: Optional[int] = None,
        min_similarity: Optional[float] = None,
        correct_phrases: bool = True,
    ) -> TypoCorrection:
        """
        Correct typos in a query.

        Args:
            query: Raw user query
            max_distance: Maximum edit distance (config default 2)
            min_similarity: Minimum similarity to accept a correction (config default 0.6)
            correct_phrases: Try two-word dictionary phrases before single words

        Returns:
            TypoCorrection with the corrected query and each replacement made
        """
        config = get_settings().typo
        max_distance = config.max_distance if max_distance is None else max_distance
        min_similarity = config.min_similarity if min_similarity is None else min_similarity

        # Odd indices hold the whitespace runs
        tokens = re.split(r"(\s+)", query)
        output: list[str] = []
        corrections: list[Correction] = []

        i = 0
        while i < len(tokens):
            token = tokens[i]
            bare = _NON_WORD.sub("", token)
            if not token.strip() or len(bare) <= 2:
                output.append(token)
                i += 1
                continue

            before = _LEADING_PUNCT.match(token).group(0)  # type: ignore[union-attr]
            after = _TRAILING_PUNCT.search(token).group(0)  # type: ignore[union-attr]
            lower = bare.lower()

            if correct_phrases and i + 2 < len(tokens):
                phrase_fix = self._correct_phrase(lower, tokens[i + 2], max_distance, min_similarity)
                if phrase_fix is not None:
                    first, second = phrase_fix.corrected.split(" ", 1)
                    output.extend([before + first + after, tokens[i + 1], before + second + after])
                    corrections.append(phrase_fix)
                    i += 3
                    continue

            if lower in self._term_set or _ACRONYM.match(bare):
                output.append(token)
                i += 1
                continue

            candidates = self.find_similar(bare, max_distance)
            if not candidates or candidates[0].similarity < min_similarity:
                output.append(token)
                i += 1
                continue

            best = candidates[0]
            if lower in QUESTION_WORDS and best.corrected in QUESTION_WORDS:
                output.append(token)
                i += 1
                continue

            replacement = best.corrected
            if bare[0].isupper():
                replacement = replacement[0].upper() + replacement[1:]
            output.append(before + replacement + after)
            corrections.append(best.model_copy(update={"original": bare}))
            i += 1

        corrected = "".join(output).strip()
        if corrections:
            logger.debug(
                "Typo corrections: "
                + ", ".join(f"{c.original}->{c.corrected}" for c in corrections)
            )
        return TypoCorrection(original=query, corrected=corrected, corrections=corrections)

    def _correct_phrase(
        self,
        first: str,
        next_token: str,
        max_distance: int,
        min_similarity: float,
    ) -> Optional[Correction]:
        second = _NON_WORD.sub("", next_token).lower()
        if len(second) <= 2:
            return None

        phrase = f"{first} {second}"
        if phrase in self._term_set or (first in self._term_set and second in self._term_set):
            return None

        for candidate in self.find_similar(phrase, max_distance):
            if candidate.similarity < min_similarity:
                break
            if " " in candidate.corrected:
                return candidate
        return None


_typo_corrector: Optional[TypoCorrector] = None


def get_typo_corrector() -> TypoCorrector:
    global _typo_corrector
    if _typo_corrector is None:
        _typo_corrector = TypoCorrector()
    return _typo_corrector


def correct_typos(query: str, **kwargs) -> TypoCorrection:  # type: ignore[no-untyped-def]
    """Convenience wrapper around the shared ``TypoCorrector``."""
    return get_typo_corrector().correct(query, **kwargs)
