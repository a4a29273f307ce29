"""
Tests for RAG Module.
=====================

Tests for:
- TypoCorrector: Dictionary-based correction
- Query types: Routing and schedule filters
- QueryAnalyzer: Complexity and vagueness
- Topic profiles: Rule matching and ranking
- HybridSearchService: Topic, vector and keyword search
- RAGService: Context assembly
- ResponseCache / QueryAnalytics
- PromptBuilder / Generator
- ChatService: The full pipeline with mocked dependencies
"""

from datetime import date
from unittest.mock import Mock, patch

import pytest


# ─────────────────────────────────────────────────────────────────────────────
# Typo Correction Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestTypoCorrector:
    """Tests for TypoCorrector."""

    def test_levenshtein(self):
        """Test edit distance."""
        from dorsu_connect.rag.typo import levenshtein_distance

        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_corrects_word(self):
        """Test correcting a misspelled dictionary word."""
        from dorsu_connect.rag.typo import TypoCorrector

        result = TypoCorrector(terms=("president", "office")).correct("Who is the presidnet?")

        assert result.corrected == "Who is the president?"
        assert result.has_corrections
        assert result.corrections[0].original == "presidnet"
        assert result.corrections[0].distance == 2

    def test_keeps_capitalization(self):
        """Test that a capitalized typo stays capitalized."""
        from dorsu_connect.rag.typo import TypoCorrector

        result = TypoCorrector(terms=("schedule",)).correct("Schedlue please")

        assert result.corrected.startswith("Schedule")

    def test_known_words_untouched(self):
        """Test that correct text is returned unchanged."""
        from dorsu_connect.rag.typo import TypoCorrector

        result = TypoCorrector().correct("Who is the president of DOrSU?")

        assert result.corrected == "Who is the president of DOrSU?"
        assert not result.has_corrections

    def test_short_and_distant_words_untouched(self):
        """Test that short words and far-off words are not corrected."""
        from dorsu_connect.rag.typo import TypoCorrector

        corrector = TypoCorrector(terms=("president",))

        assert corrector.correct("an xyzzyplugh").corrected == "an xyzzyplugh"

    def test_find_similar_excludes_exact(self):
        """Test that exact matches are not suggested."""
        from dorsu_connect.rag.typo import TypoCorrector

        corrector = TypoCorrector(terms=("dean", "deans"))
        candidates = corrector.find_similar("dean")

        assert [c.corrected for c in candidates] == ["deans"]


# ─────────────────────────────────────────────────────────────────────────────
# Query Type Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestQueryTypes:
    """Tests for query routing."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("When was DOrSU founded?", "history"),
            ("Who is the dean of FACET?", "deans"),
            ("Who is the president of DOrSU?", "leadership"),
            ("What are the graduate outcomes?", "values"),
            ("What are the admission requirements?", "admission_requirements"),
        ],
    )
    def test_detect_query_type(self, query, expected):
        """Test the first-match routing order."""
        from dorsu_connect.rag.query_types import detect_query_type

        assert detect_query_type(query).value == expected

    def test_general_fallback(self):
        """Test that unrelated questions route to general."""
        from dorsu_connect.rag.query_types import detect_query_type
        from dorsu_connect.shared.schemas import QueryType

        assert detect_query_type("Tell me about the weather") == QueryType.GENERAL

    def test_schedule_detection(self):
        """Test schedule question detection."""
        from dorsu_connect.rag.query_types import is_schedule_query

        assert is_schedule_query("When is enrollment?")
        assert not is_schedule_query("Who is the president of DOrSU?")

    def test_basic_university_query(self):
        """Test identity questions."""
        from dorsu_connect.rag.query_types import is_basic_university_query

        assert is_basic_university_query("What is DOrSU?")
        assert not is_basic_university_query("Where is DOrSU located?")

    def test_schedule_filters_month_and_year(self):
        """Test a month window with exam types."""
        from dorsu_connect.rag.query_types import extract_schedule_filters

        filters = extract_schedule_filters("final and prelim exams March 2025")

        assert filters.start == date(2025, 3, 1)
        assert filters.end == date(2025, 3, 31)
        assert filters.exam_types == ["prelim", "final"]
        assert filters.has_exam_context

    def test_schedule_filters_year_and_semester(self):
        """Test a whole-year window with a semester."""
        from dorsu_connect.rag.query_types import extract_schedule_filters

        filters = extract_schedule_filters("events on the 2nd semester 2025")

        assert filters.start == date(2025, 1, 1)
        assert filters.end == date(2025, 12, 31)
        assert filters.semester == 2

    def test_schedule_filters_default_window(self):
        """Test the default window around today."""
        from dorsu_connect.rag.query_types import extract_schedule_filters

        filters = extract_schedule_filters("upcoming events", today=date(2026, 10, 19))

        assert filters.start == date(2026, 9, 19)
        assert filters.end == date(2027, 10, 19)
        assert filters.semester is None

    def test_exam_types_need_context(self):
        """Test that a lone exam word without context is not a filter."""
        from dorsu_connect.rag.query_types import extract_schedule_filters

        filters = extract_schedule_filters("prelim week", today=date(2026, 10, 19))

        assert filters.exam_types == []
        assert not filters.has_exam_context


# ─────────────────────────────────────────────────────────────────────────────
# Query Analyzer Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestQueryAnalyzer:
    """Tests for QueryAnalyzer."""

    def test_simple_question(self):
        """Test a specific, answerable question."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analysis = QueryAnalyzer().analyze("Who is the president of DOrSU?")

        assert [t.category for t in analysis.detected_topics] == ["leadership"]
        assert not analysis.is_follow_up
        assert not analysis.needs_clarification

    def test_listing_question(self):
        """Test that listing plural questions get maximum retrieval."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer
        from dorsu_connect.shared.schemas import ComplexityLevel

        analysis = QueryAnalyzer().analyze("List all the programs of FACET")

        assert analysis.complexity == ComplexityLevel.MAXIMUM
        assert "listing" in analysis.detected_intents
        assert analysis.found_plurals == ["programs"]
        assert analysis.rag_multiplier <= 6.0

    def test_vague_question(self):
        """Test that a bare term asks for clarification."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analysis = QueryAnalyzer().analyze("exam?")

        assert analysis.is_vague
        assert analysis.needs_clarification
        assert "vague term" in analysis.vague_reason

    def test_greeting_not_vague(self):
        """Test that greetings never need clarification."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analysis = QueryAnalyzer().analyze("Hello there!")

        assert analysis.is_greeting
        assert not analysis.is_vague

    def test_follow_up(self):
        """Test pronoun follow-ups."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analysis = QueryAnalyzer().analyze("What about his education?")

        assert analysis.is_follow_up
        assert not analysis.needs_clarification

    def test_follow_up_demoted_for_long_explicit_question(self):
        """Test that a long question naming its subject is not a follow-up."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analyzer = QueryAnalyzer()
        short = analyzer.analyze("is that office open")
        long = analyzer.analyze("is that office open on weekends for walk in visitors")

        assert short.is_follow_up
        assert short.rag_multiplier == 1.5
        assert not long.is_follow_up
        assert "followUp" not in long.detected_intents
        assert long.rag_multiplier == 1.0

    def test_follow_up_kept_without_subject(self):
        """Test that long pronoun questions without a subject stay follow-ups."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        analysis = QueryAnalyzer().analyze("and what did she do after that in the following years")

        assert analysis.is_follow_up

    def test_extract_entities(self):
        """Test entity extraction."""
        from dorsu_connect.rag.query_analyzer import extract_entities

        entities = extract_entities("Who heads OSA since 2021?")

        assert entities.office_acronyms == ["OSA"]
        assert entities.years == [2021]
        assert entities.is_structured

    def test_optimal_settings_capped(self):
        """Test that scaled settings respect their caps."""
        from dorsu_connect.rag.query_analyzer import get_optimal_settings
        from dorsu_connect.shared.schemas import ExtractedEntities

        settings = get_optimal_settings(2.0, ExtractedEntities())

        assert settings.rag_sections == 15
        assert settings.max_tokens == 1000
        assert settings.rag_max_tokens == 1500
        assert settings.use_native_search is False

    def test_format_analysis(self):
        """Test the log summary line."""
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer, format_analysis

        line = format_analysis(QueryAnalyzer().analyze("Who is the president of DOrSU?"))

        assert "Topics: leadership" in line
        assert "sections" in line


# ─────────────────────────────────────────────────────────────────────────────
# Topic Profile Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestTopicProfiles:
    """Tests for topic profiles."""

    def test_office_profile_relevance(self, sample_chunks):
        """Test every office boost applying to the matching office."""
        from dorsu_connect.rag.topics import office_profile

        ranked = office_profile("OSA").rank(sample_chunks)

        assert ranked[0][0].type == "office_info"
        assert ranked[0][1] == 660

    def test_history_profile(self, sample_chunks):
        """Test that history ranking puts timeline events first."""
        from dorsu_connect.rag.topics import HISTORY_PROFILE

        ranked = HISTORY_PROFILE.rank(sample_chunks)

        assert {chunk.type for chunk, _ in ranked[:2]} == {"timeline_event"}

    def test_profile_for(self):
        """Test profile lookup."""
        from dorsu_connect.rag.topics import LEADERSHIP_PROFILE, profile_for
        from dorsu_connect.shared.schemas import QueryType

        assert profile_for(QueryType.LEADERSHIP) is LEADERSHIP_PROFILE
        assert profile_for(QueryType.GENERAL) is None
        assert profile_for(QueryType.OFFICE, "Where is the OSA?").default_size == 15

    def test_exclusions(self, sample_chunks):
        """Test that schedule routes never return timeline events."""
        from dorsu_connect.rag.topics import SCHEDULE_PROFILE

        timeline = next(c for c in sample_chunks if c.type == "timeline_event")

        assert SCHEDULE_PROFILE.is_excluded(timeline)


# ─────────────────────────────────────────────────────────────────────────────
# Search Tests
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def loaded_search(store, embedded_chunks, hashing_service):
    """Search service over a populated store."""
    from dorsu_connect.rag.search import HybridSearchService

    store.upsert_chunks(embedded_chunks)
    search = HybridSearchService(store=store, embedding_service=hashing_service)
    search.load(store.get_all_chunks())
    return search


class TestHybridSearch:
    """Tests for HybridSearchService."""

    def test_load_counts(self, loaded_search):
        """Test index sizes after loading."""
        assert loaded_search.chunk_count == 8
        assert loaded_search.vector_count == 8

    def test_empty_query(self, loaded_search):
        """Test that blank queries return nothing."""
        assert loaded_search.search("   ") == []

    def test_leadership_search(self, loaded_search):
        """Test that the president chunk wins a leadership query."""
        hits = loaded_search.search("Who is the president of DOrSU?", max_sections=5)

        assert hits[0].type == "president"
        assert hits[0].source == "topic"
        assert hits[0].score > 100

    def test_keyword_search(self, loaded_search):
        """Test phrase, word and keyword scoring."""
        hits = loaded_search.keyword_search("Office of Student Affairs", 5)

        assert hits[0].type == "office_info"
        assert hits[0].source == "keyword"
        assert hits[0].score >= 56

    def test_keyword_search_native_fallback(self, store, embedded_chunks, hashing_service):
        """Test that an unloaded index falls back to the store lookup."""
        from dorsu_connect.rag.search import HybridSearchService

        store.upsert_chunks(embedded_chunks)
        search = HybridSearchService(store=store, embedding_service=hashing_service)

        hits = search.keyword_search("OSA", 5)

        assert hits[0].source == "native"
        assert hits[0].type == "office_info"

    def test_vector_search_scaled(self, loaded_search):
        """Test that vector scores are on a 0-100 scale."""
        hits = loaded_search.vector_search("Office of Student Affairs head", 3)

        assert len(hits) == 3
        assert all(0 <= h.score <= 100 for h in hits)
        assert hits[0].source == "vector"

    def test_memory_vector_search(self, loaded_search):
        """Test the in-memory L2 fallback."""
        hits = loaded_search.memory_vector_search("Office of Student Affairs", 2)

        assert len(hits) == 2
        assert hits[0].source == "memory"
        assert 0 < hits[0].score <= 100

    def test_memory_search_without_vectors(self, store, hashing_service):
        """Test that the L2 fallback needs loaded vectors."""
        from dorsu_connect.rag.search import HybridSearchService

        search = HybridSearchService(store=store, embedding_service=hashing_service)

        assert search.memory_vector_search("anything", 5) == []

    def test_vector_failure_degrades_to_keywords(self, store, embedded_chunks):
        """Test that an embedding failure falls back to keyword search."""
        from dorsu_connect.rag.search import HybridSearchService
        from dorsu_connect.shared.errors import EmbeddingError

        broken = Mock()
        broken.embed_text.side_effect = EmbeddingError("model offline")
        search = HybridSearchService(store=store, embedding_service=broken)
        search.load(embedded_chunks)

        hits = search.general_search("Office of Student Affairs", 5)

        assert hits
        assert all(h.source == "keyword" for h in hits)

    def test_store_failure_degrades_to_native(self, store, embedded_chunks):
        """Test that a chroma rejection falls back to the store's text search."""
        from dorsu_connect.indexing.embedding_service import EmbeddingService
        from dorsu_connect.indexing.embeddings_hashing import HashingEmbeddingProvider
        from dorsu_connect.rag.search import HybridSearchService

        store.upsert_chunks(embedded_chunks)
        mismatched = EmbeddingService(provider=HashingEmbeddingProvider(dimensions=256))
        search = HybridSearchService(store=store, embedding_service=mismatched)

        hits = search.search("Office of Student Affairs", 5)

        assert hits
        assert "OSA" in [h.category for h in hits]
        assert all(h.source == "native" for h in hits)

    def test_store_failure_degrades_to_keywords(self, store, embedded_chunks):
        """Test the loaded-index variant of the store fallback."""
        from dorsu_connect.indexing.embedding_service import EmbeddingService
        from dorsu_connect.indexing.embeddings_hashing import HashingEmbeddingProvider
        from dorsu_connect.rag.search import HybridSearchService

        store.upsert_chunks(embedded_chunks)
        mismatched = EmbeddingService(provider=HashingEmbeddingProvider(dimensions=256))
        search = HybridSearchService(store=store, embedding_service=mismatched)
        search.load(store.get_all_chunks(include_embeddings=False))

        hits = search.general_search("Office of Student Affairs", 5)

        assert hits
        assert all(h.source == "keyword" for h in hits)

    def test_topic_ties_break_by_date(self):
        """Test that equal topic scores are ordered by date, oldest first."""
        from datetime import datetime, timezone

        from dorsu_connect.rag.search import HybridSearchService
        from dorsu_connect.rag.topics import profile_for
        from dorsu_connect.shared.errors import EmbeddingError
        from dorsu_connect.shared.schemas import KnowledgeChunk, QueryType

        stamp = datetime(2025, 1, 1, tzinfo=timezone.utc)
        chunks = [
            KnowledgeChunk(
                id=chunk_id,
                content=f"Campus expansion milestone number {n} for the college.",
                section="history",
                type="timeline_event",
                category=date,
                metadata={"date": date},
                updated_at=stamp,
            )
            for n, (chunk_id, date) in enumerate([("later", "2001-03-01"), ("earlier", "1995-07-15")])
        ]
        offline = Mock()
        offline.embed_text.side_effect = EmbeddingError("model offline")
        search = HybridSearchService(store=Mock(), embedding_service=offline)
        search.load(chunks)

        query = "Tell me the history of the university"
        hits = search.topic_search(profile_for(QueryType.HISTORY, query), query, 5)

        assert [h.id for h in hits] == ["earlier", "later"]
        assert hits[0].score == hits[1].score

    def test_sort_hits(self):
        """Test score then date ordering."""
        from dorsu_connect.rag.search import sort_hits
        from dorsu_connect.shared.schemas import SearchHit

        hits = [
            SearchHit(id="a", score=10, category="2020"),
            SearchHit(id="b", score=20, category="2019"),
            SearchHit(id="c", score=10, category="2018"),
        ]

        assert [h.id for h in sort_hits(hits)] == ["b", "c", "a"]


# ─────────────────────────────────────────────────────────────────────────────
# Context Tests
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def rag_service(store, embedded_chunks, hashing_service, sample_events_file):
    """RAGService over a populated store and the sample calendar."""
    from dorsu_connect.rag.context import RAGService
    from dorsu_connect.rag.search import HybridSearchService
    from dorsu_connect.schedule.service import ScheduleService

    store.upsert_chunks(embedded_chunks)
    return RAGService(
        store=store,
        search_service=HybridSearchService(store=store, embedding_service=hashing_service),
        schedule_service=ScheduleService(events_file=sample_events_file),
    )


class TestRAGService:
    """Tests for RAGService."""

    def test_estimate_tokens(self):
        """Test the rough token estimate."""
        from dorsu_connect.rag.context import estimate_tokens

        assert estimate_tokens("abcd" * 10) == 10
        assert estimate_tokens("abcdef") == 2
        assert estimate_tokens("") == 0

    def test_sync(self, rag_service):
        """Test that the first retrieval syncs and later calls are throttled."""
        assert rag_service.sync_with_store() is True
        assert rag_service.sync_with_store() is False
        assert rag_service.force_sync() == 8

    def test_leadership_context(self, rag_service):
        """Test the rendered section format."""
        result = rag_service.retrieve("Who is the president of DOrSU?")

        assert result.has_data
        assert result.sections[0] == "leadership"
        assert result.text.startswith("## leadership (president)\nDr. Roy G. Ponce")
        assert result.tokens > 0

    def test_basic_info(self, rag_service):
        """Test that identity questions lead with the fixed summary."""
        text = rag_service.get_context_for_topic("What is DOrSU?")

        assert text.startswith("## DAVAO ORIENTAL STATE UNIVERSITY (DOrSU)")

    def test_suggestions(self, rag_service):
        """Test follow-up suggestions for basic questions."""
        text = rag_service.get_context_for_topic("What is DOrSU?", suggest_more=True)

        assert "**Would you like to know more about:**" in text

    def test_schedule_context(self, rag_service):
        """Test that schedule questions render calendar events first."""
        result = rag_service.retrieve("When is the midterm exam in October 2025?")

        assert [e.id for e in result.events] == ["evt-002"]
        assert result.hits[0].source == "schedule"
        assert "## SCHEDULE EVENTS AND ANNOUNCEMENTS" in result.text
        assert "**Midterm Examination**" in result.text
        assert "Date: Oct 6 - Oct 10, 2025" in result.text
        assert "Semester: 1st Semester" in result.text

    def test_token_budget(self, rag_service):
        """Test that small budgets cut sections."""
        result = rag_service.retrieve("Who is the president of DOrSU?", max_tokens=20)

        assert result.tokens <= 20

    def test_no_data(self, temp_dir, hashing_service):
        """Test the no-data marker on an empty store."""
        from dorsu_connect.indexing.knowledge_store import KnowledgeStore
        from dorsu_connect.rag.context import NO_DATA_MESSAGE, RAGService
        from dorsu_connect.rag.search import HybridSearchService
        from dorsu_connect.schedule.service import ScheduleService

        empty = KnowledgeStore(collection_name="empty", persist_directory=temp_dir / "empty")
        service = RAGService(
            store=empty,
            search_service=HybridSearchService(store=empty, embedding_service=hashing_service),
            schedule_service=ScheduleService(events_file=temp_dir / "missing.json"),
        )

        result = service.retrieve("Who is the president?")

        assert result.text == NO_DATA_MESSAGE
        assert not result.has_data


class TestContextRendering:
    """Tests for token-budgeted rendering of hits."""

    @staticmethod
    def _hits():
        from dorsu_connect.shared.schemas import SearchHit

        return [
            SearchHit(id="a", section="programs", type="academic_program", text="a" * 200),
            SearchHit(id="b", section="programs", type="academic_program", text="b" * 2000),
        ]

    @staticmethod
    def _service():
        from dorsu_connect.rag.context import RAGService

        return RAGService(store=Mock(), search_service=Mock(), schedule_service=Mock())

    def test_listing_overflow_adds_truncated_piece(self):
        """Test that listing queries keep part of the section that overflows."""
        hits = self._hits()
        first = f"## programs (academic_program)\n{'a' * 200}\n\n"
        second = f"## programs (academic_program)\n{'b' * 2000}\n\n"

        text, tokens = self._service()._render("List all the programs", hits, [], 300, False)

        assert tokens == 58
        assert text == first + second[: (300 - 58) * 4] + "...\n\n"

    def test_overflow_without_listing_stops(self):
        """Test that specific questions drop the overflowing section."""
        text, _ = self._service()._render("Where is the OSA located?", self._hits(), [], 300, False)

        assert "bbbbbbbbbb" not in text
        assert not text.endswith("...\n\n")

    def test_small_remainder_not_truncated(self):
        """Test that a remainder of 100 characters or less is dropped."""
        text, tokens = self._service()._render("List all the programs", self._hits(), [], 80, False)

        assert tokens == 58
        assert not text.endswith("...\n\n")

    def test_near_full_budget_not_truncated(self):
        """Test that nothing is added once 90% of the budget is used."""
        text, _ = self._service()._render("List all the programs", self._hits(), [], 64, False)

        assert not text.endswith("...\n\n")


# ─────────────────────────────────────────────────────────────────────────────
# Cache Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_set_and_get_normalized(self):
        """Test that lookups normalise case and whitespace."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=True)
        cache.set("Who is the president?", "Dr. Roy G. Ponce", knowledge_version="v1")

        entry = cache.get("who is  the PRESIDENT?", knowledge_version="v1")

        assert entry is not None
        assert entry.reply == "Dr. Roy G. Ponce"

    def test_user_type_separates_entries(self):
        """Test that user types do not share answers."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=True)
        cache.set("exam schedule", "students", user_type="student")

        assert cache.get("exam schedule", user_type="faculty") is None
        assert cache.get("exam schedule", user_type="student").reply == "students"

    def test_expiry(self):
        """Test TTL expiry."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=10, max_entries=10, enabled=True)
        with patch("dorsu_connect.rag.cache.time") as mock_time:
            mock_time.monotonic.return_value = 100.0
            cache.set("question", "answer")
            mock_time.monotonic.return_value = 111.0

            assert cache.get("question") is None
        assert len(cache) == 0

    def test_stale_knowledge_version(self):
        """Test that a refresh invalidates older answers."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=True)
        cache.set("question", "answer", knowledge_version="v1")

        assert cache.get("question", knowledge_version="v2") is None
        assert len(cache) == 0

    def test_eviction(self):
        """Test oldest-first eviction."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=2, enabled=True)
        for i in range(3):
            cache.set(f"question {i}", f"answer {i}")

        assert len(cache) == 2
        assert cache.get("question 0") is None
        assert cache.stats()["evictions"] == 1

    def test_invalidate(self):
        """Test clearing everything and by section."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=True)
        cache.set("president", "a", sections=["leadership"])
        cache.set("history", "b", sections=["history"])

        assert cache.invalidate_section("leadership") == 1
        assert cache.invalidate_all() == 1
        assert len(cache) == 0

    def test_disabled(self):
        """Test that a disabled cache stores nothing."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=False)
        cache.set("question", "answer")

        assert cache.get("question") is None
        assert len(cache) == 0

    def test_stats(self):
        """Test hit rate accounting."""
        from dorsu_connect.rag.cache import ResponseCache

        cache = ResponseCache(ttl_seconds=60, max_entries=10, enabled=True)
        cache.set("question", "answer")
        cache.get("question")
        cache.get("other")

        stats = cache.stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5


# ─────────────────────────────────────────────────────────────────────────────
# Analytics Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestQueryAnalytics:
    """Tests for QueryAnalytics."""

    def test_top_queries(self):
        """Test counting and tie ordering."""
        from dorsu_connect.rag.analytics import QueryAnalytics

        analytics = QueryAnalytics()
        analytics.log_query("Who is the president?", "leadership")
        analytics.log_query("who is the PRESIDENT?", "leadership")
        analytics.log_query("when is enrollment?", "schedule")
        analytics.log_query("admission requirements", "admission_requirements")

        top = analytics.top_queries(2)

        assert top == [
            {"query": "who is the president?", "count": 2},
            {"query": "admission requirements", "count": 1},
        ]

    def test_stats(self):
        """Test aggregate statistics."""
        from dorsu_connect.rag.analytics import QueryAnalytics

        analytics = QueryAnalytics()
        analytics.log_query("a", "general", response_time_ms=100.0)
        analytics.log_query("b", "general", response_time_ms=50.0, cached=True)

        stats = analytics.stats()

        assert stats["total_queries"] == 2
        assert stats["unique_queries"] == 2
        assert stats["cached_responses"] == 1
        assert stats["cache_hit_rate"] == 0.5
        assert stats["avg_response_time_ms"] == 75.0
        assert stats["queries_by_type"] == {"general": 2}

    def test_counts_follow_window(self):
        """Test that evicted entries stop counting toward top queries."""
        from dorsu_connect.rag.analytics import QueryAnalytics

        analytics = QueryAnalytics(max_entries=3)
        for query in ("old question", "old question", "tuition fees", "tuition fees", "library hours"):
            analytics.log_query(query, "general")

        stats = analytics.stats()

        assert analytics.top_queries() == [
            {"query": "tuition fees", "count": 2},
            {"query": "library hours", "count": 1},
        ]
        assert stats["unique_queries"] == 2
        assert stats["total_queries"] == 5

    def test_reset(self):
        """Test clearing the log."""
        from dorsu_connect.rag.analytics import QueryAnalytics

        analytics = QueryAnalytics()
        analytics.log_query("a", "general")
        analytics.reset()

        assert analytics.top_queries() == []
        assert analytics.stats()["total_queries"] == 0


# ─────────────────────────────────────────────────────────────────────────────
# Guardrail and Prompt Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestGuardrails:
    """Tests for conversation guardrails."""

    @pytest.mark.parametrize(
        "prompt",
        ["clear", "Start over", "Reset my chat please", "please reset the conversation"],
    )
    def test_reset_requests(self, prompt):
        """Test reset command detection."""
        from dorsu_connect.rag.guardrails import is_conversation_reset_request

        assert is_conversation_reset_request(prompt)

    def test_not_reset(self):
        """Test that ordinary questions are not resets."""
        from dorsu_connect.rag.guardrails import is_conversation_reset_request

        assert not is_conversation_reset_request("How do I reset my portal password?")
        assert not is_conversation_reset_request("")

    def test_clarification_message(self):
        """Test the clarification text."""
        from dorsu_connect.rag.guardrails import build_clarification_message
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer

        message = build_clarification_message(QueryAnalyzer().analyze("exam?"))

        assert message.startswith("I noticed")
        assert "include the date or timeframe" in message
        assert message.endswith("Could you clarify or add more context?")


class TestPromptBuilder:
    """Tests for PromptBuilder."""

    def test_build_prompt(self):
        """Test the user prompt layout."""
        from dorsu_connect.rag.prompts import PromptBuilder

        system, user = PromptBuilder().build_prompt(
            "Who is the president?", "## leadership (president)\nDr. Roy G. Ponce"
        )

        assert "DOrSU Assistant" in system
        assert "=== KNOWLEDGE BASE ===" in user
        assert user.endswith("Question: Who is the president?")

    def test_no_data_instructions(self):
        """Test that empty context adds the no-data instructions."""
        from dorsu_connect.rag.context import NO_DATA_MESSAGE
        from dorsu_connect.rag.prompts import NO_DATA_INSTRUCTIONS, PromptBuilder

        system, _ = PromptBuilder().build_prompt("Who?", NO_DATA_MESSAGE)

        assert system.endswith(NO_DATA_INSTRUCTIONS)

    def test_calendar_instructions(self):
        """Test calendar instructions for schedule questions."""
        from dorsu_connect.rag.prompts import CALENDAR_INSTRUCTIONS, PromptBuilder

        system = PromptBuilder().system_prompt(is_schedule=True)

        assert CALENDAR_INSTRUCTIONS in system

    def test_history(self):
        """Test conversation history rendering."""
        from dorsu_connect.rag.prompts import format_history
        from dorsu_connect.shared.schemas import ConversationTurn

        history = [
            ConversationTurn(role="user", content="Who is the president?"),
            ConversationTurn(role="assistant", content="Dr. Roy G. Ponce."),
        ]
        text = format_history(history)

        assert text.startswith("=== CONVERSATION SO FAR ===")
        assert "User: Who is the president?" in text
        assert "Assistant: Dr. Roy G. Ponce." in text
        assert format_history([]) == ""


# ─────────────────────────────────────────────────────────────────────────────
# Generator Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestGenerator:
    """Tests for Generator."""

    def test_unavailable_without_key(self):
        """Test availability without an API key."""
        from dorsu_connect.rag.generator import Generator

        assert Generator().is_available() is False
        assert Generator(api_key="test-key").is_available() is True

    def test_client_requires_key(self):
        """Test that the client refuses to start without a key."""
        from dorsu_connect.rag.generator import Generator
        from dorsu_connect.shared.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            _ = Generator().client

    def test_generate(self):
        """Test a successful generation."""
        from dorsu_connect.rag.generator import Generator

        generator = Generator(api_key="test-key")
        with patch.object(generator, "_generate_content", return_value=Mock(text=" Dr. Roy G. Ponce. ")):
            answer = generator.generate("Who is the president?", "## leadership (president)")

        assert answer.success
        assert answer.answer == "Dr. Roy G. Ponce."

    def test_generate_error(self):
        """Test that API failures become an error answer."""
        from dorsu_connect.rag.generator import ERROR_ANSWER, Generator

        generator = Generator(api_key="test-key")
        with patch.object(generator, "_generate_content", side_effect=RuntimeError("quota exceeded")):
            answer = generator.generate("Who is the president?", "context")

        assert not answer.success
        assert answer.answer == ERROR_ANSWER
        assert answer.error == "quota exceeded"


# ─────────────────────────────────────────────────────────────────────────────
# Chat Tests
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def chat_parts():
    """Mocked retrieval and generation plus real cache and analytics."""
    from dorsu_connect.rag.analytics import QueryAnalytics
    from dorsu_connect.rag.cache import ResponseCache
    from dorsu_connect.rag.context import RetrievedContext
    from dorsu_connect.shared.schemas import GeneratedAnswer, QueryType, SearchHit

    rag = Mock()
    rag.retrieve.return_value = RetrievedContext(
        text="## leadership (president)\nDr. Roy G. Ponce, University President.\n\n",
        query="Who is the president of DOrSU?",
        corrected_query="Who is the president of DOrSU?",
        query_type=QueryType.LEADERSHIP,
        hits=[SearchHit(id="leadership_president_1", section="leadership", type="president")],
    )

    generator = Mock()
    generator.is_available.return_value = True
    generator.generate.return_value = GeneratedAnswer(
        query="Who is the president of DOrSU?",
        answer="Dr. Roy G. Ponce is the University President.",
    )

    manifests = Mock()
    manifests.current_version.return_value = "v1"

    return {
        "rag_service": rag,
        "generator": generator,
        "cache": ResponseCache(ttl_seconds=60, max_entries=10, enabled=True),
        "analytics": QueryAnalytics(),
        "manifest_manager": manifests,
    }


@pytest.fixture
def chat_service(chat_parts):
    from dorsu_connect.rag.chat import ChatService
    from dorsu_connect.rag.query_analyzer import QueryAnalyzer

    return ChatService(analyzer=QueryAnalyzer(), history_turns=3, **chat_parts)


class TestChatService:
    """Tests for ChatService."""

    def test_answer(self, chat_service, chat_parts):
        """Test a fresh answer is generated and cached."""
        from dorsu_connect.shared.schemas import ChatRequest

        response = chat_service.chat(ChatRequest(prompt="Who is the president of DOrSU?"))

        assert response.source == "rag"
        assert response.reply == "Dr. Roy G. Ponce is the University President."
        assert response.query_type == "leadership"
        assert response.sections == ["leadership"]
        assert len(chat_parts["cache"]) == 1
        assert chat_parts["analytics"].stats()["total_queries"] == 1

    def test_cache_hit(self, chat_service, chat_parts):
        """Test that a repeated question is served from the cache."""
        from dorsu_connect.shared.schemas import ChatRequest

        chat_service.chat(ChatRequest(prompt="Who is the president of DOrSU?"))
        response = chat_service.chat(ChatRequest(message="who is the president of dorsu?"))

        assert response.source == "cache"
        assert response.cached
        assert chat_parts["rag_service"].retrieve.call_count == 1

    def test_follow_up_bypasses_cache(self, chat_service, chat_parts):
        """Test that follow-ups are always generated fresh."""
        from dorsu_connect.shared.schemas import ChatRequest

        for _ in range(2):
            response = chat_service.chat(ChatRequest(prompt="What about his education?"))

        assert response.source == "rag"
        assert chat_parts["rag_service"].retrieve.call_count == 2
        assert len(chat_parts["cache"]) == 0

    def test_history_passed_to_generator(self, chat_service, chat_parts):
        """Test that earlier turns reach the generator."""
        from dorsu_connect.shared.schemas import ChatRequest

        chat_service.chat(ChatRequest(prompt="Who is the president of DOrSU?", conversation_id="c1"))
        chat_service.chat(ChatRequest(prompt="What about his education?", conversation_id="c1"))

        history = chat_parts["generator"].generate.call_args.kwargs["history"]
        assert [t.role for t in history] == ["user", "assistant"]

    def test_history_trimmed(self, chat_service):
        """Test that only the configured number of turns are kept."""
        from dorsu_connect.shared.schemas import ChatRequest

        for _ in range(5):
            chat_service.chat(ChatRequest(prompt="What about his education?", conversation_id="c1"))

        assert len(chat_service.get_history("c1")) == 6

    def test_idle_conversations_evicted(self, chat_parts):
        """Test that only the most recently used conversations are kept."""
        from dorsu_connect.rag.chat import ChatService
        from dorsu_connect.rag.query_analyzer import QueryAnalyzer
        from dorsu_connect.shared.schemas import ChatRequest

        service = ChatService(analyzer=QueryAnalyzer(), max_conversations=2, **chat_parts)
        for conversation_id in ("c1", "c2", "c1", "c3"):
            service.chat(ChatRequest(prompt="What about his education?", conversation_id=conversation_id))

        assert service.get_history("c2") == []
        assert len(service.get_history("c1")) == 4
        assert len(service.get_history("c3")) == 2
        assert len(service._histories) == 2

    def test_reset(self, chat_service, chat_parts):
        """Test that reset commands clear the conversation."""
        from dorsu_connect.rag.chat import RESET_REPLY
        from dorsu_connect.shared.schemas import ChatRequest

        chat_service.chat(ChatRequest(prompt="Who is the president of DOrSU?", conversation_id="c1"))
        response = chat_service.chat(ChatRequest(prompt="clear", conversation_id="c1"))

        assert response.source == "system"
        assert response.reply == RESET_REPLY
        assert response.conversation_cleared
        assert chat_service.get_history("c1") == []

    def test_clarification(self, chat_service, chat_parts):
        """Test that vague questions ask for clarification."""
        from dorsu_connect.shared.schemas import ChatRequest

        response = chat_service.chat(ChatRequest(prompt="exam?"))

        assert response.source == "clarification"
        assert response.needs_clarification
        chat_parts["rag_service"].retrieve.assert_not_called()

    def test_generator_unavailable(self, chat_service, chat_parts):
        """Test the error reply when no API key is configured."""
        from dorsu_connect.rag.generator import ERROR_ANSWER
        from dorsu_connect.shared.schemas import ChatRequest

        chat_parts["generator"].is_available.return_value = False

        response = chat_service.chat(ChatRequest(prompt="Who is the president of DOrSU?"))

        assert response.source == "error"
        assert response.reply == ERROR_ANSWER
        assert len(chat_parts["cache"]) == 0
        chat_parts["generator"].generate.assert_not_called()

    def test_typo_reported(self, chat_service):
        """Test that corrected queries are returned."""
        from dorsu_connect.shared.schemas import ChatRequest

        response = chat_service.chat(ChatRequest(prompt="Who is the presidnet of DOrSU?"))

        assert response.corrected_query == "Who is the president of DOrSU?"

    def test_empty_prompt(self, chat_service):
        """Test that an empty message is rejected."""
        from dorsu_connect.shared.schemas import ChatRequest

        with pytest.raises(ValueError, match="prompt required"):
            chat_service.chat(ChatRequest(prompt="   "))
