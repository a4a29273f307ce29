"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- Sample dataset and schedule fixtures
- Embedding and store fixtures (hashing provider, temporary chroma)
- Temporary directories
- Singleton reset between tests
"""

import json
import os
import random
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set test environment before importing app modules
os.environ["EMBEDDING_PROVIDER"] = "hashing"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GEMINI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"


# ─────────────────────────────────────────────────────────────────────────────
# Path Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_path(project_root: Path) -> Path:
    """Get the config file path."""
    return project_root / "config" / "settings.yaml"


# ─────────────────────────────────────────────────────────────────────────────
# Sample Data Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_dataset() -> dict:
    """A small university dataset covering the main section shapes."""
    return {
        "history": {
            "timeline": [
                {
                    "date": "1989-06-10",
                    "event": "Conversion into Davao Oriental State College of Science and Technology",
                    "legalBasis": "Republic Act No. 6807",
                },
                {
                    "date": "2018-05-28",
                    "event": "DOSCST was converted into Davao Oriental State University",
                    "legalBasis": "Republic Act No. 11033",
                },
            ],
        },
        "leadership": {
            "president": {
                "name": "Dr. Roy G. Ponce",
                "title": "University President",
            },
            "deans": [
                {
                    "name": "Dr. Ana Marie R. Cruz",
                    "position": "Dean, Faculty of Computing, Engineering and Technology",
                },
            ],
        },
        "offices": [
            {
                "acronym": "OSA",
                "fullName": "Office of Student Affairs",
                "head": "Ms. Maria Santos",
            },
        ],
        "programs": {
            "FACET": {
                "faculty": "Faculty of Computing, Engineering and Technology",
                "programs": [
                    {
                        "code": "BSIT",
                        "name": "Bachelor of Science in Information Technology",
                        "accreditation": "AACCUP Level III",
                    },
                ],
            },
        },
        "studentResources": {
            "admission": {
                "incomingFirstYearStudents": {
                    "category": "Incoming First Year",
                    "requirements": ["Form 138", "PSA Birth Certificate"],
                },
            },
        },
        "visionMission": {
            "vision": "A university of excellence, innovation and inclusion.",
        },
    }


@pytest.fixture
def sample_dataset_file(temp_dir: Path, sample_dataset: dict) -> Path:
    """The sample dataset written to a JSON file."""
    path = temp_dir / "dorsu_data.json"
    path.write_text(json.dumps(sample_dataset), encoding="utf-8")
    return path


@pytest.fixture
def sample_events() -> list[dict]:
    """Schedule events in the stored camelCase form."""
    return [
        {
            "id": "evt-001",
            "title": "First Semester Classes Begin",
            "category": "Academic",
            "date": "2025-08-11T00:00:00+08:00",
            "semester": 1,
            "userType": "all",
        },
        {
            "id": "evt-002",
            "title": "Midterm Examination",
            "description": "Midterm examinations for all undergraduate programs.",
            "category": "Examination",
            "startDate": "2025-10-06T00:00:00+08:00",
            "endDate": "2025-10-10T00:00:00+08:00",
            "time": "8:00 AM - 5:00 PM",
            "semester": 1,
            "userType": "student",
        },
        {
            "id": "evt-003",
            "title": "Faculty Development Seminar",
            "category": "Seminar",
            "date": "2025-10-15T00:00:00+08:00",
            "semester": 1,
            "userType": "faculty",
        },
        {
            "id": "evt-004",
            "title": "Summer Enrollment",
            "category": "Enrollment",
            "date": "2026-05-04T00:00:00+08:00",
            "semester": 0,
            "userType": "all",
        },
    ]


@pytest.fixture
def sample_events_file(temp_dir: Path, sample_events: list[dict]) -> Path:
    """The sample events written to a JSON file."""
    path = temp_dir / "schedule_events.json"
    path.write_text(json.dumps({"events": sample_events}), encoding="utf-8")
    return path


@pytest.fixture
def sample_chunks(sample_dataset: dict):
    """Chunks parsed from the sample dataset (no embeddings)."""
    from dorsu_connect.ingestion.chunker import parse_dataset

    return parse_dataset(sample_dataset, source="dorsu_data.json")


# ─────────────────────────────────────────────────────────────────────────────
# Embedding / Store Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_embeddings():
    """Generate deterministic mock embeddings."""
    def _generate(n: int, dim: int = 384) -> list[list[float]]:
        random.seed(42)
        return [[random.random() for _ in range(dim)] for _ in range(n)]

    return _generate


@pytest.fixture
def hashing_service():
    """EmbeddingService backed by the hashing provider."""
    from dorsu_connect.indexing.embedding_service import EmbeddingService
    from dorsu_connect.indexing.embeddings_hashing import HashingEmbeddingProvider

    return EmbeddingService(provider=HashingEmbeddingProvider())


@pytest.fixture
def embedded_chunks(sample_chunks, hashing_service):
    """Sample chunks with hashing embeddings."""
    return hashing_service.embed_chunks(sample_chunks)


@pytest.fixture
def store(temp_dir: Path):
    """KnowledgeStore persisted in a temporary directory."""
    from dorsu_connect.indexing.knowledge_store import KnowledgeStore

    return KnowledgeStore(
        collection_name="test_knowledge",
        persist_directory=temp_dir / "chroma",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "requires_api: marks tests that need a Gemini API key")


# ─────────────────────────────────────────────────────────────────────────────
# Cleanup
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests."""
    yield

    from dorsu_connect.auth import service as auth_service
    from dorsu_connect.indexing import embedding_service, knowledge_store
    from dorsu_connect.indexing.embeddings_base import clear_provider_cache
    from dorsu_connect.rag import analytics, cache, chat, context, generator, query_analyzer, typo
    from dorsu_connect.refresh import service as refresh_service
    from dorsu_connect.schedule import service as schedule_service
    from dorsu_connect.shared.config import get_settings

    knowledge_store._knowledge_store = None
    embedding_service._embedding_service = None
    context._rag_service = None
    cache._response_cache = None
    analytics._query_analytics = None
    generator._generator = None
    chat._chat_service = None
    query_analyzer._query_analyzer = None
    typo._typo_corrector = None
    schedule_service._schedule_service = None
    refresh_service._data_refresh_service = None
    auth_service._auth_service = None

    clear_provider_cache()
    get_settings.cache_clear()
