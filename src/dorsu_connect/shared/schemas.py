"""
Schemas Module - Pydantic data models for the application.
==========================================================

Defines all data contracts used across the application:
- Knowledge chunks and search hits
- Query analysis and typo correction results
- Schedule events and their filters
- Refresh, cache and manifest records
- Auth and chat request/response bodies

Models that travel over HTTP serialise with camelCase aliases so the mobile
client keeps its field names (``userType``, ``createdAt``, ...).
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for models exposed through the API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class QueryType(str, Enum):
    """Retrieval route chosen for a query."""

    HISTORY = "history"
    DEANS = "deans"
    LEADERSHIP = "leadership"
    OFFICE = "office"
    VALUES = "values"
    PROGRAMS = "programs"
    FACULTIES = "faculties"
    STUDENT_ORG = "student_org"
    ADMISSION_REQUIREMENTS = "admission_requirements"
    HYMN = "hymn"
    VISION_MISSION = "vision_mission"
    SCHEDULE = "schedule"
    SCHOLARSHIP = "scholarship"
    COMPREHENSIVE = "comprehensive"
    GENERAL = "general"


class ComplexityLevel(str, Enum):
    """How much context a query should pull in."""

    STANDARD = "standard"
    MODERATE = "moderate-retrieval"
    HIGH = "high-retrieval"
    MAXIMUM = "maximum-retrieval"


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge Chunks
# ─────────────────────────────────────────────────────────────────────────────


class KnowledgeChunk(BaseModel):
    """
    A searchable unit of the knowledge base.

    ``content`` and ``text`` always carry the same string; both are kept
    because older clients read one or the other.
    """

    id: str = Field(..., description="Stable chunk identifier")
    content: str = Field(..., description="Chunk text")
    text: str = Field(default="", description="Chunk text (mirror of content)")
    section: str = Field(..., description="Top-level dataset section")
    type: str = Field(..., description="Chunk kind, e.g. office_info, timeline_event")
    category: str = Field(default="", description="Finer grouping, e.g. acronym or year")
    keywords: list[str] = Field(default_factory=list)
    embedding: Optional[list[float]] = Field(default=None, description="384-dim vector")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def model_post_init(self, __context: Any) -> None:
        if not self.text:
            self.text = self.content

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", ""))

    def to_store_metadata(self) -> dict[str, Any]:
        """Flatten into scalar values accepted by the vector store."""
        return {
            "section": self.section,
            "type": self.type,
            "category": self.category or "",
            "source": self.source,
            "keywords": json.dumps(self.keywords),
            "metadata": json.dumps(self.metadata, default=str),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_store(
        cls,
        chunk_id: str,
        document: str,
        metadata: dict[str, Any],
        embedding: Optional[list[float]] = None,
    ) -> "KnowledgeChunk":
        """Rebuild a chunk from a stored record."""
        return cls(
            id=chunk_id,
            content=document,
            text=document,
            section=metadata.get("section", ""),
            type=metadata.get("type", ""),
            category=metadata.get("category", ""),
            keywords=json.loads(metadata.get("keywords") or "[]"),
            metadata=json.loads(metadata.get("metadata") or "{}"),
            embedding=embedding,
            created_at=metadata.get("created_at") or utc_now(),
            updated_at=metadata.get("updated_at") or utc_now(),
        )


class SearchHit(BaseModel):
    """A chunk returned by one of the search paths, with its score."""

    id: str
    section: str = ""
    type: str = ""
    category: str = ""
    text: str = ""
    score: float = 0.0
    keywords: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: str = Field(default="", description="Search path that produced the hit")

    @classmethod
    def from_chunk(cls, chunk: KnowledgeChunk, score: float, source: str) -> "SearchHit":
        return cls(
            id=chunk.id,
            section=chunk.section,
            type=chunk.type,
            category=chunk.category,
            text=chunk.content,
            score=score,
            keywords=chunk.keywords,
            metadata=chunk.metadata,
            source=source,
        )

    @property
    def sort_date(self) -> str:
        """Date-ish value used to break score ties."""
        value = self.metadata.get("date") or self.metadata.get("startDate") or ""
        return str(value)


# ─────────────────────────────────────────────────────────────────────────────
# Query Understanding
# ─────────────────────────────────────────────────────────────────────────────


class Correction(BaseModel):
    """A single word or phrase replacement."""

    original: str
    corrected: str
    similarity: float
    distance: int


class TypoCorrection(BaseModel):
    """Result of running typo correction over a query."""

    original: str
    corrected: str
    corrections: list[Correction] = Field(default_factory=list)

    @property
    def has_corrections(self) -> bool:
        return len(self.corrections) > 0


class ExtractedEntities(BaseModel):
    """Structured entities pulled out of a query."""

    office_acronyms: list[str] = Field(default_factory=list)
    years: list[int] = Field(default_factory=list)
    names: list[str] = Field(default_factory=list)
    dates: list[str] = Field(default_factory=list)
    numbers: list[int] = Field(default_factory=list)

    @property
    def is_structured(self) -> bool:
        return bool(self.office_acronyms or self.years or self.names)


class DetectedTopic(BaseModel):
    category: str
    keywords: list[str]


class RetrievalSettings(BaseModel):
    """Context and generation budget derived from the RAG multiplier."""

    max_tokens: int = 500
    rag_sections: int = 8
    rag_max_tokens: int = 800
    temperature: float = 0.3
    use_native_search: bool = False
    description: str = "Standard retrieval"
    suggest_more: bool = False


class QueryAnalysis(BaseModel):
    """Everything the analyzer learned about a query."""

    original_query: str
    complexity: ComplexityLevel = ComplexityLevel.STANDARD
    confidence: int = 25
    detected_topics: list[DetectedTopic] = Field(default_factory=list)
    detected_intents: list[str] = Field(default_factory=list)
    found_plurals: list[str] = Field(default_factory=list)
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    rag_multiplier: float = 1.0
    settings: RetrievalSettings = Field(default_factory=RetrievalSettings)
    is_multi_part: bool = False
    is_follow_up: bool = False
    is_greeting: bool = False
    is_vague: bool = False
    vague_reason: Optional[str] = None
    needs_clarification: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Schedule
# ─────────────────────────────────────────────────────────────────────────────


class ScheduleEvent(CamelModel):
    """A calendar event or announcement."""

    id: str
    title: str
    description: str = ""
    category: str = "Event"
    date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    time: str = ""
    semester: Optional[int] = Field(default=None, description="1, 2 or 0 for off-semester")
    user_type: str = Field(default="all", description="all, student or faculty")

    @property
    def effective_date(self) -> Optional[datetime]:
        return self.date or self.start_date


class ScheduleFilters(BaseModel):
    """Constraints extracted from a schedule query."""

    start: date
    end: date
    semester: Optional[int] = None
    exam_types: list[str] = Field(default_factory=list)
    has_exam_context: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Refresh / Cache / Manifest
# ─────────────────────────────────────────────────────────────────────────────


class RefreshResult(CamelModel):
    """Outcome of a knowledge base refresh."""

    success: bool
    message: str
    old_chunks_removed: int = 0
    new_chunks_added: int = 0
    updated_chunks: int = 0
    total_chunks_generated: int = 0
    total_chunks: int = 0
    cache_entries_cleared: int = 0
    dataset_hash: Optional[str] = None
    timestamp: Optional[datetime] = None
    error: Optional[str] = None


class RefreshStatus(CamelModel):
    is_refreshing: bool = False
    last_refresh: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    auto_refresh: bool = False


class CachedResponse(BaseModel):
    """An answer stored in the response cache."""

    reply: str
    query_type: str = QueryType.GENERAL.value
    sections: list[str] = Field(default_factory=list)
    knowledge_version: Optional[str] = None
    created_at: float = Field(..., description="time.monotonic() at insertion")


class IndexManifest(BaseModel):
    """
    Record of one refresh: which dataset produced which index.

    Saved as JSON under the manifests directory, keyed by dataset hash.
    """

    dataset_hash: str = Field(..., description="sha256 of the dataset file")
    data_file: str
    chunk_count: int
    embedded_count: int
    provider: str
    model_name: str
    dimensions: int
    sections: dict[str, int] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


# ─────────────────────────────────────────────────────────────────────────────
# Auth
# ─────────────────────────────────────────────────────────────────────────────


class User(BaseModel):
    """A stored user account, including its password hash."""

    id: str
    username: str
    email: str
    password_hash: str
    role: str = "user"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    last_login: Optional[datetime] = None

    def to_public(self) -> "PublicUser":
        return PublicUser(
            id=self.id,
            username=self.username,
            email=self.email,
            role=self.role,
            created_at=self.created_at,
        )


class PublicUser(CamelModel):
    id: str
    username: str
    email: str
    role: str = "user"
    created_at: datetime


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(CamelModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    user: PublicUser
    token: str


class TokenPayload(CamelModel):
    user_id: str
    email: str
    username: str
    iat: int
    exp: int


# ─────────────────────────────────────────────────────────────────────────────
# Chat
# ─────────────────────────────────────────────────────────────────────────────


class ChatRequest(CamelModel):
    prompt: Optional[str] = None
    message: Optional[str] = None
    user_type: Optional[str] = None
    conversation_id: str = "default"

    @property
    def text(self) -> str:
        return (self.prompt or self.message or "").strip()


class ChatResponse(CamelModel):
    reply: str
    source: str = Field(default="rag", description="rag, cache, system, clarification or error")
    query_type: Optional[str] = None
    corrected_query: Optional[str] = None
    sections: list[str] = Field(default_factory=list)
    cached: bool = False
    conversation_cleared: bool = False
    needs_clarification: bool = False
    response_time_ms: float = 0.0


class ConversationTurn(BaseModel):
    """One exchange kept for follow-up questions."""

    role: str = Field(..., description="user or assistant")
    content: str


class GeneratedAnswer(BaseModel):
    """Output of one LLM generation."""

    query: str
    answer: str
    model_name: str = ""
    success: bool = True
    error: Optional[str] = None
