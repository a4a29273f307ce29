"""
Configuration Module - Load and validate application settings.
==============================================================

Loads configuration from:
1. config/settings.yaml (defaults)
2. Environment variables from .env file
3. Environment variables from system

Environment variables override YAML defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early
load_dotenv()


def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingsConfig(BaseModel):
    """Embedding provider and cache settings."""

    provider: str = "sbert"
    model_name: str = "all-MiniLM-L6-v2"
    dimensions: int = 384
    device: str = "auto"
    batch_size: int = 32
    cache_size: int = 1000
    cache_key_chars: int = 100


class StoreConfig(BaseModel):
    """Knowledge store settings."""

    collection_name: str = "knowledge_chunks"
    batch_size: int = 500


class ChunkingConfig(BaseModel):
    """Dataset chunking settings."""

    min_text_length: int = 20
    long_text_threshold: int = 1500
    sentences_per_part: int = 3
    min_part_length: int = 50
    keywords_default: int = 15
    keywords_structured: int = 25


class SearchConfig(BaseModel):
    """Hybrid search weights."""

    max_sections: int = 10
    phrase_weight: int = 50
    word_weight: int = 2
    keyword_weight: int = 5
    vector_factor: int = 2


class CacheConfig(BaseModel):
    """Response cache settings. A ttl of 0 keeps entries until invalidated."""

    enabled: bool = True
    ttl_seconds: int = 3600
    max_entries: int = 500


class RefreshConfig(BaseModel):
    """Knowledge refresh settings."""

    data_file: str = "data/dorsu_data.json"
    source_name: str = "dorsu_data.json"
    poll_interval_seconds: int = 60
    sync_interval_seconds: int = 30
    auto_refresh: bool = False


class ScheduleConfig(BaseModel):
    """Calendar event settings."""

    events_file: str = "data/schedule_events.json"
    timezone: str = "Asia/Manila"


class GenerationConfig(BaseModel):
    """LLM generation settings."""

    model_name: str = "gemini-1.5-flash"
    temperature: float = 0.3
    max_output_tokens: int = 1000
    top_p: float = 0.95
    top_k: int = 40
    history_turns: int = 6
    max_conversations: int = 1000


class AuthConfig(BaseModel):
    """Token settings. The secret itself only comes from the environment."""

    jwt_algorithm: str = "HS256"
    token_expiry_days: int = 7


class TypoConfig(BaseModel):
    """Typo correction thresholds."""

    max_distance: int = 2
    min_similarity: float = 0.6


class ApiConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class PathsConfig(BaseModel):
    """Data paths configuration."""

    data_dir: str = "data"
    store_dir: str = "data/chroma"
    manifests_dir: str = "data/manifests"
    users_file: str = "data/users.json"

    def resolve(self, base_path: Path) -> "ResolvedPaths":
        """Resolve paths relative to a base path."""
        return ResolvedPaths(
            data_dir=base_path / self.data_dir,
            store_dir=base_path / self.store_dir,
            manifests_dir=base_path / self.manifests_dir,
            users_file=base_path / self.users_file,
        )


class ResolvedPaths(BaseModel):
    """Resolved absolute paths."""

    data_dir: Path
    store_dir: Path
    manifests_dir: Path
    users_file: Path

    model_config = {"arbitrary_types_allowed": True}


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from:
    1. config/settings.yaml (defaults)
    2. Environment variables

    Environment variables override YAML settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Secrets (from environment only)
    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    jwt_secret: str = Field(default="", validation_alias="JWT_SECRET")

    # Top-level environment overrides
    embedding_provider: Optional[str] = Field(default=None, validation_alias="EMBEDDING_PROVIDER")
    gemini_model: Optional[str] = Field(default=None, validation_alias="GEMINI_MODEL")
    data_file: Optional[str] = Field(default=None, validation_alias="DATA_FILE")
    cache_ttl_seconds: Optional[int] = Field(default=None, validation_alias="CACHE_TTL_SECONDS")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    typo: TypoConfig = Field(default_factory=TypoConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Computed properties
    _project_root: Path = PROJECT_ROOT
    _resolved_paths: Optional[ResolvedPaths] = None

    @field_validator("gemini_api_key", "jwt_secret", mode="before")
    @classmethod
    def validate_secret(cls, v: Any) -> str:
        """Allow empty secrets; features that need them check at use time."""
        if v is None:
            return ""
        return str(v)

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._project_root

    @property
    def resolved_paths(self) -> ResolvedPaths:
        """Get resolved absolute paths."""
        if self._resolved_paths is None:
            self._resolved_paths = self.paths.resolve(self._project_root)
        return self._resolved_paths

    def resolve_path(self, path: str) -> Path:
        """Resolve a possibly relative path against the project root."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self._project_root / candidate

    def get_effective_embedding_provider(self) -> str:
        """Get the effective embedding provider (env override or config)."""
        if self.embedding_provider:
            return self.embedding_provider.lower()
        return self.embeddings.provider.lower()

    def get_effective_gemini_model(self) -> str:
        """Get the effective generation model (env override or config)."""
        if self.gemini_model:
            return self.gemini_model
        return self.generation.model_name

    def get_effective_data_file(self) -> Path:
        """Get the effective knowledge dataset path (env override or config)."""
        return self.resolve_path(self.data_file or self.refresh.data_file)

    def get_effective_cache_ttl(self) -> int:
        """Get the effective response cache TTL (env override or config)."""
        if self.cache_ttl_seconds is not None:
            return self.cache_ttl_seconds
        return self.cache.ttl_seconds

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Create settings instance by merging YAML defaults with environment."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    yaml_config = _load_yaml_config(config_path)
    return Settings(**yaml_config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton settings instance.

    Returns:
        Settings instance with merged configuration

    Example:
        >>> settings = get_settings()
        >>> print(settings.search.max_sections)
        10
    """
    return _create_settings()


def reload_settings() -> Settings:
    """
    Force reload of settings (clears cache).

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
