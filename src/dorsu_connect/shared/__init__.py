"""
Shared Module - Common utilities, configuration, schemas, and logging.
======================================================================

This module provides foundational components used across all other modules:

- config: Configuration loading and management
- logging: Rich-backed logging setup
- errors: Application exception hierarchy
- schemas: Pydantic data models
- utils: Hashing, text, date and file helpers
"""

from dorsu_connect.shared.config import Settings, get_settings, reload_settings
from dorsu_connect.shared.errors import (
    AuthenticationError,
    ConfigurationError,
    DataFileError,
    DorsuConnectError,
    EmbeddingError,
    RegistrationError,
    StoreError,
)
from dorsu_connect.shared.logging import get_console, get_logger, setup_logging
from dorsu_connect.shared.schemas import (
    ChatRequest,
    ChatResponse,
    IndexManifest,
    KnowledgeChunk,
    QueryAnalysis,
    QueryType,
    RefreshResult,
    ScheduleEvent,
    SearchHit,
)
from dorsu_connect.shared.utils import (
    compute_file_hash,
    compute_hash,
    ensure_directory,
    js_string_hash,
    load_json,
    save_json,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Errors
    "DorsuConnectError",
    "ConfigurationError",
    "DataFileError",
    "EmbeddingError",
    "StoreError",
    "AuthenticationError",
    "RegistrationError",
    # Logging
    "get_logger",
    "get_console",
    "setup_logging",
    # Schemas
    "KnowledgeChunk",
    "SearchHit",
    "QueryType",
    "QueryAnalysis",
    "ScheduleEvent",
    "RefreshResult",
    "IndexManifest",
    "ChatRequest",
    "ChatResponse",
    # Utils
    "compute_hash",
    "compute_file_hash",
    "js_string_hash",
    "ensure_directory",
    "load_json",
    "save_json",
]
