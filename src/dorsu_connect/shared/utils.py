"""
Utilities Module - Common helper functions.
==========================================

Provides utility functions for:
- Hashing (SHA256 for content versioning, 32-bit string hash for vectors)
- Key and text normalisation
- Date parsing and human-readable date variants
- File I/O (JSON)
"""

import hashlib
import json
import os
import re
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from dorsu_connect.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Hashing Functions
# ─────────────────────────────────────────────────────────────────────────────


def compute_hash(text: str, algorithm: str = "sha256") -> str:
    """
    Compute hash of text content.

    Example:
        >>> compute_hash("hello world")[:12]
        'b94d27b9934d'
    """
    hasher = hashlib.new(algorithm)
    hasher.update(text.encode("utf-8"))
    return hasher.hexdigest()


def compute_file_hash(file_path: Path, algorithm: str = "sha256") -> str:
    """
    Compute hash of file contents.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    hasher = hashlib.new(algorithm)

    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(8192), b""):
            hasher.update(block)

    return hasher.hexdigest()


def js_string_hash(text: str) -> int:
    """
    32-bit rolling string hash (``h = h * 31 + code``), returned as its
    absolute value.

    Codes are UTF-16 code units, so characters outside the Basic
    Multilingual Plane contribute their two surrogate halves.

    Used to bucket words into embedding dimensions, so the same word always
    lands in the same slot regardless of platform or process.

    Example:
        >>> js_string_hash("a")
        97
    """
    h = 0
    units = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = ((h << 5) - h + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


# ─────────────────────────────────────────────────────────────────────────────
# Text Helpers
# ─────────────────────────────────────────────────────────────────────────────


_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def humanize_key(key: str) -> str:
    """
    Turn a camelCase or snake_case key into lowercase words.

    Example:
        >>> humanize_key("officialWebsite")
        'official website'
    """
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", key).replace("_", " ")
    return clean_whitespace(spaced).lower()


def slugify(text: str, max_length: int = 40) -> str:
    """Lowercase, alphanumeric-and-underscore form of ``text``."""
    slug = re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")
    return slug[:max_length] or "item"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to ``max_length`` characters including the suffix."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def clean_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return re.sub(r"\s+", " ", text).strip()


def normalize_query(query: str) -> str:
    """Lowercase, whitespace-collapsed form of a query used as a lookup key."""
    return clean_whitespace(query.lower())


# ─────────────────────────────────────────────────────────────────────────────
# Dates
# ─────────────────────────────────────────────────────────────────────────────


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string, date or datetime; returns None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable date value: {value!r}")
        return None


def to_timezone(value: datetime, tz_name: str) -> datetime:
    """Convert to ``tz_name``; naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name))


def format_long_date(value: datetime) -> str:
    """``January 5, 2025``"""
    return f"{value:%B} {value.day}, {value.year}"


def format_date_variants(value: Any, tz_name: str = "Asia/Manila") -> list[str]:
    """
    Render a date the ways people type it, for embedding and matching.

    Example:
        >>> format_date_variants("2025-01-15T00:00:00+08:00")
        ['January 15, 2025', 'Jan 15, 2025', 'January 15', 'Jan 15']
    """
    parsed = parse_datetime(value)
    if parsed is None:
        return []
    local = to_timezone(parsed, tz_name)
    return [
        format_long_date(local),
        f"{local:%b} {local.day}, {local.year}",
        f"{local:%B} {local.day}",
        f"{local:%b} {local.day}",
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Directory / File I/O
# ─────────────────────────────────────────────────────────────────────────────


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if missing; returns the path."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_parent_directory(file_path: Path) -> Path:
    """Create the parent directory of ``file_path`` if missing."""
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return file_path


def load_json(file_path: Path) -> Any:
    """
    Load JSON from file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file is not valid JSON
    """
    with open(file_path, encoding="utf-8") as f:
        return json.load(f)


def save_json(file_path: Union[str, Path], data: Any, indent: int = 2) -> None:
    """
    Write JSON atomically: a temp file in the same directory is renamed
    over the target so readers never see a partial file.
    """
    file_path = ensure_parent_directory(Path(file_path))
    fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
        os.replace(tmp_name, file_path)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
