"""Utility helpers for name sanitising and path handling."""

from __future__ import annotations

import hashlib
import os
import posixpath
import re
import uuid
from contextlib import suppress
from pathlib import Path
from urllib.parse import urlsplit

UNSAFE_NAME_PATTERN = re.compile(r'[\\/:"*?<>|]+')
DIGITS_PATTERN = re.compile(r"^\d+$")


def sanitize_name(value: str, fallback: str = "item") -> str:
    """Replace characters that are not allowed in a path segment with ``-``."""
    cleaned = UNSAFE_NAME_PATTERN.sub("-", value)
    if cleaned in {"", ".", ".."}:
        return fallback
    return cleaned


def sha256_hexdigest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def asset_filename(position: int, url: str) -> str:
    """Return ``{position}-{basename}`` for an asset URL (position is 1-based)."""
    basename = posixpath.basename(urlsplit(url).path)
    return f"{position}-{sanitize_name(basename, fallback='asset')}"


def detail_id(url: str) -> str:
    """Derive a stable cache identifier, unique per URL, from a detail page URL.

    The last all-digit path segment is kept as a readable prefix
    (``/lot/12345/some-title`` -> ``12345-<digest>``); the digest of the full
    URL keeps two lots sharing that segment apart. URLs without one use a
    short SHA-256 digest alone.
    """
    digest = sha256_hexdigest(url)
    segments = [s for s in urlsplit(url).path.split("/") if s]
    for segment in reversed(segments):
        if DIGITS_PATTERN.match(segment):
            return f"{segment}-{digest[:12]}"
    return digest[:16]


def atomic_write_bytes(path: Path, data: bytes) -> int:
    """Write ``data`` to a temporary sibling and move it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f"{path.name}.part.{uuid.uuid4().hex}")
    try:
        with temp_path.open("wb") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    except BaseException:
        with suppress(FileNotFoundError):
            temp_path.unlink()
        raise
    return len(data)
