"""Read-through cache of schema-tagged JSON records on top of the content store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Type, TypeVar

from .errors import CacheCorruptionError
from .models import RECORD_VERSION
from .store import ContentStore
from .utils import sanitize_name

logger = logging.getLogger("lotgrab")

R = TypeVar("R")

COARSE_DETAIL_URLS_KEY = "lotURLs"
COARSE_ITEM_ASSETS_KEY = "imageURLs"
INDEX_PAGES_DIR = "index_pages"
DETAIL_PAGES_DIR = "lot_pages"


def cache_path_for(key: str) -> Path:
    """Map a slash-separated cache key to a relative ``.json`` path."""
    segments = [sanitize_name(part, fallback="_") for part in key.split("/") if part]
    if not segments:
        raise ValueError(f"Empty cache key: {key!r}")
    segments[-1] = f"{segments[-1]}.json"
    return Path(*segments)


def encode_record(record: Any) -> bytes:
    envelope = {
        "schema": record.SCHEMA,
        "version": RECORD_VERSION,
        "data": record.to_payload(),
    }
    return json.dumps(envelope, ensure_ascii=False).encode("utf-8")


def _is_envelope(data: Any) -> bool:
    return isinstance(data, dict) and {"schema", "version", "data"} <= data.keys()


def decode_record(record_type: Type[R], raw: bytes, path: Path) -> R:
    """Decode a stored record, accepting the legacy untagged layout too."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise CacheCorruptionError(path, f"invalid JSON ({exc})") from exc

    if _is_envelope(data):
        schema = record_type.SCHEMA  # type: ignore[attr-defined]
        if data["schema"] != schema:
            raise CacheCorruptionError(
                path, f"expected schema {schema!r}, found {data['schema']!r}"
            )
        if data["version"] != RECORD_VERSION:
            raise CacheCorruptionError(
                path, f"unsupported record version {data['version']!r}"
            )
        payload = data["data"]
    else:
        payload = data

    try:
        return record_type.from_payload(payload)  # type: ignore[attr-defined]
    except (TypeError, ValueError) as exc:
        raise CacheCorruptionError(path, str(exc)) from exc


class RecordCache:
    """Return the stored record for a key, or produce, persist and return it.

    Entries never expire; the existence of the file is the only validity
    check. Delete the file to force a rebuild.
    """

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def exists(self, key: str) -> bool:
        return self.store.exists(cache_path_for(key))

    def load(self, key: str, record_type: Type[R]) -> R:
        path = cache_path_for(key)
        raw = self.store.read(path)
        return decode_record(record_type, raw, self.store.resolve(path))

    def save(self, key: str, record: Any) -> Path:
        return self.store.write(cache_path_for(key), encode_record(record))

    async def get_or_produce(
        self,
        key: str,
        record_type: Type[R],
        producer: Callable[[], Awaitable[R]],
    ) -> R:
        if self.exists(key):
            logger.debug("Cache hit for %s", key)
            return self.load(key, record_type)
        logger.debug("Cache miss for %s", key)
        record = await producer()
        self.save(key, record)
        return record
