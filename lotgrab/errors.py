"""Exception types raised by the lot archiver."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class LotgrabError(Exception):
    """Base class for every error raised by this package."""


class FetchError(LotgrabError):
    """A URL could not be retrieved (transport failure or non-2xx status)."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to fetch {url}: {reason}")


class StageAbortError(LotgrabError):
    """The crawl or extraction stage hit an error and stopped without persisting."""

    def __init__(self, stage: str, url: str, reason: str) -> None:
        self.stage = stage
        self.url = url
        self.reason = reason
        super().__init__(f"{stage} stage aborted at {url}: {reason}")


class CacheCorruptionError(LotgrabError):
    """A cache entry exists but cannot be decoded into the expected record."""

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(
            f"Corrupt cache file {self.path}: {reason} (delete it to rebuild)"
        )


class DownloadError(LotgrabError):
    """One asset could not be fetched or written to its destination."""

    def __init__(self, url: str, destination: Path, reason: str) -> None:
        self.url = url
        self.destination = destination
        self.reason = reason
        super().__init__(f"Failed to download {url} to {destination}: {reason}")


class ContentNotFoundError(FileNotFoundError):
    """Raised by the content store when reading a path that does not exist."""
