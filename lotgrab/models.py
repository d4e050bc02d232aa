"""Data models used throughout the archiving pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional

RECORD_VERSION = 1


def _require_str_list(value: Any, what: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{what} must be a list of strings")
    return list(value)


@dataclass
class CachedDocument:
    """Raw page markup stored by the fine-grained document cache."""

    SCHEMA: ClassVar[str] = "lotgrab.cached-document"

    url: str
    html: str

    def to_payload(self) -> Dict[str, str]:
        return {"url": self.url, "html": self.html}

    @classmethod
    def from_payload(cls, payload: Any) -> "CachedDocument":
        if not isinstance(payload, dict):
            raise ValueError("cached document must be an object")
        url, html = payload.get("url"), payload.get("html")
        if not isinstance(url, str) or not isinstance(html, str):
            raise ValueError("cached document needs string 'url' and 'html'")
        return cls(url=url, html=html)


@dataclass
class DetailURLList:
    """Every detail page URL discovered by the crawl, in discovery order."""

    SCHEMA: ClassVar[str] = "lotgrab.detail-urls"

    urls: List[str]

    def to_payload(self) -> List[str]:
        return list(self.urls)

    @classmethod
    def from_payload(cls, payload: Any) -> "DetailURLList":
        return cls(urls=_require_str_list(payload, "detail URL list"))


@dataclass
class ItemAssetMap:
    """Item name to ordered asset URLs, as built by the extraction stage."""

    SCHEMA: ClassVar[str] = "lotgrab.item-assets"

    items: Dict[str, List[str]]

    def to_payload(self) -> Dict[str, List[str]]:
        return {name: list(urls) for name, urls in self.items.items()}

    @classmethod
    def from_payload(cls, payload: Any) -> "ItemAssetMap":
        if not isinstance(payload, dict):
            raise ValueError("item asset map must be an object")
        items = {
            str(name): _require_str_list(urls, f"assets of {name!r}")
            for name, urls in payload.items()
        }
        return cls(items=items)

    @property
    def asset_count(self) -> int:
        return sum(len(urls) for urls in self.items.values())


@dataclass
class ItemExtraction:
    """Title and gallery asset URLs pulled from one detail page."""

    title: Optional[str]
    assets: List[str]


@dataclass
class DownloadTask:
    """One asset scheduled for download."""

    item_name: str
    url: str
    destination: Path


class DownloadOutcome(str, enum.Enum):
    ALREADY_PRESENT = "already_present"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class DownloadReport:
    """Tally of download outcomes for one run of the download stage."""

    downloaded: int = 0
    failed: int = 0
    already_present: int = 0
    failed_paths: List[Path] = field(default_factory=list)

    def record(self, outcome: DownloadOutcome, destination: Optional[Path] = None) -> None:
        if outcome is DownloadOutcome.DOWNLOADED:
            self.downloaded += 1
        elif outcome is DownloadOutcome.FAILED:
            self.failed += 1
            if destination is not None:
                self.failed_paths.append(destination)
        else:
            self.already_present += 1

    @property
    def total(self) -> int:
        return self.downloaded + self.failed + self.already_present

    def summary(self) -> str:
        return (
            f"Downloaded {self.downloaded} images, {self.failed} failed, "
            f"{self.already_present} already present"
        )
