"""Configuration objects and constants for the lot archiver."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

DEFAULT_INDEX_URL_TEMPLATE = (
    "https://propstoreauction.com/auctions/catalog/id/{job_id}?page={page}"
)
DEFAULT_SITE = "propstore"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0 Safari/537.36"
)
DEFAULT_MAX_CONCURRENCY = 16


@dataclass
class JobConfig:
    """Top-level settings that control crawling and downloading for one job."""

    job_id: str
    page_count: int
    index_url_template: str = DEFAULT_INDEX_URL_TEMPLATE
    site: str = DEFAULT_SITE
    cache_root: Path = Path("cache")
    output_root: Path = Path("images")
    max_concurrency: Optional[int] = DEFAULT_MAX_CONCURRENCY
    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    render_pages: bool = False
    navigation_timeout: float = 30.0
    dedupe_detail_urls: bool = False

    def __post_init__(self) -> None:
        self.job_id = str(self.job_id)
        self.cache_root = Path(self.cache_root)
        self.output_root = Path(self.output_root)
        if self.page_count < 0:
            raise ValueError(f"page_count must be >= 0, got {self.page_count}")
        if self.max_concurrency is not None and self.max_concurrency < 0:
            raise ValueError(
                f"max_concurrency must be >= 0 or None, got {self.max_concurrency}"
            )

    @property
    def cache_dir(self) -> Path:
        return self.cache_root / self.job_id

    @property
    def output_dir(self) -> Path:
        return self.output_root / self.job_id

    def index_url(self, page: int) -> str:
        """Build the listing URL for a 1-based page number."""
        return self.index_url_template.format(job_id=self.job_id, page=page)

    def request_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        headers.update(self.headers)
        return headers
