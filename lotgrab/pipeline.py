"""High-level orchestration of the crawl, extraction and download stages."""

from __future__ import annotations

import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from .cache import (
    COARSE_DETAIL_URLS_KEY,
    COARSE_ITEM_ASSETS_KEY,
    DETAIL_PAGES_DIR,
    INDEX_PAGES_DIR,
    RecordCache,
)
from .config import JobConfig
from .crawler import crawl_detail_urls, extract_item_assets
from .downloads import download_assets, item_folder, plan_item
from .extract import Extractor, get_extractor
from .fetch import Fetcher, HttpxFetcher, PlaywrightFetcher
from .models import DetailURLList, DownloadReport, ItemAssetMap
from .store import ContentStore

logger = logging.getLogger("lotgrab")


@dataclass
class PipelineResult:
    """Everything one run produced."""

    detail_urls: List[str]
    item_assets: Dict[str, List[str]]
    report: DownloadReport
    total_seconds: float = 0.0


async def run_pipeline(
    config: JobConfig,
    *,
    page_fetcher: Fetcher,
    asset_fetcher: Fetcher,
    extractor: Optional[Extractor] = None,
    cache: Optional[RecordCache] = None,
) -> PipelineResult:
    """Run the three stages one after the other.

    A crawl or extraction failure propagates before anything else is
    written for that stage; download failures only show up in the report.
    """
    start = time.perf_counter()
    extractor = extractor or get_extractor(config.site)
    cache = cache or RecordCache(ContentStore(config.cache_dir))

    detail_urls = await crawl_detail_urls(config, cache, page_fetcher, extractor)
    logger.info("Found %d lot URLs", len(detail_urls))

    item_assets = await extract_item_assets(detail_urls, cache, page_fetcher, extractor)
    logger.info(
        "Found %d images across %d lots",
        sum(len(urls) for urls in item_assets.values()),
        len(item_assets),
    )

    logger.info("Starting download...")
    report = await download_assets(
        item_assets,
        config.output_dir,
        asset_fetcher,
        max_concurrency=config.max_concurrency,
    )
    return PipelineResult(
        detail_urls=detail_urls,
        item_assets=item_assets,
        report=report,
        total_seconds=time.perf_counter() - start,
    )


@dataclass
class JobStatus:
    """Snapshot of how far a job has got, read from its cache and output folders."""

    index_pages_cached: int
    lot_pages_cached: int
    lot_urls: Optional[int]
    lots: Optional[int]
    images: Optional[int]
    images_present: Optional[int]

    def lines(self) -> List[str]:
        def show(value: Optional[int]) -> str:
            return "not cached" if value is None else str(value)

        lines = [
            f"Listing pages cached: {self.index_pages_cached}",
            f"Lot pages cached: {self.lot_pages_cached}",
            f"Lot URLs: {show(self.lot_urls)}",
            f"Lots with images: {show(self.lots)}",
        ]
        if self.images is not None:
            lines.append(f"Images downloaded: {self.images_present}/{self.images}")
        return lines


def job_status(config: JobConfig) -> JobStatus:
    cache = RecordCache(ContentStore(config.cache_dir))

    def count_entries(directory: str) -> int:
        folder = config.cache_dir / directory
        return len(list(folder.glob("*.json"))) if folder.is_dir() else 0

    lot_urls = None
    if cache.exists(COARSE_DETAIL_URLS_KEY):
        lot_urls = len(cache.load(COARSE_DETAIL_URLS_KEY, DetailURLList).urls)

    lots = images = present = None
    if cache.exists(COARSE_ITEM_ASSETS_KEY):
        item_map = cache.load(COARSE_ITEM_ASSETS_KEY, ItemAssetMap)
        lots = len(item_map.items)
        images = item_map.asset_count
        present = sum(
            1
            for name, urls in item_map.items.items()
            for task in plan_item(name, urls, item_folder(config.output_dir, name))
            if task.destination.exists()
        )

    return JobStatus(
        index_pages_cached=count_entries(INDEX_PAGES_DIR),
        lot_pages_cached=count_entries(DETAIL_PAGES_DIR),
        lot_urls=lot_urls,
        lots=lots,
        images=images,
        images_present=present,
    )


async def run_job(
    config: JobConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    extractor: Optional[Extractor] = None,
) -> PipelineResult:
    """Open the configured fetchers, run the pipeline and close them again."""
    async with AsyncExitStack() as stack:
        http_fetcher = await stack.enter_async_context(
            HttpxFetcher.from_config(config, transport=transport)
        )
        page_fetcher: Fetcher = http_fetcher
        if config.render_pages:
            page_fetcher = await stack.enter_async_context(
                PlaywrightFetcher.from_config(config)
            )
        return await run_pipeline(
            config,
            page_fetcher=page_fetcher,
            asset_fetcher=http_fetcher,
            extractor=extractor,
        )
