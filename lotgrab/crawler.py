"""Crawl and extraction stages: listing pages to lot URLs to image URLs."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .cache import (
    COARSE_DETAIL_URLS_KEY,
    COARSE_ITEM_ASSETS_KEY,
    DETAIL_PAGES_DIR,
    INDEX_PAGES_DIR,
    RecordCache,
)
from .config import JobConfig
from .errors import CacheCorruptionError, FetchError, StageAbortError
from .extract import Extractor
from .fetch import Fetcher
from .models import CachedDocument, DetailURLList, ItemAssetMap
from .utils import detail_id

logger = logging.getLogger("lotgrab")


async def fetch_document(
    cache: RecordCache,
    key: str,
    url: str,
    fetcher: Fetcher,
) -> CachedDocument:
    """Return the cached markup for ``key``, fetching and storing it on a miss."""

    async def produce() -> CachedDocument:
        response = await fetcher.fetch(url)
        return CachedDocument(url=response.url, html=response.text)

    return await cache.get_or_produce(key, CachedDocument, produce)


def _abort(stage: str, url: str, exc: Exception) -> StageAbortError:
    reason = exc.reason if isinstance(exc, FetchError) else f"{exc.__class__.__name__}: {exc}"
    return StageAbortError(stage, url, reason)


async def _crawl_index_pages(
    config: JobConfig,
    cache: RecordCache,
    fetcher: Fetcher,
    extractor: Extractor,
) -> List[str]:
    urls: List[str] = []
    for page in range(1, config.page_count + 1):
        url = config.index_url(page)
        try:
            document = await fetch_document(
                cache, f"{INDEX_PAGES_DIR}/page-{page}", url, fetcher
            )
            links = extractor.extract_detail_links(document.html, document.url)
        except (CacheCorruptionError, StageAbortError):
            raise
        except Exception as exc:
            raise _abort("crawl", url, exc) from exc
        logger.debug("Page %d/%d: %d lot links", page, config.page_count, len(links))
        urls.extend(links)

    if config.dedupe_detail_urls:
        unique = list(dict.fromkeys(urls))
        if len(unique) != len(urls):
            logger.info("Dropped %d duplicate lot URLs", len(urls) - len(unique))
        urls = unique
    return urls


async def crawl_detail_urls(
    config: JobConfig,
    cache: RecordCache,
    fetcher: Fetcher,
    extractor: Extractor,
) -> List[str]:
    """Collect the lot URLs from every listing page of the job.

    The aggregate list is only written once all pages were processed, while
    each listing page is cached as soon as it has been fetched. Cached pages
    are re-extracted on every run.
    """

    async def produce() -> DetailURLList:
        logger.info("Getting lot URLs...")
        return DetailURLList(urls=await _crawl_index_pages(config, cache, fetcher, extractor))

    if cache.exists(COARSE_DETAIL_URLS_KEY):
        logger.info("Using cached lot URLs")
    record = await cache.get_or_produce(COARSE_DETAIL_URLS_KEY, DetailURLList, produce)
    return record.urls


async def _extract_lot_pages(
    detail_urls: Sequence[str],
    cache: RecordCache,
    fetcher: Fetcher,
    extractor: Extractor,
) -> Dict[str, List[str]]:
    items: Dict[str, List[str]] = {}
    sources: Dict[str, str] = {}
    for index, url in enumerate(detail_urls, start=1):
        try:
            document = await fetch_document(
                cache, f"{DETAIL_PAGES_DIR}/{detail_id(url)}", url, fetcher
            )
            extraction = extractor.extract_item(document.html, document.url)
        except (CacheCorruptionError, StageAbortError):
            raise
        except Exception as exc:
            raise _abort("extraction", url, exc) from exc

        name = extraction.title or url
        if name in items and sources[name] != url:
            logger.warning(
                "Lot name %r from %s replaces the images of %s", name, url, sources[name]
            )
        items[name] = extraction.assets
        sources[name] = url
        logger.debug(
            "Lot %d/%d %r: %d images", index, len(detail_urls), name, len(extraction.assets)
        )
    return items


async def extract_item_assets(
    detail_urls: Sequence[str],
    cache: RecordCache,
    fetcher: Fetcher,
    extractor: Extractor,
) -> Dict[str, List[str]]:
    """Map each lot name to its ordered gallery image URLs."""

    async def produce() -> ItemAssetMap:
        logger.info("Getting image URLs...")
        return ItemAssetMap(items=await _extract_lot_pages(detail_urls, cache, fetcher, extractor))

    if cache.exists(COARSE_ITEM_ASSETS_KEY):
        logger.info("Using cached image URLs")
    record = await cache.get_or_produce(COARSE_ITEM_ASSETS_KEY, ItemAssetMap, produce)
    return record.items
