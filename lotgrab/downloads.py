"""Concurrent image downloading into per-lot folders."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_MAX_CONCURRENCY
from .errors import DownloadError, FetchError
from .fetch import Fetcher
from .models import DownloadOutcome, DownloadReport, DownloadTask
from .utils import asset_filename, atomic_write_bytes, sanitize_name

logger = logging.getLogger("lotgrab")

Outcome = Optional[Tuple[DownloadOutcome, Path]]


def item_folder(output_dir: Path, item_name: str) -> Path:
    return output_dir / sanitize_name(item_name)


def plan_asset(item_name: str, position: int, url: str, folder: Path) -> DownloadTask:
    """Destination of one asset; raises ``ValueError`` for an unparsable URL."""
    return DownloadTask(
        item_name=item_name,
        url=url,
        destination=folder / asset_filename(position, url),
    )


def _failed_destination(folder: Path, position: int, url: str) -> Path:
    try:
        return folder / asset_filename(position, url)
    except ValueError:
        return folder / str(position)


def plan_item(item_name: str, urls: Sequence[str], folder: Path) -> List[DownloadTask]:
    """Destination of every asset of one item, numbered from 1 in list order.

    Assets whose URL cannot be parsed are left out; the others keep their
    list position.
    """
    tasks = []
    for position, url in enumerate(urls, start=1):
        try:
            tasks.append(plan_asset(item_name, position, url, folder))
        except ValueError:
            continue
    return tasks


async def download_one(task: DownloadTask, fetcher: Fetcher) -> int:
    """Fetch one asset and write it to its destination, returning the byte count."""
    try:
        response = await fetcher.fetch(task.url)
    except FetchError as exc:
        raise DownloadError(task.url, task.destination, exc.reason) from exc
    try:
        return atomic_write_bytes(task.destination, response.content)
    except OSError as exc:
        raise DownloadError(task.url, task.destination, str(exc)) from exc


async def _attempt(
    task: DownloadTask,
    fetcher: Fetcher,
    outcomes: "asyncio.Queue[Outcome]",
) -> None:
    try:
        size = await download_one(task, fetcher)
    except DownloadError as exc:
        logger.error("Failed to download %s: %s", task.destination, exc.reason)
        await outcomes.put((DownloadOutcome.FAILED, task.destination))
        return
    except Exception:  # pylint: disable=broad-except
        logger.exception("Failed to download %s", task.destination)
        await outcomes.put((DownloadOutcome.FAILED, task.destination))
        return
    logger.debug("Saved %s (%d bytes)", task.destination, size)
    await outcomes.put((DownloadOutcome.DOWNLOADED, task.destination))


async def _run_download(
    task: DownloadTask,
    fetcher: Fetcher,
    semaphore: Optional[asyncio.Semaphore],
    outcomes: "asyncio.Queue[Outcome]",
) -> None:
    if semaphore is None:
        await _attempt(task, fetcher, outcomes)
        return
    async with semaphore:
        await _attempt(task, fetcher, outcomes)


async def _aggregate(outcomes: "asyncio.Queue[Outcome]", report: DownloadReport) -> None:
    while True:
        item = await outcomes.get()
        if item is None:
            return
        outcome, destination = item
        report.record(outcome, destination)


async def download_assets(
    item_assets: Mapping[str, Sequence[str]],
    output_dir: Path,
    fetcher: Fetcher,
    *,
    max_concurrency: Optional[int] = DEFAULT_MAX_CONCURRENCY,
) -> DownloadReport:
    """Download every asset that is not on disk yet.

    Each item's folder is created before any of its downloads is scheduled.
    All downloads of the run share one pool of at most ``max_concurrency``
    in-flight requests (``None`` or ``0`` lifts the limit). Failures are
    logged and counted, never raised. Counters are only touched by the
    aggregator task draining the outcome queue.
    """
    report = DownloadReport()
    outcomes: "asyncio.Queue[Outcome]" = asyncio.Queue()
    aggregator = asyncio.create_task(_aggregate(outcomes, report))
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    scheduled: List["asyncio.Task[None]"] = []
    try:
        for item_name, urls in item_assets.items():
            folder = item_folder(output_dir, item_name)
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.error("Cannot create folder %s: %s", folder, exc)
                for position, url in enumerate(urls, start=1):
                    outcomes.put_nowait(
                        (DownloadOutcome.FAILED, _failed_destination(folder, position, url))
                    )
                continue

            for position, url in enumerate(urls, start=1):
                try:
                    task = plan_asset(item_name, position, url, folder)
                except ValueError as exc:
                    logger.error("Failed to download %s: %s", url, exc)
                    outcomes.put_nowait(
                        (DownloadOutcome.FAILED, _failed_destination(folder, position, url))
                    )
                    continue
                if task.destination.exists():
                    outcomes.put_nowait((DownloadOutcome.ALREADY_PRESENT, task.destination))
                    continue
                scheduled.append(
                    asyncio.create_task(_run_download(task, fetcher, semaphore, outcomes))
                )

        if scheduled:
            logger.info("Downloading %d images...", len(scheduled))
        await asyncio.gather(*scheduled)
    finally:
        for pending in scheduled:
            pending.cancel()
        await asyncio.gather(*scheduled, return_exceptions=True)
        await outcomes.put(None)
        await aggregator
    return report
