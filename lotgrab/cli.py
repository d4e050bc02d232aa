"""Command-line entry point for the lot archiver."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .config import (
    DEFAULT_INDEX_URL_TEMPLATE,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_SITE,
    DEFAULT_USER_AGENT,
    JobConfig,
)
from .errors import CacheCorruptionError, StageAbortError
from .extract import EXTRACTORS
from .pipeline import job_status, run_job

logger = logging.getLogger("lotgrab.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("crawl", *argv)


def _parse_pairs(values: Optional[List[str]], separator: str, what: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for value in values or []:
        key, sep, rest = value.partition(separator)
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(
                f"Invalid {what} {value!r}, expected NAME{separator}VALUE"
            )
        pairs[key.strip()] = rest.strip()
    return pairs


def _add_job_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("job_id", help="Catalog/auction id substituted into the URL template")
    parser.add_argument(
        "--cache-dir",
        default="cache",
        type=Path,
        help="Root directory for cached pages and URL lists",
    )
    parser.add_argument(
        "--output",
        default="images",
        type=Path,
        help="Root directory where downloaded images are written",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_crawl_arguments(parser: argparse.ArgumentParser) -> None:
    _add_job_arguments(parser)
    parser.add_argument(
        "--pages",
        type=int,
        required=True,
        help="Number of listing pages to crawl (1-based, inclusive)",
    )
    parser.add_argument(
        "--url-template",
        default=DEFAULT_INDEX_URL_TEMPLATE,
        help="Listing URL with {job_id} and {page} placeholders",
    )
    parser.add_argument(
        "--site",
        default=DEFAULT_SITE,
        choices=sorted(EXTRACTORS),
        help="Markup rules used to find lot links and images",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=DEFAULT_MAX_CONCURRENCY,
        help="Maximum simultaneous image downloads (0 for no limit)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--user-agent",
        default=DEFAULT_USER_AGENT,
        help="User-Agent header sent with every request",
    )
    parser.add_argument(
        "--header",
        action="append",
        metavar="NAME:VALUE",
        help="Extra request header (repeatable)",
    )
    parser.add_argument(
        "--cookie",
        action="append",
        metavar="NAME=VALUE",
        help="Cookie sent with every request (repeatable)",
    )
    parser.add_argument(
        "--render",
        action="store_true",
        help="Render listing and lot pages with headless Chromium",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        help="Drop lot URLs that appear on more than one listing page",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl an auction catalog and download every lot's images, resuming where the last run stopped.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser(
        "crawl", help="Crawl the catalog and download missing images"
    )
    _add_crawl_arguments(crawl_parser)

    status_parser = subparsers.add_parser(
        "status", help="Show what is cached and downloaded for a job"
    )
    _add_job_arguments(status_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def build_config(args: argparse.Namespace) -> JobConfig:
    return JobConfig(
        job_id=args.job_id,
        page_count=args.pages,
        index_url_template=args.url_template,
        site=args.site,
        cache_root=Path(args.cache_dir).resolve(),
        output_root=Path(args.output).resolve(),
        max_concurrency=args.concurrency or None,
        timeout=args.timeout,
        user_agent=args.user_agent,
        headers=_parse_pairs(args.header, ":", "header"),
        cookies=_parse_pairs(args.cookie, "=", "cookie"),
        render_pages=args.render,
        navigation_timeout=args.timeout,
        dedupe_detail_urls=args.dedupe,
    )


def _run_crawl(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    try:
        config = build_config(args)
    except (argparse.ArgumentTypeError, ValueError) as exc:
        logger.error("%s", exc)
        return 2

    try:
        result = asyncio.run(run_job(config))
    except StageAbortError as exc:
        logger.error("%s", exc)
        logger.error("Nothing was saved for the %s stage; run again to retry it", exc.stage)
        return 1
    except CacheCorruptionError as exc:
        logger.error("%s", exc)
        return 1

    logger.info(result.report.summary())
    logger.debug("Finished in %.2fs", result.total_seconds)
    for path in result.report.failed_paths:
        logger.debug("Missing: %s", path)
    return 0


def _run_status(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    config = JobConfig(
        job_id=args.job_id,
        page_count=0,
        cache_root=Path(args.cache_dir).resolve(),
        output_root=Path(args.output).resolve(),
    )
    try:
        status = job_status(config)
    except CacheCorruptionError as exc:
        logger.error("%s", exc)
        return 1
    for line in status.lines():
        print(line)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "status":
        return _run_status(args)
    return _run_crawl(args)


if __name__ == "__main__":
    raise SystemExit(main())
