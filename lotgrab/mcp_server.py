"""MCP server exposing the lot archiver as a tool."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_INDEX_URL_TEMPLATE, DEFAULT_MAX_CONCURRENCY, JobConfig
from .errors import CacheCorruptionError, StageAbortError
from .pipeline import run_job

logger = logging.getLogger("lotgrab.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="lotgrab")


@mcp.tool()
async def archive(
    job_id: str,
    pages: int,
    output: str = "images",
    cache_dir: str = "cache",
    url_template: str = DEFAULT_INDEX_URL_TEMPLATE,
    concurrency: Optional[int] = DEFAULT_MAX_CONCURRENCY,
) -> str:
    """Crawl a catalog, download every lot image not yet on disk and return the tally."""

    config = JobConfig(
        job_id=job_id,
        page_count=pages,
        index_url_template=url_template,
        cache_root=Path(cache_dir).expanduser(),
        output_root=Path(output).expanduser(),
        max_concurrency=concurrency or None,
    )
    try:
        result = await run_job(config)
    except (StageAbortError, CacheCorruptionError) as exc:
        logger.error("%s", exc)
        raise RuntimeError(str(exc)) from exc
    return f"{result.report.summary()} (images in {config.output_dir})"


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
