from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest

from lotgrab.config import JobConfig

URL_TEMPLATE = "https://auction.test/catalog/{job_id}?page={page}"


def index_html(lot_paths: List[str]) -> str:
    links = "\n".join(
        f'<div class="card"><a class="yaaa" href="{path}">Lot</a><a class="other" href="/x">x</a></div>'
        for path in lot_paths
    )
    return f"<html><body><div class='grid'>{links}</div></body></html>"


def lot_html(title: Optional[str], images: List[str]) -> str:
    heading = f'<h1 class="lot-name">\n  {title}\n</h1>' if title is not None else ""
    items = "\n".join(
        f"<div class=\"carousel-item\" style=\"background-image: url('{src}');\"></div>"
        for src in images
    )
    return (
        "<html><body>"
        f"{heading}"
        f'<div id="modal-product-gallery"><div class="carousel-inner">{items}</div></div>'
        "</body></html>"
    )


class FakeCatalog:
    """An auction site served from memory through ``httpx.MockTransport``."""

    def __init__(self, job_id: str = "412") -> None:
        self.job_id = job_id
        self.pages: Dict[int, List[str]] = {}
        self.lots: Dict[str, Tuple[Optional[str], List[str]]] = {}
        self.images: Dict[str, bytes] = {}
        self.failing: Set[str] = set()
        self.requests: List[str] = []
        self.delays: Dict[str, float] = {}

    def add_lot(
        self,
        page: int,
        lot_id: int,
        title: Optional[str],
        image_count: int,
        path: Optional[str] = None,
    ) -> str:
        path = path or f"/lot-details/{self.job_id}/lot/{lot_id}/item"
        images = [f"https://img.test/{lot_id}/photo-{n}.jpg" for n in range(1, image_count + 1)]
        self.pages.setdefault(page, []).append(path)
        self.lots[path] = (title, images)
        for src in images:
            self.images[src] = f"bytes of {src}".encode("utf-8")
        return f"https://auction.test{path}"

    @property
    def image_count(self) -> int:
        return sum(len(images) for _, images in self.lots.values())

    def index_url(self, page: int) -> str:
        return URL_TEMPLATE.format(job_id=self.job_id, page=page)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        if url in self.failing:
            return httpx.Response(500, text="boom")
        if request.url.host == "img.test":
            if url in self.images:
                return httpx.Response(200, content=self.images[url])
            return httpx.Response(404)
        if request.url.path == f"/catalog/{self.job_id}":
            page = int(request.url.params["page"])
            return httpx.Response(200, html=index_html(self.pages.get(page, [])))
        if request.url.path in self.lots:
            title, images = self.lots[request.url.path]
            return httpx.Response(200, html=lot_html(title, images))
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def catalog() -> FakeCatalog:
    site = FakeCatalog()
    site.add_lot(1, 1001, 'Lot 1: "Hero" Jacket', 3)
    site.add_lot(1, 1002, "Lot 2 Blaster", 2)
    site.add_lot(2, 1003, None, 1)
    return site


@pytest.fixture
def make_config(tmp_path):
    def factory(page_count: int = 2, **overrides) -> JobConfig:
        options = dict(
            job_id="412",
            page_count=page_count,
            index_url_template=URL_TEMPLATE,
            cache_root=tmp_path / "cache",
            output_root=tmp_path / "images",
            max_concurrency=4,
        )
        options.update(overrides)
        return JobConfig(**options)

    return factory
