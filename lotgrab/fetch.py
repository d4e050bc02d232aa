"""Fetchers that retrieve raw page markup and asset bytes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .config import JobConfig
from .errors import FetchError

logger = logging.getLogger("lotgrab")


@dataclass
class FetchResponse:
    """Body and status of a successful fetch."""

    url: str
    status: int
    content: bytes
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResponse:
        """Return the body of ``url`` or raise :class:`FetchError`."""


class HttpxFetcher:
    """Fetch pages and assets over HTTP with a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            cookies=cookies,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: JobConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpxFetcher":
        return cls(
            timeout=config.timeout,
            headers=config.request_headers(),
            cookies=config.cookies or None,
            transport=transport,
        )

    async def fetch(self, url: str) -> FetchResponse:
        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(url, str(exc) or exc.__class__.__name__) from exc
        if not resp.is_success:
            raise FetchError(url, f"HTTP {resp.status_code}", status=resp.status_code)
        return FetchResponse(
            url=str(resp.url),
            status=resp.status_code,
            content=resp.content,
            encoding=resp.encoding,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpxFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class PlaywrightFetcher:
    """Render pages in headless Chromium and return the resulting HTML.

    Meant for listings that only fill in their links with JavaScript. Asset
    downloads should keep using :class:`HttpxFetcher`.
    """

    def __init__(
        self,
        *,
        navigation_timeout: float = 30.0,
        wait_after_load: float = 0.0,
        user_agent: Optional[str] = None,
        launcher: Callable[[], Any] = async_playwright,
    ) -> None:
        self.navigation_timeout = navigation_timeout
        self.wait_after_load = wait_after_load
        self.user_agent = user_agent
        self._launcher = launcher
        self._playwright: Any = None
        self._browser: Any = None

    @classmethod
    def from_config(cls, config: JobConfig) -> "PlaywrightFetcher":
        return cls(
            navigation_timeout=config.navigation_timeout,
            user_agent=config.user_agent,
        )

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await self._launcher().start()
        self._browser = await self._playwright.chromium.launch(headless=True)

    async def aclose(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PlaywrightFetcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def fetch(self, url: str) -> FetchResponse:
        await self.start()
        page_kwargs = {"user_agent": self.user_agent} if self.user_agent else {}
        page = await self._browser.new_page(**page_kwargs)
        page.set_default_navigation_timeout(self.navigation_timeout * 1000)
        try:
            logger.debug("Rendering %s", url)
            response = await page.goto(url, wait_until="networkidle")
            if self.wait_after_load:
                await page.wait_for_timeout(int(self.wait_after_load * 1000))
            html = await page.content()
            final_url = page.url
        except PlaywrightError as exc:
            raise FetchError(url, str(exc)) from exc
        finally:
            await page.close()

        status = response.status if response is not None else 200
        if status >= 400:
            raise FetchError(url, f"HTTP {status}", status=status)
        return FetchResponse(
            url=final_url, status=status, content=html.encode("utf-8"), encoding="utf-8"
        )
