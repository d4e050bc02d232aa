"""HTML extraction of detail links, item titles and gallery assets."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Protocol, Type
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .models import ItemExtraction

CSS_URL_PATTERN = re.compile(r"url\(\s*(['\"]?)(.+?)\1\s*\)", re.IGNORECASE)


class Extractor(Protocol):
    def extract_detail_links(self, html: str, base_url: str) -> List[str]:
        """Return the detail page URLs listed on an index page, in document order."""

    def extract_item(self, html: str, base_url: str) -> ItemExtraction:
        """Return the title and ordered asset URLs of a detail page."""


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def background_image_url(style: str) -> Optional[str]:
    """Pull the first ``url(...)`` out of an inline style declaration."""
    match = CSS_URL_PATTERN.search(style or "")
    if not match:
        return None
    return match.group(2).strip() or None


class SelectorExtractor:
    """Extractor driven by three CSS selectors.

    - ``link_selector`` matches the anchors on an index page that lead to
      detail pages.
    - ``title_selector`` matches the node holding the item's display title.
    - ``gallery_selector`` matches the gallery nodes; each one carries its
      image either as an ``img`` source or as an inline ``background-image``.
    """

    def __init__(
        self,
        *,
        link_selector: str,
        title_selector: str,
        gallery_selector: str,
    ) -> None:
        self.link_selector = link_selector
        self.title_selector = title_selector
        self.gallery_selector = gallery_selector

    def extract_detail_links(self, html: str, base_url: str) -> List[str]:
        soup = BeautifulSoup(html, "html.parser")
        links: List[str] = []
        for anchor in soup.select(self.link_selector):
            href = (anchor.get("href") or "").strip()
            if not href:
                continue
            links.append(urljoin(base_url, href))
        return links

    def extract_item(self, html: str, base_url: str) -> ItemExtraction:
        soup = BeautifulSoup(html, "html.parser")
        title_node = soup.select_one(self.title_selector)
        title = _normalize_whitespace(title_node.get_text()) if title_node else ""

        assets: List[str] = []
        for node in soup.select(self.gallery_selector):
            src = background_image_url(node.get("style", ""))
            if src is None:
                img = node if node.name == "img" else node.find("img")
                src = (img.get("src") or "").strip() if img else None
            if src:
                assets.append(urljoin(base_url, src))
        return ItemExtraction(title=title or None, assets=assets)


class PropstoreExtractor(SelectorExtractor):
    """Markup rules for propstoreauction.com catalog and lot pages."""

    def __init__(self) -> None:
        super().__init__(
            link_selector="a.yaaa",
            title_selector=".lot-name",
            gallery_selector="#modal-product-gallery .carousel-item",
        )


EXTRACTORS: Dict[str, Type[SelectorExtractor]] = {
    "propstore": PropstoreExtractor,
}


def get_extractor(site: str) -> Extractor:
    try:
        return EXTRACTORS[site]()
    except KeyError:
        known = ", ".join(sorted(EXTRACTORS))
        raise ValueError(f"Unknown site {site!r} (known: {known})") from None
