"""Page rendering backends used by the crawler.

The crawler only depends on :class:`PageRenderer` and
:class:`RenderedDocument`; any backend able to turn a URL into a queryable
DOM can be plugged in. :class:`HttpRenderer` fetches raw HTML with aiohttp
and parses it with BeautifulSoup.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup

from .models import LinkRef

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "DocIngest-Scraper/1.0"


class RenderedDocument(ABC):
    """A rendered page that can be cleaned up and queried."""

    url: str

    @property
    @abstractmethod
    def title(self) -> str:
        ...

    @abstractmethod
    def remove_all(self, selectors: Iterable[str]) -> None:
        """Remove every element matching any of the selectors."""

    @abstractmethod
    def extract_region(self, selectors: Iterable[str]) -> Optional[str]:
        """Inner markup of the first selector that matches, or None."""

    @abstractmethod
    def extract_links(self, selectors: Iterable[str]) -> List[LinkRef]:
        """Absolute links inside the first matching region."""

    @abstractmethod
    def meta_description(self) -> str:
        ...

    @abstractmethod
    def headings(self, selector: str = "h1, h2, h3") -> List[str]:
        ...


class PageRenderer(ABC):
    """Turns URLs into :class:`RenderedDocument` objects."""

    @abstractmethod
    async def render(self, url: str) -> RenderedDocument:
        ...

    async def close(self):
        """Release any resources held by the renderer."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class SoupDocument(RenderedDocument):
    """RenderedDocument backed by a BeautifulSoup tree."""

    def __init__(self, url: str, html: str):
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")

    @property
    def title(self) -> str:
        if self.soup.title and self.soup.title.string:
            return self.soup.title.string.strip()
        return ""

    def remove_all(self, selectors: Iterable[str]) -> None:
        for selector in selectors:
            for element in self.soup.select(selector):
                element.decompose()

    def _first_match(self, selectors: Iterable[str]):
        for selector in selectors:
            element = self.soup.select_one(selector)
            if element is not None:
                return element
        return None

    def extract_region(self, selectors: Iterable[str]) -> Optional[str]:
        element = self._first_match(selectors)
        if element is None:
            return None
        return element.decode_contents()

    def extract_links(self, selectors: Iterable[str]) -> List[LinkRef]:
        region = self._first_match(selectors)
        if region is None:
            return []

        links = []
        for anchor in region.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith("#"):
                continue
            links.append(LinkRef(url=urljoin(self.url, href), text=anchor.get_text(strip=True)))
        return links

    def meta_description(self) -> str:
        meta = self.soup.find("meta", attrs={"name": "description"})
        if meta is None:
            return ""
        return (meta.get("content") or "").strip()

    def headings(self, selector: str = "h1, h2, h3") -> List[str]:
        return [element.get_text(strip=True) for element in self.soup.select(selector)]


class HttpRenderer(PageRenderer):
    """Fetches pages over HTTP without executing JavaScript."""

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, request_timeout: float = 30.0):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
                headers={'User-Agent': self.user_agent}
            )
        return self.session

    async def render(self, url: str) -> RenderedDocument:
        session = await self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            html = await response.text()
        return SoupDocument(str(response.url), html)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
