"""Sitemap-driven documentation crawler.

Discovers candidate URLs from a sitemap, filters them, then renders and
extracts every page under bounded concurrency with a minimum spacing between
requests.
"""

import asyncio
import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

import aiohttp

from config import settings as default_settings
from sources.loader import SourceConfig

from .errors import ContentNotFoundError, SitemapFetchError
from .models import Page, PageMetadata
from .normalizer import classify_links, domain_matches, html_to_markdown
from .renderer import HttpRenderer, PageRenderer

logger = logging.getLogger(__name__)

# Tolerant <loc> matcher; sitemaps are not parsed as XML.
LOC_PATTERN = re.compile(r"<loc>\s*(.*?)\s*</loc>", re.IGNORECASE | re.DOTALL)


def extract_sitemap_urls(xml: str) -> List[str]:
    """Extract every ``<loc>`` value from a sitemap-like document."""
    urls = []
    for match in LOC_PATTERN.finditer(xml):
        value = html.unescape(match.group(1).strip())
        if value:
            urls.append(value)
    return urls


@dataclass
class CrawlStats:
    """Statistics for a crawl session."""
    total_urls: int = 0
    filtered: int = 0
    scheduled: int = 0
    successful: int = 0
    failed: int = 0
    truncated: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        if self.start_time is None:
            self.start_time = datetime.now(timezone.utc)

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        return None

    def finish(self):
        """Mark crawl as finished."""
        self.end_time = datetime.now(timezone.utc)


@dataclass
class CrawlSession:
    """State of a single crawl run.

    ``scheduled`` is filled by the coordinator before a fetch is dispatched,
    ``visited`` once a page has been extracted successfully.
    """
    visited: Set[str] = field(default_factory=set)
    scheduled: Set[str] = field(default_factory=set)
    results: List[Page] = field(default_factory=list)
    stats: CrawlStats = field(default_factory=CrawlStats)

    def is_known(self, url: str) -> bool:
        return url in self.visited or url in self.scheduled

    def claim(self, url: str):
        self.scheduled.add(url)
        self.stats.scheduled += 1

    def record(self, page: Page):
        self.visited.add(page.url)
        self.results.append(page)
        self.stats.successful += 1


class DocsCrawler:
    """Asynchronous sitemap crawler with rate limiting."""

    def __init__(self,
                 config: SourceConfig,
                 renderer: PageRenderer = None,
                 settings=None):
        """Initialize crawler.

        Args:
            config: Source configuration (sitemap, filters, limits)
            renderer: Page renderer; an :class:`HttpRenderer` is created when omitted
            settings: Ingestion settings providing user agent and selectors
        """
        settings = settings or default_settings
        self.config = config
        self.user_agent = settings.get_user_agent()
        self.remove_selectors = settings.get_remove_selectors()
        self.content_selectors = settings.get_content_selectors()
        self.heading_selector = settings.get_heading_selector()

        self.timeout = config.timeout_ms / 1000
        self.min_interval = config.delay_ms / 1000

        self._owns_renderer = renderer is None
        self.renderer = renderer or HttpRenderer(
            user_agent=self.user_agent,
            request_timeout=self.timeout
        )

        # Rate limiting
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._dispatch_lock: Optional[asyncio.Lock] = None
        self._last_dispatch: Optional[float] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the renderer if the crawler created it."""
        if self._owns_renderer:
            await self.renderer.close()

    def _log_context(self, url: Optional[str] = None) -> dict:
        context = {"source": self.config.name, "kind": self.config.kind}
        if url:
            context["url"] = url
        return context

    async def fetch_sitemap(self, sitemap_url: str) -> str:
        """Download the sitemap document.

        Raises:
            SitemapFetchError: On network failure or a non-2xx status
        """
        logger.info(f"Fetching sitemap from {sitemap_url}", extra=self._log_context(sitemap_url))
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout,
                                             headers={'User-Agent': self.user_agent}) as session:
                async with session.get(sitemap_url, allow_redirects=True) as response:
                    response.raise_for_status()
                    return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise SitemapFetchError(sitemap_url, str(e) or type(e).__name__) from e

    async def discover_urls(self) -> List[str]:
        sitemap_xml = await self.fetch_sitemap(self.config.resolved_sitemap_url)
        urls = extract_sitemap_urls(sitemap_xml)
        logger.info(f"Found {len(urls)} URLs in sitemap", extra=self._log_context())
        return urls

    def _is_allowed_domain(self, host: str) -> bool:
        if not self.config.allowed_domains:
            return True
        return any(
            domain_matches(host, entry.partition('/')[0])
            for entry in self.config.allowed_domains
        )

    def should_crawl(self, url: str, session: CrawlSession) -> bool:
        """Check if a URL passes dedup, domain and exclude-pattern filters."""
        if session.is_known(url):
            return False

        try:
            parsed = urlparse(url)
            host = parsed.hostname
        except ValueError:
            host = None
        if not host or parsed.scheme not in ('http', 'https'):
            logger.warning(f"Invalid URL in sitemap: {url}", extra=self._log_context(url))
            return False

        if not self._is_allowed_domain(host):
            logger.debug(f"Skipping {url}: domain not allowed", extra=self._log_context(url))
            return False

        if any(pattern in url for pattern in self.config.exclude_patterns):
            logger.debug(f"Skipping {url}: matches exclude pattern", extra=self._log_context(url))
            return False

        return True

    def filter_urls(self, urls: Iterable[str], session: CrawlSession) -> List[str]:
        """Apply filters and the page limit to the candidate URLs."""
        seen = set()
        candidates = []
        for url in urls:
            if url in seen:
                continue
            seen.add(url)
            if self.should_crawl(url, session):
                candidates.append(url)

        session.stats.filtered = len(seen) - len(candidates)

        if len(candidates) > self.config.max_pages:
            logger.warning(f"Limiting to {self.config.max_pages} pages (sitemap has {len(candidates)})",
                           extra=self._log_context())
            session.stats.truncated = True
            candidates = candidates[:self.config.max_pages]

        return candidates

    async def _wait_for_dispatch_slot(self):
        """Keep at least ``delay_ms`` between consecutive dispatches."""
        loop = asyncio.get_running_loop()
        async with self._dispatch_lock:
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - loop.time()
                if wait > 0:
                    logger.debug(f"Rate limiting: sleeping {wait:.2f}s")
                    await asyncio.sleep(wait)
            self._last_dispatch = loop.time()

    async def scrape_page(self, url: str) -> Page:
        """Render a URL and extract its primary content.

        Raises:
            ContentNotFoundError: If none of the content selectors match
        """
        logger.info(f"Scraping: {url}", extra=self._log_context(url))
        document = await self.renderer.render(url)
        title = document.title

        document.remove_all(self.remove_selectors)

        markup = document.extract_region(self.content_selectors)
        if markup is None:
            raise ContentNotFoundError(url, self.content_selectors)
        content = html_to_markdown(markup)

        links = document.extract_links(self.content_selectors)
        internal_links, external_links = classify_links(links, self.config.resolved_docs_domains)

        return Page(
            url=url,
            title=title,
            content=content,
            links=[link.url for link in internal_links],
            metadata=PageMetadata(
                description=document.meta_description(),
                headings=document.headings(self.heading_selector),
                internal_links=internal_links,
                external_links=external_links,
            ),
            origin="crawl"
        )

    async def _crawl_one(self, url: str) -> Optional[Page]:
        """Fetch one page; failures are logged and reported as None."""
        async with self._semaphore:
            await self._wait_for_dispatch_slot()
            try:
                return await asyncio.wait_for(self.scrape_page(url), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error(f"Timed out scraping {url} after {self.config.timeout_ms}ms",
                             extra=self._log_context(url))
            except ContentNotFoundError as e:
                logger.warning(str(e), extra=self._log_context(url))
            except Exception as e:
                logger.error(f"Failed to scrape {url}: {e}", extra=self._log_context(url))
        return None

    async def crawl(self) -> Tuple[List[Page], CrawlStats]:
        """Run a full crawl.

        Returns:
            Tuple of (pages, stats). Pages are in sitemap order.

        Raises:
            SitemapFetchError: If the sitemap cannot be fetched; nothing is crawled
        """
        session = CrawlSession()

        urls = await self.discover_urls()
        session.stats.total_urls = len(urls)
        urls = self.filter_urls(urls, session)

        logger.info(f"Scraping {len(urls)} pages from sitemap", extra=self._log_context())

        self._semaphore = asyncio.Semaphore(self.config.concurrency)
        self._dispatch_lock = asyncio.Lock()
        self._last_dispatch = None

        tasks = []
        for url in urls:
            session.claim(url)
            tasks.append(self._crawl_one(url))

        pages = await asyncio.gather(*tasks, return_exceptions=True)

        for url, page in zip(urls, pages):
            if isinstance(page, Exception):
                logger.error(f"Exception crawling {url}: {page}", extra=self._log_context(url))
                page = None
            if page is None:
                session.stats.failed += 1
                continue
            session.record(page)

        session.stats.finish()
        logger.info(f"Scraping complete. Scraped {session.stats.successful} pages, "
                    f"{session.stats.failed} failed, {session.stats.filtered} filtered out "
                    f"of {session.stats.total_urls} sitemap URLs", extra=self._log_context())

        return session.results, session.stats


# Convenience functions
async def crawl_docs(config: SourceConfig,
                     renderer: PageRenderer = None,
                     settings=None) -> Tuple[List[Page], CrawlStats]:
    """Crawl a documentation site described by ``config``."""
    async with DocsCrawler(config, renderer=renderer, settings=settings) as crawler:
        return await crawler.crawl()


def crawl_docs_sync(config: SourceConfig,
                    renderer: PageRenderer = None,
                    settings=None) -> Tuple[List[Page], CrawlStats]:
    """Synchronous wrapper for crawl_docs."""
    return asyncio.run(crawl_docs(config, renderer=renderer, settings=settings))
