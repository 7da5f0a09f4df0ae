"""Processor for ``llms-full.txt`` documentation dumps.

Many documentation sites publish their whole corpus as a single Markdown file
for LLM consumption. This module splits such a file into page-like sections
on top-level headings so they can go through the same chunking and
classification as crawled pages.

Sections may carry marker lines such as::

    URL: https://docs.example.com/guides/routing/
    COLLECTION: docs
    NAV_PATH: Guides > Routing
    DOC_PATH: guides/routing.md
"""

import asyncio
import logging
import re
from typing import List, Optional

import aiohttp

from .errors import SourceFetchError
from .models import Page, PageMetadata
from .normalizer import extract_headings, slugify

logger = logging.getLogger(__name__)

SOURCE_NAME = "llms-full.txt"

_SECTION_START = re.compile(r"(?=^# [^\n]+$)", re.MULTILINE)
_TITLE_LINE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def extract_meta_line(text: str, key: str) -> Optional[str]:
    """Value of the first ``KEY: value`` line in text, or None."""
    match = re.search(rf"^{re.escape(key)}:\s+(.+)$", text, re.MULTILINE)
    return match.group(1).strip() if match else None


def split_into_sections(text: str) -> List[str]:
    """Split a dump at top-level headings, dropping any preamble."""
    parts = (part.strip() for part in _SECTION_START.split(text))
    return [part for part in parts if part and part.startswith('#')]


def process_llms_full_text(full_text: str,
                           base_url: str = "https://docs.astro.build",
                           framework: str = "astro",
                           version: str = "4.x") -> List[Page]:
    """Turn a full-text dump into one page per top-level section.

    Args:
        full_text: Complete contents of the dump
        base_url: Prefix for URLs derived from section titles
        framework: Framework recorded in every page's metadata
        version: Version recorded in every page's metadata

    Returns:
        Pages in dump order
    """
    base_url = base_url.rstrip('/')
    pages = []

    for index, section in enumerate(split_into_sections(full_text)):
        title_match = _TITLE_LINE.search(section)
        title = title_match.group(1).strip() if title_match else f"Section {index + 1}"

        url = extract_meta_line(section, "URL") or f"{base_url}/{slugify(title)}/"

        pages.append(Page(
            url=url,
            title=title,
            content=section,
            links=[],
            metadata=PageMetadata(
                description=f"{title} documentation",
                headings=extract_headings(section),
                extra={
                    "source": SOURCE_NAME,
                    "framework": framework,
                    "version": version,
                    "collection": extract_meta_line(section, "COLLECTION"),
                    "navPath": extract_meta_line(section, "NAV_PATH"),
                    "docPath": extract_meta_line(section, "DOC_PATH"),
                },
            ),
            origin="llms_full"
        ))

    return pages


async def fetch_llms_full_text(url: str, timeout: float = 60.0, user_agent: str = None) -> str:
    """Download a full-text dump.

    Raises:
        SourceFetchError: On network failure or a non-2xx status
    """
    logger.info(f"Fetching llms-full.txt from: {url}")
    headers = {'User-Agent': user_agent} if user_agent else None

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout),
                                         headers=headers) as session:
            async with session.get(url, allow_redirects=True) as response:
                if response.status >= 400:
                    raise SourceFetchError(url, f"{response.status} {response.reason}")
                text = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
        raise SourceFetchError(url, str(e) or type(e).__name__) from e

    logger.info(f"Downloaded {round(len(text) / 1024)}KB of documentation")
    return text


async def fetch_and_process_llms_full_text(url: str,
                                           base_url: str = "https://docs.astro.build",
                                           framework: str = "astro",
                                           version: str = "4.x",
                                           timeout: float = 60.0,
                                           user_agent: str = None) -> List[Page]:
    """Fetch a dump from ``url`` and split it into pages."""
    text = await fetch_llms_full_text(url, timeout=timeout, user_agent=user_agent)
    pages = process_llms_full_text(text, base_url=base_url, framework=framework, version=version)
    logger.info(f"Processed into {len(pages)} sections")
    return pages
