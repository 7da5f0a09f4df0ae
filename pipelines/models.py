"""Data models shared by the ingestion pipelines.

Pages come from three origins (crawled sites, ``llms-full.txt`` dumps and
OpenAPI specifications) but all share the same shape, so the classifier and
chunker only ever see :class:`Page`.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LinkRef:
    """A hyperlink found inside a page's content region."""
    url: str
    text: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "text": self.text}


@dataclass(frozen=True)
class PageMetadata:
    """Metadata extracted alongside a page's content."""
    description: str = ""
    headings: List[str] = field(default_factory=list)
    internal_links: List[LinkRef] = field(default_factory=list)
    external_links: List[LinkRef] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=utcnow)
    # Origin-specific fields (collection, nav_path, schema_name, ...)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary, origin-specific fields included."""
        result = {
            "description": self.description,
            "headings": list(self.headings),
            "internalLinks": [link.to_dict() for link in self.internal_links],
            "externalLinks": [link.to_dict() for link in self.external_links],
            "scrapedAt": self.scraped_at,
        }
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass(frozen=True)
class Page:
    """One unit of source content: a crawled URL, a dump section or a spec entry."""
    url: str
    title: str
    content: str
    links: List[str] = field(default_factory=list)
    metadata: PageMetadata = field(default_factory=PageMetadata)
    origin: str = "crawl"


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of a page's content."""
    content: str
    chunk_index: int
    total_chunks: int
    section: Optional[str] = None


@dataclass(frozen=True)
class PageClassification:
    """Filterable metadata inferred from a page's URL and content."""
    version: str = "4.x"
    framework: str = "core"
    doc_type: str = "guide"
    keywords: List[str] = field(default_factory=list)
    section: str = ""


@dataclass
class Document:
    """The record handed to the storage sink: one chunk plus page metadata."""
    content: str
    title: str
    url: str
    version: str
    framework: str
    doc_type: str
    keywords: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the field names used by the search index schema."""
        return {
            "content": self.content,
            "title": self.title,
            "url": self.url,
            "version": self.version,
            "framework": self.framework,
            "docType": self.doc_type,
            "keywords": list(self.keywords),
            "metadata": dict(self.metadata),
        }
