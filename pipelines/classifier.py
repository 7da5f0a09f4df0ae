"""Heuristic metadata classification for documentation pages.

Tags each page with version, framework, document type, keywords and section
so that search results can be filtered later. Matching is substring-based on
the lowercased URL and content; the first matching rule wins.
"""

from typing import List, Optional

from .models import Page, PageClassification

DEFAULT_VERSION = "4.x"
DEFAULT_FRAMEWORK = "core"
DEFAULT_DOC_TYPE = "guide"
MAX_KEYWORDS = 10

_V3_MARKERS = ("/v3/", "/3.x/")

# (framework, check content too?)
_FRAMEWORK_RULES = (
    ("astro", True),
    ("vue", True),
    ("nunjucks", False),
)

_DOC_TYPE_RULES = (
    (("/reference/", "/api/"), "reference"),
    (("/tutorial/",), "tutorial"),
    (("/migration/",), "migration"),
)


def detect_version(url: str) -> str:
    url = url.lower()
    if any(marker in url for marker in _V3_MARKERS):
        return "3.x"
    return DEFAULT_VERSION


def detect_framework(url: str, content: str) -> str:
    url = url.lower()
    content = content.lower()
    for framework, match_content in _FRAMEWORK_RULES:
        if framework in url or (match_content and framework in content):
            return framework
    return DEFAULT_FRAMEWORK


def detect_doc_type(url: str) -> str:
    url = url.lower()
    for markers, doc_type in _DOC_TYPE_RULES:
        if any(marker in url for marker in markers):
            return doc_type
    return DEFAULT_DOC_TYPE


def extract_keywords(headings: List[str]) -> List[str]:
    """Lowercased non-empty headings, first ten only."""
    return [h.lower() for h in headings if h][:MAX_KEYWORDS]


def classify_page(url: str, content: str, headings: Optional[List[str]] = None) -> PageClassification:
    """Classify a page from its URL, content and heading list.

    Never fails: every field falls back to a default.
    """
    headings = headings or []
    return PageClassification(
        version=detect_version(url),
        framework=detect_framework(url, content),
        doc_type=detect_doc_type(url),
        keywords=extract_keywords(headings),
        section=headings[0] if headings else "",
    )


def classify(page: Page) -> PageClassification:
    return classify_page(page.url, page.content, page.metadata.headings)
