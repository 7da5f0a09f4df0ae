"""Content normalization: HTML to Markdown, headings, link classification."""

import logging
import re
from typing import Iterable, List, Tuple

import html2text
from bs4 import BeautifulSoup
from urllib.parse import urlparse

from .models import LinkRef

logger = logging.getLogger(__name__)

_LANGUAGE_CLASS = re.compile(r"language-(\w+)")
_HEADING_LINE = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_PLACEHOLDER = "DOCINGESTCODEBLOCK{}X"


def _code_language(pre) -> str:
    code = pre.find("code")
    for node in (code, pre):
        if node is None:
            continue
        classes = " ".join(node.get("class", []) or [])
        match = _LANGUAGE_CLASS.search(classes)
        if match:
            return match.group(1)
    return ""


def _make_converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_images = True
    converter.ignore_emphasis = False
    converter.single_line_break = False
    return converter


def html_to_markdown(markup: str) -> str:
    """Convert an HTML fragment to Markdown.

    ``<pre>`` blocks become fenced code blocks; a ``language-xxx`` class on
    the block (or its ``<code>`` child) becomes the fence's language hint.
    Code text is kept verbatim.
    """
    if not markup or not markup.strip():
        return ""

    soup = BeautifulSoup(markup, "html.parser")
    fences = []
    for pre in soup.find_all("pre"):
        code = pre.find("code")
        text = (code or pre).get_text().rstrip("\n")
        fences.append(f"\n```{_code_language(pre)}\n{text}\n```\n")

        placeholder = soup.new_tag("p")
        placeholder.string = _PLACEHOLDER.format(len(fences) - 1)
        pre.replace_with(placeholder)

    markdown = _make_converter().handle(str(soup))
    for i, fence in enumerate(fences):
        markdown = markdown.replace(_PLACEHOLDER.format(i), fence)

    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def extract_headings(markdown: str) -> List[str]:
    """Return Markdown ATX heading texts in document order."""
    return [m.group(1).strip() for m in _HEADING_LINE.finditer(markdown)]


def slugify(title: str) -> str:
    """Convert a title to a URL slug."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()


def domain_matches(host: str, domain: str) -> bool:
    """True if host is the domain itself or one of its subdomains."""
    host = host.lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def is_docs_link(url: str, docs_domains: Iterable[str]) -> bool:
    """Check whether a link points into the documentation site.

    Entries may be bare hosts (``docs.example.com``) or host plus path
    prefix (``example.com/docs``).
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""
    for entry in docs_domains:
        entry_host, _, entry_path = entry.partition("/")
        if not domain_matches(host, entry_host):
            continue
        if not entry_path or parsed.path.lstrip("/").startswith(entry_path.rstrip("/")):
            return True
    return False


def classify_links(links: Iterable[LinkRef], docs_domains: Iterable[str]) -> Tuple[List[LinkRef], List[LinkRef]]:
    """Partition links into (internal, external) lists."""
    docs_domains = list(docs_domains)
    internal, external = [], []
    for link in links:
        if is_docs_link(link.url, docs_domains):
            internal.append(link)
        else:
            external.append(link)
    return internal, external
