import pytest

from pipelines.classifier import (
    classify,
    classify_page,
    detect_doc_type,
    detect_framework,
    detect_version,
    extract_keywords,
)
from pipelines.models import Page, PageMetadata


@pytest.mark.parametrize("url,version", [
    ("https://docs.example.com/v3/guide/intro.html", "3.x"),
    ("https://docs.example.com/3.x/reference/", "3.x"),
    ("https://docs.example.com/V3/guide/", "3.x"),
    ("https://docs.example.com/guide/v3-migration", "4.x"),
    ("https://docs.example.com/guide/", "4.x"),
])
def test_detect_version(url, version):
    assert detect_version(url) == version


def test_framework_from_url():
    assert detect_framework("https://docs.example.com/guide/astro/setup", "") == "astro"
    assert detect_framework("https://docs.example.com/guide/nunjucks.html", "") == "nunjucks"


def test_framework_from_content():
    assert detect_framework("https://docs.example.com/guide/", "Using Vue components") == "vue"
    assert detect_framework("https://docs.example.com/guide/", "An ASTRO project") == "astro"


def test_nunjucks_only_matches_url():
    assert detect_framework("https://docs.example.com/guide/templates", "Nunjucks templates") == "core"


def test_first_framework_rule_wins():
    assert detect_framework("https://docs.example.com/astro/", "Vue and Nunjucks") == "astro"
    assert detect_framework("https://docs.example.com/nunjucks/", "Vue widgets") == "vue"


@pytest.mark.parametrize("url,doc_type", [
    ("https://docs.example.com/reference/api.html", "reference"),
    ("https://docs.example.com/api/pages", "reference"),
    ("https://docs.example.com/tutorial/start", "tutorial"),
    ("https://docs.example.com/migration/upgrading", "migration"),
    ("https://docs.example.com/guide/", "guide"),
])
def test_detect_doc_type(url, doc_type):
    assert detect_doc_type(url) == doc_type


def test_keywords_are_lowercased_and_capped():
    headings = ["Intro", ""] + [f"Heading {i}" for i in range(12)]
    keywords = extract_keywords(headings)
    assert len(keywords) == 10
    assert keywords[0] == "intro"
    assert "" not in keywords


def test_classify_page_defaults():
    classification = classify_page("https://docs.example.com/guide/intro", "Plain text")
    assert classification.version == "4.x"
    assert classification.framework == "core"
    assert classification.doc_type == "guide"
    assert classification.keywords == []
    assert classification.section == ""


def test_classify_uses_page_headings():
    page = Page(
        url="https://docs.example.com/v3/tutorial/widgets",
        title="Widgets",
        content="Build a Vue widget",
        metadata=PageMetadata(headings=["Widgets", "Setup"]),
    )
    classification = classify(page)
    assert classification.version == "3.x"
    assert classification.framework == "vue"
    assert classification.doc_type == "tutorial"
    assert classification.keywords == ["widgets", "setup"]
    assert classification.section == "Widgets"
