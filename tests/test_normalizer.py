import pytest

from pipelines.models import LinkRef
from pipelines.normalizer import (
    classify_links,
    domain_matches,
    extract_headings,
    html_to_markdown,
    is_docs_link,
    slugify,
)
from pipelines.renderer import SoupDocument


def test_code_block_keeps_language_hint():
    markup = '<p>Example:</p><pre><code class="language-python">if a &lt; b:\n    print(a)\n</code></pre>'
    markdown = html_to_markdown(markup)
    assert "```python\nif a < b:\n    print(a)\n```" in markdown
    assert markdown.startswith("Example:")


def test_language_class_on_pre():
    markup = '<pre class="language-bash"><code>npm install</code></pre>'
    assert html_to_markdown(markup) == "```bash\nnpm install\n```"


def test_code_block_without_language():
    markup = '<pre><code>plain text</code></pre>'
    assert html_to_markdown(markup) == "```\nplain text\n```"


def test_headings_and_links_converted():
    markup = '<h2>Install</h2><p>See <a href="https://example.com/x">the guide</a>.</p>'
    markdown = html_to_markdown(markup)
    assert "## Install" in markdown
    assert "[the guide](https://example.com/x)" in markdown


def test_blank_markup():
    assert html_to_markdown("") == ""
    assert html_to_markdown("   \n") == ""


def test_consecutive_code_blocks():
    markup = '<pre><code class="language-js">a()</code></pre><pre><code class="language-css">b {}</code></pre>'
    assert html_to_markdown(markup) == "```js\na()\n```\n\n```css\nb {}\n```"


def test_extract_headings():
    markdown = "# Title\n\nText\n\n## Sub\n\n#not-a-heading\n### Deep\n"
    assert extract_headings(markdown) == ["Title", "Sub", "Deep"]


@pytest.mark.parametrize("title,slug", [
    ("Getting Started", "getting-started"),
    ("Routing & Pages", "routing-pages"),
    ("Hello,  World!", "hello-world"),
    ("already-slugged", "already-slugged"),
])
def test_slugify(title, slug):
    assert slugify(title) == slug


def test_domain_matches():
    assert domain_matches("docs.example.com", "example.com")
    assert domain_matches("Example.com", "example.com")
    assert not domain_matches("badexample.com", "example.com")


def test_docs_link_with_path_prefix():
    domains = ["apostrophecms.com/docs", "docs.apostrophecms.org"]
    assert is_docs_link("https://apostrophecms.com/docs/guide/intro.html", domains)
    assert is_docs_link("https://docs.apostrophecms.org/reference/", domains)
    assert not is_docs_link("https://apostrophecms.com/pricing", domains)
    assert not is_docs_link("https://github.com/apostrophecms", domains)


def test_classify_links():
    links = [
        LinkRef("https://docs.example.com/a", "A"),
        LinkRef("https://github.com/x", "GitHub"),
        LinkRef("https://docs.example.com/b", "B"),
    ]
    internal, external = classify_links(links, ["docs.example.com"])
    assert [link.text for link in internal] == ["A", "B"]
    assert [link.text for link in external] == ["GitHub"]


class TestSoupDocument:
    """BeautifulSoup-backed rendered document."""

    HTML = """
    <html><head><title> Page Title </title></head>
    <body>
      <aside>Aside</aside>
      <article>
        <h1>Heading</h1>
        <a href="../other/">Relative</a>
        <a href="#top">Top</a>
        <a href="">Empty</a>
      </article>
    </body></html>
    """

    def test_title_and_missing_description(self):
        document = SoupDocument("https://docs.example.com/guide/page/", self.HTML)
        assert document.title == "Page Title"
        assert document.meta_description() == ""

    def test_region_is_first_matching_selector(self):
        document = SoupDocument("https://docs.example.com/guide/page/", self.HTML)
        assert document.extract_region([".vp-doc", "main"]) is None
        assert "<h1>Heading</h1>" in document.extract_region([".vp-doc", "article", "body"])

    def test_remove_all(self):
        document = SoupDocument("https://docs.example.com/guide/page/", self.HTML)
        document.remove_all(["aside"])
        assert "Aside" not in document.extract_region(["body"])

    def test_links_resolved_and_fragments_skipped(self):
        document = SoupDocument("https://docs.example.com/guide/page/", self.HTML)
        links = document.extract_links(["article"])
        assert links == [LinkRef("https://docs.example.com/guide/other/", "Relative")]
