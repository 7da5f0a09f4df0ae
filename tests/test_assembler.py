import json
import logging
from datetime import datetime, timezone

from pipelines.assembler import build_documents, build_page_documents, import_documents, prepare_batch
from pipelines.chunker import ChunkConfig
from pipelines.models import Document, LinkRef, Page, PageMetadata
from pipelines.sinks import DocumentSink, ImportResult, JsonlSink, MemorySink

SCRAPED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_page(content="Short content", url="https://docs.example.com/guide/widgets", headings=None):
    return Page(
        url=url,
        title="Widgets",
        content=content,
        links=["https://docs.example.com/guide/other"],
        metadata=PageMetadata(
            description="All about widgets",
            headings=headings if headings is not None else ["Widgets", "Options"],
            internal_links=[LinkRef("https://docs.example.com/guide/other", "Other")],
            scraped_at=SCRAPED_AT,
        ),
    )


def make_document(**overrides):
    values = dict(
        content="Some text",
        title="Title",
        url="https://docs.example.com/a",
        version="4.x",
        framework="core",
        doc_type="guide",
        keywords=["a"],
        metadata={"section": "A"},
    )
    values.update(overrides)
    return Document(**values)


class FailingSink(DocumentSink):
    """Rejects every document."""

    def batch_import(self, documents):
        return ImportResult(error_count=len(documents),
                            errors=[f"{d.url}: rejected" for d in documents])


def test_one_document_per_chunk():
    page = make_page(content="\n\n".join(letter * 400 for letter in "abcde"))
    documents = build_page_documents(page, ChunkConfig(max_chunk_size=1000, overlap=0))

    assert len(documents) == 3
    assert [d.metadata["chunkIndex"] for d in documents] == [0, 1, 2]
    assert all(d.metadata["totalChunks"] == 3 for d in documents)
    assert all(d.url == page.url and d.title == "Widgets" for d in documents)


def test_document_fields_from_classification_and_metadata():
    [document] = build_page_documents(make_page())

    assert document.content == "Short content"
    assert document.version == "4.x"
    assert document.framework == "core"
    assert document.doc_type == "guide"
    assert document.keywords == ["widgets", "options"]
    assert document.metadata["section"] == "Widgets"
    assert document.metadata["description"] == "All about widgets"
    assert document.metadata["scrapedAt"] == SCRAPED_AT
    assert document.metadata["internalLinks"] == [
        {"url": "https://docs.example.com/guide/other", "text": "Other"}
    ]


def test_origin_specific_metadata_is_carried():
    page = Page(url="specs/pages.json#get--pages", title="List pages", content="Lists pages.",
                metadata=PageMetadata(headings=["Op"], extra={"httpMethod": "GET", "apiPath": "/pages"}),
                origin="openapi")
    [document] = build_page_documents(page)
    assert document.metadata["httpMethod"] == "GET"
    assert document.metadata["apiPath"] == "/pages"


def test_chunk_metadata_is_not_shared():
    page = Page(url="https://docs.example.com/guide/widgets", title="Widgets",
                content="\n\n".join(letter * 400 for letter in "abc"),
                metadata=PageMetadata(headings=["Widgets"], extra={"navPath": ["Guide", "Widgets"]}))
    first, second = build_page_documents(page, ChunkConfig(max_chunk_size=500, overlap=0))[:2]

    first.metadata["headings"].append("Extra")
    first.metadata["navPath"].append("Extra")
    first.metadata["internalLinks"].append({"url": "x", "text": "x"})

    assert second.metadata["headings"] == ["Widgets"]
    assert second.metadata["navPath"] == ["Guide", "Widgets"]
    assert second.metadata["internalLinks"] == []
    assert page.metadata.headings == ["Widgets"]
    assert page.metadata.extra["navPath"] == ["Guide", "Widgets"]


def test_build_documents_keeps_page_order():
    pages = [make_page(url=f"https://docs.example.com/{i}") for i in range(3)]
    documents = build_documents(pages)
    assert [d.url for d in documents] == [p.url for p in pages]


def test_prepare_batch_drops_blank_and_fills_defaults(caplog):
    documents = [
        make_document(content="   "),
        make_document(title="", version="", framework="", doc_type="", keywords=None,
                      metadata={"section": None}),
    ]

    with caplog.at_level(logging.WARNING):
        batch = prepare_batch(documents)

    assert len(batch) == 1
    document = batch[0]
    assert document.title == document.url
    assert (document.version, document.framework, document.doc_type) == ("4.x", "core", "guide")
    assert document.keywords == []
    assert document.metadata["section"] == ""
    assert "Skipping empty document chunk" in caplog.text


def test_empty_page_produces_nothing_to_import():
    sink = MemorySink()
    documents = build_page_documents(make_page(content=""))
    assert len(documents) == 1

    result = import_documents(sink, documents)

    assert result.success_count == 0
    assert sink.documents == []


def test_import_reports_sink_counts():
    sink = MemorySink()
    result = import_documents(sink, [make_document(), make_document(url="https://docs.example.com/b")])

    assert result.success_count == 2
    assert result.error_count == 0
    assert len(sink.documents) == 2


def test_import_errors_are_logged_not_raised(caplog):
    with caplog.at_level(logging.ERROR):
        result = import_documents(FailingSink(), [make_document()])

    assert result.error_count == 1
    assert result.success_count == 0
    assert "Batch import had 1 errors" in caplog.text


def test_jsonl_sink_writes_index_field_names(tmp_path):
    path = tmp_path / "out" / "docs.jsonl"
    sink = JsonlSink(path)
    [document] = build_page_documents(make_page())

    result = sink.batch_import([document])
    sink.batch_import([make_document()])

    lines = path.read_text(encoding="utf-8").splitlines()
    assert result.success_count == 1
    assert len(lines) == 2

    record = json.loads(lines[0])
    assert record["docType"] == "guide"
    assert record["metadata"]["scrapedAt"] == SCRAPED_AT.isoformat()
    assert record["metadata"]["chunkIndex"] == 0


def test_jsonl_sink_counts_unserializable_documents(tmp_path):
    sink = JsonlSink(tmp_path / "docs.jsonl")
    result = sink.batch_import([make_document(metadata={"bad": object()}), make_document()])

    assert result.success_count == 1
    assert result.error_count == 1
    assert result.errors[0].startswith("https://docs.example.com/a")

