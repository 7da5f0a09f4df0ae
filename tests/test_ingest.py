"""
End-to-end tests for source ingestion.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from pipelines.crawler import DocsCrawler
from pipelines.errors import SitemapFetchError
from pipelines.ingest import collect_pages, ingest_source, ingest_sources, main
from pipelines.sinks import MemorySink
from sources.loader import SourceConfig

SPEC_YAML = """
openapi: 3.0.0
info:
  title: Health API
  version: '1.0'
paths:
  /health:
    get:
      summary: Health check
      responses:
        '200':
          description: Service is healthy
"""

LLMS_DUMP = "# Intro\n\nWelcome.\n\n# Setup\n\nInstall it.\n"


@pytest.fixture
def spec_file(tmp_path):
    path = tmp_path / "health.yaml"
    path.write_text(SPEC_YAML, encoding="utf-8")
    return path


def sitemap_source(**overrides):
    values = dict(name="docs", kind="sitemap", base_url="https://docs.example.com", delay_ms=0)
    values.update(overrides)
    return SourceConfig(**values)


@pytest.mark.asyncio
async def test_openapi_source_ingested(spec_file):
    source = SourceConfig(name="health", kind="openapi", location=str(spec_file))
    sink = MemorySink()

    report = await ingest_source(source, sink)

    assert report.ok
    assert report.pages == 2
    assert report.imported == 2
    assert {d.url for d in sink.documents} == {f"{spec_file}#info", f"{spec_file}#get--health"}


@pytest.mark.asyncio
async def test_llms_full_source_uses_configured_labels():
    source = SourceConfig(name="astro", kind="llms_full", base_url="https://docs.astro.build",
                          location="https://docs.astro.build/llms-full.txt", framework="astro", version="4.x")

    with patch('pipelines.llms_full.fetch_llms_full_text', AsyncMock(return_value=LLMS_DUMP)):
        pages = await collect_pages(source)

    assert [page.url for page in pages] == [
        "https://docs.astro.build/intro/",
        "https://docs.astro.build/setup/",
    ]
    assert pages[0].metadata.extra["framework"] == "astro"


@pytest.mark.asyncio
async def test_failing_source_does_not_stop_others(spec_file):
    sources = [
        sitemap_source(),
        SourceConfig(name="health", kind="openapi", location=str(spec_file)),
    ]
    sink = MemorySink()
    error = SitemapFetchError("https://docs.example.com/sitemap.xml", "503 Service Unavailable")

    with patch.object(DocsCrawler, 'fetch_sitemap', AsyncMock(side_effect=error)):
        reports = await ingest_sources(sources, sink)

    assert [report.name for report in reports] == ["docs", "health"]
    assert not reports[0].ok
    assert "503" in reports[0].error
    assert reports[1].ok
    assert len(sink.documents) == 2


@pytest.mark.asyncio
async def test_disabled_sources_skipped(spec_file):
    source = SourceConfig(name="health", kind="openapi", location=str(spec_file), enabled=False)
    reports = await ingest_sources([source], MemorySink())
    assert reports == []


def test_cli_writes_jsonl(tmp_path, spec_file):
    source_file = tmp_path / "health-api.yaml"
    source_file.write_text(f"kind: openapi\nlocation: {spec_file}\n", encoding="utf-8")
    out = tmp_path / "docs.jsonl"

    with patch('pipelines.ingest.setup_logging'):
        exit_code = main([str(source_file), "--out", str(out)])

    assert exit_code == 0
    records = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 2
    assert records[0]["title"] == "Health API - Overview"
    assert records[1]["metadata"]["httpMethod"] == "GET"


def test_cli_reports_failed_source(tmp_path):
    source_file = tmp_path / "broken.yaml"
    source_file.write_text(f"kind: openapi\nlocation: {tmp_path / 'missing.json'}\n", encoding="utf-8")

    with patch('pipelines.ingest.setup_logging'):
        exit_code = main([str(source_file), "--out", str(tmp_path / "docs.jsonl")])

    assert exit_code == 1


def test_cli_rejects_invalid_source_file(tmp_path):
    source_file = tmp_path / "bad.yaml"
    source_file.write_text("kind: carrier-pigeon\n", encoding="utf-8")

    with patch('pipelines.ingest.setup_logging'):
        exit_code = main([str(source_file), "--out", str(tmp_path / "docs.jsonl")])

    assert exit_code == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    "openapi: 3.0.0\ninfo: just a string\n",
    "openapi: 3.0.0\npaths:\n  - /a\n",
    "openapi: 3.0.0\ncomponents:\n  schemas: [Page]\n",
    b"\xff\xfe\x00o\x00p\x00e\x00n\x00a\x00p\x00i",
])
async def test_malformed_spec_fails_only_its_source(tmp_path, spec_file, content):
    bad_file = tmp_path / "bad-spec.yaml"
    if isinstance(content, bytes):
        bad_file.write_bytes(content)
    else:
        bad_file.write_text(content, encoding="utf-8")
    sources = [
        SourceConfig(name="bad", kind="openapi", location=str(bad_file)),
        SourceConfig(name="health", kind="openapi", location=str(spec_file)),
    ]
    sink = MemorySink()

    reports = await ingest_sources(sources, sink)

    assert [(report.name, report.ok) for report in reports] == [("bad", False), ("health", True)]
    assert len(sink.documents) == 2


@pytest.mark.asyncio
async def test_undecodable_sitemap_fails_only_its_source(spec_file):
    sources = [
        sitemap_source(),
        SourceConfig(name="health", kind="openapi", location=str(spec_file)),
    ]
    decode_error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    with patch('pipelines.crawler.aiohttp.ClientSession', side_effect=decode_error):
        reports = await ingest_sources(sources, MemorySink())

    assert [(report.name, report.ok) for report in reports] == [("docs", False), ("health", True)]
    assert "sitemap" in reports[0].error
