"""Ingestion orchestration.

Runs configured documentation sources end to end:

    crawl / split / import spec -> classify -> chunk -> assemble -> sink

A source that fails fatally (sitemap unreachable, spec unparseable) is
reported and skipped; the remaining sources still run.

Usage:
    python -m pipelines.ingest --out docs.jsonl sources/apostrophe.yaml
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional

from config import settings as default_settings
from config.settings import IngestSettings
from observability.logging import setup_logging
from sources.loader import SourceConfig, SourceLoader

from .assembler import build_documents, import_documents
from .chunker import ChunkConfig
from .crawler import crawl_docs
from .errors import IngestionError
from .llms_full import fetch_and_process_llms_full_text
from .models import Page
from .openapi import import_openapi_source
from .renderer import PageRenderer
from .sinks import DocumentSink, JsonlSink

logger = logging.getLogger(__name__)


@dataclass
class SourceReport:
    """Outcome of ingesting one source."""
    name: str
    kind: str
    pages: int = 0
    documents: int = 0
    imported: int = 0
    errors: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def collect_pages(source: SourceConfig,
                        renderer: PageRenderer = None,
                        settings=None) -> List[Page]:
    """Produce the pages of a source according to its kind.

    Raises:
        IngestionError: If the source cannot be read at all
    """
    settings = settings or default_settings
    timeout = source.timeout_ms / 1000

    if source.kind == "sitemap":
        pages, _ = await crawl_docs(source, renderer=renderer, settings=settings)
        return pages

    if source.kind == "llms_full":
        return await fetch_and_process_llms_full_text(
            source.location,
            base_url=source.base_url,
            framework=source.framework or "astro",
            version=source.version or "4.x",
            timeout=timeout,
            user_agent=settings.get_user_agent(),
        )

    if source.kind == "openapi":
        return await import_openapi_source(source.location, timeout=timeout)

    raise ValueError(f"Unsupported source kind: {source.kind}")


def _log_context(source: SourceConfig) -> dict:
    context = {"source": source.name, "kind": source.kind}
    if source.kind != "sitemap" and source.location:
        context["url"] = source.location
    return context


async def ingest_source(source: SourceConfig,
                        sink: DocumentSink,
                        chunk_config: Optional[ChunkConfig] = None,
                        renderer: PageRenderer = None,
                        settings=None) -> SourceReport:
    """Ingest a single source into the sink."""
    logger.info(f"Ingesting source '{source.name}' ({source.kind})", extra=_log_context(source))
    report = SourceReport(name=source.name, kind=source.kind)

    pages = await collect_pages(source, renderer=renderer, settings=settings)
    report.pages = len(pages)

    documents = build_documents(pages, chunk_config)
    report.documents = len(documents)

    result = import_documents(sink, documents)
    report.imported = result.success_count
    report.errors = result.error_count

    return report


async def ingest_sources(sources: Iterable[SourceConfig],
                         sink: DocumentSink,
                         chunk_config: Optional[ChunkConfig] = None,
                         renderer: PageRenderer = None,
                         settings=None) -> List[SourceReport]:
    """Ingest several sources in turn, isolating per-source failures."""
    reports = []
    for source in sources:
        if not source.enabled:
            logger.info(f"Skipping disabled source '{source.name}'", extra=_log_context(source))
            continue

        try:
            report = await ingest_source(source, sink, chunk_config, renderer=renderer, settings=settings)
        except IngestionError as e:
            logger.error(f"Ingestion of source '{source.name}' failed: {e}", extra=_log_context(source))
            report = SourceReport(name=source.name, kind=source.kind, error=str(e))

        reports.append(report)

    return reports


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Ingest documentation sources into a JSON Lines file")
    parser.add_argument("sources", nargs="*",
                        help="Source YAML files (default: every enabled source in --sources-dir)")
    parser.add_argument("--sources-dir", help="Directory holding source YAML files")
    parser.add_argument("--out", required=True, help="Output JSON Lines file")
    parser.add_argument("--config", help="Path to ingest_config.yaml")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--clear", action="store_true", help="Truncate the output file first")

    args = parser.parse_args(argv)

    settings = IngestSettings(args.config) if args.config else default_settings
    setup_logging(
        level=args.log_level or settings.get('logging.level', 'INFO'),
        service_name="docingest",
        log_file=settings.get('logging.log_file'),
        use_json=args.json_logs or bool(settings.get('logging.use_json', False))
    )

    loader = SourceLoader(args.sources_dir, defaults=settings.get_crawl_defaults())
    if args.sources:
        configs = [loader.load_file(path) for path in args.sources]
        if any(config is None for config in configs):
            logger.error("One or more source configurations could not be loaded")
            return 2
    else:
        configs = list(loader.get_enabled_sources().values())

    if not configs:
        logger.error("No sources to ingest")
        return 2

    sink = JsonlSink(args.out)
    if args.clear and sink.path.exists():
        logger.warning(f"Clearing existing documents in {sink.path}")
        sink.path.unlink()

    reports = asyncio.run(ingest_sources(configs, sink, ChunkConfig.from_settings(settings), settings=settings))

    for report in reports:
        context = {"source": report.name, "kind": report.kind}
        if report.ok:
            logger.info(f"{report.name}: {report.pages} pages, {report.documents} documents, "
                        f"{report.imported} imported, {report.errors} errors", extra=context)
        else:
            logger.error(f"{report.name}: failed ({report.error})", extra=context)

    return 0 if all(report.ok for report in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
