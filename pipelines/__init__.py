"""Pipelines package for DocIngest.

Provides crawling, alternate source adapters, classification, chunking and
document assembly.
"""

from .errors import (
    IngestionError,
    SitemapFetchError,
    SourceFetchError,
    SpecParseError,
    ContentNotFoundError
)
from .models import LinkRef, PageMetadata, Page, Chunk, PageClassification, Document
from .crawler import DocsCrawler, CrawlSession, CrawlStats, crawl_docs, crawl_docs_sync, extract_sitemap_urls
from .renderer import PageRenderer, RenderedDocument, HttpRenderer, SoupDocument
from .normalizer import html_to_markdown, classify_links, extract_headings, slugify
from .llms_full import process_llms_full_text, fetch_and_process_llms_full_text
from .openapi import process_openapi_spec, load_openapi_spec, import_openapi_source
from .classifier import classify, classify_page
from .chunker import ChunkConfig, chunk_text
from .assembler import build_documents, build_page_documents, prepare_batch, import_documents
from .sinks import DocumentSink, ImportResult, JsonlSink, MemorySink

__all__ = [
    # Errors
    'IngestionError',
    'SitemapFetchError',
    'SourceFetchError',
    'SpecParseError',
    'ContentNotFoundError',

    # Models
    'LinkRef',
    'PageMetadata',
    'Page',
    'Chunk',
    'PageClassification',
    'Document',

    # Crawler
    'DocsCrawler',
    'CrawlSession',
    'CrawlStats',
    'crawl_docs',
    'crawl_docs_sync',
    'extract_sitemap_urls',
    'PageRenderer',
    'RenderedDocument',
    'HttpRenderer',
    'SoupDocument',

    # Normalizer and adapters
    'html_to_markdown',
    'classify_links',
    'extract_headings',
    'slugify',
    'process_llms_full_text',
    'fetch_and_process_llms_full_text',
    'process_openapi_spec',
    'load_openapi_spec',
    'import_openapi_source',

    # Classifier and chunker
    'classify',
    'classify_page',
    'ChunkConfig',
    'chunk_text',

    # Assembly
    'build_documents',
    'build_page_documents',
    'prepare_batch',
    'import_documents',
    'DocumentSink',
    'ImportResult',
    'JsonlSink',
    'MemorySink'
]
