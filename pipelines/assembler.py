"""Document assembly: classify and chunk pages, hand batches to a sink."""

import logging
from typing import Iterable, List, Optional

from .chunker import ChunkConfig, chunk_text
from .classifier import DEFAULT_DOC_TYPE, DEFAULT_FRAMEWORK, DEFAULT_VERSION, classify
from .models import Document, Page
from .sinks import DocumentSink, ImportResult

logger = logging.getLogger(__name__)


def build_page_documents(page: Page, chunk_config: Optional[ChunkConfig] = None) -> List[Document]:
    """Classify a page once, chunk it once, and build one document per chunk."""
    classification = classify(page)

    documents = []
    for chunk in chunk_text(page.content, chunk_config):
        metadata = {
            "section": chunk.section or classification.section,
            "chunkIndex": chunk.chunk_index,
            "totalChunks": chunk.total_chunks,
        }
        metadata.update(page.metadata.to_dict())

        documents.append(Document(
            content=chunk.content,
            title=page.title,
            url=page.url,
            version=classification.version,
            framework=classification.framework,
            doc_type=classification.doc_type,
            keywords=list(classification.keywords),
            metadata=metadata,
        ))

    return documents


def build_documents(pages: Iterable[Page], chunk_config: Optional[ChunkConfig] = None) -> List[Document]:
    """Build documents for every page, in page order."""
    pages = list(pages)
    logger.info(f"Processing {len(pages)} pages into chunks")

    documents = []
    for page in pages:
        documents.extend(build_page_documents(page, chunk_config))

    logger.info(f"Created {len(documents)} document chunks from {len(pages)} pages")
    return documents


def prepare_batch(documents: Iterable[Document]) -> List[Document]:
    """Drop documents without content and fill missing fields with defaults."""
    prepared = []
    for document in documents:
        if not document.content or not document.content.strip():
            logger.warning(f"Skipping empty document chunk from {document.url}")
            continue

        document.title = document.title or document.url
        document.version = document.version or DEFAULT_VERSION
        document.framework = document.framework or DEFAULT_FRAMEWORK
        document.doc_type = document.doc_type or DEFAULT_DOC_TYPE
        document.keywords = document.keywords or []
        document.metadata.setdefault("section", "")
        if document.metadata["section"] is None:
            document.metadata["section"] = ""

        prepared.append(document)
    return prepared


def import_documents(sink: DocumentSink, documents: Iterable[Document]) -> ImportResult:
    """Validate a batch and pass it to the sink, logging the reported outcome.

    Failures reported by the sink are not retried.
    """
    batch = prepare_batch(documents)
    logger.info(f"Starting batch import of {len(batch)} documents")

    result = sink.batch_import(batch)

    if result.error_count:
        logger.error(f"Batch import had {result.error_count} errors "
                     f"({result.success_count} documents imported)")
        for error in result.errors[:10]:
            logger.error(f"Import error: {error}")
    else:
        logger.info(f"Successfully imported {result.success_count} documents")

    return result
