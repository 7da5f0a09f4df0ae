"""Storage sinks that receive assembled documents.

The search index itself lives outside this package; anything implementing
:class:`DocumentSink` can receive batches.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from .models import Document

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome reported by a sink for one batch."""
    success_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)


class DocumentSink(ABC):
    """Batch import interface of a document store."""

    @abstractmethod
    def batch_import(self, documents: List[Document]) -> ImportResult:
        ...


class MemorySink(DocumentSink):
    """Keeps imported documents in a list."""

    def __init__(self):
        self.documents: List[Document] = []

    def batch_import(self, documents: List[Document]) -> ImportResult:
        self.documents.extend(documents)
        return ImportResult(success_count=len(documents))


class JsonlSink(DocumentSink):
    """Appends documents to a JSON Lines file, one record per line."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def batch_import(self, documents: List[Document]) -> ImportResult:
        result = ImportResult()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.path, 'a', encoding='utf-8') as f:
            for document in documents:
                try:
                    line = json.dumps(document.to_dict(), default=_json_default, ensure_ascii=False)
                except (TypeError, ValueError) as e:
                    result.error_count += 1
                    result.errors.append(f"{document.url}: {e}")
                    continue
                f.write(line + '\n')
                result.success_count += 1

        logger.debug(f"Wrote {result.success_count} documents to {self.path}")
        return result


def _json_default(value):
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
