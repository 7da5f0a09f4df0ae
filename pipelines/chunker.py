"""Document chunking pipeline.

Splits page content into size-bounded, overlapping chunks. Text is split on
the coarsest separator that works (paragraphs, then lines, then sentences,
then words) and only falls back to fixed-size character windows when no
separator is left.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .models import Chunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200
DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


@dataclass
class ChunkConfig:
    """Chunking parameters."""
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP
    separators: List[str] = field(default_factory=lambda: list(DEFAULT_SEPARATORS))

    def __post_init__(self):
        if self.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if self.overlap < 0:
            raise ValueError("overlap cannot be negative")

    @classmethod
    def from_settings(cls, settings) -> 'ChunkConfig':
        """Build a chunk config from the ``chunking`` section of the settings."""
        return cls(
            max_chunk_size=int(settings.get('chunking.max_chunk_size', DEFAULT_MAX_CHUNK_SIZE)),
            overlap=int(settings.get('chunking.overlap', DEFAULT_OVERLAP)),
            separators=list(settings.get('chunking.separators', DEFAULT_SEPARATORS)),
        )


def force_split(text: str, max_size: int) -> List[str]:
    """Cut text into consecutive windows of ``max_size`` characters."""
    return [text[i:i + max_size] for i in range(0, len(text), max_size)]


def recursive_split(text: str, separators: List[str], max_size: int) -> List[str]:
    """Split text into segments no longer than ``max_size``.

    Parts produced by the first separator are greedily packed into segments.
    A part that is too large on its own is split again with the remaining,
    finer separators. An empty separator (or running out of separators)
    forces a fixed-size split.
    """
    if len(text) <= max_size:
        return [text]

    if not separators or not separators[0]:
        return force_split(text, max_size)

    separator, remaining = separators[0], separators[1:]
    result: List[str] = []
    current = ""

    for part in text.split(separator):
        if len(current) + len(part) + len(separator) <= max_size:
            current += (separator if current else "") + part
            continue

        if current:
            result.append(current)

        if len(part) > max_size:
            result.extend(recursive_split(part, remaining, max_size))
            current = ""
        else:
            current = part

    if current:
        result.append(current)

    return result


def chunk_text(content: str, config: Optional[ChunkConfig] = None) -> List[Chunk]:
    """Split content into overlapping chunks.

    Args:
        content: Text to chunk
        config: Chunking parameters (defaults to 1000 chars with 200 overlap)

    Returns:
        Ordered list of chunks. Content that fits in a single chunk (including
        empty content) yields exactly one chunk.
    """
    config = config or ChunkConfig()

    if len(content) <= config.max_chunk_size:
        return [Chunk(content=content.strip(), chunk_index=0, total_chunks=1)]

    segments = recursive_split(content, config.separators, config.max_chunk_size)
    total = len(segments)

    chunks = []
    for i, segment in enumerate(segments):
        text = segment
        if i > 0 and config.overlap > 0:
            text = segments[i - 1][-config.overlap:] + " " + segment
        chunks.append(Chunk(content=text.strip(), chunk_index=i, total_chunks=total))

    logger.debug(f"Split {len(content)} chars into {total} chunks")
    return chunks
