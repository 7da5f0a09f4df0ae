"""Configuration module for DocIngest.

Provides the global ingestion settings (chunking, crawl defaults, extraction
selectors, logging).
"""

from .settings import DEFAULT_CONFIG, IngestSettings, settings

__all__ = [
    'DEFAULT_CONFIG',
    'IngestSettings',
    'settings'
]
