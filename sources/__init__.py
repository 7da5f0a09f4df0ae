"""Sources package for DocIngest.

Provides documentation source configuration loading and management.
"""

from .loader import (
    SOURCE_KINDS,
    SourceConfig,
    SourceLoader
)

__all__ = [
    'SOURCE_KINDS',
    'SourceConfig',
    'SourceLoader'
]
