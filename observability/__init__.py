"""Observability package for DocIngest."""

from .logging import CONTEXT_FIELDS, ConsoleFormatter, JSONFormatter, record_context, setup_logging

__all__ = [
    'setup_logging',
    'record_context',
    'CONTEXT_FIELDS',
    'JSONFormatter',
    'ConsoleFormatter'
]
