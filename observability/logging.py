"""Log formatting for ingestion runs.

Pipeline modules attach the source being ingested (and, for per-page
messages, the page URL) as logging extras::

    logger.info("Scraping page", extra={"source": "astro", "url": url})

Both formatters here surface those fields: the JSON formatter as top-level
keys, the console formatter as a ``[source]`` prefix.
"""

from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Extras the pipeline attaches to records, in output order
CONTEXT_FIELDS = ('source', 'kind', 'url')


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the ingestion context fields set on a record."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the ingestion context as top-level keys."""

    def __init__(self, service_name: str = "docingest"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "ts": ts.isoformat(timespec='milliseconds').replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Compact console lines, coloured by level when writing to a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level:8}{self.RESET}"
        else:
            level = f"{level:8}"

        source = getattr(record, 'source', None)
        prefix = f"[{source}] " if source else ""
        line = f"{clock} {level} {prefix}{record.name}: {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _handler(handler: logging.Handler, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    service_name: str = "docingest",
    log_file: Optional[str] = None,
    use_json: bool = False,
    use_colors: bool = True
) -> None:
    """Configure the root logger for an ingestion run.

    Replaces any existing root handlers with a stdout handler and, when
    ``log_file`` is given, a JSON file handler.

    Args:
        level: Log level name; unknown names fall back to INFO
        service_name: Value of the ``service`` key in JSON records
        log_file: Optional path for a JSON log file
        use_json: Emit JSON on stdout instead of console lines
        use_colors: Colour console lines (only when stdout is a terminal)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if use_json:
        console_formatter = JSONFormatter(service_name)
    else:
        console_formatter = ConsoleFormatter(use_colors and sys.stdout.isatty())

    handlers = [_handler(logging.StreamHandler(sys.stdout), console_formatter, numeric_level)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_handler(logging.FileHandler(log_file, encoding='utf-8'),
                                 JSONFormatter(service_name), numeric_level))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    # aiohttp logs every connection at INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
