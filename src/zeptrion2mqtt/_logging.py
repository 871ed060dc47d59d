"""Structured JSON log formatter and logging configuration.

The bridge runs unattended next to a broker, usually in a container,
so its default output is one JSON object per line (NDJSON) that log
aggregators can index without a parser.  A plain text format is kept
for local runs.

Each JSON line carries ``service`` and ``version`` so lines from
several bridges (one per device) can be told apart after they are
merged into one stream.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Any

from zeptrion2mqtt._settings import LoggingSettings

_BYTES_PER_MB = 1024 * 1024

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields:

    - ``timestamp`` — ISO 8601, always UTC
    - ``level`` — Python log level name
    - ``logger`` — dotted logger name
    - ``message`` — the formatted log message
    - ``service`` — application name
    - ``version`` — application version (omitted when empty)
    - ``exception`` — formatted traceback, only when one is logged
    - ``stack_info`` — only when ``stack_info=True``

    Args:
        service: Application name included in every line.
        version: Application version string.
    """

    def __init__(
        self,
        *,
        service: str = "",
        version: str = "",
    ) -> None:
        super().__init__()
        self._service = service
        self._version = version

    def format(self, record: logging.LogRecord) -> str:
        """Format *record* as one JSON line.

        Tracebacks are escaped by ``json.dumps`` so the result never
        contains a raw newline.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
        }

        if self._version:
            entry["version"] = self._version

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


def configure_logging(
    settings: LoggingSettings,
    *,
    service: str,
    version: str = "",
) -> None:
    """Configure the root logger from *settings*.

    Existing root handlers are removed first.  A stderr
    :class:`logging.StreamHandler` is always installed; when
    ``settings.file`` is set a :class:`RotatingFileHandler` is added
    that rotates at ``settings.max_file_size_mb`` and keeps
    ``settings.backup_count`` generations.

    Args:
        settings: Logging configuration (level, format, file).
        service: Application name passed to :class:`JsonFormatter`.
        version: Application version passed to :class:`JsonFormatter`.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if settings.format == "json":
        formatter: logging.Formatter = JsonFormatter(service=service, version=version)
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.file is not None:
        file_handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_file_size_mb * _BYTES_PER_MB,
            backupCount=settings.backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(settings.level)

    # httpx logs each device request at INFO.
    logging.getLogger("httpx").setLevel(max(logging.WARNING, root.level))
