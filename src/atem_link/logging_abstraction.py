"""Structured logging for atem-link.

Every module logs through ``get_logger(__name__)``. Records keep their
structured ``extra`` context apart from the message so it can be rendered
as ``key=value`` pairs on a console or as a JSON object in a log file, and
each record carries the correlation id of the connection attempt it
belongs to.

Destinations come from ``ATEM_LOG_FORMAT``, ``ATEM_LOG_JSON_FILE`` and
``ATEM_LOG_HUMAN_OUTPUT``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import override

from atem_link.const import (
    ATEM_DEBUG,
    ATEM_LOG_CORRELATION_ENABLED,
    ATEM_LOG_FORMAT,
    ATEM_LOG_HUMAN_OUTPUT,
    ATEM_LOG_JSON_FILE,
)
from atem_link.correlation import get_correlation_id

__all__ = [
    "AtemLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
]

_NO_CORRELATION = "[--------]"


def _record_context(record: logging.LogRecord) -> dict[str, object]:
    context = getattr(record, "extra_data", None)
    return dict(context) if isinstance(context, Mapping) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console lines: ``time level [module:line] [corr] > message | key=value``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id() if ATEM_LOG_CORRELATION_ENABLED else None
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else _NO_CORRELATION

        line = super().format(record)
        context = _record_context(record)
        if context:
            line += " | " + " | ".join(f"{key}={value}" for key, value in context.items())
        return line


def _human_handler(destination: str) -> logging.Handler:
    if destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    if destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(destination)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a")
    except OSError as e:
        print(f"Warning: cannot write log file {path}: {e}; logging to stderr", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


def _json_handler(json_file: str | Path) -> logging.Handler | None:
    path = Path(json_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a")
    except OSError as e:
        print(f"Warning: cannot write JSON log file {path}: {e}", file=sys.stderr)
        return None


class AtemLogger:
    """Thin wrapper over ``logging.Logger`` taking an ``extra`` mapping.

    Records still propagate to the root logger, so embedding applications
    and pytest's ``caplog`` see them.
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str = "stderr",
    ) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if ATEM_DEBUG else logging.INFO)

        if self.logger.handlers:
            return

        handlers: list[tuple[logging.Handler | None, logging.Formatter]] = []
        if log_format in ("json", "both") and json_file:
            handlers.append((_json_handler(json_file), JSONFormatter()))
        if log_format in ("human", "both"):
            handlers.append((_human_handler(human_output), HumanReadableFormatter()))

        for handler, formatter in handlers:
            if handler is None:
                continue
            handler.setFormatter(formatter)
            handler.setLevel(self.logger.level)
            self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        msg: str,
        args: tuple[object, ...],
        extra: Mapping[str, object] | None,
        *,
        exc_info: bool = False,
    ) -> None:
        payload = {"extra_data": dict(extra)} if extra else None
        # stacklevel 3: skip _log and the public level method
        self.logger.log(level, msg, *args, extra=payload, exc_info=exc_info, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, args, extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, args, extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, args, extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, args, extra, exc_info=True)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(name: str) -> AtemLogger:
    """Logger for ``name`` configured from the ``ATEM_LOG_*`` settings."""
    return AtemLogger(
        name,
        log_format=ATEM_LOG_FORMAT,
        json_file=ATEM_LOG_JSON_FILE,
        human_output=ATEM_LOG_HUMAN_OUTPUT or "stderr",
    )
