"""
Logging setup for the partner referral backend.

Records carry structured fields in ``extra={"extra_data": {...}}``. Service
loggers from ``get_logger`` add a fixed ``component`` field, and a context
variable adds the acting admin or partner to every record emitted while it
is set. Credential and document payload fields are masked before any
handler sees them.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

actor_id_var: ContextVar[Optional[str]] = ContextVar('actor_id', default=None)

SENSITIVE_FIELDS = frozenset({
    "senha",
    "senha_temp",
    "password",
    "temporary_credential",
    "encodedPayload",
})
REDACTED = "[redacted]"

NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncio")


def _structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """The acting user followed by the record's extra_data."""
    fields: Dict[str, Any] = {}
    actor_id = actor_id_var.get()
    if actor_id:
        fields["actor_id"] = actor_id
    fields.update(getattr(record, "extra_data", None) or {})
    return fields


class RedactingFilter(logging.Filter):
    """Masks sensitive keys in ``extra_data``. Never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        data = getattr(record, "extra_data", None)
        if isinstance(data, dict) and SENSITIVE_FIELDS.intersection(data):
            record.extra_data = {
                key: REDACTED if key in SENSITIVE_FIELDS else value
                for key, value in data.items()
            }
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation and log files."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_structured_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """
    Single-line development format: time, level, logger, message, then
    ``key=value`` pairs.
    """

    LEVEL_COLORS = {
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
        level = f"{record.levelname:8s}"
        if self.use_colors and record.levelname in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelname]}{level}{self.RESET}"

        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        line = f"{clock} {level} [{record.name}] {record.getMessage()}"

        fields = _structured_fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """Adapter whose fixed fields are merged under each call's extra_data."""

    def process(self, msg: str, kwargs: Dict) -> tuple:
        extra = dict(kwargs.get('extra') or {})
        extra['extra_data'] = {**self.extra, **(extra.get('extra_data') or {})}
        kwargs['extra'] = extra
        return msg, kwargs


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None
) -> None:
    """
    Install the root handlers.

    Args:
        level: Root level name.
        json_output: JSON lines on stdout instead of the readable format.
        log_file: Also append JSON lines to this file.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    redactor = RedactingFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JsonFormatter() if json_output else ReadableFormatter(use_colors=sys.stdout.isatty()))
    console.addFilter(redactor)
    root_logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(redactor)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, **extra) -> ContextLogger:
    """Logger that adds ``extra`` to every record's extra_data."""
    return ContextLogger(logging.getLogger(name), extra)


@contextmanager
def actor_context(actor_id: Optional[Any]) -> Iterator[None]:
    """
    Tag every log record emitted inside the block with the acting user.

    Usage:
        with actor_context(f"admin:{admin_id}"):
            await promotion.promote(admin_id, pre_registration_id)
    """
    token = actor_id_var.set(str(actor_id) if actor_id is not None else None)
    try:
        yield
    finally:
        actor_id_var.reset(token)
