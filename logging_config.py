from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Optional

from settings import get_settings

CONTEXT_KEYS = (
    "measurement_id",
    "institution_id",
    "sector_id",
    "user_id",
    "status",
    "failing",
    "object_key",
    "file_count",
    "item_count",
    "email",
    "reason",
)

LOG_FORMAT = "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False


def _render(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(item) for item in value) or None
    return str(value)


class ContextualFormatter(logging.Formatter):
    """Append ``extra=`` attributes named in ``context_keys`` as ``key=value`` pairs.

    Timestamps are rendered in UTC. Sequence values are comma-joined and
    empty ones are left out.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        context_keys: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.context_keys = tuple(context_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = []
        for key in self.context_keys:
            rendered = _render(getattr(record, key, None))
            if rendered is not None:
                pairs.append(f"{key}={rendered}")
        return f"{line} | {' '.join(pairs)}" if pairs else line


def logging_dict(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": ContextualFormatter,
                "fmt": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "contextual",
            }
        },
        "loggers": {"uvicorn.access": {"level": "WARNING"}},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the contextual console handler once per process."""
    global _configured
    if _configured:
        return
    dictConfig(logging_dict(level if level is not None else get_settings().log_level))
    _configured = True
