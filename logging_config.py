"""Structured logging setup for the marketplace service."""

__all__ = [
    "StructuredFormatter",
    "configure_logging",
]

import json
import logging
from datetime import datetime, timezone
from typing import Any

from config import settings

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_configured = False


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Install a single stream handler on the ``marketplace`` logger tree."""
    global _configured
    root = logging.getLogger("marketplace")
    if _configured:
        root.setLevel((level or settings.log_level).upper())
        return

    handler = logging.StreamHandler()
    use_json = settings.log_json if json_output is None else json_output
    if use_json:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())
    root.propagate = False
    _configured = True
