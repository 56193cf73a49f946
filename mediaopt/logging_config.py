"""
Logging setup for the mediaopt CLI and library callers.

One stderr handler on the root logger, in one of two shapes:

- ``text``: ``HH:MM:SS LEVEL   [module         ] message``, level colored
  when stderr is a terminal
- ``json``: one object per line, including the per-image fields the
  pipeline attaches (``media_name``, ``stage``, ``job_id``)

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: text, json (default: text)

## Usage

    from mediaopt.logging_config import setup_logging

    setup_logging(level="DEBUG", format_type="json")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Fields the pipeline passes via ``extra=``; emitted only when present
EXTRA_FIELDS = ("media_name", "stage", "job_id")

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

MODULE_WIDTH = 15


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and batch runs."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in EXTRA_FIELDS
            if hasattr(record, field)
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Compact terminal output; the module column is the last dotted name part."""

    def __init__(self, use_color: Optional[bool] = None):
        super().__init__()
        self.use_color = sys.stderr.isatty() if use_color is None else use_color

    def _level(self, levelname: str) -> str:
        padded = f"{levelname:7}"
        if not self.use_color:
            return padded
        return f"{LEVEL_COLORS.get(levelname, '')}{padded}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        module = record.name.rsplit(".", 1)[-1][:MODULE_WIDTH]
        stamp = datetime.now().strftime("%H:%M:%S")
        text = f"{stamp} {self._level(record.levelname)} [{module:{MODULE_WIDTH}}] {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Replace the root logger's handlers with one mediaopt stderr handler.

    Arguments win over LOG_LEVEL / LOG_FORMAT. An unknown level name
    falls back to INFO; any format other than "json" means text.
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    format_name = (format_type or os.environ.get("LOG_FORMAT") or "text").lower()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if format_name == "json" else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Pillow logs every plugin it probes at DEBUG
    logging.getLogger("PIL").setLevel(logging.INFO)

    logging.getLogger(__name__).debug(
        f"Logging ready: level={level_name}, format={format_name}"
    )
