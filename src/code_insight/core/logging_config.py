"""Logging setup for the CLI and the HTTP service.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
installed here, once, on the ``code_insight`` package logger.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from code_insight.core.config import LogConfig

PACKAGE_LOGGER = "code_insight"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line, including structured ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, sort_keys=True)


def parse_level(level: str | int) -> int:
    """``"debug"`` / ``"WARN"`` / ``"10"`` → logging level; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(cfg: LogConfig, *, verbose: bool = False) -> logging.Logger:
    """Install a single handler on the package logger, replacing earlier ones."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if cfg.output == "file" and cfg.file_path:
        handler: logging.Handler = logging.FileHandler(cfg.file_path, mode="a", encoding="utf-8")
    elif cfg.output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(JsonLogFormatter() if cfg.format == "json" else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else parse_level(cfg.level))
    return logger
