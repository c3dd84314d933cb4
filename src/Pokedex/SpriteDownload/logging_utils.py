# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.logging_utils",
#   "purpose": "Text and JSON log handler setup for the Pokedex logger",
#   "sections": [
#     {
#       "id": "jsonformatter",
#       "name": "JSONFormatter",
#       "anchor": "class-jsonformatter",
#       "kind": "class"
#     },
#     {
#       "id": "setup-logging",
#       "name": "setup_logging",
#       "anchor": "function-setup-logging",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Logging setup shared by both pipeline passes."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

__all__ = ["JSONFormatter", "setup_logging"]

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_MANAGED_FLAG = "_pokedex_managed"


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    *,
    verbose: bool = False,
    json_logs: bool = False,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``Pokedex`` logger; safe to call more than once."""

    logger = logging.getLogger("Pokedex")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_FLAG, False):
            logger.removeHandler(handler)
            handler.close()

    formatter: logging.Formatter = JSONFormatter() if json_logs else logging.Formatter(TEXT_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _MANAGED_FLAG, True)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        setattr(file_handler, _MANAGED_FLAG, True)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
