"""Process-level logging setup."""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            return json.dumps(log_data)


def level_for(verbosity: int) -> int:
    """0 -> INFO, 1 or more -> DEBUG (command lines are logged at DEBUG)."""
    return logging.DEBUG if verbosity > 0 else logging.INFO


def setup_logging(verbosity: int = 0, json_output: bool = False) -> None:
    """Configure the root logger to write to stderr."""
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logging.basicConfig(level=level_for(verbosity), handlers=[handler], force=True)
