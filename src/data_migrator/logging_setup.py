from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Run-scoped fields the pipeline passes via `extra=`.
RUN_FIELDS = ("run_id", "stage", "state")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; run_id / stage / state are promoted to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in RUN_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", *, log_format: str = "text") -> None:
    """Install a single stream handler on the root logger."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.handlers = [logging.StreamHandler()]
    else:
        root_logger.handlers = [root_logger.handlers[0]]

    handler = root_logger.handlers[0]
    if log_format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-5s %(name)s %(message)s"))

    root_logger.setLevel(getattr(logging, level.upper()))
