"""Logging setup shared by the CLI and the researcher API.

``setup_logging()`` runs once per entrypoint; modules only call
``logging.getLogger(__name__)``.  Pipeline and scorer messages carry a
``[formality]`` / ``[pipeline]`` / ``[backlog]`` prefix so a log drain
can filter by subsystem.
"""

from __future__ import annotations

import json
import logging
import os
import sys

TEXT_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Chatty libraries pinned to WARNING.  uvicorn's access log duplicates the
# request middleware line.
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "langchain_core", "uvicorn.access")


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; exceptions go in ``exc_info``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _level(name: str, default: str) -> int:
    return getattr(logging, os.getenv(name, default).upper(), logging.INFO)


def setup_logging() -> None:
    """Configure the root logger.

    ``LOG_FORMAT=json`` switches to JSON lines for hosted deployments.
    ``LOG_LEVEL`` sets the root level and ``STUDYLAB_LOG_LEVEL`` can raise
    or lower the ``studylab`` loggers on their own (e.g. DEBUG to trace
    every drained batch without third-party noise).
    """
    handler = logging.StreamHandler(sys.stderr)
    if os.getenv("LOG_FORMAT", "text").lower() == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))

    root_level = _level("LOG_LEVEL", "INFO")
    logging.basicConfig(level=root_level, handlers=[handler], force=True)
    logging.getLogger("studylab").setLevel(_level("STUDYLAB_LOG_LEVEL", logging.getLevelName(root_level)))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
