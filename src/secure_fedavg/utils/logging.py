import json
import logging
import os
import sys
from logging import Logger
from typing import Optional

LOGGER_PREFIX = "secure_fedavg"
# Attributes passed through ``extra=`` that JSON output carries as fields.
CONTEXT_FIELDS = ("cycle", "client_id", "mode")
# Per-request chatter from the key-derivation client.
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with coordinator context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%SZ"),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log[name] = value
        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log, default=str)


def configure_logging(level: Optional[str] = None, json_output: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure global logging. Uses stdout by default; can additionally tee to a file.

    ``level`` wins over the LOG_LEVEL environment variable; HTTP client loggers
    are held at WARNING unless the effective level is DEBUG.
    """
    effective_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    formatter: logging.Formatter
    if json_output:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.INFO),
        handlers=handlers,
        force=True,
    )
    if effective_level != "DEBUG":
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Logger:
    """Logger under the package namespace, e.g. ``secure_fedavg.coordinator``."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
