"""Logging configuration for the gateway.

All loggers hang off the ``tfgw`` root logger. Records are rendered as JSON
lines by default; set ``LOG_FORMAT=console`` for a plain format while
developing locally. Every record carries a ``service`` field so that gateway
lines can be told apart from the downstream model services in aggregated
logs.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from pythonjsonlogger import jsonlogger

ROOT_LOGGER = "tfgw"
_FIELDS = "%(asctime)s %(levelname)s %(name)s %(service)s %(message)s"


class ServiceNameFilter(logging.Filter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self.service
        return True


def configure_logging(
    level: str = "INFO",
    service: str = "traffic-flow-gateway",
    log_format: Optional[str] = None,
) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return logger

    log_level = getattr(logging, os.environ.get("LOG_LEVEL", level).upper(), logging.INFO)
    fmt = (log_format or os.environ.get("LOG_FORMAT", "json")).lower()
    logger.setLevel(log_level)

    handler = logging.StreamHandler()
    if fmt == "console":
        handler.setFormatter(logging.Formatter(_FIELDS.replace(" %(message)s", " - %(message)s")))
    else:
        handler.setFormatter(jsonlogger.JsonFormatter(_FIELDS))
    handler.addFilter(ServiceNameFilter(service))
    logger.addHandler(handler)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER)
    if not base.handlers:
        configure_logging()
    if name is None:
        return base
    # Module names already rooted at the package map onto the same tree.
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return base.getChild(name)
