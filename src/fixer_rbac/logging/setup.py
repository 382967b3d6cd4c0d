"""Structured logging configuration for the RBAC service."""

import logging
import sys

from fixer_rbac.constants import ServiceName
from fixer_rbac.logging.context import request_id_var
from fixer_rbac.logging.formatter import JSONLogFormatter


class RequestIDFilter(logging.Filter):
    """Stamp records with the id of the request being served, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


def configure_logging(service: ServiceName = ServiceName.RBAC, level: str | int = logging.INFO) -> None:
    """Set up structured JSON logging on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter(service=service))
    handler.addFilter(RequestIDFilter())
    root.addHandler(handler)
