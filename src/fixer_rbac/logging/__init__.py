"""Structured logging: JSON formatter, request-id propagation, and setup."""

from fixer_rbac.logging.context import request_id_var
from fixer_rbac.logging.formatter import JSONLogFormatter
from fixer_rbac.logging.setup import RequestIDFilter, configure_logging

__all__ = ["JSONLogFormatter", "RequestIDFilter", "configure_logging", "request_id_var"]
