"""JSON log formatter for structured logging output."""

import json
import logging
from datetime import UTC, datetime

# LogRecord attributes that are not user-supplied ``extra`` fields.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JSONLogFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Output format::

        {"timestamp": "...", "level": "WARNING", "service": "rbac",
         "logger": "fixer_rbac.rbac.resolver", "message": "...", "request_id": "...", ...}

    Keys passed through ``extra=`` are copied into the object as-is.
    """

    def __init__(self, service: str = "rbac") -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id

        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and key != "request_id" and key not in entry:
                entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
