"""Per-request logging context."""

from contextvars import ContextVar

# Set by RequestIDMiddleware for the duration of a request.
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
