# src/unitofwork/core/logging/filters.py
"""
Logging filters

- RequestIdFilter: guarantees every LogRecord has a `request_id` attribute, taken
  from a contextvar set by RequestIDMiddleware (or "-" when no request is active).
- UnitOfWorkFilter: stamps the names of the session factories bound in the current
  context, so log lines emitted inside a unit of work can be told apart from the
  ones emitted outside of it.
- RedactFilter: masks well-known sensitive attributes passed through `extra`.

contextvars (not threading.local) are used because FastAPI/Starlette serve many
requests on one thread; a ContextVar follows each request across `await`s.
"""

import logging
from logging import LogRecord
import contextvars

from unitofwork.database.context import bound_session_names

_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None):
    """
    Set the request id in the current context and return the token to allow reset.
    """
    return _request_id_ctx.set(request_id)


def reset_request_id(token):
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Set `record.request_id` to, in order of preference:
       * the value passed explicitly via `extra={"request_id": ...}`
       * the contextvar value set by the middleware
       * the sentinel "-"
    Always returns True; the filter only annotates.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class UnitOfWorkFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "bound_sessions"):
            record.bound_sessions = bound_session_names()
        return True


class RedactFilter(logging.Filter):
    SENSITIVE = {"password", "secret", "token", "access_token", "refresh_token", "authorization", "database_password"}

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = "***REDACTED***"
        return True
