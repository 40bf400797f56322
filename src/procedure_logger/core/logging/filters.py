# src/procedure_logger/core/logging/filters.py
"""
Logging filters

Request ID filter and redaction for records produced by procedure loggers.

- `RequestIdFilter` guarantees every LogRecord has a ``request_id`` attribute
  (explicit extra, then the contextvar set by `RequestIDMiddleware` / the RPC
  router, then the sentinel "-"), so ``%(request_id)s`` never KeyErrors.
- `RedactFilter` masks sensitive attributes. Pipeline output forwarded through
  `logging_transport` carries its meta as ``record.meta``; that mapping is
  scrubbed recursively as well, because procedure inputs and headers end up
  there.

Both filters only annotate records: they always return True.

The request id lives in a `contextvars.ContextVar` so it follows the logical
request across ``await`` boundaries and into tasks created from it.
"""

import logging
from logging import LogRecord
import contextvars
from typing import Any, Mapping

_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)

REDACTED = "***REDACTED***"


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
    Guarantee `record.request_id`: explicit extra > contextvar > "-".
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    SENSITIVE = {
        "password", "secret", "token", "access_token", "refresh_token",
        "ssn", "authorization", "cookie", "api_key",
    }

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = REDACTED

        # pipeline meta forwarded by logging_transport
        meta = getattr(record, "meta", None)
        if isinstance(meta, Mapping):
            record.meta = self.scrub(meta)
        return True

    @classmethod
    def scrub(cls, value: Any) -> Any:
        """Return a copy of `value` with sensitive mapping keys masked at any depth."""
        if isinstance(value, Mapping):
            return {
                k: REDACTED if str(k).lower() in cls.SENSITIVE else cls.scrub(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [cls.scrub(v) for v in value]
        return value
