"""
Custom exceptions for procedure execution and logging configuration.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class ValidationIssue:
    """
    One problem found while validating a configuration object.

    - field: dotted path of the offending field (e.g. "pipelines.0.name")
    - message: human-friendly description of the problem
    - value: the offending value, when one is available
    """

    field: str
    message: str
    value: Any = None

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "value": self.value}


# canonical procedure-level exception

class ProcedureError(Exception):
    """
    Base exception for errors raised while running a procedure.

    - message: human-friendly message (safe to show to clients)
    - code: canonical short code (e.g. 'UNAUTHORIZED', 'TOO_MANY_REQUESTS')
    - cause: optional underlying exception (for logs only)
    """

    # Map canonical code -> HTTP status.
    CODE_TO_STATUS = {
        "BAD_REQUEST": 400,
        "UNAUTHORIZED": 401,
        "FORBIDDEN": 403,
        "NOT_FOUND": 404,
        "TOO_MANY_REQUESTS": 429,
        "INTERNAL_SERVER_ERROR": 500,
    }

    def __init__(self, message: str, *, code: str = "INTERNAL_SERVER_ERROR",
                 cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.message} (code: {self.code})"

    def to_payload(self) -> dict:
        """
        Return a JSON-serializable dict suitable for HTTP responses.
        Standard shape:
            {
                "detail": "A human-friendly message",
                "code": "UNAUTHORIZED",
            }
        The cause is never included.
        """
        return {"detail": self.message, "code": self.code}

    def http_status(self) -> int:
        """Status for this error; unknown codes fall back to 500."""
        return self.CODE_TO_STATUS.get(self.code, 500)


class RateLimitExceededError(ProcedureError):
    """Raised by the rate-limiting middleware when a key exhausts its window."""

    def __init__(self, message: str = "Rate limit exceeded", *, key: str | None = None):
        super().__init__(message, code="TOO_MANY_REQUESTS")
        self.key = key


class ConfigurationError(ValueError):
    """
    Raised at construction time when a pipeline/performance/middleware
    configuration does not validate. Carries the structured issue list so
    callers can fix the configuration without guesswork.
    """

    def __init__(self, errors: Iterable[ValidationIssue],
                 prefix: str = "Invalid pipeline configuration"):
        self.errors = list(errors)
        rendered = json.dumps([e.to_dict() for e in self.errors], indent=2, default=repr)
        super().__init__(f"{prefix}: {rendered}")


__all__ = [
    "ValidationIssue",
    "ProcedureError",
    "RateLimitExceededError",
    "ConfigurationError",
]
