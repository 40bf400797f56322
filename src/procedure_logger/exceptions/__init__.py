# procedure_logger/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   └── base.py                    # ProcedureError, RateLimitExceededError, ConfigurationError

from .base import (
    ConfigurationError,
    ProcedureError,
    RateLimitExceededError,
    ValidationIssue,
)

__all__ = [
    "ConfigurationError",
    "ProcedureError",
    "RateLimitExceededError",
    "ValidationIssue",
]
