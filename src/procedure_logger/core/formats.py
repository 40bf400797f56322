# src/procedure_logger/core/formats.py
"""Ready-made pipeline formatters: ``(name, message, meta) -> str``."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def timestamp_format(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> str:
    return f"[{_timestamp()}] [{name}] {message}"


def json_format(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> str:
    # default=str keeps the formatter from raising on non-serializable meta values
    return json.dumps(
        {"timestamp": _timestamp(), "name": name, "message": message, "meta": meta},
        ensure_ascii=False,
        default=str,
    )


__all__ = ["timestamp_format", "json_format"]
