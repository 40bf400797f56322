# src/procedure_logger/core/transports.py
"""
Pipeline transports (sinks): ``(name, message, meta) -> None``.

Each factory closes over its own configuration (file path, URL, client
handle...) and returns a plain callable, so any function with the same
signature can stand in for one of these.

Contract shared by every transport here:
  - fire-and-forget: the caller never waits for delivery to an external system
    (network sends run on a detached task)
  - delivery failures stay inside the transport: they are reported through
    this module's stdlib logger and never raised to the caller

Third-party clients (Sentry, CloudWatch, Elasticsearch, Redis) are duck-typed:
pass an already configured client object, nothing is imported here.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import time
from concurrent.futures import Future
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

import httpx

from .pipeline import submit_background

logger = logging.getLogger(__name__)

Transport = Callable[[str | None, str, Mapping[str, Any] | None], None]

# Strong references to in-flight HTTP sends.
_PENDING_SENDS: set[asyncio.Future | Future] = set()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _entry(name: str | None, message: str, meta: Mapping[str, Any] | None) -> dict:
    return {"timestamp": _timestamp(), "procedure": name, "message": message, "meta": meta}


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _on_send_done(url: str, task: asyncio.Future | Future) -> None:
    _PENDING_SENDS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("HTTP transport error for %s", url, exc_info=exc)


# -----------------------
# Local transports
# -----------------------
def console_transport(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
    if meta is None:
        print(message)
    else:
        print(message, dict(meta))


def json_transport(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
    print(_dumps({"timestamp": _timestamp(), "name": name, "message": message, "meta": meta}))


def file_transport(filename: str | Path) -> Transport:
    """Append each formatted line to `filename` (created on first write)."""
    path = Path(filename)

    def write_line(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        try:
            with path.open("a", encoding="utf-8") as fh:
                fh.write(message + "\n")
        except OSError:
            logger.exception("File transport error for %s", path)

    return write_line


def logging_transport(target: logging.Logger, level: int = logging.INFO) -> Transport:
    """
    Forward pipeline output to a stdlib logger.

    The call-site name and meta travel as record extras (``procedure`` and
    ``meta``), so the JsonFormatter emits them as fields and the
    RedactFilter / RequestIdFilter configured by `setup_logging` apply.
    """

    def emit(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        target.log(level, message, extra={"procedure": name, "meta": dict(meta) if meta else None})

    return emit


# -----------------------
# Network / third-party transports
# -----------------------
def http_transport(
    url: str,
    *,
    method: str = "POST",
    headers: Mapping[str, str] | None = None,
    timeout: float = 5.0,
) -> Transport:
    """
    POST a JSON body ``{timestamp, procedure, message, meta}`` to `url`.

    The request is sent from a detached task: on the running event loop when
    there is one, otherwise on the pipeline module's background loop. The
    caller never waits for it. Non-2xx responses and send failures are logged,
    never raised.
    """
    request_headers = {"Content-Type": "application/json", **(headers or {})}

    async def send_async(payload: dict) -> None:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(method, url, json=payload, headers=request_headers)
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("HTTP transport error for %s", url)

    def send(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        payload = _entry(name, message, meta)
        # round-trip through json so non-serializable meta values become strings
        payload = json.loads(_dumps(payload))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            task = submit_background(send_async(payload))
        else:
            task = loop.create_task(send_async(payload))
        _PENDING_SENDS.add(task)
        task.add_done_callback(functools.partial(_on_send_done, url))

    return send


def sentry_transport(sentry: Any) -> Transport:
    """`sentry` is the sentry_sdk module (or anything exposing ``capture_message``)."""

    def capture(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        try:
            sentry.capture_message(message, level="info", tags={"procedure": name}, extras=dict(meta or {}))
        except Exception:
            logger.exception("Sentry transport error")

    return capture


def cloudwatch_transport(client: Any, log_group_name: str, log_stream_name: str) -> Transport:
    """`client` is a boto3 ``logs`` client; one PutLogEvents call per line."""

    def put(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        try:
            client.put_log_events(
                logGroupName=log_group_name,
                logStreamName=log_stream_name,
                logEvents=[{
                    "timestamp": int(time.time() * 1000),
                    "message": _dumps({"procedure": name, "message": message, "meta": meta}),
                }],
            )
        except Exception:
            logger.exception("CloudWatch transport error")

    return put


def elasticsearch_transport(client: Any, index: str) -> Transport:
    def index_document(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        try:
            client.index(index=index, document=_entry(name, message, meta))
        except Exception:
            logger.exception("Elasticsearch transport error")

    return index_document


def redis_transport(client: Any, key: str, ttl: int | None = None) -> Transport:
    """LPUSH each entry as JSON onto `key`; refresh the key's TTL when `ttl` is set."""

    def push(name: str | None, message: str, meta: Mapping[str, Any] | None = None) -> None:
        try:
            client.lpush(key, _dumps(_entry(name, message, meta)))
            if ttl:
                client.expire(key, ttl)
        except Exception:
            logger.exception("Redis transport error")

    return push


__all__ = [
    "console_transport",
    "json_transport",
    "file_transport",
    "logging_transport",
    "http_transport",
    "sentry_transport",
    "cloudwatch_transport",
    "elasticsearch_transport",
    "redis_transport",
]
