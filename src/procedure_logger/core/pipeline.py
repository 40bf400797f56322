# src/procedure_logger/core/pipeline.py
"""
Logging pipelines: the registry of (formatter, transport) pairs and the level
router that dispatches each log call to them.

A pipeline is pinned to exactly one severity. A call made at ``"warn"`` reaches
the pipelines whose effective level is ``"warn"`` and nothing else: there is no
threshold ordering between severities, so a pipeline pinned to ``"error"``
never sees ``"info"`` calls and vice versa. A pipeline without a level adopts
the registry's ``default_level``.

Transports are fire-and-forget:
  - the router never awaits a transport; an awaitable returned by a transport
    is scheduled on the running loop, or on a background loop owned by this
    module (one daemon thread, started on first use) when no loop runs
  - a transport (or formatter) that raises is reported through this module's
    stdlib logger and the remaining pipelines still run
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Literal, Mapping, Optional

Severity = Literal["error", "warn", "info", "debug"]
SEVERITIES: tuple[Severity, ...] = ("error", "warn", "info", "debug")

Meta = Optional[Mapping[str, Any]]
Formatter = Callable[[Optional[str], str, Meta], str]
Transport = Callable[[Optional[str], str, Meta], Any]

logger = logging.getLogger(__name__)

# Strong references to detached transport tasks so they are not collected mid-flight.
_BACKGROUND_TASKS: set[asyncio.Future | Future] = set()

_background_loop: asyncio.AbstractEventLoop | None = None
_background_lock = threading.Lock()


@dataclass(frozen=True)
class LoggerPipeline:
    """One named (formatter, transport) pair bound to a severity."""

    name: str
    transport: Transport
    level: Severity | None = None
    format: Formatter | None = None


@dataclass(frozen=True)
class PipelineConfig:
    """Ordered pipeline registry plus the level used by pipelines that set none."""

    pipelines: tuple[LoggerPipeline, ...] = ()
    default_level: Severity = "info"

    def __post_init__(self) -> None:
        # accept any sequence, store an immutable tuple
        object.__setattr__(self, "pipelines", tuple(self.pipelines))

    def effective_level(self, pipeline: LoggerPipeline) -> Severity:
        return pipeline.level or self.default_level

    def select(self, level: str) -> list[LoggerPipeline]:
        """Pipelines whose effective level equals `level`, in registry order."""
        return [p for p in self.pipelines if self.effective_level(p) == level]


def default_format(level: str, name: str | None, message: str) -> str:
    return f"[{level.upper()}] [{name}] {message}"


def dispatch(config: PipelineConfig, level: str, name: str | None, message: str, meta: Meta = None) -> None:
    """
    Route one log call to every pipeline pinned to `level`.

    For each selected pipeline (registry order) the message is rendered with the
    pipeline's formatter, or the "[LEVEL] [name] message" fallback, and handed
    to the transport together with the untouched `meta`.
    """
    for pipeline in config.select(level):
        try:
            if pipeline.format is not None:
                text = pipeline.format(name, message, meta)
            else:
                text = default_format(level, name, message)
            result = pipeline.transport(name, text, meta)
        except Exception:
            logger.exception("Pipeline %r failed to handle a %s log call", pipeline.name, level)
            continue

        if inspect.isawaitable(result):
            _detach(pipeline.name, result)


def _detach(pipeline_name: str, awaitable: Awaitable[Any]) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is None:
        task = submit_background(_drain(awaitable))
    else:
        task = asyncio.ensure_future(awaitable)
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(functools.partial(_on_delivery_done, pipeline_name))


def submit_background(coro: Coroutine[Any, Any, Any]) -> Future:
    """
    Run `coro` on the module's background loop and return its
    `concurrent.futures.Future` without waiting for it.

    Used by synchronous callers that have no running loop to schedule on.
    """
    global _background_loop
    with _background_lock:
        if _background_loop is None or _background_loop.is_closed():
            _background_loop = asyncio.new_event_loop()
            threading.Thread(
                target=_background_loop.run_forever,
                name="procedure-logger-delivery",
                daemon=True,
            ).start()
        loop = _background_loop
    return asyncio.run_coroutine_threadsafe(coro, loop)


async def _drain(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _on_delivery_done(pipeline_name: str, task: asyncio.Future | Future) -> None:
    _BACKGROUND_TASKS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Pipeline %r failed to deliver a log line", pipeline_name, exc_info=exc)


class Logger:
    """
    Per call-site logging handle.

    Closes over the pipeline registry and the call-site name; every method
    routes through `dispatch` with its own severity. Handles are never mutated
    after creation, binding another name produces another handle.
    """

    __slots__ = ("name", "config")

    def __init__(self, config: PipelineConfig, name: str | None = None) -> None:
        self.name = name
        self.config = config

    def log(self, level: Severity, message: str, meta: Meta = None) -> None:
        dispatch(self.config, level, self.name, message, meta)

    def error(self, message: str, meta: Meta = None) -> None:
        dispatch(self.config, "error", self.name, message, meta)

    def warn(self, message: str, meta: Meta = None) -> None:
        dispatch(self.config, "warn", self.name, message, meta)

    def info(self, message: str, meta: Meta = None) -> None:
        dispatch(self.config, "info", self.name, message, meta)

    def debug(self, message: str, meta: Meta = None) -> None:
        dispatch(self.config, "debug", self.name, message, meta)

    def __repr__(self) -> str:
        return f"Logger(name={self.name!r}, pipelines={len(self.config.pipelines)})"


def create_logger(config: PipelineConfig, name: str | None = None) -> Logger:
    return Logger(config, name)


__all__ = [
    "Severity",
    "SEVERITIES",
    "Formatter",
    "Transport",
    "LoggerPipeline",
    "PipelineConfig",
    "default_format",
    "dispatch",
    "Logger",
    "create_logger",
]
