# src/procedure_logger/core/performance.py
"""
Performance monitoring for procedures.

A `PerformanceMonitor` hands out one `PerformanceMetrics` per execution:

    metrics = monitor.start("getUser", input)     # idle -> running
    ...
    monitor.end(metrics, output)                   # running -> completed

`end` logs through the monitor's logger:
  - error given          -> logger.error  (always, whatever the duration)
  - slow (over threshold) -> logger.warn   (only when log_slow_queries)
  - otherwise             -> logger.debug

A disabled monitor returns degenerate metrics from `start` and `end` does not
log at all. Metrics are single use; calling `end` twice on the same instance
is undefined and not guarded.

Memory snapshots come from psutil (rss, vms) and, when tracemalloc is
tracing, include the traced current/peak sizes. `end` replaces the start
snapshot with the current one plus a ``diff`` against the start.
"""

from __future__ import annotations

import functools
import inspect
import time
import tracemalloc
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import psutil

from .procedure import Middleware, MiddlewareOptions


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000.0


def memory_snapshot() -> dict[str, int]:
    info = psutil.Process().memory_info()
    snapshot = {"rss": info.rss, "vms": info.vms}
    if tracemalloc.is_tracing():
        current, peak = tracemalloc.get_traced_memory()
        snapshot["traced_current"] = current
        snapshot["traced_peak"] = peak
    return snapshot


def format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


@dataclass(frozen=True)
class PerformanceConfig:
    enabled: bool = True
    log_slow_queries: bool = True
    slow_query_threshold: float = 1000  # milliseconds
    log_memory_usage: bool = False
    log_input_output: bool = False


@dataclass
class PerformanceMetrics:
    procedure_name: str
    start_time: float
    end_time: float | None = None
    duration: float | None = None
    memory_usage: dict[str, Any] | None = None
    input: Any = None
    output: Any = None
    error: BaseException | None = None


class PerformanceMonitor:
    def __init__(self, logger: Any, config: PerformanceConfig | None = None, *,
                 clock: Callable[[], float] = now_ms):
        self.logger = logger
        self.config = config or PerformanceConfig()
        self._clock = clock

    def start(self, procedure_name: str, input: Any = None) -> PerformanceMetrics:
        """Start monitoring one procedure execution."""
        if not self.config.enabled:
            return PerformanceMetrics(procedure_name=procedure_name, start_time=0)

        metrics = PerformanceMetrics(
            procedure_name=procedure_name,
            start_time=self._clock(),
            input=input if self.config.log_input_output else None,
        )
        if self.config.log_memory_usage:
            metrics.memory_usage = memory_snapshot()
        return metrics

    def end(self, metrics: PerformanceMetrics, output: Any = None, error: BaseException | None = None) -> None:
        """Complete `metrics` and log the outcome."""
        if not self.config.enabled:
            return

        metrics.end_time = self._clock()
        metrics.duration = metrics.end_time - metrics.start_time
        metrics.output = output if self.config.log_input_output else None
        metrics.error = error

        if self.config.log_memory_usage:
            current = memory_snapshot()
            started = metrics.memory_usage or {}
            diff = {key: value - started.get(key, 0) for key, value in current.items()}
            metrics.memory_usage = {**current, "diff": diff}

        self._log_performance(metrics)

    def _log_performance(self, metrics: PerformanceMetrics) -> None:
        name = metrics.procedure_name

        if metrics.error is not None:
            self.logger.error(f"Procedure {name} failed", {
                "duration": metrics.duration,
                "error": str(metrics.error),
                "stack": format_stack(metrics.error),
                "input": metrics.input,
                "memory_usage": metrics.memory_usage,
            })
            return

        log = self.logger.warn if self._is_slow(metrics.duration or 0) else self.logger.debug
        log(f"Procedure {name} completed", {
            "duration": metrics.duration,
            "input": metrics.input,
            "output": metrics.output,
            "memory_usage": metrics.memory_usage,
        })

    def _is_slow(self, duration: float) -> bool:
        return self.config.log_slow_queries and duration > self.config.slow_query_threshold

    def wrap(self, procedure_name: str, fn: Callable) -> Callable:
        """
        Wrap `fn` so every call is measured.

        Works for plain functions, coroutine functions and functions returning
        awaitables. The input is read from the first positional argument
        (its ``input`` attribute or key) the way procedure resolvers receive it.
        Errors are recorded and re-raised unchanged.
        """
        if not self.config.enabled:
            return fn

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                metrics = self.start(procedure_name, _input_of(args))
                try:
                    output = await fn(*args, **kwargs)
                except Exception as exc:
                    self.end(metrics, error=exc)
                    raise
                self.end(metrics, output)
                return output

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            metrics = self.start(procedure_name, _input_of(args))
            try:
                result = fn(*args, **kwargs)
            except Exception as exc:
                self.end(metrics, error=exc)
                raise
            if inspect.isawaitable(result):
                return self._finish_later(metrics, result)
            self.end(metrics, result)
            return result

        return wrapper

    async def _finish_later(self, metrics: PerformanceMetrics, awaitable: Any) -> Any:
        try:
            output = await awaitable
        except Exception as exc:
            self.end(metrics, error=exc)
            raise
        self.end(metrics, output)
        return output


def _input_of(args: tuple) -> Any:
    if not args:
        return None
    first = args[0]
    if isinstance(first, Mapping):
        return first.get("input")
    return getattr(first, "input", None)


def create_performance_monitor(logger: Any, config: PerformanceConfig | None = None) -> PerformanceMonitor:
    return PerformanceMonitor(logger, config)


def performance_middleware(logger: Any, config: PerformanceConfig | None = None) -> Middleware:
    """Middleware measuring the downstream chain with an explicitly supplied logger."""
    monitor = PerformanceMonitor(logger, config)

    async def measure(opts: MiddlewareOptions) -> Any:
        metrics = monitor.start(opts.path or "unknown", opts.input)
        try:
            result = await opts.next()
        except Exception as exc:
            monitor.end(metrics, error=exc)
            raise
        monitor.end(metrics, result)
        return result

    return measure


__all__ = [
    "PerformanceConfig",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "create_performance_monitor",
    "performance_middleware",
    "memory_snapshot",
    "format_stack",
    "now_ms",
]
