# src/procedure_logger/core/middleware.py
"""
Procedure middlewares that log through the pipeline logger found in the context.

Every factory returns an async interceptor ``(opts: MiddlewareOptions) -> result``.
All of them read ``opts.ctx["logger"]`` (put there by ``.with_logger()``) and,
when no logger is present, go straight to ``opts.next()``: attaching these
middlewares to a procedure without logging configured is always safe.

None of them swallow errors: whatever the downstream chain raises is logged
and re-raised as the same instance.

Composition
-----------
`combine_middlewares(a, b, c)` folds the list into one interceptor where `a`
is the outermost stage and `c` the innermost; `c`'s `next` is the chain's
original `next`. `create_comprehensive_middleware` assembles the enabled
subset in a fixed order: request logging, error handling, rate limiting, performance,
auth logging.

Rate limiting
-------------
The counter table is owned by one middleware instance and lives in process
memory. Every call sweeps expired windows first (linear in the table size),
then opens or increments the caller's window. Concurrent requests can
interleave around the sweep/increment, so counts near a window boundary are
best-effort: good for throttling, not for hard quotas.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel, ValidationError

from ..exceptions import ProcedureError, RateLimitExceededError
from .performance import format_stack, memory_snapshot, now_ms
from .procedure import Middleware, MiddlewareOptions

logger = logging.getLogger(__name__)

MASK = "[MASKED]"

_MISSING: Any = object()


# -----------------------
# Configuration
# -----------------------
@dataclass(frozen=True)
class MiddlewareConfig:
    log_requests: bool = True
    log_responses: bool = True
    log_errors: bool = True
    include_headers: bool = False
    include_body: bool = True
    mask_sensitive_fields: tuple[str, ...] = ("password", "token", "secret", "key")
    performance_monitoring: bool = False
    slow_query_threshold: float = 1000


@dataclass(frozen=True)
class ErrorHandlingConfig:
    log_all_errors: bool = True
    log_validation_errors: bool = True
    log_auth_errors: bool = True
    include_stack: bool = False


@dataclass(frozen=True)
class RateLimitConfig:
    window_ms: float
    max_requests: int
    key_generator: Callable[[MiddlewareOptions], str] | None = None


@dataclass(frozen=True)
class PerformanceMiddlewareConfig:
    enabled: bool = True
    log_slow_queries: bool = True
    slow_query_threshold: float = 1000
    log_memory_usage: bool = False


@dataclass
class RateLimitWindow:
    count: int
    reset_time: float


# -----------------------
# Helpers
# -----------------------
def mask_sensitive_data(data: Any, sensitive_fields: Iterable[str]) -> Any:
    """
    Return a copy of `data` with sensitive top-level keys replaced by "[MASKED]".

    Mappings (and pydantic models, as dicts) are masked key by key, lists and
    tuples element-wise (keeping their type); anything else is returned
    unchanged. The input is never modified.
    """
    fields = tuple(sensitive_fields)
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if isinstance(data, list):
        return [mask_sensitive_data(item, fields) for item in data]
    if isinstance(data, tuple):
        return tuple(mask_sensitive_data(item, fields) for item in data)
    if not isinstance(data, Mapping):
        return data

    masked = dict(data)
    for field in fields:
        if field in masked:
            masked[field] = MASK
    return masked


def _logger_of(opts: MiddlewareOptions) -> Any:
    return opts.ctx.get("logger") if opts.ctx else None


def _is_validation_error(error: BaseException) -> bool:
    return isinstance(error, ValidationError)


def _is_auth_error(error: BaseException) -> bool:
    return isinstance(error, ProcedureError) and error.code == "UNAUTHORIZED"


def default_rate_limit_key(opts: MiddlewareOptions) -> str:
    ctx = opts.ctx or {}
    return ctx.get("user_id") or ctx.get("request_id") or "anonymous"


# -----------------------
# Factories
# -----------------------
def create_logging_middleware(config: MiddlewareConfig | None = None, *,
                              clock: Callable[[], float] = now_ms) -> Middleware:
    """Request/response/error logging for every call."""
    config = config or MiddlewareConfig()

    async def logging_middleware(opts: MiddlewareOptions) -> Any:
        log = _logger_of(opts)
        if not log:
            return await opts.next()

        started = clock()
        method = opts.type or "unknown"
        path = opts.path or "unknown"

        if config.log_requests:
            data: dict[str, Any] = {
                "method": method,
                "path": path,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            req = opts.ctx.get("req")
            headers = getattr(req, "headers", None)
            if config.include_headers and headers:
                data["headers"] = mask_sensitive_data(dict(headers), config.mask_sensitive_fields)
            if config.include_body and opts.input:
                data["body"] = mask_sensitive_data(opts.input, config.mask_sensitive_fields)
            log.info("Request started", data)

        try:
            result = await opts.next()
        except Exception as exc:
            if config.log_errors:
                log.error("Request failed", {
                    "method": method,
                    "path": path,
                    "duration": clock() - started,
                    "error": str(exc),
                    "stack": format_stack(exc),
                    "status_code": 500,
                })
            raise

        duration = clock() - started
        if config.log_responses:
            data = {"method": method, "path": path, "duration": duration, "status_code": 200}
            if config.include_body:
                data["response"] = result
            if config.performance_monitoring and duration > config.slow_query_threshold:
                log.warn("Slow query detected", data)
            else:
                log.info("Request completed", data)

        return result

    return logging_middleware


def create_error_handling_middleware(config: ErrorHandlingConfig | None = None) -> Middleware:
    """
    Log procedure errors by category, then re-raise them.

    Validation errors (pydantic) and authorization errors (ProcedureError with
    code "UNAUTHORIZED") can be silenced independently of everything else.
    """
    config = config or ErrorHandlingConfig()

    async def error_handling_middleware(opts: MiddlewareOptions) -> Any:
        log = _logger_of(opts)
        if not log:
            return await opts.next()

        try:
            return await opts.next()
        except Exception as exc:
            should_log = config.log_all_errors
            if _is_validation_error(exc) and not config.log_validation_errors:
                should_log = False
            if _is_auth_error(exc) and not config.log_auth_errors:
                should_log = False

            if should_log:
                data = {
                    "error": str(exc),
                    "type": type(exc).__name__,
                    "path": opts.path,
                    "method": opts.type,
                }
                if config.include_stack:
                    data["stack"] = format_stack(exc)
                log.error("Procedure error", data)
            raise

    return error_handling_middleware


def create_rate_limiting_middleware(config: RateLimitConfig, *, clock: Callable[[], float] = now_ms) -> Middleware:
    """Fixed-window rate limiting per key; the table belongs to this middleware only."""
    requests: dict[str, RateLimitWindow] = {}
    key_generator = config.key_generator or default_rate_limit_key

    async def rate_limiting_middleware(opts: MiddlewareOptions) -> Any:
        log = _logger_of(opts)
        if not log:
            return await opts.next()

        key = key_generator(opts)
        now = clock()

        for stale in [k for k, window in requests.items() if now > window.reset_time]:
            del requests[stale]

        current = requests.get(key)
        if current is None or now > current.reset_time:
            requests[key] = RateLimitWindow(count=1, reset_time=now + config.window_ms)
        else:
            current.count += 1
            if current.count > config.max_requests:
                log.warn("Rate limit exceeded", {
                    "key": key,
                    "count": current.count,
                    "max_requests": config.max_requests,
                    "path": opts.path,
                })
                raise RateLimitExceededError(key=key)

        return await opts.next()

    # exposed for inspection in tests and diagnostics
    rate_limiting_middleware.requests = requests  # type: ignore[attr-defined]
    return rate_limiting_middleware


def create_auth_logging_middleware() -> Middleware:
    async def auth_logging_middleware(opts: MiddlewareOptions) -> Any:
        log = _logger_of(opts)
        if not log:
            return await opts.next()

        user_id = opts.ctx.get("user_id")
        if user_id:
            log.debug("Authenticated request", {"user_id": user_id, "path": opts.path, "method": opts.type})
        else:
            log.warn("Unauthenticated request", {"path": opts.path, "method": opts.type})

        return await opts.next()

    return auth_logging_middleware


def create_performance_middleware(config: PerformanceMiddlewareConfig | None = None, *,
                                  clock: Callable[[], float] = now_ms) -> Middleware:
    config = config or PerformanceMiddlewareConfig()

    async def performance_middleware(opts: MiddlewareOptions) -> Any:
        log = _logger_of(opts)
        if not log or not config.enabled:
            return await opts.next()

        started = clock()
        procedure = opts.path or "unknown"
        memory_usage = memory_snapshot() if config.log_memory_usage else None

        try:
            result = await opts.next()
        except Exception as exc:
            log.error("Procedure failed", {
                "procedure": procedure,
                "duration": clock() - started,
                "error": str(exc),
                "input": opts.input,
                "memory_usage": memory_usage,
            })
            raise

        duration = clock() - started
        if config.log_slow_queries and duration > config.slow_query_threshold:
            log.warn("Slow query detected", {
                "procedure": procedure,
                "duration": duration,
                "input": opts.input,
                "memory_usage": memory_usage,
            })
        else:
            log.debug("Procedure completed", {
                "procedure": procedure,
                "duration": duration,
                "memory_usage": memory_usage,
            })
        return result

    return performance_middleware


# -----------------------
# Composition
# -----------------------
def combine_middlewares(*middlewares: Middleware) -> Middleware:
    """
    Fold `middlewares` into a single interceptor, first argument outermost.

    Every stage's ``next`` accepts the same ``ctx``/``input`` overrides as the
    procedure's own ``next``. Context overrides are merged for every stage
    below and for the terminal ``next``; an input override replaces
    ``opts.input`` downstream and is forwarded to the terminal ``next``.
    """
    chain = tuple(middlewares)

    async def combined(opts: MiddlewareOptions) -> Any:
        async def run(index: int, stage_opts: MiddlewareOptions, new_input: Any = _MISSING) -> Any:
            if index == len(chain):
                ctx = _ctx_delta(opts.ctx, stage_opts.ctx)
                if new_input is _MISSING:
                    return await opts.next(ctx=ctx)
                return await opts.next(ctx=ctx, input=new_input)

            async def next_(ctx: Mapping[str, Any] | None = None, input: Any = _MISSING) -> Any:
                merged = {**stage_opts.ctx, **ctx} if ctx else stage_opts.ctx
                if input is _MISSING:
                    return await run(index + 1, replace(stage_opts, ctx=merged), new_input)
                return await run(index + 1, replace(stage_opts, ctx=merged, input=input), input)

            return await chain[index](replace(stage_opts, next=next_))

        return await run(0, opts)

    return combined


def _ctx_delta(original: Mapping[str, Any], current: Mapping[str, Any]) -> dict[str, Any] | None:
    delta = {k: v for k, v in current.items() if k not in original or original[k] is not v}
    return delta or None


def create_comprehensive_middleware(
    *,
    request_logging: MiddlewareConfig | None = None,
    error_handling: ErrorHandlingConfig | None = None,
    rate_limiting: RateLimitConfig | None = None,
    performance: PerformanceMiddlewareConfig | None = None,
    auth_logging: bool = False,
) -> Middleware:
    """
    All enabled middlewares combined in a fixed order:
    request logging, error handling, rate limiting, performance, auth logging.
    A feature is enabled by passing its config (or True for auth logging).
    """
    middlewares: list[Middleware] = []
    if request_logging is not None:
        middlewares.append(create_logging_middleware(request_logging))
    if error_handling is not None:
        middlewares.append(create_error_handling_middleware(error_handling))
    if rate_limiting is not None:
        middlewares.append(create_rate_limiting_middleware(rate_limiting))
    if performance is not None:
        middlewares.append(create_performance_middleware(performance))
    if auth_logging:
        middlewares.append(create_auth_logging_middleware())

    logger.debug("Comprehensive middleware assembled with %d stage(s)", len(middlewares))
    return combine_middlewares(*middlewares)


__all__ = [
    "MiddlewareConfig",
    "ErrorHandlingConfig",
    "RateLimitConfig",
    "PerformanceMiddlewareConfig",
    "RateLimitWindow",
    "mask_sensitive_data",
    "default_rate_limit_key",
    "create_logging_middleware",
    "create_error_handling_middleware",
    "create_rate_limiting_middleware",
    "create_auth_logging_middleware",
    "create_performance_middleware",
    "combine_middlewares",
    "create_comprehensive_middleware",
]
