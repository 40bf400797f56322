# src/procedure_logger/core/logging/builder.py
"""
Logging builder: build and apply a dictConfig configuration from Settings, and
build the default pipeline registry that routes procedure loggers into it.

 - make_dict_config(settings): pure, returns the dictConfig mapping
 - setup_logging(settings): creates LOG_DIR when needed and applies the mapping
 - default_pipeline_config(settings): one `logging_transport` pipeline per
   severity, so `Logger.error/warn/info/debug` land on the matching stdlib
   level of the "procedure_logger.pipelines" logger (or `logger_name`)
 - default_comprehensive_middleware(settings): the full middleware stack with
   slow-query and rate-limit limits taken from settings

Settings used: LOG_TO_STDOUT, LOG_DIR, LOG_FORMAT, LOG_LEVEL, ENV,
LOG_MAX_BYTES, LOG_BACKUP_COUNT, PIPELINE_DEFAULT_LEVEL, SLOW_QUERY_THRESHOLD_MS,
RATE_LIMIT_WINDOW_MS, RATE_LIMIT_MAX_REQUESTS.
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config
from procedure_logger.utils.logging import get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

# Settings type only; get_settings() is not called at import time.
from procedure_logger.config.settings import Settings
from procedure_logger.core.middleware import (
    ErrorHandlingConfig,
    MiddlewareConfig,
    PerformanceMiddlewareConfig,
    RateLimitConfig,
    create_comprehensive_middleware,
)
from procedure_logger.core.pipeline import LoggerPipeline, PipelineConfig
from procedure_logger.core.procedure import Middleware
from procedure_logger.core.transports import logging_transport

PIPELINE_LOGGER_NAME = "procedure_logger.pipelines"

# pipeline severity -> stdlib level
SEVERITY_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


# -----------------------
# dictConfig builder
# -----------------------
def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping using the provided settings.

    The returned mapping includes:
      - formatters: "standard" (color in text mode) and "json"
      - filters: "request_id", "redact"
      - handlers: console plus file/error_file, or error_console when LOG_TO_STDOUT
      - loggers: root, the pipeline logger, uvicorn.error, uvicorn.access
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name(default="procedure-logger"),
        },
    }

    filters = {
        "request_id": {"()": RequestIdFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}

    if (not settings.LOG_TO_STDOUT) and (settings.LOG_DIR):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            # Pipeline output is filtered by pipeline severity already; let every
            # routed record through and leave thresholds to the handlers.
            PIPELINE_LOGGER_NAME: {
                "level": "DEBUG",
                "propagate": True,
            },
            "uvicorn.error": {
                "level": settings.LOG_LEVEL,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings) -> None:
    """
    Initialize logging from settings.

      1. Ensure LOG_DIR exists when writing files.
      2. Apply dictConfig(make_dict_config(settings)).
      3. Attach a RequestIdFilter to the root logger so ``%(request_id)s`` is
         always resolvable, even for handlers added later (pytest's caplog).
    """
    if (not settings.LOG_TO_STDOUT) and (settings.LOG_DIR):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))
    logging.getLogger().addFilter(RequestIdFilter())


def default_pipeline_config(settings: Settings, logger_name: str = PIPELINE_LOGGER_NAME) -> PipelineConfig:
    """
    Registry with one stdlib-backed pipeline per severity.

    Pipelines carry no formatter: the fallback ``[LEVEL] [name] message`` line
    becomes the record message, while name and meta travel as extras.
    """
    target = logging.getLogger(logger_name)
    pipelines = tuple(
        LoggerPipeline(name=f"stdlib-{severity}", level=severity, transport=logging_transport(target, level))
        for severity, level in SEVERITY_LEVELS.items()
    )
    return PipelineConfig(pipelines=pipelines, default_level=settings.PIPELINE_DEFAULT_LEVEL)


def default_comprehensive_middleware(settings: Settings) -> Middleware:
    """
    Every middleware enabled, in the fixed comprehensive order.

    Slow-query warnings (request logging and performance stages) use
    SLOW_QUERY_THRESHOLD_MS; rate limiting uses RATE_LIMIT_WINDOW_MS and
    RATE_LIMIT_MAX_REQUESTS.
    """
    threshold = settings.SLOW_QUERY_THRESHOLD_MS
    return create_comprehensive_middleware(
        request_logging=MiddlewareConfig(performance_monitoring=True, slow_query_threshold=threshold),
        error_handling=ErrorHandlingConfig(),
        rate_limiting=RateLimitConfig(
            window_ms=settings.RATE_LIMIT_WINDOW_MS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        ),
        performance=PerformanceMiddlewareConfig(slow_query_threshold=threshold),
        auth_logging=True,
    )
