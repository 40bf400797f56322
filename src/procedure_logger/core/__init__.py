# src/procedure_logger/core/
# ├─ pipeline.py           # LoggerPipeline, PipelineConfig, dispatch (level router), Logger
# ├─ procedure.py          # ProcedureBuilder / Procedure: the RPC chain being logged
# ├─ logged_procedure.py   # logged_procedure(), extend_procedure(), .with_logger()
# ├─ performance.py        # PerformanceMonitor, performance_middleware
# ├─ middleware.py         # middleware factories + combine_middlewares
# ├─ formats.py            # ready-made formatters
# ├─ transports.py         # ready-made transports (sinks)
# └─ logging/              # stdlib logging setup for the library itself

from .pipeline import (
    SEVERITIES,
    Logger,
    LoggerPipeline,
    PipelineConfig,
    Severity,
    create_logger,
    dispatch,
)
from .procedure import MiddlewareOptions, Procedure, ProcedureBuilder, ResolverOptions
from .logged_procedure import LoggedProcedureBuilder, extend_procedure, logged_procedure
from .performance import (
    PerformanceConfig,
    PerformanceMetrics,
    PerformanceMonitor,
    create_performance_monitor,
    performance_middleware,
)
from .middleware import (
    ErrorHandlingConfig,
    MiddlewareConfig,
    PerformanceMiddlewareConfig,
    RateLimitConfig,
    combine_middlewares,
    create_auth_logging_middleware,
    create_comprehensive_middleware,
    create_error_handling_middleware,
    create_logging_middleware,
    create_performance_middleware,
    create_rate_limiting_middleware,
    mask_sensitive_data,
)

__all__ = [
    "SEVERITIES",
    "Severity",
    "Logger",
    "LoggerPipeline",
    "PipelineConfig",
    "create_logger",
    "dispatch",
    "MiddlewareOptions",
    "Procedure",
    "ProcedureBuilder",
    "ResolverOptions",
    "LoggedProcedureBuilder",
    "logged_procedure",
    "extend_procedure",
    "PerformanceConfig",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "create_performance_monitor",
    "performance_middleware",
    "MiddlewareConfig",
    "ErrorHandlingConfig",
    "RateLimitConfig",
    "PerformanceMiddlewareConfig",
    "combine_middlewares",
    "create_auth_logging_middleware",
    "create_comprehensive_middleware",
    "create_error_handling_middleware",
    "create_logging_middleware",
    "create_performance_middleware",
    "create_rate_limiting_middleware",
    "mask_sensitive_data",
]
