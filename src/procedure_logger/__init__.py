"""
procedure-logger: level-routed logging pipelines and logging middlewares for
RPC procedure chains.

    from procedure_logger import LoggerPipeline, PipelineConfig, ProcedureBuilder, logged_procedure
    from procedure_logger.core.transports import console_transport

    config = PipelineConfig(pipelines=[LoggerPipeline(name="console", level="info", transport=console_transport)])
    procedure = logged_procedure(ProcedureBuilder(), config)
"""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .exceptions import ConfigurationError, ProcedureError, RateLimitExceededError, ValidationIssue
from .validators.config_validators import (
    ValidationResult,
    create_validated_pipeline_config,
    validate_pipeline_config,
    validate_pipeline_config_comprehensive,
)

__all__ = [
    *_core_all,
    "ConfigurationError",
    "ProcedureError",
    "RateLimitExceededError",
    "ValidationIssue",
    "ValidationResult",
    "create_validated_pipeline_config",
    "validate_pipeline_config",
    "validate_pipeline_config_comprehensive",
]
