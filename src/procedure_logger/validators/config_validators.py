"""
Configuration validators.

Two kinds of helpers live here:

  - value normalisers used by `Settings` field validators (to_uppercase,
    to_lowercase)
  - pydantic schemas and `validate_*` functions for the pipeline,
    performance and middleware configuration shapes

Every `validate_*` function returns a `ValidationResult` instead of raising:

    result = validate_pipeline_config({"pipelines": []})
    result.is_valid      # False
    result.errors[0]     # ValidationIssue(field="pipelines", message="List should have at least 1 item ...")

Inputs may be plain mappings or the frozen config dataclasses themselves.

`create_validated_pipeline_config` is the fail-fast entry point: it runs the
comprehensive validation (schema + smoke tests of every formatter and
transport) and raises `ConfigurationError` with the full issue list.

Smoke tests call each function once with ``("test", "test message",
{"test": True})``. A transport is therefore exercised for real: configure
sinks so that a single synthetic line is harmless.
"""

from __future__ import annotations

import dataclasses
import inspect
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from ..core.pipeline import LoggerPipeline, PipelineConfig
from ..exceptions import ConfigurationError, ValidationIssue

SMOKE_TEST_ARGS = ("test", "test message", {"test": True})


def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.upper()


def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.lower()


# -----------------------
# Schemas
# -----------------------
LogLevel = Literal["error", "warn", "info", "debug"]
PositiveNumber = Annotated[float, Field(gt=0, strict=True)]
PositiveInt = Annotated[int, Field(gt=0, strict=True)]


class LoggerPipelineSchema(BaseModel):
    name: Annotated[StrictStr, Field(min_length=1)]
    level: LogLevel | None = None
    format: Callable[..., Any] | None = None
    transport: Callable[..., Any]


class PipelineConfigSchema(BaseModel):
    pipelines: Annotated[list[LoggerPipelineSchema], Field(min_length=1)]
    default_level: LogLevel | None = None


class PerformanceConfigSchema(BaseModel):
    enabled: StrictBool | None = None
    log_slow_queries: StrictBool | None = None
    slow_query_threshold: PositiveNumber | None = None
    log_memory_usage: StrictBool | None = None
    log_input_output: StrictBool | None = None


class MiddlewareConfigSchema(BaseModel):
    log_requests: StrictBool | None = None
    log_responses: StrictBool | None = None
    log_errors: StrictBool | None = None
    include_headers: StrictBool | None = None
    include_body: StrictBool | None = None
    mask_sensitive_fields: list[StrictStr] | None = None
    performance_monitoring: StrictBool | None = None
    slow_query_threshold: PositiveNumber | None = None


class RateLimitConfigSchema(BaseModel):
    window_ms: PositiveNumber
    max_requests: PositiveInt
    key_generator: Callable[..., Any] | None = None


class ErrorHandlingConfigSchema(BaseModel):
    log_all_errors: StrictBool | None = None
    log_validation_errors: StrictBool | None = None
    log_auth_errors: StrictBool | None = None
    include_stack: StrictBool | None = None


# -----------------------
# Results
# -----------------------
@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid


def _as_mapping(value: Any) -> Any:
    """Shallow conversion of config dataclasses (and their sequences) into plain data."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _as_mapping(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {k: _as_mapping(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_as_mapping(v) for v in value]
    return value


def _issues(exc: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "config",
            message=err["msg"],
            value=err.get("input"),
        )
        for err in exc.errors()
    ]


def _validate(schema: type[BaseModel], config: Any) -> ValidationResult:
    try:
        schema.model_validate(_as_mapping(config))
    except ValidationError as exc:
        return ValidationResult(is_valid=False, errors=_issues(exc))
    return ValidationResult(is_valid=True)


def validate_pipeline_config(config: Any) -> ValidationResult:
    return _validate(PipelineConfigSchema, config)


def validate_pipeline(pipeline: Any) -> ValidationResult:
    return _validate(LoggerPipelineSchema, pipeline)


def validate_performance_config(config: Any) -> ValidationResult:
    return _validate(PerformanceConfigSchema, config)


def validate_middleware_config(config: Any) -> ValidationResult:
    return _validate(MiddlewareConfigSchema, config)


def validate_rate_limit_config(config: Any) -> ValidationResult:
    return _validate(RateLimitConfigSchema, config)


def validate_error_handling_config(config: Any) -> ValidationResult:
    return _validate(ErrorHandlingConfigSchema, config)


# -----------------------
# Smoke tests
# -----------------------
def smoke_test_transport(transport: Any) -> ValidationResult:
    if not callable(transport):
        return ValidationResult(False, [ValidationIssue("transport", "Transport must be a function", transport)])
    try:
        result = transport(*SMOKE_TEST_ARGS)
    except Exception as exc:
        return ValidationResult(False, [ValidationIssue("transport", f"Transport function failed: {exc}", transport)])
    # async transports are only checked for a synchronous failure
    if inspect.iscoroutine(result):
        result.close()
    return ValidationResult(True)


def smoke_test_format(format: Any) -> ValidationResult:
    if not callable(format):
        return ValidationResult(False, [ValidationIssue("format", "Format must be a function", format)])
    try:
        result = format(*SMOKE_TEST_ARGS)
    except Exception as exc:
        return ValidationResult(False, [ValidationIssue("format", f"Format function failed: {exc}", format)])
    if not isinstance(result, str):
        return ValidationResult(False, [ValidationIssue("format", "Format function must return a string", format)])
    return ValidationResult(True)


def validate_pipeline_config_comprehensive(config: Any) -> ValidationResult:
    """
    Structural validation first; when it passes, every pipeline is validated
    on its own and its formatter/transport are smoke tested. Issues found in
    the second phase are reported as ``pipelines[i].<field>``.
    """
    basic = validate_pipeline_config(config)
    if not basic.is_valid:
        return basic

    data = _as_mapping(config)
    errors: list[ValidationIssue] = []

    for i, pipeline in enumerate(data["pipelines"]):
        checks = [validate_pipeline(pipeline)]
        if pipeline.get("transport") is not None:
            checks.append(smoke_test_transport(pipeline["transport"]))
        if pipeline.get("format") is not None:
            checks.append(smoke_test_format(pipeline["format"]))

        for check in checks:
            errors.extend(
                ValidationIssue(f"pipelines[{i}].{issue.field}", issue.message, issue.value)
                for issue in check.errors
            )

    return ValidationResult(is_valid=not errors, errors=errors)


def create_validated_pipeline_config(config: PipelineConfig | Mapping[str, Any]) -> PipelineConfig:
    """
    Validate `config` and return it as a ready `PipelineConfig`.

    Raises:
        ConfigurationError: with every issue found (structure or smoke tests).
    """
    result = validate_pipeline_config_comprehensive(config)
    if not result.is_valid:
        raise ConfigurationError(result.errors)

    if isinstance(config, PipelineConfig):
        return config

    schema = PipelineConfigSchema.model_validate(_as_mapping(config))
    pipelines = tuple(
        LoggerPipeline(name=p.name, transport=p.transport, level=p.level, format=p.format)
        for p in schema.pipelines
    )
    return PipelineConfig(pipelines=pipelines, default_level=schema.default_level or "info")


__all__ = [
    "to_uppercase",
    "to_lowercase",
    "ValidationResult",
    "validate_pipeline_config",
    "validate_pipeline",
    "validate_performance_config",
    "validate_middleware_config",
    "validate_rate_limit_config",
    "validate_error_handling_config",
    "smoke_test_transport",
    "smoke_test_format",
    "validate_pipeline_config_comprehensive",
    "create_validated_pipeline_config",
]
