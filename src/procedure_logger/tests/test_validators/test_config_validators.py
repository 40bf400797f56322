# src/procedure_logger/tests/test_validators/test_config_validators.py
import pytest

from procedure_logger.core.formats import timestamp_format
from procedure_logger.core.middleware import MiddlewareConfig, RateLimitConfig
from procedure_logger.core.pipeline import LoggerPipeline, PipelineConfig, create_logger
from procedure_logger.exceptions import ConfigurationError
from procedure_logger.tests.test_fixtures.doubles import RecordingTransport
from procedure_logger.validators.config_validators import (
    create_validated_pipeline_config,
    smoke_test_format,
    smoke_test_transport,
    to_lowercase,
    to_uppercase,
    validate_error_handling_config,
    validate_middleware_config,
    validate_performance_config,
    validate_pipeline,
    validate_pipeline_config,
    validate_pipeline_config_comprehensive,
    validate_rate_limit_config,
)


def noop_transport(name, message, meta=None):
    return None


def broken_transport(name, message, meta=None):
    raise RuntimeError("sink down")


def test_case_normalisers():
    assert to_uppercase("info") == "INFO"
    assert to_lowercase("JSON") == "json"
    assert to_uppercase(None) is None
    assert to_lowercase(None) is None


class TestPipelineConfig:
    def test_valid_mapping(self):
        result = validate_pipeline_config({
            "pipelines": [{"name": "console", "level": "info", "transport": noop_transport}],
            "default_level": "warn",
        })
        assert result.is_valid
        assert result.errors == []

    def test_valid_dataclass(self):
        config = PipelineConfig(pipelines=[LoggerPipeline("console", noop_transport, level="debug")])
        assert validate_pipeline_config(config).is_valid

    def test_empty_pipelines_rejected(self):
        result = validate_pipeline_config({"pipelines": []})
        assert not result
        assert [issue.field for issue in result.errors] == ["pipelines"]

    def test_unknown_level_rejected(self):
        result = validate_pipeline_config({"pipelines": [{"name": "x", "level": "verbose", "transport": noop_transport}]})
        assert [issue.field for issue in result.errors] == ["pipelines.0.level"]
        assert result.errors[0].value == "verbose"

    def test_missing_name_and_transport(self):
        result = validate_pipeline_config({"pipelines": [{"name": ""}]})
        fields = {issue.field for issue in result.errors}
        assert fields == {"pipelines.0.name", "pipelines.0.transport"}

    def test_non_callable_transport(self):
        result = validate_pipeline({"name": "x", "transport": "console"})
        assert [issue.field for issue in result.errors] == ["transport"]

    def test_not_a_mapping(self):
        result = validate_pipeline_config(None)
        assert not result.is_valid
        assert result.errors[0].field == "config"


class TestOtherConfigs:
    def test_performance(self):
        assert validate_performance_config({"enabled": True, "slow_query_threshold": 250}).is_valid
        result = validate_performance_config({"slow_query_threshold": 0})
        assert [issue.field for issue in result.errors] == ["slow_query_threshold"]

    def test_performance_rejects_non_boolean_flags(self):
        result = validate_performance_config({"enabled": "yes"})
        assert [issue.field for issue in result.errors] == ["enabled"]

    def test_middleware(self):
        assert validate_middleware_config(MiddlewareConfig()).is_valid
        result = validate_middleware_config({"mask_sensitive_fields": ["password", 3]})
        assert [issue.field for issue in result.errors] == ["mask_sensitive_fields.1"]

    def test_rate_limit(self):
        assert validate_rate_limit_config(RateLimitConfig(window_ms=1000, max_requests=5)).is_valid
        result = validate_rate_limit_config({"window_ms": -1, "max_requests": 0})
        assert {issue.field for issue in result.errors} == {"window_ms", "max_requests"}

    def test_rate_limit_requires_window_and_max(self):
        result = validate_rate_limit_config({})
        assert {issue.field for issue in result.errors} == {"window_ms", "max_requests"}

    def test_error_handling(self):
        assert validate_error_handling_config({"include_stack": True}).is_valid
        assert not validate_error_handling_config({"include_stack": 1}).is_valid


class TestSmokeTests:
    def test_transport_called_with_synthetic_arguments(self):
        sink = RecordingTransport()
        assert smoke_test_transport(sink).is_valid
        assert sink.calls == [("test", "test message", {"test": True})]

    def test_transport_must_be_callable(self):
        result = smoke_test_transport("console")
        assert result.errors[0].message == "Transport must be a function"

    def test_failing_transport(self):
        result = smoke_test_transport(broken_transport)
        assert result.errors[0].field == "transport"
        assert result.errors[0].message == "Transport function failed: sink down"

    def test_async_transport_is_not_awaited(self):
        async def async_sink(name, message, meta=None):
            raise AssertionError("must not run")

        assert smoke_test_transport(async_sink).is_valid

    def test_format_must_return_string(self):
        assert smoke_test_format(timestamp_format).is_valid
        result = smoke_test_format(lambda name, message, meta: {"message": message})
        assert result.errors[0].message == "Format function must return a string"

    def test_format_must_be_callable(self):
        assert smoke_test_format(42).errors[0].message == "Format must be a function"


class TestComprehensive:
    def test_structural_errors_short_circuit(self):
        result = validate_pipeline_config_comprehensive({"pipelines": []})
        assert [issue.field for issue in result.errors] == ["pipelines"]

    def test_smoke_test_failures_are_indexed(self):
        def bad_format(name, message, meta):
            raise ValueError("nope")

        result = validate_pipeline_config_comprehensive({
            "pipelines": [
                {"name": "ok", "transport": noop_transport},
                {"name": "broken", "transport": broken_transport, "format": bad_format},
            ]
        })

        assert not result.is_valid
        assert [issue.field for issue in result.errors] == ["pipelines[1].transport", "pipelines[1].format"]


class TestCreateValidatedPipelineConfig:
    def test_raises_configuration_error_with_issues(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_validated_pipeline_config({"pipelines": [{"name": "x", "transport": broken_transport}]})

        assert str(exc_info.value).startswith("Invalid pipeline configuration: ")
        assert [issue.field for issue in exc_info.value.errors] == ["pipelines[0].transport"]
        assert isinstance(exc_info.value, ValueError)

    def test_validated_mapping_builds_a_working_logger(self):
        sink = RecordingTransport()
        config = create_validated_pipeline_config({
            "pipelines": [{"name": "console", "transport": sink, "format": timestamp_format}],
            "default_level": "warn",
        })

        assert isinstance(config, PipelineConfig)
        assert config.default_level == "warn"

        sink.calls.clear()  # drop the smoke-test call
        create_logger(config, "getUser").warn("slow")

        assert len(sink.calls) == 1
        assert sink.calls[0][1].endswith("[getUser] slow")

    def test_default_level_falls_back_to_info(self):
        config = create_validated_pipeline_config({"pipelines": [{"name": "p", "transport": noop_transport}]})
        assert config.default_level == "info"

    def test_existing_config_returned_as_is(self):
        config = PipelineConfig(pipelines=[LoggerPipeline("p", noop_transport)])
        assert create_validated_pipeline_config(config) is config
