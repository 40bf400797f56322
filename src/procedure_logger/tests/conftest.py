"""
Core pytest configuration for the entire test suite.

Shared fixtures:
  - configure_logging (session, autouse): installs the application's dictConfig
    so formatters/filters behave in tests exactly as in the app
  - recording_transport / recording_config: pipelines whose transports record
    every call, for asserting routing without real sinks
  - recording_logger: a Logger stand-in for middleware and monitor tests
  - fake_clock: a manual millisecond clock for duration / window tests

Domain-specific fixtures stay in the test modules that use them.
"""

from __future__ import annotations

import logging

# Keep third-party loggers quiet during collection (before importing app modules).
NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "urllib3")
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

import pytest

from procedure_logger.config import Settings
from procedure_logger.core.logging.builder import setup_logging
from procedure_logger.core.pipeline import LoggerPipeline, PipelineConfig

from .test_fixtures.doubles import FakeClock, RecordingLogger, RecordingTransport


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """
    Install application logging for the test session.

    pytest re-attaches its capture handler to the root logger for every test
    phase, so `caplog` keeps working after dictConfig replaced the handlers.
    """
    setup_logging(Settings(ENV="testing", LOG_LEVEL="DEBUG", LOG_FORMAT="text", LOG_TO_STDOUT=True))
    yield


@pytest.fixture()
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def recording_config() -> tuple[PipelineConfig, dict[str, RecordingTransport]]:
    """One recording pipeline per severity; returns (config, {severity: transport})."""
    sinks = {level: RecordingTransport() for level in ("error", "warn", "info", "debug")}
    config = PipelineConfig(
        pipelines=[LoggerPipeline(name=level, level=level, transport=sink) for level, sink in sinks.items()]
    )
    return config, sinks


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def recording_logger() -> RecordingLogger:
    return RecordingLogger()
