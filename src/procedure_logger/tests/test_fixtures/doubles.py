"""Test doubles shared by the suite (imported by conftest and test modules)."""

import time


class RecordingTransport:
    """Transport double: records ``(name, message, meta)`` for every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, name, message, meta=None) -> None:
        self.calls.append((name, message, meta))

    @property
    def messages(self) -> list[str]:
        return [message for _, message, _ in self.calls]

    @property
    def metas(self) -> list:
        return [meta for _, _, meta in self.calls]


class RecordingLogger:
    """Stands in for a pipeline Logger: records ``(level, message, meta)``."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def _record(self, level, message, meta=None):
        self.calls.append((level, message, meta))

    def error(self, message, meta=None):
        self._record("error", message, meta)

    def warn(self, message, meta=None):
        self._record("warn", message, meta)

    def info(self, message, meta=None):
        self._record("info", message, meta)

    def debug(self, message, meta=None):
        self._record("debug", message, meta)

    def by_level(self, level) -> list[tuple]:
        return [(message, meta) for lvl, message, meta in self.calls if lvl == level]

    @property
    def messages(self) -> list[str]:
        return [message for _, message, _ in self.calls]


class FakeClock:
    """Manual clock in milliseconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll `predicate` from synchronous tests until it holds or `timeout` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
