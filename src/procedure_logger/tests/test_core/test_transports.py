# src/procedure_logger/tests/test_core/test_transports.py
import asyncio
import json
import logging
import threading
from unittest.mock import MagicMock

import httpx
import pytest

from procedure_logger.core import transports
from procedure_logger.core.formats import json_format, timestamp_format
from procedure_logger.core.transports import (
    cloudwatch_transport,
    console_transport,
    elasticsearch_transport,
    file_transport,
    http_transport,
    json_transport,
    logging_transport,
    redis_transport,
    sentry_transport,
)
from procedure_logger.tests.test_fixtures.doubles import wait_until


class TestFormats:
    def test_timestamp_format(self):
        line = timestamp_format("getUser", "hello", None)
        assert line.endswith("] [getUser] hello")
        assert line.startswith("[")

    def test_json_format(self):
        data = json.loads(json_format("getUser", "hello", {"id": 1, "obj": object()}))
        assert data["name"] == "getUser"
        assert data["message"] == "hello"
        assert data["meta"]["id"] == 1
        assert isinstance(data["meta"]["obj"], str)
        assert "timestamp" in data


class TestLocalTransports:
    def test_console_transport(self, capsys):
        console_transport("x", "hello")
        console_transport("x", "with meta", {"a": 1})
        out = capsys.readouterr().out.splitlines()
        assert out == ["hello", "with meta {'a': 1}"]

    def test_json_transport(self, capsys):
        json_transport("getUser", "hello", {"a": 1})
        data = json.loads(capsys.readouterr().out)
        assert (data["name"], data["message"], data["meta"]) == ("getUser", "hello", {"a": 1})

    def test_file_transport_appends_lines(self, tmp_path):
        path = tmp_path / "procedures.log"
        write = file_transport(path)

        write("x", "first")
        write("x", "second", {"ignored": True})

        assert path.read_text(encoding="utf-8") == "first\nsecond\n"

    def test_file_transport_reports_write_failures(self, tmp_path, caplog):
        write = file_transport(tmp_path / "missing-dir" / "procedures.log")

        with caplog.at_level(logging.ERROR, logger="procedure_logger.core.transports"):
            write("x", "lost")

        assert any("File transport error" in r.getMessage() for r in caplog.records)

    def test_logging_transport(self, caplog):
        target = logging.getLogger("procedure_logger.tests.sink")
        emit = logging_transport(target, logging.WARNING)

        with caplog.at_level(logging.DEBUG, logger="procedure_logger.tests.sink"):
            emit("getUser", "[WARN] [getUser] slow", {"duration": 1500})

        record, = [r for r in caplog.records if r.name == "procedure_logger.tests.sink"]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "[WARN] [getUser] slow"
        assert record.procedure == "getUser"
        assert record.meta == {"duration": 1500}


@pytest.fixture()
def mock_async_client(monkeypatch):
    """Route every httpx.AsyncClient built by the transport through `handler`."""
    created = []

    def install(handler):
        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            created.append(kwargs)
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(transports.httpx, "AsyncClient", client_factory)
        return created

    return install


class TestHttpTransport:
    def test_send_without_loop_returns_before_delivery(self, mock_async_client):
        release = threading.Event()
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            release.wait(timeout=2)
            bodies.append((request.method, str(request.url), dict(request.headers), json.loads(request.content)))
            return httpx.Response(200)

        created = mock_async_client(handler)

        send = http_transport("https://logs.example.com/ingest", headers={"Authorization": "Bearer t"})
        assert send("getUser", "hello", {"a": 1}) is None
        assert bodies == []

        release.set()
        assert wait_until(lambda: bodies)

        method, url, headers, body = bodies[0]
        assert method == "POST"
        assert url == "https://logs.example.com/ingest"
        assert created[0]["timeout"] == 5.0
        assert headers["content-type"] == "application/json"
        assert headers["authorization"] == "Bearer t"
        assert body["procedure"] == "getUser"
        assert body["message"] == "hello"
        assert body["meta"] == {"a": 1}

    def test_http_errors_are_logged_not_raised(self, mock_async_client, caplog):
        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        mock_async_client(refused)

        with caplog.at_level(logging.ERROR, logger="procedure_logger.core.transports"):
            http_transport("https://logs.example.com/ingest")("x", "hello")
            assert wait_until(lambda: any("HTTP transport error" in r.getMessage() for r in caplog.records))

    def test_non_2xx_is_reported(self, mock_async_client, caplog):
        mock_async_client(lambda request: httpx.Response(503))

        with caplog.at_level(logging.ERROR, logger="procedure_logger.core.transports"):
            http_transport("https://logs.example.com/ingest")("x", "hello")
            assert wait_until(lambda: any("HTTP transport error" in r.getMessage() for r in caplog.records))

    @pytest.mark.asyncio
    async def test_async_send_is_detached(self, mock_async_client):
        received = asyncio.Event()
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            received.set()
            return httpx.Response(204)

        mock_async_client(handler)

        # returns before the request is sent
        assert http_transport("https://logs.example.com/ingest")("getUser", "hello") is None
        assert bodies == []

        await asyncio.wait_for(received.wait(), timeout=1)
        assert bodies[0]["message"] == "hello"

    @pytest.mark.asyncio
    async def test_unexpected_send_failure_is_logged(self, monkeypatch, caplog):
        def broken_client(**kwargs):
            raise ValueError("Invalid header value")

        monkeypatch.setattr(transports.httpx, "AsyncClient", broken_client)

        with caplog.at_level(logging.ERROR, logger="procedure_logger.core.transports"):
            http_transport("https://logs.example.com/ingest")("x", "hello")
            for _ in range(5):
                await asyncio.sleep(0)

        errors = [r for r in caplog.records if "HTTP transport error" in r.getMessage()]
        assert errors
        assert isinstance(errors[0].exc_info[1], ValueError)


class TestClientTransports:
    def test_sentry(self):
        sentry = MagicMock()
        sentry_transport(sentry)("getUser", "hello", {"a": 1})
        sentry.capture_message.assert_called_once_with(
            "hello", level="info", tags={"procedure": "getUser"}, extras={"a": 1}
        )

    def test_cloudwatch(self):
        client = MagicMock()
        cloudwatch_transport(client, "group", "stream")("getUser", "hello", {"a": 1})

        kwargs = client.put_log_events.call_args.kwargs
        assert kwargs["logGroupName"] == "group"
        assert kwargs["logStreamName"] == "stream"
        event, = kwargs["logEvents"]
        assert isinstance(event["timestamp"], int)
        assert json.loads(event["message"]) == {"procedure": "getUser", "message": "hello", "meta": {"a": 1}}

    def test_elasticsearch(self):
        client = MagicMock()
        elasticsearch_transport(client, "procedure-logs")("getUser", "hello")

        kwargs = client.index.call_args.kwargs
        assert kwargs["index"] == "procedure-logs"
        assert kwargs["document"]["procedure"] == "getUser"
        assert kwargs["document"]["message"] == "hello"

    def test_redis_with_ttl(self):
        client = MagicMock()
        redis_transport(client, "logs", ttl=3600)("getUser", "hello")

        key, payload = client.lpush.call_args.args
        assert key == "logs"
        assert json.loads(payload)["message"] == "hello"
        client.expire.assert_called_once_with("logs", 3600)

    def test_redis_without_ttl(self):
        client = MagicMock()
        redis_transport(client, "logs")("getUser", "hello")
        client.expire.assert_not_called()

    def test_client_failures_are_logged_not_raised(self, caplog):
        client = MagicMock()
        client.lpush.side_effect = ConnectionError("redis down")

        with caplog.at_level(logging.ERROR, logger="procedure_logger.core.transports"):
            redis_transport(client, "logs")("x", "hello")

        assert any("Redis transport error" in r.getMessage() for r in caplog.records)
