# src/procedure_logger/core/logging/formatters.py

"""
Custom logging formatters.

  - JsonFormatter: structured JSON lines for log collectors (ELK, Fluentd,
    CloudWatch, ...). Never raises on odd values: non-serializable extras are
    converted with str().

  - ColorFormatter: compact ANSI-colored lines for local development consoles.

Records forwarded by `logging_transport` carry two extras, ``procedure`` (the
logger name bound with ``with_logger``) and ``meta`` (the structured payload).
JsonFormatter emits them as top-level fields; ColorFormatter appends them to
the line.

Both are registered by `make_dict_config` (builder.py); JsonFormatter takes
``env`` and ``service`` as constructor kwargs there.
"""

import json
import logging
from typing import Any
from logging import LogRecord
from procedure_logger.utils.logging import get_project_version

PROJECT_VERSION = get_project_version()

# LogRecord attributes that are never copied into the JSON payload as extras.
_RESERVED = frozenset({"args", "msg", "levelname", "name", "exc_text", "message"})


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Canonical fields: timestamp, level, logger, message, pathname, lineno,
    request_id, service, env, version, procedure, meta. Exception and stack
    info are added when present, followed by any other ``extra`` attributes.
    """

    def __init__(self, *, env: str | None = None, service: str = "procedure-logger", datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self.env = env
        self.service = service

    def format(self, record: LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "request_id": getattr(record, "request_id", "-"),
            "service": self.service,
            "env": self.env,
            "version": PROJECT_VERSION,
            "procedure": getattr(record, "procedure", None),
            "meta": getattr(record, "meta", None),
        }

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        extras = {
            k: v
            for k, v in record.__dict__.items()
            if k not in log_record and not k.startswith("_") and k not in _RESERVED
        }

        for k, v in extras.items():
            try:
                json.dumps(v)
                log_record[k] = v
            except (TypeError, ValueError):
                log_record[k] = str(v)

        # default=str also covers non-serializable values nested inside meta
        return json.dumps(log_record, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    Development-friendly colored formatter:

        TIMESTAMP | LEVEL | LOGGER | REQUEST_ID | [procedure] MESSAGE {meta}

    Only the level is colorized. Exception text follows on new lines.
    """

    COLOR_CODES = {
        "DEBUG": "\033[1;36;47m",   # bold cyan on white
        "INFO": "\033[32m",         # green
        "WARNING": "\033[33m",      # yellow
        "ERROR": "\033[31m",        # red
        "CRITICAL": "\033[1;41m",   # bold on red
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, "")
        reset = self.COLOR_CODES["RESET"]
        timestamp = self.formatTime(record, self.datefmt)

        procedure = getattr(record, "procedure", None)
        message = record.getMessage()
        if procedure:
            message = f"[{procedure}] {message}"
        meta = getattr(record, "meta", None)
        if meta:
            message = f"{message} {json.dumps(meta, ensure_ascii=False, default=str)}"

        base = (
            f"{timestamp} | {color}{record.levelname:<10}{reset} | "
            f"{record.name:<30} | "
            f"{getattr(record, 'request_id', '-'):<10} | "
            f"{message}"
        )

        if record.exc_info:
            base = base + "\n" + self.formatException(record.exc_info)

        return base
