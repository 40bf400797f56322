# src/procedure_logger/api/v1/error_handlers.py
"""
FastAPI exception handlers that map procedure errors to HTTP responses.

    - ProcedureError (and subclasses): status from `exc.http_status()`, body from `exc.to_payload()`
    - pydantic ValidationError (input parsing in a procedure chain): 422 with the issue list

Mapping lives in the exception classes; the handlers only log and render.
"""

import json
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from procedure_logger.exceptions import ProcedureError, RateLimitExceededError

logger = logging.getLogger(__name__)


# Most specific first.

async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    logger.warning("Rate limit exceeded for %s %s: key=%s", request.method, request.url.path, exc.key)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def procedure_error_handler(request: Request, exc: ProcedureError) -> JSONResponse:
    if exc.http_status() >= 500:
        logger.error("ProcedureError for %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("ProcedureError for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """
    422 Unprocessable Entity for procedure input that failed validation.
    """
    logger.info("Input validation failed for %s %s: %d error(s)", request.method, request.url.path, exc.error_count())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Input validation failed",
            "code": "BAD_REQUEST",
            # round-trip through pydantic's own JSON so inputs/contexts are serializable
            "errors": json.loads(exc.json(include_url=False)),
        },
    )


def register_exception_handlers(app):
    app.add_exception_handler(RateLimitExceededError, rate_limit_handler)
    app.add_exception_handler(ProcedureError, procedure_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
