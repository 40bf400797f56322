# src/procedure_logger/api/v1/rpc.py
"""
HTTP transport for procedures.

    router = build_rpc_router({"users.get": get_user, "users.create": create_user})
    app.include_router(router)

    POST /rpc/users.get          JSON body = procedure input (queries and mutations)
    GET  /rpc/users.get?input=…  JSON-encoded input (queries only)

The procedure context is built per request:

    {"req": <starlette Request>, "request_id": <X-Request-ID>, "user_id": <X-User-ID or None>}

Successful calls answer ``{"result": ...}``. Errors propagate to the handlers
registered by `register_exception_handlers` (ProcedureError -> its status,
pydantic ValidationError -> 422).
"""

import json
import logging
from typing import Any, Mapping

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder

from procedure_logger.core.logging.filters import get_request_id
from procedure_logger.core.procedure import Procedure
from procedure_logger.exceptions import ProcedureError

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-ID"


def build_context(request: Request) -> dict[str, Any]:
    return {
        "req": request,
        "request_id": getattr(request.state, "request_id", None) or get_request_id(),
        "user_id": request.headers.get(USER_ID_HEADER) or None,
    }


def _decode_input(raw: str | bytes | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProcedureError("Input is not valid JSON", code="BAD_REQUEST", cause=exc) from exc


def build_rpc_router(procedures: Mapping[str, Procedure], prefix: str = "/rpc") -> APIRouter:
    """Expose every procedure in `procedures` under ``{prefix}/{path}``."""
    registry = dict(procedures)
    router = APIRouter(prefix=prefix, tags=["rpc"])

    def lookup(path: str) -> Procedure:
        procedure = registry.get(path)
        if procedure is None:
            raise ProcedureError(f"No procedure found on path '{path}'", code="NOT_FOUND")
        return procedure

    async def run(procedure: Procedure, request: Request, path: str, input: Any) -> dict:
        logger.debug("Calling %s procedure %s", procedure.type, path)
        result = await procedure.call(ctx=build_context(request), input=input, path=path)
        return {"result": jsonable_encoder(result)}

    @router.post("/{path:path}")
    async def call_procedure(path: str, request: Request) -> dict:
        procedure = lookup(path)
        return await run(procedure, request, path, _decode_input(await request.body()))

    @router.get("/{path:path}")
    async def query_procedure(path: str, request: Request) -> dict:
        procedure = lookup(path)
        if procedure.type != "query":
            raise ProcedureError(f"Procedure '{path}' is a {procedure.type}, use POST", code="BAD_REQUEST")
        return await run(procedure, request, path, _decode_input(request.query_params.get("input")))

    return router
