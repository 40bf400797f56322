# src/procedure_logger/main.py
"""
Application factory serving procedures over HTTP.

    app = create_app({"users.get": get_user})
    # uvicorn module:app
"""

from typing import Mapping

from fastapi import FastAPI

from procedure_logger.api.v1 import build_rpc_router, register_exception_handlers
from procedure_logger.config import Settings, get_settings
from procedure_logger.core.logging import RequestIDMiddleware, setup_logging
from procedure_logger.core.procedure import Procedure
from procedure_logger.utils.logging import get_project_name, get_project_version


def create_app(
    procedures: Mapping[str, Procedure],
    settings: Settings | None = None,
    *,
    configure_logging: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings)

    app = FastAPI(
        title=get_project_name(default="procedure-logger"),
        version=get_project_version(),
    )
    app.add_middleware(RequestIDMiddleware)
    app.include_router(build_rpc_router(procedures))
    register_exception_handlers(app)
    return app
