# src/procedure_logger/core/logged_procedure.py
"""
Attach pipeline loggers to procedure builders.

    procedure = logged_procedure(ProcedureBuilder(), config)

    get_user = (
        procedure
        .with_logger("getUser")
        .input(GetUserInput)
        .query(resolve_user)
    )

`with_logger(name)` never mutates the builder it is called on: it returns a
new builder whose chain carries one extra stage that merges
``{"logger": Logger(config, name)}`` into the context. Calling it again
further down a chain rebinds the name for the downstream stages only.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from .pipeline import PipelineConfig, create_logger
from .procedure import Middleware, MiddlewareOptions, Procedure, ProcedureBuilder, Resolver


@dataclass(frozen=True)
class LoggedProcedureBuilder:
    base: ProcedureBuilder
    config: PipelineConfig

    def with_logger(self, name: str | None = None) -> "LoggedProcedureBuilder":
        logger = create_logger(self.config, name)

        async def inject_logger(opts: MiddlewareOptions) -> Any:
            return await opts.next(ctx={"logger": logger})

        return replace(self, base=self.base.use(inject_logger))

    def use(self, middleware: Middleware) -> "LoggedProcedureBuilder":
        return replace(self, base=self.base.use(middleware))

    def input(self, schema: Any) -> "LoggedProcedureBuilder":
        return replace(self, base=self.base.input(schema))

    def query(self, resolver: Resolver) -> Procedure:
        return self.base.query(resolver)

    def mutation(self, resolver: Resolver) -> Procedure:
        return self.base.mutation(resolver)


def logged_procedure(base: ProcedureBuilder, config: PipelineConfig) -> LoggedProcedureBuilder:
    """Wrap `base` so that `.with_logger()` is available on it and on everything derived from it."""
    return LoggedProcedureBuilder(base=base, config=config)


def extend_procedure(base: ProcedureBuilder) -> LoggedProcedureBuilder:
    # Loggers from an empty registry are valid handles that emit nothing.
    return logged_procedure(base, PipelineConfig(pipelines=()))


__all__ = ["LoggedProcedureBuilder", "logged_procedure", "extend_procedure"]
