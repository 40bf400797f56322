# src/procedure_logger/core/procedure.py
"""
Minimal RPC procedure builder.

A `ProcedureBuilder` is an immutable value: every `use()` / `input()` call
returns a new builder with one more stage, so partially configured builders
can be shared between procedures without leaking middleware between them.
`query()` / `mutation()` seal the chain into a `Procedure`.

Each middleware receives `MiddlewareOptions` and must call
`await opts.next(...)` to continue the chain. `next` accepts a `ctx` mapping
whose keys are merged into the context seen by every downstream stage and by
the resolver, and optionally a replacement `input`.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Literal, Mapping

from pydantic import TypeAdapter

ProcedureType = Literal["query", "mutation"]

_MISSING: Any = object()


@dataclass(frozen=True)
class MiddlewareOptions:
    path: str
    type: str
    input: Any
    raw_input: Any
    ctx: Mapping[str, Any]
    next: Callable[..., Awaitable[Any]]


Middleware = Callable[[MiddlewareOptions], Awaitable[Any]]


@dataclass(frozen=True)
class ResolverOptions:
    ctx: Mapping[str, Any]
    input: Any
    path: str
    type: str


Resolver = Callable[[ResolverOptions], Any]


def _input_parser(schema: Any) -> Middleware:
    adapter = TypeAdapter(schema)

    async def parse_input(opts: MiddlewareOptions) -> Any:
        # pydantic.ValidationError propagates through the outer middlewares
        return await opts.next(input=adapter.validate_python(opts.raw_input))

    return parse_input


@dataclass(frozen=True)
class Procedure:
    middlewares: tuple[Middleware, ...]
    resolver: Resolver
    type: ProcedureType

    async def call(self, ctx: Mapping[str, Any] | None = None, input: Any = None, path: str = "") -> Any:
        """Run the middleware chain and the resolver; return the resolver's result."""
        raw_input = input

        async def run(index: int, current_ctx: dict, current_input: Any) -> Any:
            if index == len(self.middlewares):
                result = self.resolver(
                    ResolverOptions(ctx=current_ctx, input=current_input, path=path, type=self.type)
                )
                if inspect.isawaitable(result):
                    result = await result
                return result

            async def next_(ctx: Mapping[str, Any] | None = None, input: Any = _MISSING) -> Any:
                next_ctx = {**current_ctx, **ctx} if ctx else current_ctx
                next_input = current_input if input is _MISSING else input
                return await run(index + 1, next_ctx, next_input)

            opts = MiddlewareOptions(
                path=path,
                type=self.type,
                input=current_input,
                raw_input=raw_input,
                ctx=current_ctx,
                next=next_,
            )
            return await self.middlewares[index](opts)

        return await run(0, dict(ctx or {}), raw_input)

    async def __call__(self, ctx: Mapping[str, Any] | None = None, input: Any = None, path: str = "") -> Any:
        return await self.call(ctx=ctx, input=input, path=path)


@dataclass(frozen=True)
class ProcedureBuilder:
    middlewares: tuple[Middleware, ...] = ()

    def use(self, middleware: Middleware) -> "ProcedureBuilder":
        return replace(self, middlewares=self.middlewares + (middleware,))

    def input(self, schema: Any) -> "ProcedureBuilder":
        """Validate the raw input against `schema` (a pydantic model or any type pydantic understands)."""
        return self.use(_input_parser(schema))

    def query(self, resolver: Resolver) -> Procedure:
        return Procedure(self.middlewares, resolver, "query")

    def mutation(self, resolver: Resolver) -> Procedure:
        return Procedure(self.middlewares, resolver, "mutation")


__all__ = [
    "MiddlewareOptions",
    "Middleware",
    "ResolverOptions",
    "Resolver",
    "Procedure",
    "ProcedureBuilder",
    "ProcedureType",
]
