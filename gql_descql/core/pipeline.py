"""Middleware pipeline.

Handlers are registered against dotted paths into the request tree and run
one after another, in registration order, sharing a response and a scratch
state for the duration of one request.

Example usage:
    pipeline = Pipeline()

    async def load_person(ctx):
        ctx.response["person"] = await db.people.find(ctx.request.arguments["id"])

    async def load_films(ctx):
        ctx.response["person"]["films"] = await db.films.for_person(ctx.response["person"])

    pipeline.register("query.person", load_person)
    pipeline.register("query.person.fields.films", load_films)

    response = await pipeline.run(request_tree)

A handler stops the chain by returning ``Halt(response)`` or, equivalently,
``return ctx.end(response)``. There is no timeout: a handler that never
completes holds up the whole request.
"""

import inspect
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

from .selection import RequestNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Continue:
    """Handler outcome: run the next handler."""


@dataclass(frozen=True)
class Halt:
    """Handler outcome: skip every remaining handler.

    ``response`` replaces the shared response when given.
    """
    response: Any = None


CONTINUE = Continue()

Outcome = Union[Continue, Halt, None]


@dataclass
class MiddlewareContext:
    """What a handler gets to see of the current request."""
    request: Any
    response: Any
    state: dict[str, Any]
    path: str = ""
    halted: Halt | None = field(default=None, repr=False)

    def end(self, response: Any = None) -> Halt:
        """Stop the pipeline after this handler, optionally replacing the response."""
        self.halted = Halt(response)
        return self.halted


@runtime_checkable
class Handler(Protocol):
    """Protocol for middleware handlers.

    Handlers may be plain functions or coroutine functions. The return value
    (after awaiting) is ``None``/``CONTINUE`` to carry on or a ``Halt``.
    """

    def __call__(self, ctx: MiddlewareContext) -> Union[Outcome, Awaitable[Outcome]]:
        ...


@dataclass
class Middleware:
    path: str
    handler: Handler


def walk(tree: Any, path: str) -> Any:
    """Follow a dotted path through a request tree.

    ``fields``/``child_fields`` and ``args``/``arguments`` step into a
    RequestNode; numeric segments index into fragment lists. Returns None when
    the path does not exist.
    """
    node = tree
    for segment in path.split("."):
        if node is None:
            return None
        if isinstance(node, RequestNode):
            if segment in ("fields", "child_fields"):
                node = node.fields
            elif segment in ("args", "arguments"):
                node = node.arguments
            else:
                return None
        elif isinstance(node, Mapping):
            node = node.get(segment)
        elif isinstance(node, list) and segment.isdigit():
            index = int(segment)
            node = node[index] if index < len(node) else None
        else:
            return None
    return node


class Pipeline:
    """Ordered list of middleware run once per request."""

    def __init__(self):
        self._middleware: list[Middleware] = []

    def register(self, path: str, handler: Handler):
        """Register a handler under one or more space-separated paths."""
        if not isinstance(handler, Handler):
            raise TypeError(f"Middleware handlers must be callable, got {type(handler).__name__}")
        paths = path.split()
        if not paths:
            raise ValueError("A middleware path is required")
        for p in paths:
            self._middleware.append(Middleware(p, handler))

    @property
    def middleware(self) -> list[Middleware]:
        return list(self._middleware)

    def __len__(self) -> int:
        return len(self._middleware)

    async def run(self, request_tree: Any) -> Any:
        """Run every handler whose path exists in ``request_tree``, in order."""
        response: Any = {}
        state: dict[str, Any] = {}
        for middleware in self._middleware:
            request = walk(request_tree, middleware.path)
            if request is None:
                logger.debug("Skipping %s: path not requested", middleware.path)
                continue
            ctx = MiddlewareContext(
                request=request, response=response, state=state, path=middleware.path
            )
            outcome = middleware.handler(ctx)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            response = ctx.response
            halt = outcome if isinstance(outcome, Halt) else ctx.halted
            if halt is not None:
                logger.debug("Pipeline halted by handler at %s", middleware.path)
                return response if halt.response is None else halt.response
        return response
