"""In-memory response cache middleware.

Register ``get`` first and ``set`` last so a cache hit skips everything in
between:

    cache = ResponseCache()
    api.on("query", cache.get)
    api.on("query", rest.fetch)
    api.on("query", cache.set)
"""

import copy
import json
from typing import Any

from ..core.pipeline import Halt, MiddlewareContext
from ..core.selection import tree_to_dict

STATE_KEY = "cache_key"


class ResponseCache:
    """Caches whole responses keyed by the request tree they answered."""

    def __init__(self):
        self._responses: dict[str, Any] = {}

    @staticmethod
    def key(request: Any) -> str:
        return json.dumps(tree_to_dict(request), sort_keys=True, default=str)

    async def get(self, ctx: MiddlewareContext) -> Halt | None:
        """End the pipeline with the cached response if there is one."""
        ctx.state[STATE_KEY] = self.key(ctx.request)
        cached = self._responses.get(ctx.state[STATE_KEY])
        if cached is not None:
            return ctx.end(copy.deepcopy(cached))
        return None

    async def set(self, ctx: MiddlewareContext) -> None:
        """Remember the response built so far."""
        key = ctx.state.get(STATE_KEY) or self.key(ctx.request)
        self._responses[key] = copy.deepcopy(ctx.response)

    def clear(self):
        self._responses.clear()

    def __len__(self) -> int:
        return len(self._responses)
