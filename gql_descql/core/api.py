"""Api facade: descriptions in, executable GraphQL schema out.

Example:
    api = Api({"query": {"person": Person, "film": Film}})

    @api.on("query.person")
    async def load_person(ctx):
        ctx.response["person"] = await db.people.find(ctx.request.arguments["id"])

    result = await api.execute('{ person(id: "1") { name } }')

Root fields share one pipeline run per execution: the first root resolver
called parses the whole operation into a request tree and starts the
pipeline, every root resolver then reads its own key out of the response.
The shared run is forgotten once the last root field has read it, so a
context object reused across executions keeps nothing.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

from graphql import (
    ExecutionResult,
    GraphQLResolveInfo,
    GraphQLSchema,
    graphql,
    print_schema,
    validate_schema,
)
from graphql.execution.collect_fields import collect_fields

from .compiler import TypeCompiler
from .config import ApiConfig
from .description import SchemaNode, obj
from .errors import DescqlError, SchemaBuildError
from .pipeline import Handler, Pipeline
from .scalars import ScalarRegistry
from .selection import SelectionParser
from .validation import Validator, default_validator

logger = logging.getLogger(__name__)

OPERATIONS = ("query", "mutation")

_STATE_KEY = "_gql_descql_executions"


class _ExecutionState:
    """Pipeline run shared by the root resolvers of one execution.

    ``pending`` counts the root fields still waiting for the response; the
    state is dropped from the context once it reaches zero.
    """

    def __init__(self, variables: Any, pending: int):
        # Held so the id used as key stays unique while the state lives
        self.variables = variables
        self.pending = pending
        self.task: asyncio.Future | None = None


def _executions(context: Any) -> dict[int, _ExecutionState]:
    if context is None:
        raise DescqlError(
            "A context_value is required to execute this schema; "
            "use Api.execute() or pass context_value={}"
        )
    if isinstance(context, MutableMapping):
        return context.setdefault(_STATE_KEY, {})
    executions = getattr(context, _STATE_KEY, None)
    if executions is None:
        executions = {}
        setattr(context, _STATE_KEY, executions)
    return executions


def _execution_state(info: GraphQLResolveInfo) -> _ExecutionState:
    executions = _executions(info.context)
    # graphql-core coerces a fresh variables dict for every execution
    key = id(info.variable_values)
    state = executions.get(key)
    if state is None:
        root_fields = collect_fields(
            info.schema,
            info.fragments,
            info.variable_values,
            info.parent_type,
            info.operation.selection_set,
        )
        state = executions[key] = _ExecutionState(
            info.variable_values,
            sum(1 for nodes in root_fields.values() if not nodes[0].name.value.startswith("__")),
        )
    return state


def _release(info: GraphQLResolveInfo, state: _ExecutionState):
    """Mark one root field as served and forget the state after the last one."""
    state.pending -= 1
    if state.pending > 0:
        return
    context = info.context
    executions = _executions(context)
    executions.pop(id(info.variable_values), None)
    if executions:
        return
    if isinstance(context, MutableMapping):
        context.pop(_STATE_KEY, None)
    else:
        delattr(context, _STATE_KEY)


class Api:
    """Compiled GraphQL schema plus the middleware that resolves it.

    Args:
        schemas: ``{"query": {field: node}, "mutation": {field: node}}``
        config: Naming options
        scalars: Scalar handlers used by the compiler
        validator: Validation entry point for field arguments
    """

    def __init__(
        self,
        schemas: Mapping[str, Mapping[str, SchemaNode]],
        *,
        config: ApiConfig | None = None,
        scalars: ScalarRegistry | None = None,
        validator: Validator | None = None,
    ):
        self.config = config or ApiConfig()
        self.validator = validator or default_validator
        self.compiler = TypeCompiler(self.config, scalars, self.validator)
        self.pipeline = Pipeline()
        self._roots: dict[str, SchemaNode] = {}
        self.schema = self._build_schema(schemas)

    def _build_schema(self, schemas: Mapping[str, Mapping[str, SchemaNode]]) -> GraphQLSchema:
        unknown = set(schemas) - set(OPERATIONS)
        if unknown:
            raise SchemaBuildError(f"Unknown root operations: {', '.join(sorted(unknown))}")

        root_types = {}
        type_names = {
            "query": self.config.query_type_name,
            "mutation": self.config.mutation_type_name,
        }
        for operation in OPERATIONS:
            fields = schemas.get(operation)
            if not fields:
                continue
            self._roots[operation] = obj(fields)
            root_types[operation] = self.compiler.root_type(
                type_names[operation], fields, self._root_resolver
            )

        schema = GraphQLSchema(query=root_types.get("query"), mutation=root_types.get("mutation"))
        errors = validate_schema(schema)
        if errors:
            raise SchemaBuildError("; ".join(error.message for error in errors))
        logger.debug("Built schema with %d named types", len(self.compiler.cache))
        return schema

    # Middleware registration

    def on(self, path: str, handler: Handler | None = None):
        """Register a handler for a path, or use as ``@api.on(path)``."""
        if handler is None:
            def decorator(fn):
                self.pipeline.register(path, fn)
                return fn
            return decorator
        self.pipeline.register(path, handler)
        return handler

    def use(self, handler: Handler):
        """Register a handler that sees every query and mutation."""
        return self.on(" ".join(OPERATIONS), handler)

    # Execution

    async def execute(
        self,
        source: str,
        variables: dict[str, Any] | None = None,
        context: Any = None,
        operation_name: str | None = None,
    ) -> ExecutionResult:
        """Execute a GraphQL document against the schema."""
        return await graphql(
            self.schema,
            source,
            context_value={} if context is None else context,
            variable_values=variables,
            operation_name=operation_name,
        )

    def print_schema(self) -> str:
        return print_schema(self.schema)

    def _root_resolver(self, key: str, node: SchemaNode):
        field_resolver = self.compiler.field_resolver(key, node)

        async def resolve(_parent, info: GraphQLResolveInfo, **args):
            response = await self._response_for(info)
            if field_resolver is None:
                if isinstance(response, Mapping):
                    return response.get(key)
                return getattr(response, key, None)
            result = field_resolver(response, info, **args)
            if inspect.isawaitable(result):
                result = await result
            return result

        return resolve

    async def _response_for(self, info: GraphQLResolveInfo) -> Any:
        state = _execution_state(info)
        if state.task is None:
            state.task = asyncio.ensure_future(self._serve(info))
        try:
            return await state.task
        finally:
            _release(info, state)

    async def _serve(self, info: GraphQLResolveInfo) -> Any:
        operation = info.operation.operation.value
        parser = SelectionParser(info.fragments, info.variable_values, self.validator)
        tree = {operation: parser.parse(self._roots.get(operation), info.operation.selection_set.selections)}
        return await self.pipeline.run(tree)
