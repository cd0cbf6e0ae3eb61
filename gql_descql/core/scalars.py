"""Scalar handlers for description kinds.

Maps every scalar description kind to the GraphQL scalar it compiles to and
to the function that turns resolved Python values into something that scalar
can serialize.

Example usage:
    from gql_descql.core.scalars import ScalarRegistry

    registry = ScalarRegistry()
    handler = registry.get(Kind.DATE)
    handler.graphql_type        # GraphQLString
    handler.serialize(date(2024, 1, 15))  # "2024-01-15"

A custom handler only needs ``graphql_type`` and ``serialize``:

    class CentsHandler:
        graphql_type = GraphQLInt

        def serialize(self, value):
            return int(round(value * 100))

    registry.register(Kind.NUMBER, CentsHandler())
"""

from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from graphql import (
    GraphQLBoolean,
    GraphQLFloat,
    GraphQLInt,
    GraphQLScalarType,
    GraphQLString,
)

from .description import Kind, SchemaNode


@runtime_checkable
class ScalarHandler(Protocol):
    """Protocol for scalar handlers.

    Attributes:
        graphql_type: The GraphQL scalar a description kind compiles to
    """

    graphql_type: GraphQLScalarType

    def serialize(self, value: Any) -> Any:
        """Convert a resolved Python value before GraphQL serializes it."""
        ...


class StringHandler:
    graphql_type = GraphQLString

    def serialize(self, value: Any) -> Any:
        return value


class BooleanHandler:
    graphql_type = GraphQLBoolean

    def serialize(self, value: Any) -> Any:
        return value


class NumberHandler:
    """Handler for numbers; ``integer`` decides between Int and Float."""

    def __init__(self, integer: bool = False):
        self.integer = integer
        self.graphql_type = GraphQLInt if integer else GraphQLFloat

    def serialize(self, value: Any) -> Any:
        return value


class DateHandler:
    """Handler for dates, exposed as ISO 8601 strings."""

    graphql_type = GraphQLString

    def serialize(self, value: Any) -> Any:
        """Convert date or datetime to an ISO 8601 string."""
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value


class ScalarRegistry:
    """Registry of scalar handlers keyed by description kind.

    Numbers are special-cased: ``for_node`` returns the integer handler when
    the node carries an ``integer`` rule.
    """

    def __init__(self):
        self._handlers: dict[Kind, ScalarHandler] = {}
        self._integer_handler: ScalarHandler = NumberHandler(integer=True)
        self._register_defaults()

    def _register_defaults(self):
        """Register built-in default handlers."""
        self.register(Kind.STRING, StringHandler())
        self.register(Kind.BOOLEAN, BooleanHandler())
        self.register(Kind.NUMBER, NumberHandler())
        self.register(Kind.DATE, DateHandler())

    def register(self, kind: Kind, handler: ScalarHandler):
        """Register a handler for a scalar kind."""
        self._handlers[kind] = handler

    def register_integer(self, handler: ScalarHandler):
        """Register the handler used for numbers with an ``integer`` rule."""
        self._integer_handler = handler

    def get(self, kind: Kind) -> ScalarHandler | None:
        """Get the handler for a kind, or None if not registered."""
        return self._handlers.get(kind)

    def has(self, kind: Kind) -> bool:
        return kind in self._handlers

    def for_node(self, node: SchemaNode) -> ScalarHandler | None:
        """Get the handler for a scalar node."""
        if node.kind is Kind.NUMBER and node.has_rule("integer"):
            return self._integer_handler
        return self.get(node.kind)
