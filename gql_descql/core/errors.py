"""Exceptions raised while building a schema or serving a query.

Schema-build errors abort construction entirely. Everything else is scoped to
a single execution and ends up in the ``errors`` list of the result.
"""

from typing import Any

from graphql import GraphQLError


class DescqlError(Exception):
    """Base class for all gql-descql errors."""


class SchemaBuildError(DescqlError):
    """Raised when a description tree cannot be compiled into GraphQL types."""


class ValidationError(DescqlError):
    """Raised by the description layer when a value fails validation."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.message = message
        self.details = details or []
        super().__init__(message)


class ArgumentValidationError(ValidationError):
    """Raised when the arguments of a selected field fail validation.

    The message is the validation layer's message, unchanged.
    """

    def __init__(self, field_name: str, error: ValidationError):
        self.field_name = field_name
        super().__init__(error.message, error.details)


class UnsupportedLiteralError(DescqlError):
    """Raised when a query argument uses a literal kind the parser can't read."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unsupported kind {kind}")


class AmbiguousUnionError(GraphQLError):
    """Raised when a union value matches zero or several of its variants."""

    def __init__(self, union_name: str, keys: list[str], candidates: list[str]):
        self.union_name = union_name
        self.keys = keys
        self.candidates = candidates
        if candidates:
            detail = f"matches {len(candidates)} variants ({', '.join(candidates)})"
        else:
            detail = "matches no variant"
        super().__init__(
            f"Ambiguous union value for {union_name}: keys {sorted(keys)} {detail}"
        )
