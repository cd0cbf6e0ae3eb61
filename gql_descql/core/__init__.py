"""Core modules for compiling descriptions into GraphQL schemas."""

from .api import Api
from .compiler import TypeCache, TypeCompiler
from .config import ApiConfig, load_config
from .description import (
    Kind,
    Meta,
    Presence,
    Rule,
    SchemaNode,
    alternatives,
    array,
    boolean,
    date,
    lazy,
    number,
    obj,
    reach,
    string,
)
from .errors import (
    AmbiguousUnionError,
    ArgumentValidationError,
    DescqlError,
    SchemaBuildError,
    UnsupportedLiteralError,
    ValidationError,
)
from .pipeline import CONTINUE, Continue, Halt, Handler, MiddlewareContext, Pipeline
from .scalars import DateHandler, ScalarHandler, ScalarRegistry
from .selection import RequestNode, SelectionParser, parse_selections
from .validation import ValidationResult, Validator, attempt, validate

__all__ = [
    # Api
    "Api",
    "ApiConfig",
    "load_config",
    # Descriptions
    "Kind",
    "Meta",
    "Presence",
    "Rule",
    "SchemaNode",
    "alternatives",
    "array",
    "boolean",
    "date",
    "lazy",
    "number",
    "obj",
    "reach",
    "string",
    # Validation
    "ValidationResult",
    "Validator",
    "attempt",
    "validate",
    # Compiler
    "TypeCache",
    "TypeCompiler",
    # Scalars
    "DateHandler",
    "ScalarHandler",
    "ScalarRegistry",
    # Selection parser
    "RequestNode",
    "SelectionParser",
    "parse_selections",
    # Pipeline
    "CONTINUE",
    "Continue",
    "Halt",
    "Handler",
    "MiddlewareContext",
    "Pipeline",
    # Errors
    "AmbiguousUnionError",
    "ArgumentValidationError",
    "DescqlError",
    "SchemaBuildError",
    "UnsupportedLiteralError",
    "ValidationError",
]
