"""Validation entry point of the description layer.

Description nodes are translated into pydantic types once, then values are
validated through a ``TypeAdapter``. Failures are reported as
``ValidationError`` with messages of the form:

    child "age" fails because ["age" input should be greater than or equal to 1]

Consumers match on these messages, so the wording is part of the interface.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, create_model

from .description import Kind, SchemaNode, obj, surviving_items
from .errors import ValidationError

Schema = SchemaNode | Mapping[str, SchemaNode]


@dataclass
class ValidationResult:
    value: Any
    error: ValidationError | None = None


class Validator:
    """Builds and caches one pydantic adapter per description."""

    def __init__(self):
        self._adapters: dict[int, tuple[Schema, TypeAdapter]] = {}
        self._building: set[int] = set()

    def validate(self, value: Any, schema: Schema) -> ValidationResult:
        node = self._as_node(schema)
        adapter = self._adapter(schema, node)
        try:
            validated = adapter.validate_python(_apply_defaults(node, value))
        except pydantic.ValidationError as e:
            return ValidationResult(value, _convert_error(e))
        return ValidationResult(_to_plain(validated))

    def attempt(self, value: Any, schema: Schema) -> Any:
        result = self.validate(value, schema)
        if result.error is not None:
            raise result.error
        return result.value

    @staticmethod
    def _as_node(schema: Schema) -> SchemaNode:
        if isinstance(schema, SchemaNode):
            return schema
        return obj(schema)

    def _adapter(self, schema: Schema, node: SchemaNode) -> TypeAdapter:
        cached = self._adapters.get(id(schema))
        if cached is not None:
            return cached[1]
        adapter = TypeAdapter(self._python_type(node))
        # Keep the schema referenced so its id stays unique while cached
        self._adapters[id(schema)] = (schema, adapter)
        return adapter

    def _python_type(self, node: SchemaNode) -> Any:
        if node.kind is Kind.LAZY:
            if id(node) in self._building:
                # Recursive descriptions are only checked down to the cycle
                return Any
            self._building.add(id(node))
            try:
                return self._python_type(node.resolved())
            finally:
                self._building.discard(id(node))

        if node.allowed and node.kind not in (Kind.OBJECT, Kind.ARRAY):
            return Literal[node.allowed]

        match node.kind:
            case Kind.STRING:
                return Annotated[str, Field(
                    min_length=node.rule_param("min"),
                    max_length=node.rule_param("max"),
                )]
            case Kind.NUMBER:
                base = int if node.has_rule("integer") else float
                return Annotated[base, Field(
                    ge=node.rule_param("min"),
                    le=node.rule_param("max"),
                )]
            case Kind.BOOLEAN:
                return bool
            case Kind.DATE:
                return Union[datetime, date]
            case Kind.OBJECT:
                return self._model(node)
            case Kind.ARRAY:
                items = surviving_items(node)
                item_type = self._union(items) if items else Any
                return Annotated[list[item_type], Field(
                    min_length=node.rule_param("min"),
                    max_length=node.rule_param("max"),
                )]
            case Kind.ALTERNATIVES:
                return self._union(surviving_items(node))
        raise TypeError(f"Cannot validate {node.kind!r} descriptions")

    def _union(self, items: list[SchemaNode]) -> Any:
        types = tuple(self._python_type(item) for item in items)
        if len(types) == 1:
            return types[0]
        return Union[types]

    def _model(self, node: SchemaNode) -> type[BaseModel]:
        fields: dict[str, Any] = {}
        for i, (key, child) in enumerate(node.children.items()):
            # Forbidden keys are left out, so extra="forbid" rejects them
            if child.is_forbidden:
                continue
            child_type = self._python_type(child)
            if child.is_required:
                fields[f"f_{i}"] = (child_type, Field(alias=key))
            else:
                fields[f"f_{i}"] = (Optional[child_type], Field(default=None, alias=key))
        return create_model(
            node.metadata.name or "Object",
            __config__=ConfigDict(extra="forbid"),
            **fields,
        )


def _apply_defaults(node: SchemaNode, value: Any) -> Any:
    """Fill in declared defaults for keys missing from ``value``."""
    node = node.resolved()
    if node.kind is Kind.OBJECT and isinstance(value, Mapping):
        filled = dict(value)
        for key, child in node.children.items():
            if key not in filled:
                if child.default_value is not None:
                    default = child.default_value
                    filled[key] = default() if callable(default) else default
            else:
                filled[key] = _apply_defaults(child, filled[key])
        return filled
    if node.kind is Kind.ARRAY and isinstance(value, list):
        items = surviving_items(node)
        if len(items) == 1:
            return [_apply_defaults(items[0], v) for v in value]
    return value


def _to_plain(value: Any) -> Any:
    """Turn validated models back into plain dicts keyed by the original names."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=True)
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


def _convert_error(error: pydantic.ValidationError) -> ValidationError:
    reasons = []
    details = []
    for e in error.errors():
        loc = [str(part) for part in e["loc"]]
        path = ".".join(loc)
        reason = _reason(e)
        details.append({"path": loc, "type": e["type"], "message": reason})
        if loc:
            reasons.append(f'child "{loc[0]}" fails because ["{path}" {reason}]')
        else:
            reasons.append(f'"value" {reason}')
    return ValidationError(". ".join(reasons), details)


def _reason(e: dict[str, Any]) -> str:
    if e["type"] == "missing":
        return "is required"
    if e["type"] == "extra_forbidden":
        return "is not allowed"
    msg = e["msg"]
    return msg[:1].lower() + msg[1:]


default_validator = Validator()


def validate(value: Any, schema: Schema) -> ValidationResult:
    """Validate ``value`` against a node or a mapping of named nodes."""
    return default_validator.validate(value, schema)


def attempt(value: Any, schema: Schema) -> Any:
    """Validate and return the coerced value, raising ``ValidationError``."""
    return default_validator.attempt(value, schema)
