"""Schema description language.

Describes typed, constrained data shapes with metadata annotations. A
description is a tree of immutable ``SchemaNode`` objects built with a small
chainable DSL:

    from gql_descql.core.description import array, date, number, obj, string

    Film = obj({
        "title": string(),
        "producers": array(string()),
        "release_date": date(),
    }).meta(name="Film")

    Person = obj({
        "name": string(),
        "films": array(Film),
    }).meta(args={"id": number().integer().required()})

Every chained call returns a new node, so a node can be shared between
several parents without surprises.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Kind(Enum):
    """The closed set of description kinds."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"
    ARRAY = "array"
    ALTERNATIVES = "alternatives"
    LAZY = "lazy"


SCALAR_KINDS = frozenset({Kind.STRING, Kind.NUMBER, Kind.BOOLEAN, Kind.DATE})


class Presence(Enum):
    OPTIONAL = "optional"
    REQUIRED = "required"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Rule:
    """A named constraint, e.g. ``integer`` or ``min`` with ``{"limit": 1}``."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Meta:
    """Metadata attached to a node.

    ``args`` maps argument names to nodes, ``resolve`` is a field resolver
    called as ``resolve(parent, arguments, context, info)``.
    """
    name: str | None = None
    args: Mapping[str, "SchemaNode"] | None = None
    resolve: Callable[..., Any] | None = None
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merge(self, **changes: Any) -> "Meta":
        """Return a copy where every given key overrides the current value."""
        known = {k: v for k, v in changes.items() if k in _META_FIELDS}
        extra = {k: v for k, v in changes.items() if k not in _META_FIELDS}
        if extra:
            known["extra"] = {**self.extra, **extra}
        return replace(self, **known)


_META_FIELDS = frozenset({"name", "args", "resolve", "description"})


@dataclass(frozen=True, eq=False)
class SchemaNode:
    """One position in a description tree.

    Nodes compare and hash by identity: two separately built nodes are two
    distinct schema positions even when their shapes match.
    """
    kind: Kind
    children: dict[str, "SchemaNode"] = field(default_factory=dict)
    items: tuple["SchemaNode", ...] = ()
    rules: tuple[Rule, ...] = ()
    presence: Presence = Presence.OPTIONAL
    metadata: Meta = field(default_factory=Meta)
    default_value: Any = None
    allowed: tuple[Any, ...] = ()
    thunk: Callable[[], "SchemaNode"] | None = None

    # Presence

    def required(self) -> "SchemaNode":
        return replace(self, presence=Presence.REQUIRED)

    def optional(self) -> "SchemaNode":
        return replace(self, presence=Presence.OPTIONAL)

    def forbidden(self) -> "SchemaNode":
        return replace(self, presence=Presence.FORBIDDEN)

    @property
    def is_required(self) -> bool:
        return self.presence is Presence.REQUIRED

    @property
    def is_forbidden(self) -> bool:
        return self.presence is Presence.FORBIDDEN

    # Rules

    def integer(self) -> "SchemaNode":
        if self.kind is not Kind.NUMBER:
            raise TypeError(f"integer() applies to number descriptions, not {self.kind.value}")
        return self._with_rule(Rule("integer"))

    def min(self, limit: int | float) -> "SchemaNode":
        return self._with_rule(Rule("min", {"limit": limit}))

    def max(self, limit: int | float) -> "SchemaNode":
        return self._with_rule(Rule("max", {"limit": limit}))

    def valid(self, *values: Any) -> "SchemaNode":
        return replace(self, allowed=self.allowed + values)

    def default(self, value: Any) -> "SchemaNode":
        return replace(self, default_value=value)

    def has_rule(self, name: str) -> bool:
        return any(rule.name == name for rule in self.rules)

    def rule_param(self, name: str, param: str = "limit") -> Any:
        """Return a parameter of the last rule with this name, or None."""
        for rule in reversed(self.rules):
            if rule.name == name:
                return rule.params.get(param)
        return None

    def _with_rule(self, rule: Rule) -> "SchemaNode":
        return replace(self, rules=self.rules + (rule,))

    # Metadata

    def meta(self, **kwargs: Any) -> "SchemaNode":
        """Attach metadata; later calls override earlier ones key by key."""
        return replace(self, metadata=self.metadata.merge(**kwargs))

    def description(self, text: str) -> "SchemaNode":
        return self.meta(description=text)

    # Structure

    def keys(self, children: Mapping[str, "SchemaNode"]) -> "SchemaNode":
        """Return an object node extended with more children."""
        if self.kind is not Kind.OBJECT:
            raise TypeError(f"keys() applies to object descriptions, not {self.kind.value}")
        return replace(self, children={**self.children, **children})

    def resolved(self) -> "SchemaNode":
        """Follow lazy nodes until a concrete one is reached."""
        node = self
        while node.kind is Kind.LAZY:
            node = node.thunk()
        return node

    def __repr__(self) -> str:
        parts = [self.kind.value]
        if self.metadata.name:
            parts.append(f"name={self.metadata.name!r}")
        if self.children:
            parts.append(f"children={sorted(self.children)}")
        if self.items:
            parts.append(f"items={len(self.items)}")
        if self.presence is not Presence.OPTIONAL:
            parts.append(self.presence.value)
        return f"SchemaNode({', '.join(parts)})"


def string() -> SchemaNode:
    return SchemaNode(Kind.STRING)


def number() -> SchemaNode:
    return SchemaNode(Kind.NUMBER)


def boolean() -> SchemaNode:
    return SchemaNode(Kind.BOOLEAN)


def date() -> SchemaNode:
    return SchemaNode(Kind.DATE)


def obj(children: Mapping[str, SchemaNode] | None = None) -> SchemaNode:
    return SchemaNode(Kind.OBJECT, children=dict(children or {}))


def array(*items: SchemaNode) -> SchemaNode:
    return SchemaNode(Kind.ARRAY, items=tuple(items))


def alternatives(*items: SchemaNode) -> SchemaNode:
    return SchemaNode(Kind.ALTERNATIVES, items=tuple(items))


def lazy(thunk: Callable[[], SchemaNode]) -> SchemaNode:
    """Describe a node that is only known later, e.g. a self reference."""
    return SchemaNode(Kind.LAZY, thunk=thunk)


def reach(node: SchemaNode, key: str) -> SchemaNode | None:
    """Return the child called ``key`` of an object node, or None."""
    return node.resolved().children.get(key)


def surviving_items(node: SchemaNode) -> list[SchemaNode]:
    """Return the non-forbidden items of an array or alternatives node."""
    return [item for item in node.items if not item.is_forbidden]


def selectable_children(node: SchemaNode) -> dict[str, SchemaNode]:
    """Return the children a query may ask for, i.e. the non-forbidden ones.

    Arrays and alternatives expose their items' children merged, later items
    overriding earlier ones.
    """
    node = node.resolved()
    if node.kind is Kind.OBJECT:
        return {k: c for k, c in node.children.items() if not c.is_forbidden}
    if node.kind in (Kind.ARRAY, Kind.ALTERNATIVES):
        merged: dict[str, SchemaNode] = {}
        for item in surviving_items(node):
            merged.update(selectable_children(item))
        return merged
    return {}
