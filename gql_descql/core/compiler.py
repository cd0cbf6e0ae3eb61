"""Description → GraphQL type compiler.

Walks a description tree and produces graphql-core types. Composite types
(objects, input objects, unions) are memoized by type name in a ``TypeCache``
owned by the compiler, so every position that derives the same name shares
the very same GraphQL type object, as graphql-core requires.

The cache is filled *before* the children of a type are compiled. That
ordering is what lets self-referencing descriptions terminate.
"""

import inspect
import itertools
import logging
from collections.abc import Callable, Mapping
from typing import Any

from graphql import (
    GraphQLArgument,
    GraphQLField,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLType,
    GraphQLUnionType,
)

from .config import ApiConfig
from .description import (
    SCALAR_KINDS,
    Kind,
    SchemaNode,
    selectable_children,
    surviving_items,
)
from .errors import AmbiguousUnionError, ArgumentValidationError, SchemaBuildError, ValidationError
from .scalars import ScalarRegistry
from .validation import Validator, default_validator

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[str, SchemaNode], Callable[..., Any]]


def _item_shape(node: SchemaNode) -> tuple:
    node = node.resolved()
    return (node.kind, frozenset(selectable_children(node)))


def _shape(node: SchemaNode) -> tuple:
    """One-level structural signature used to compare same-named nodes.

    Arrays and alternatives are compared by their surviving items only: both
    cache the element or union type under their name, so ``array(A, B)`` and
    ``alternatives(A, B)`` describe the same ``AOrB``.
    """
    node = node.resolved()
    if node.kind in (Kind.ARRAY, Kind.ALTERNATIVES):
        items = surviving_items(node)
        if len(items) == 1:
            return _item_shape(items[0])
        return ("variants", tuple(_item_shape(item) for item in items))
    return _item_shape(node)


class TypeCache:
    """Type name → GraphQL type, written once per name."""

    def __init__(self):
        self._types: dict[str, tuple[SchemaNode | None, GraphQLType]] = {}

    def lookup(self, name: str, node: SchemaNode | None = None) -> GraphQLType | None:
        """Return the type cached under ``name``.

        Raises SchemaBuildError when the cached type was built from a node
        whose shape differs from ``node``.
        """
        entry = self._types.get(name)
        if entry is None:
            return None
        cached_node, gql_type = entry
        if node is not None and cached_node is None:
            raise SchemaBuildError(f"Type name {name!r} is reserved for a root type")
        if node is not None and cached_node is not node:
            if _shape(cached_node) != _shape(node):
                raise SchemaBuildError(
                    f"Type name {name!r} is used by descriptions of different shapes"
                )
        return gql_type

    def store(self, name: str, node: SchemaNode | None, gql_type: GraphQLType) -> GraphQLType:
        if name in self._types:
            raise SchemaBuildError(f"Type name {name!r} is already defined")
        self._types[name] = (node, gql_type)
        return gql_type

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def names(self) -> list[str]:
        return list(self._types)


class TypeCompiler:
    """Compiles description nodes into GraphQL types.

    One compiler corresponds to one schema build; its cache and the type
    names it derives live as long as it does.
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        scalars: ScalarRegistry | None = None,
        validator: Validator | None = None,
    ):
        self.config = config or ApiConfig()
        self.scalars = scalars or ScalarRegistry()
        self.validator = validator or default_validator
        self.cache = TypeCache()
        self._names: dict[tuple[int, bool], tuple[SchemaNode, str]] = {}
        self._counter = itertools.count(1)

    # Public API

    def compile(self, node: SchemaNode, is_input: bool = False) -> GraphQLType:
        """Compile ``node`` into an output type, or an input type if ``is_input``."""
        gql_type = self._compile_kind(node, is_input)
        if is_input and node.is_required and not isinstance(gql_type, GraphQLNonNull):
            return GraphQLNonNull(gql_type)
        return gql_type

    def root_type(
        self,
        name: str,
        children: Mapping[str, SchemaNode],
        resolver_factory: ResolverFactory | None = None,
    ) -> GraphQLObjectType:
        """Build a root operation type from a ``{field: node}`` mapping."""
        fields: dict[str, GraphQLField] = {}
        root = GraphQLObjectType(name=name, fields=lambda: fields)
        self.cache.store(name, None, root)
        fields.update(self.fields_for(children, resolver_factory))
        return root

    def fields_for(
        self,
        children: Mapping[str, SchemaNode],
        resolver_factory: ResolverFactory | None = None,
    ) -> dict[str, GraphQLField]:
        """Convert a ``{name: node}`` mapping into output fields."""
        fields = {}
        for key, child in children.items():
            if child.is_forbidden:
                continue
            factory = resolver_factory or self.field_resolver
            fields[key] = GraphQLField(
                self.compile(child),
                args=self.args_for(child),
                description=child.resolved().metadata.description or child.metadata.description,
                resolve=factory(key, child),
            )
        return fields

    def args_for(self, node: SchemaNode) -> dict[str, GraphQLArgument] | None:
        """Convert a node's ``args`` metadata into field arguments."""
        args_schema = node.resolved().metadata.args or node.metadata.args
        if not args_schema:
            return None
        return {
            name: GraphQLArgument(
                self.compile(arg, is_input=True),
                description=arg.metadata.description,
            )
            for name, arg in args_schema.items()
            if not arg.is_forbidden
        }

    def field_resolver(self, key: str, node: SchemaNode) -> Callable[..., Any] | None:
        """Return the resolver for a non-root field.

        Fields with a ``resolve`` in their metadata call it with validated
        arguments. Date fields serialize their values. Everything else uses
        graphql-core's default lookup by field name.
        """
        meta = node.resolved().metadata
        custom = meta.resolve or node.metadata.resolve
        if custom is None:
            if not self._needs_serialization(node):
                return None

            def resolve_value(parent, info, **args):
                return self.output_value(node, _lookup(parent, info.field_name))

            return resolve_value

        args_schema = meta.args or node.metadata.args

        def resolve(parent, info, **args):
            arguments = args
            if args_schema:
                try:
                    arguments = self.validator.attempt(args, args_schema)
                except ValidationError as e:
                    raise ArgumentValidationError(key, e) from e
            result = custom(parent, arguments, info.context, info)
            if inspect.isawaitable(result):
                return self._serialize_later(node, result)
            return self.output_value(node, result)

        return resolve

    def output_value(self, node: SchemaNode, value: Any) -> Any:
        """Prepare a resolved value for serialization by GraphQL."""
        node = node.resolved()
        if value is None:
            return None
        if node.kind in SCALAR_KINDS:
            return self.scalars.for_node(node).serialize(value)
        if node.kind is Kind.ARRAY and isinstance(value, (list, tuple)):
            items = surviving_items(node)
            if len(items) == 1:
                return [self.output_value(items[0], v) for v in value]
        return value

    def type_name(self, node: SchemaNode, is_input: bool) -> str:
        """Return the type name of a node, deriving it on first request."""
        key = (id(node), is_input)
        known = self._names.get(key)
        if known is not None:
            return known[1]
        name = self._derive_name(node, is_input)
        self._names[key] = (node, name)
        return name

    # Kinds

    def _compile_kind(self, node: SchemaNode, is_input: bool) -> GraphQLType:
        match node.kind:
            case Kind.STRING | Kind.NUMBER | Kind.BOOLEAN | Kind.DATE:
                handler = self.scalars.for_node(node)
                if handler is None:
                    raise SchemaBuildError(f"No scalar handler registered for {node.kind.value}")
                return handler.graphql_type
            case Kind.OBJECT:
                return self._object(node, is_input)
            case Kind.ARRAY:
                return self._array(node, is_input)
            case Kind.ALTERNATIVES:
                return self._alternatives(node, is_input)
            case Kind.LAZY:
                return self.compile(node.thunk(), is_input)
            case _:
                raise SchemaBuildError(f"Unsupported description kind: {node.kind!r}")

    def _object(self, node: SchemaNode, is_input: bool) -> GraphQLNamedType:
        name = self.type_name(node, is_input)
        cached = self.cache.lookup(name, node)
        if cached is not None:
            logger.debug("Reusing cached type %s", name)
            return cached

        description = node.metadata.description
        if is_input:
            input_fields: dict[str, GraphQLInputField] = {}
            gql_type = GraphQLInputObjectType(
                name=name, fields=lambda: input_fields, description=description
            )
            self.cache.store(name, node, gql_type)
            input_fields.update(self._input_fields(node.children))
        else:
            fields: dict[str, GraphQLField] = {}
            gql_type = GraphQLObjectType(
                name=name, fields=lambda: fields, description=description
            )
            self.cache.store(name, node, gql_type)
            fields.update(self.fields_for(node.children))
        logger.debug("Compiled %s type %s", "input" if is_input else "object", name)
        return gql_type

    def _array(self, node: SchemaNode, is_input: bool) -> GraphQLList:
        items = surviving_items(node)
        name = self.type_name(node, is_input)
        if not items:
            raise SchemaBuildError(f"Array {name} has no items to describe its elements")
        if len(items) == 1:
            element = self.compile(items[0], is_input)
            if name not in self.cache:
                self.cache.store(name, node, element)
        else:
            element = self._variants(node, items, is_input)
        return GraphQLList(element)

    def _alternatives(self, node: SchemaNode, is_input: bool) -> GraphQLType:
        items = surviving_items(node)
        if not items:
            raise SchemaBuildError(f"Alternatives {self.type_name(node, is_input)} has no matches")
        if len(items) == 1:
            return self.compile(items[0], is_input)
        return self._variants(node, items, is_input)

    def _variants(self, node: SchemaNode, items: list[SchemaNode], is_input: bool) -> GraphQLNamedType:
        name = self.type_name(node, is_input)
        cached = self.cache.lookup(name, node)
        if cached is not None:
            return cached
        if is_input:
            return self._merged_input(name, node, items)
        return self._union(name, node, items)

    def _merged_input(self, name: str, node: SchemaNode, items: list[SchemaNode]) -> GraphQLInputObjectType:
        """Inputs can't be polymorphic: merge every item's children into one type.

        Later items overwrite same-named fields of earlier ones.
        """
        merged: dict[str, SchemaNode] = {}
        for item in items:
            merged.update(item.resolved().children)
        if not any(not child.is_forbidden for child in merged.values()):
            raise SchemaBuildError(f"Input alternatives {name} must be object descriptions")

        input_fields: dict[str, GraphQLInputField] = {}
        gql_type = GraphQLInputObjectType(
            name=name, fields=lambda: input_fields, description=node.metadata.description
        )
        self.cache.store(name, node, gql_type)
        input_fields.update(self._input_fields(merged))
        logger.debug("Compiled merged input type %s from %d items", name, len(items))
        return gql_type

    def _union(self, name: str, node: SchemaNode, items: list[SchemaNode]) -> GraphQLUnionType:
        variants: list[tuple[GraphQLObjectType, frozenset[str]]] = []
        gql_type = GraphQLUnionType(
            name=name,
            types=lambda: [variant for variant, _ in variants],
            resolve_type=_variant_resolver(name, variants),
            description=node.metadata.description,
        )
        self.cache.store(name, node, gql_type)
        for item in items:
            variant = self.compile(item)
            if not isinstance(variant, GraphQLObjectType):
                raise SchemaBuildError(
                    f"Union {name} can only hold object descriptions, got {item.resolved().kind.value}"
                )
            if any(existing is variant for existing, _ in variants):
                continue
            variants.append((variant, frozenset(selectable_children(item))))
        logger.debug("Compiled union %s of %s", name, [v.name for v, _ in variants])
        return gql_type

    def _input_fields(self, children: Mapping[str, SchemaNode]) -> dict[str, GraphQLInputField]:
        return {
            key: GraphQLInputField(
                self.compile(child, is_input=True),
                description=child.metadata.description,
            )
            for key, child in children.items()
            if not child.is_forbidden
        }

    # Names

    def _derive_name(self, node: SchemaNode, is_input: bool) -> str:
        prefix = self.config.input_prefix if is_input else ""
        if node.metadata.name:
            return prefix + node.metadata.name
        if node.kind is Kind.LAZY:
            return self.type_name(node.resolved(), is_input)
        if node.kind in (Kind.ARRAY, Kind.ALTERNATIVES):
            items = surviving_items(node)
            if len(items) > 1:
                return self.config.union_separator.join(
                    prefix + self._short_name(item) for item in items
                )
        return f"{prefix}{_upper_first(node.kind.value)}{next(self._counter)}"

    @staticmethod
    def _short_name(item: SchemaNode) -> str:
        item = item.resolved()
        return _upper_first(item.metadata.name or item.kind.value)

    def _needs_serialization(self, node: SchemaNode) -> bool:
        node = node.resolved()
        if node.kind is Kind.DATE:
            return True
        if node.kind is Kind.ARRAY:
            items = surviving_items(node)
            return len(items) == 1 and items[0].resolved().kind is Kind.DATE
        return False

    async def _serialize_later(self, node: SchemaNode, awaitable) -> Any:
        return self.output_value(node, await awaitable)


def _upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def _lookup(parent: Any, key: str) -> Any:
    if parent is None:
        return None
    if isinstance(parent, Mapping):
        return parent.get(key)
    return getattr(parent, key, None)


def _value_keys(value: Any) -> frozenset[str]:
    if isinstance(value, Mapping):
        return frozenset(value)
    try:
        attributes = vars(value)
    except TypeError:
        return frozenset()
    return frozenset(k for k in attributes if not k.startswith("_"))


def _variant_resolver(name: str, variants: list[tuple[GraphQLObjectType, frozenset[str]]]):
    """Pick the variant whose field names equal the value's keys exactly.

    A value with extra or missing keys matches nothing, and that is reported
    rather than guessed.
    """
    def resolve_type(value, info, abstract_type):
        keys = _value_keys(value)
        matches = [variant.name for variant, field_names in variants if field_names == keys]
        if len(matches) != 1:
            raise AmbiguousUnionError(name, list(keys), matches)
        return matches[0]

    return resolve_type
