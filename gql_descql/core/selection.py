"""Selection parser.

Converts, and validates, the field selections of a parsed GraphQL query into
a request tree that is easier to traverse and inspect. A query like

    {
      artist(id: "andy-warhol") {
        name
        artworks(limit: 100) {
          title
        }
      }
    }

is parsed into

    {
      "artist": RequestNode(
        arguments={"id": "andy-warhol"},
        fields={
          "name": RequestNode(),
          "artworks": RequestNode(
            arguments={"limit": 100},
            fields={"title": RequestNode()},
          ),
        },
      )
    }

Arguments are validated against the ``args`` metadata of the description each
field came from.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from graphql import (
    BooleanValueNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    IntValueNode,
    ListValueNode,
    ObjectValueNode,
    SelectionNode,
    StringValueNode,
    ValueNode,
    VariableNode,
)

from .description import SchemaNode, selectable_children
from .errors import ArgumentValidationError, UnsupportedLiteralError, ValidationError
from .validation import Validator, default_validator


@dataclass
class RequestNode:
    """The arguments and child selections requested for one field."""
    arguments: dict[str, Any] = field(default_factory=dict)
    # A list of maps when the child selection is made of inline fragments only
    fields: Union[dict[str, "RequestNode"], list[dict[str, "RequestNode"]]] = field(
        default_factory=dict
    )

    @property
    def child_fields(self):
        return self.fields

    def to_dict(self) -> dict[str, Any]:
        return {"arguments": self.arguments, "fields": tree_to_dict(self.fields)}


RequestTree = Union[dict[str, RequestNode], list[dict[str, RequestNode]]]


def tree_to_dict(tree: Any) -> Any:
    """Convert a request tree to plain dicts and lists."""
    if isinstance(tree, RequestNode):
        return tree.to_dict()
    if isinstance(tree, Mapping):
        return {k: tree_to_dict(v) for k, v in tree.items()}
    if isinstance(tree, list):
        return [tree_to_dict(v) for v in tree]
    return tree


def value_from_ast(node: ValueNode, variables: Mapping[str, Any] | None = None) -> Any:
    """Convert a literal from the query AST into a Python value."""
    if isinstance(node, IntValueNode):
        return int(node.value)
    if isinstance(node, (StringValueNode, BooleanValueNode)):
        return node.value
    if isinstance(node, ListValueNode):
        return [value_from_ast(v, variables) for v in node.values]
    if isinstance(node, ObjectValueNode):
        return {f.name.value: value_from_ast(f.value, variables) for f in node.fields}
    if isinstance(node, VariableNode):
        return (variables or {}).get(node.name.value)
    raise UnsupportedLiteralError(node.kind)


class SelectionParser:
    """Builds request trees for one execution.

    Args:
        fragments: Named fragment definitions of the document, used to expand
            fragment spreads
        variables: Coerced variable values of the execution
        validator: Validation entry point for field arguments
    """

    def __init__(
        self,
        fragments: Mapping[str, FragmentDefinitionNode] | None = None,
        variables: Mapping[str, Any] | None = None,
        validator: Validator | None = None,
    ):
        self.fragments = fragments or {}
        self.variables = variables or {}
        self.validator = validator or default_validator

    def parse(self, node: SchemaNode | None, selections: Sequence[SelectionNode]) -> RequestTree:
        selections = self._expand_spreads(selections)
        if selections and all(isinstance(s, InlineFragmentNode) for s in selections):
            return [
                self._as_map(self.parse(node, s.selection_set.selections))
                for s in selections
            ]

        children = selectable_children(node) if node is not None else {}
        request: dict[str, RequestNode] = {}
        for selection in selections:
            if isinstance(selection, InlineFragmentNode):
                # Fragments mixed with plain fields are merged into this level
                request.update(self._as_map(self.parse(node, selection.selection_set.selections)))
                continue
            if not isinstance(selection, FieldNode):
                continue
            name = selection.name.value
            if name.startswith("__"):
                continue
            field_node = children.get(name)
            arguments = self._arguments(name, field_node, selection)
            fields: RequestTree = {}
            if selection.selection_set:
                fields = self.parse(field_node, selection.selection_set.selections)
            request[name] = RequestNode(arguments=arguments, fields=fields)
        return request

    def _arguments(self, name: str, node: SchemaNode | None, selection: FieldNode) -> dict[str, Any]:
        raw = {
            arg.name.value: value_from_ast(arg.value, self.variables)
            for arg in selection.arguments or ()
            # An argument bound to an unprovided variable counts as omitted
            if not (isinstance(arg.value, VariableNode) and arg.value.name.value not in self.variables)
        }
        if node is None:
            return raw
        args_schema = node.resolved().metadata.args or node.metadata.args
        if not args_schema:
            return raw
        try:
            return self.validator.attempt(raw, args_schema)
        except ValidationError as e:
            raise ArgumentValidationError(name, e) from e

    def _expand_spreads(self, selections: Sequence[SelectionNode]) -> list[SelectionNode]:
        """Replace named fragment spreads with the selections they stand for."""
        expanded: list[SelectionNode] = []
        for selection in selections:
            if isinstance(selection, FragmentSpreadNode):
                definition = self.fragments.get(selection.name.value)
                if definition is not None:
                    expanded.extend(self._expand_spreads(definition.selection_set.selections))
            else:
                expanded.append(selection)
        return expanded

    @staticmethod
    def _as_map(tree: RequestTree) -> dict[str, RequestNode]:
        if isinstance(tree, list):
            merged: dict[str, RequestNode] = {}
            for part in tree:
                merged.update(part)
            return merged
        return tree


def parse_selections(
    node: SchemaNode | None,
    selections: Sequence[SelectionNode],
    *,
    fragments: Mapping[str, FragmentDefinitionNode] | None = None,
    variables: Mapping[str, Any] | None = None,
    validator: Validator | None = None,
) -> RequestTree:
    """Parse ``selections`` made against ``node`` into a request tree."""
    return SelectionParser(fragments, variables, validator).parse(node, selections)
