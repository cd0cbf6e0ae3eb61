"""Tests for the selection parser."""

import pytest
from graphql import FragmentDefinitionNode, OperationDefinitionNode, parse

from gql_descql.core.description import alternatives, array, number, obj, string
from gql_descql.core.errors import ArgumentValidationError, UnsupportedLiteralError
from gql_descql.core.selection import (
    RequestNode,
    SelectionParser,
    parse_selections,
    tree_to_dict,
)


@pytest.fixture
def root():
    """A query root with a person lookup and a feed of blocks."""
    film = obj({"title": string()}).meta(name="Film")
    person = obj({
        "name": string(),
        "films": array(film).meta(args={"limit": number().integer().min(1)}),
    }).meta(name="Person", args={
        "id": string(),
        "age": number().min(1).max(100),
    })
    blocks = array(
        obj({"type": string(), "size": number()}).meta(name="ImageBlock"),
        obj({"type": string(), "body": string()}).meta(name="TextBlock"),
    )
    return obj({"person": person, "feed": blocks, "search": alternatives(film, person)})


def parse_query(root, source, variables=None):
    document = parse(source)
    operation = next(d for d in document.definitions if isinstance(d, OperationDefinitionNode))
    fragments = {
        d.name.value: d
        for d in document.definitions
        if isinstance(d, FragmentDefinitionNode)
    }
    return parse_selections(
        root,
        operation.selection_set.selections,
        fragments=fragments,
        variables=variables,
    )


class TestParse:
    """Tests for plain field selections."""

    def test_simple_query(self, root):
        tree = parse_query(root, '{ person(id: "x") { name } }')
        assert tree_to_dict(tree) == {
            "person": {
                "arguments": {"id": "x"},
                "fields": {"name": {"arguments": {}, "fields": {}}},
            }
        }

    def test_nested_arguments(self, root):
        tree = parse_query(root, '{ person(id: "x") { name films(limit: 10) { title } } }')
        films = tree["person"].fields["films"]
        assert isinstance(films, RequestNode)
        assert films.arguments == {"limit": 10}
        assert set(films.child_fields) == {"title"}

    def test_typename_is_skipped(self, root):
        tree = parse_query(root, "{ person { __typename name } }")
        assert set(tree["person"].fields) == {"name"}

    def test_field_without_description_keeps_raw_arguments(self):
        tree = parse_query(None, '{ anything(limit: 3, q: "x") { x } }')
        assert tree["anything"].arguments == {"limit": 3, "q": "x"}


class TestArguments:
    """Tests for argument literals and validation."""

    def test_invalid_argument_raises(self, root):
        with pytest.raises(ArgumentValidationError) as exc_info:
            parse_query(root, "{ person(age: 0) { name } }")
        assert 'child "age" fails' in str(exc_info.value)
        assert exc_info.value.field_name == "person"

    def test_nested_field_arguments_are_validated(self, root):
        with pytest.raises(ArgumentValidationError):
            parse_query(root, "{ person { films(limit: 0) { title } } }")

    def test_float_literal_is_unsupported(self):
        with pytest.raises(UnsupportedLiteralError) as exc_info:
            parse_query(None, "{ anything(score: 1.5) { x } }")
        assert str(exc_info.value).startswith("Unsupported kind")

    def test_null_literal_is_unsupported(self):
        with pytest.raises(UnsupportedLiteralError):
            parse_query(None, "{ anything(score: null) { x } }")

    def test_list_and_object_literals(self):
        tree = parse_query(None, '{ anything(ids: [1, 2], where: {name: "x", ok: true}) { x } }')
        assert tree["anything"].arguments == {"ids": [1, 2], "where": {"name": "x", "ok": True}}

    def test_variables(self, root):
        tree = parse_query(
            root,
            "query ($id: String) { person(id: $id) { name } }",
            variables={"id": "andy"},
        )
        assert tree["person"].arguments == {"id": "andy"}

    def test_unprovided_variable_is_omitted(self, root):
        tree = parse_query(root, "query ($id: String) { person(id: $id) { name } }")
        assert tree["person"].arguments == {}

    def test_unprovided_variable_for_required_argument(self):
        root = obj({"film": obj({"title": string()}).meta(args={"id": string().required()})})
        with pytest.raises(ArgumentValidationError) as exc_info:
            parse_query(root, "query ($id: String) { film(id: $id) { title } }")
        assert exc_info.value.message == 'child "id" fails because ["id" is required]'


class TestFragments:
    """Tests for inline fragments and named spreads."""

    def test_inline_fragments_become_a_list(self, root):
        tree = parse_query(root, """
            {
              feed {
                ... on ImageBlock { type size }
                ... on TextBlock { type body }
              }
            }
        """)
        feed = tree["feed"].fields
        assert isinstance(feed, list)
        assert [set(part) for part in feed] == [{"type", "size"}, {"type", "body"}]

    def test_mixed_fragments_are_merged(self, root):
        tree = parse_query(root, """
            { feed { type ... on TextBlock { body } } }
        """)
        assert set(tree["feed"].fields) == {"type", "body"}

    def test_named_spreads_are_flattened(self, root):
        tree = parse_query(root, """
            { person { ...PersonParts } }
            fragment PersonParts on Person { name films { title } }
        """)
        assert set(tree["person"].fields) == {"name", "films"}

    def test_parser_without_fragments(self, root):
        document = parse("{ person { name } }")
        selections = document.definitions[0].selection_set.selections
        tree = SelectionParser().parse(root, selections)
        assert set(tree) == {"person"}
