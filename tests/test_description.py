"""Tests for the description DSL."""

import pytest

from gql_descql.core.description import (
    Kind,
    Presence,
    SchemaNode,
    alternatives,
    array,
    boolean,
    date,
    lazy,
    number,
    obj,
    reach,
    selectable_children,
    string,
    surviving_items,
)


class TestBuilders:
    """Tests for the node builder functions."""

    def test_scalar_kinds(self):
        assert string().kind is Kind.STRING
        assert number().kind is Kind.NUMBER
        assert boolean().kind is Kind.BOOLEAN
        assert date().kind is Kind.DATE

    def test_object_children(self):
        node = obj({"name": string(), "age": number()})
        assert node.kind is Kind.OBJECT
        assert set(node.children) == {"name", "age"}

    def test_array_items_keep_order(self):
        first, second = obj({"a": string()}), obj({"b": string()})
        node = array(first, second)
        assert node.items == (first, second)

    def test_keys_extends_children(self):
        node = obj({"a": string()}).keys({"b": number()})
        assert set(node.children) == {"a", "b"}

    def test_keys_rejects_non_objects(self):
        with pytest.raises(TypeError):
            string().keys({"a": string()})

    def test_integer_only_on_numbers(self):
        assert number().integer().has_rule("integer")
        with pytest.raises(TypeError):
            string().integer()


class TestImmutability:
    """Chained calls return new nodes."""

    def test_required_returns_copy(self):
        base = string()
        required = base.required()
        assert base.presence is Presence.OPTIONAL
        assert required.presence is Presence.REQUIRED
        assert required is not base

    def test_nodes_compare_by_identity(self):
        assert string() != string()
        node = string()
        assert node == node
        assert len({node, node}) == 1


class TestMeta:
    """Tests for metadata merging."""

    def test_later_meta_overrides_earlier(self):
        node = obj().meta(name="First").meta(name="Second")
        assert node.metadata.name == "Second"

    def test_meta_keeps_unrelated_keys(self):
        args = {"id": string()}
        node = obj().meta(name="Person").meta(args=args)
        assert node.metadata.name == "Person"
        assert node.metadata.args is args

    def test_description_writes_meta(self):
        assert string().description("Just a foo").metadata.description == "Just a foo"

    def test_unknown_keys_go_to_extra(self):
        node = string().meta(deprecated=True)
        assert node.metadata.extra == {"deprecated": True}


class TestRules:
    """Tests for constraint rules."""

    def test_rule_param_uses_last_rule(self):
        node = number().min(1).min(5)
        assert node.rule_param("min") == 5

    def test_rule_param_missing(self):
        assert number().rule_param("max") is None

    def test_valid_accumulates(self):
        assert string().valid("a").valid("b").allowed == ("a", "b")


class TestStructureHelpers:
    """Tests for lazy resolution and child lookup."""

    def test_lazy_resolves_to_target(self):
        target = obj({"name": string()})
        assert lazy(lambda: target).resolved() is target

    def test_nested_lazy_resolves(self):
        target = string()
        assert lazy(lambda: lazy(lambda: target)).resolved() is target

    def test_reach(self):
        child = string()
        assert reach(obj({"name": child}), "name") is child
        assert reach(obj({"name": child}), "missing") is None

    def test_surviving_items_drops_forbidden(self):
        kept = obj({"a": string()})
        node = array(kept, obj({"b": string()}).forbidden())
        assert surviving_items(node) == [kept]

    def test_selectable_children_skips_forbidden(self):
        node = obj({"name": string(), "secret": string().forbidden()})
        assert set(selectable_children(node)) == {"name"}

    def test_selectable_children_merges_items(self):
        node = alternatives(
            obj({"type": string(), "size": number()}),
            obj({"type": string(), "body": string()}),
        )
        assert set(selectable_children(node)) == {"type", "size", "body"}

    def test_selectable_children_of_scalar(self):
        assert selectable_children(string()) == {}

    def test_repr_mentions_name(self):
        assert "Person" in repr(obj().meta(name="Person"))
        assert isinstance(obj(), SchemaNode)
