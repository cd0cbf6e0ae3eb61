"""Tests for the middleware pipeline."""

import pytest

from gql_descql.core.pipeline import CONTINUE, Halt, Handler, Pipeline, walk
from gql_descql.core.selection import RequestNode
from gql_descql.middleware import ResponseCache


@pytest.fixture
def tree():
    return {
        "query": {
            "person": RequestNode(
                arguments={"id": "x"},
                fields={"name": RequestNode(), "films": RequestNode(fields={"title": RequestNode()})},
            ),
        }
    }


class TestWalk:
    """Tests for path lookup in request trees."""

    def test_operation(self, tree):
        assert walk(tree, "query") is tree["query"]

    def test_field(self, tree):
        assert walk(tree, "query.person") is tree["query"]["person"]

    def test_nested_fields(self, tree):
        films = tree["query"]["person"].fields["films"]
        assert walk(tree, "query.person.fields.films") is films
        assert walk(tree, "query.person.child_fields.films") is films

    def test_arguments(self, tree):
        assert walk(tree, "query.person.args.id") == "x"
        assert walk(tree, "query.person.arguments") == {"id": "x"}

    def test_missing(self, tree):
        assert walk(tree, "mutation") is None
        assert walk(tree, "query.film") is None
        assert walk(tree, "query.person.name") is None

    def test_list_index(self):
        tree = {"feed": RequestNode(fields=[{"type": RequestNode()}, {"body": RequestNode()}])}
        assert walk(tree, "feed.fields.1.body") == RequestNode()
        assert walk(tree, "feed.fields.5") is None


class TestRun:
    """Tests for running handlers."""

    @pytest.mark.asyncio
    async def test_handlers_run_in_order(self, tree):
        pipeline = Pipeline()
        calls = []

        async def first(ctx):
            calls.append("first")

        async def second(ctx):
            calls.append("second")

        pipeline.register("query", first)
        pipeline.register("query.person", second)
        await pipeline.run(tree)
        assert calls == ["first", "second"]

    @pytest.mark.asyncio
    async def test_end_skips_remaining_handlers(self, tree):
        pipeline = Pipeline()
        calls = []

        async def a(ctx):
            calls.append("a")

        async def b(ctx):
            calls.append("b")
            ctx.response["person"] = {"name": "Andy"}
            return ctx.end()

        async def c(ctx):
            calls.append("c")

        for handler in (a, b, c):
            pipeline.register("query", handler)
        response = await pipeline.run(tree)
        assert calls == ["a", "b"]
        assert response == {"person": {"name": "Andy"}}

    @pytest.mark.asyncio
    async def test_end_without_return(self, tree):
        pipeline = Pipeline()
        calls = []

        def stop(ctx):
            ctx.end()

        pipeline.register("query", stop)
        pipeline.register("query", lambda ctx: calls.append("late"))
        await pipeline.run(tree)
        assert calls == []

    @pytest.mark.asyncio
    async def test_end_replaces_response(self, tree):
        pipeline = Pipeline()

        async def cached(ctx):
            return ctx.end({"person": {"name": "Cached"}})

        pipeline.register("query", cached)
        assert await pipeline.run(tree) == {"person": {"name": "Cached"}}

    @pytest.mark.asyncio
    async def test_explicit_outcomes(self, tree):
        pipeline = Pipeline()
        pipeline.register("query", lambda ctx: CONTINUE)
        pipeline.register("query", lambda ctx: Halt({"done": True}))
        pipeline.register("query", lambda ctx: pytest.fail("should not run"))
        assert await pipeline.run(tree) == {"done": True}

    @pytest.mark.asyncio
    async def test_missing_paths_are_skipped(self, tree):
        pipeline = Pipeline()
        calls = []
        pipeline.register("mutation.createPerson", lambda ctx: calls.append("mutation"))
        pipeline.register("query.person.fields.films", lambda ctx: calls.append("films"))
        await pipeline.run(tree)
        assert calls == ["films"]

    @pytest.mark.asyncio
    async def test_no_handlers(self, tree):
        assert await Pipeline().run(tree) == {}

    @pytest.mark.asyncio
    async def test_handler_error_stops_the_chain(self, tree):
        pipeline = Pipeline()
        calls = []

        async def broken(ctx):
            raise RuntimeError("backend down")

        pipeline.register("query", broken)
        pipeline.register("query", lambda ctx: calls.append("after"))
        with pytest.raises(RuntimeError, match="backend down"):
            await pipeline.run(tree)
        assert calls == []

    @pytest.mark.asyncio
    async def test_later_handlers_see_earlier_writes(self, tree):
        pipeline = Pipeline()

        async def load_person(ctx):
            ctx.response["person"] = {"name": "Andy"}
            ctx.state["person_id"] = ctx.request.arguments["id"]

        async def load_films(ctx):
            assert ctx.request.fields == {"title": RequestNode()}
            ctx.response["person"]["films"] = [{"title": ctx.state["person_id"]}]

        pipeline.register("query.person", load_person)
        pipeline.register("query.person.fields.films", load_films)
        response = await pipeline.run(tree)
        assert response == {"person": {"name": "Andy", "films": [{"title": "x"}]}}

    @pytest.mark.asyncio
    async def test_reassigned_response_is_kept(self, tree):
        pipeline = Pipeline()

        def replace(ctx):
            ctx.response = {"replaced": True}

        pipeline.register("query", replace)
        pipeline.register("query", lambda ctx: ctx.response.update(seen=True))
        assert await pipeline.run(tree) == {"replaced": True, "seen": True}


class TestRegister:
    """Tests for handler registration."""

    def test_space_separated_paths(self):
        pipeline = Pipeline()
        pipeline.register("query mutation", lambda ctx: None)
        assert [m.path for m in pipeline.middleware] == ["query", "mutation"]
        assert len(pipeline) == 2

    def test_empty_path(self):
        with pytest.raises(ValueError):
            Pipeline().register("  ", lambda ctx: None)

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            Pipeline().register("query", {"not": "a handler"})

    def test_functions_and_methods_are_handlers(self):
        async def load(ctx):
            pass

        assert isinstance(load, Handler)
        assert isinstance(ResponseCache().get, Handler)
        assert not isinstance("load", Handler)

    @pytest.mark.asyncio
    async def test_handler_runs_once_per_present_path(self, tree):
        pipeline = Pipeline()
        calls = []
        pipeline.register("query mutation", lambda ctx: calls.append(ctx.path))
        await pipeline.run(tree)
        assert calls == ["query"]
