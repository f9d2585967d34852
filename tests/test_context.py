"""Tests for perch.context: the dispatch scope, get_request and g."""

import anyio
import pytest

from perch.app import App
from perch.context import current_scope, dispatch_scope, g, get_request
from perch.request import Request
from perch.testing import TestClient
from perch.updates import Message


def _request(text: str = "hi") -> Request:
    return Request(Message(text=text))


class TestDispatchScope:
    def test_outside_dispatch(self) -> None:
        with pytest.raises(LookupError):
            get_request()
        with pytest.raises(LookupError):
            _ = g.anything
        with pytest.raises(LookupError):
            g.anything = 1
        assert repr(g) == "<g outside dispatch>"

    def test_scope_sets_and_restores(self) -> None:
        request = _request()
        with dispatch_scope(request) as scope:
            assert get_request() is request
            assert current_scope() is scope
        with pytest.raises(LookupError):
            get_request()

    def test_nested_scopes(self) -> None:
        outer, inner = _request("outer"), _request("inner")
        with dispatch_scope(outer):
            g.depth = 1
            with dispatch_scope(inner):
                assert get_request().payload == "inner"
                assert "depth" not in g
            assert get_request().payload == "outer"
            assert g.depth == 1

    def test_replacing_request(self) -> None:
        with dispatch_scope(_request()) as scope:
            enriched = scope.request.with_attribute("locale", "en")
            scope.request = enriched
            assert get_request().attribute("locale") == "en"


class TestGlobals:
    def test_set_get_delete(self) -> None:
        with dispatch_scope(_request()):
            g.user = "alice"
            assert g.user == "alice"
            assert "user" in g
            del g.user
            with pytest.raises(AttributeError, match="has no attribute 'user'"):
                _ = g.user

    def test_missing_attribute(self) -> None:
        with dispatch_scope(_request()):
            with pytest.raises(AttributeError, match="has no attribute 'missing'"):
                _ = g.missing
            with pytest.raises(AttributeError):
                del g.missing

    def test_get_default(self) -> None:
        with dispatch_scope(_request()):
            g.locale = "en"
            assert g.get("locale") == "en"
            assert g.get("missing", "x") == "x"
            assert repr(g) == "<g {'locale': 'en'}>"

    def test_values_end_with_scope(self) -> None:
        with dispatch_scope(_request()):
            g.locale = "en"
        with dispatch_scope(_request()):
            assert "locale" not in g


class TestKernelScope:
    @pytest.mark.anyio
    async def test_g_does_not_leak_between_updates(self) -> None:
        app = App()

        @app.text("set")
        def set_value() -> str:
            g.value = "x"
            return "set"

        @app.text("get")
        def get_value() -> str:
            return g.get("value", "empty")

        async with TestClient(app) as client:
            await client.text("set")
            assert (await client.text("get")).text == "empty"
        with pytest.raises(LookupError):
            get_request()

    @pytest.mark.anyio
    async def test_concurrent_dispatches_are_isolated(self) -> None:
        app = App()

        @app.text("tag {value}")
        async def tag(value: str) -> str:
            g.value = value
            await anyio.sleep(0.01)
            return f"{g.value} {get_request().param('value')}"

        updates = [Message(text=f"tag {v}") for v in "abc"]
        results = await app.process_many(updates)
        assert [d.response.text for d in results] == ["a a", "b b", "c c"]

    @pytest.mark.anyio
    async def test_request_is_bound_in_handler(self) -> None:
        app = App()

        @app.text("page {n}")
        def page(n: int) -> str:
            return repr(get_request().bound("n"))

        async with TestClient(app) as client:
            assert (await client.text("page 3")).text == "3"
