"""Tests for the FastAPI request-scoped dependencies."""

import pytest

pytest.importorskip("fastapi")

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from kungfu import Ok

from cartsync.context import StorefrontContext
from cartsync.contrib import fastapi as cf
from cartsync.transport import MutationRequest, MutationTransport


def transport_app(factory, seen: list[MutationTransport]) -> FastAPI:
    app = FastAPI()
    transport_for = cf.transport_dependency(factory)

    @app.get("/cart-page")
    async def cart_page(transport: MutationTransport = Depends(transport_for)) -> dict:
        seen.append(transport)
        result = await transport.send(MutationRequest("GET", "/api/v1/cart"))
        assert isinstance(result, Ok)
        return {"version": result.value.version}

    return app


class TestTransportDependency:
    def test_forwards_only_the_cookie(self, store, factory) -> None:
        seen: list[MutationTransport] = []
        with TestClient(transport_app(factory, seen)) as client:
            response = client.get(
                "/cart-page",
                headers={
                    "cookie": "laravel_session=abc",
                    "authorization": "Bearer secret",
                    "x-forwarded-for": "10.0.0.1",
                },
            )

        assert response.json() == {"version": 5}
        upstream = store.requests[-1]
        assert upstream.headers["cookie"] == "laravel_session=abc"
        assert "authorization" not in upstream.headers
        assert "x-forwarded-for" not in upstream.headers

    def test_fresh_transport_per_request_closed_after(self, store, factory) -> None:
        seen: list[MutationTransport] = []
        with TestClient(transport_app(factory, seen)) as client:
            client.get("/cart-page", headers={"cookie": "user=a"})
            client.get("/cart-page", headers={"cookie": "user=b"})

        first, second = seen
        assert first is not second
        assert first.context.cookie == "user=a"  # type: ignore[union-attr]
        assert second.context.cookie == "user=b"  # type: ignore[union-attr]
        assert first.is_closed and second.is_closed
        assert [r.headers["cookie"] for r in store.requests] == ["user=a", "user=b"]


class TestContextDependency:
    def test_context_is_bound_to_request(self, store, factory) -> None:
        store.seed(variant_id=1, qty=3)
        contexts: list[StorefrontContext] = []
        app = FastAPI()
        context_for = cf.context_dependency(factory, cart_token="cart-abc")

        @app.get("/summary")
        async def summary(ctx: StorefrontContext = Depends(context_for)) -> dict:
            contexts.append(ctx)
            result = await ctx.client.load()
            assert isinstance(result, Ok)
            return {"items": result.value.item_count}

        with TestClient(app) as client:
            response = client.get("/summary", headers={"cookie": "laravel_session=abc"})

        assert response.json() == {"items": 3}
        (ctx,) = contexts
        assert ctx.owns_transport
        assert ctx.transport.is_closed
        assert store.requests[-1].headers["X-Cart-Token"] == "cart-abc"
