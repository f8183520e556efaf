"""Tests for the CartClient facade."""

from __future__ import annotations

import json

import pytest
from kungfu import Ok, Error

from cartsync import errors as X
from cartsync.client import CartClient

CART = "/api/v1/cart"


@pytest.fixture
def client(coordinator, transactions, settings) -> CartClient:
    return CartClient(coordinator, transactions, settings.paths())


def cart_of(result):
    assert isinstance(result, Ok), result
    return result.value


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_adopts_cart_and_token(self, store, client) -> None:
        store.seed(variant_id=1, qty=2)
        store.token = "cart-fresh"

        cart = cart_of(await client.load())

        assert cart.version == 5
        assert cart.item_count == 2
        assert client.view == cart
        assert client.coordinator.transport.cart_token == "cart-fresh"
        assert client.coordinator.tracker.current == 5

    @pytest.mark.asyncio
    async def test_unknown_cart_is_forgotten(self, store, client) -> None:
        cart_of(await client.load())
        store.cart_exists = False

        match await client.load():
            case Error(X.Unclassified(status=404)):
                pass
            case other:
                pytest.fail(f"unexpected {other}")
        assert client.coordinator.transport.cart_token is None
        assert client.coordinator.tracker.current is None
        assert client.view.is_empty


class TestLines:
    @pytest.mark.asyncio
    async def test_add_is_shown_then_confirmed(self, store, client) -> None:
        cart_of(await client.load())

        submission = client.add(variant_id=7, quantity=2, unit_price=1999, name="Mug")
        assert client.view.item("tmp-1").line_total == 3998  # type: ignore[union-attr]

        cart_of(await submission)
        assert store.line_for(7).qty == 2  # type: ignore[union-attr]
        assert [line.id for line in client.view.items] == ["42"]

    @pytest.mark.asyncio
    async def test_zero_quantity_removes(self, store, client) -> None:
        line = store.seed(variant_id=1, qty=2)
        cart_of(await client.load())

        await client.update_quantity(line, 0)

        assert [r.url.path for r in store.sent("DELETE")] == [f"{CART}/items/{line}"]
        assert store.sent("PATCH") == []
        assert client.view.is_empty


class TestCoupons:
    @pytest.mark.asyncio
    async def test_apply_and_remove(self, store, client) -> None:
        store.seed(variant_id=1, qty=2)
        cart_of(await client.load())

        applied = cart_of(await client.apply_coupon("SPRING"))
        assert applied.applied_codes == ("SPRING",)
        assert applied.totals.discounts == 500
        assert client.view.totals.grand_total == 1500
        assert json.loads(store.sent("POST")[0].content) == {"code": "SPRING"}

        removed = cart_of(await client.remove_coupon("SPRING"))
        assert removed.applied_codes == ()
        assert client.view.version == 7

    @pytest.mark.asyncio
    async def test_invalid_code_reports_field_error(self, store, client) -> None:
        cart_of(await client.load())

        match await client.apply_coupon("BOGUS"):
            case Error(X.ValidationFailure() as failure):
                assert X.field_errors(failure) == {"code": "The coupon code is invalid."}
            case other:
                pytest.fail(f"unexpected {other}")
        assert client.view.applied_codes == ()
        assert client.view.version == 5

    @pytest.mark.asyncio
    async def test_missing_cart_on_mutation_is_forgotten(self, store, client) -> None:
        cart_of(await client.load())
        store.cart_exists = False

        result = await client.apply_coupon("SPRING")

        assert isinstance(result, Error)
        assert client.coordinator.transport.cart_token is None


class TestOptionsAndAttach:
    @pytest.mark.asyncio
    async def test_options_follow_confirmed_temporary_id(self, store, client) -> None:
        cart_of(await client.load())
        cart_of(await client.add(variant_id=7))

        cart = cart_of(await client.set_options("tmp-1", {"size": "L"}))

        assert store.sent("PUT")[0].url.path == f"{CART}/items/42/options"
        assert cart.item("42").selected_options == {"size": "L"}  # type: ignore[union-attr]
        assert client.view.item("42").selected_options == {"size": "L"}  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_options_wait_for_add_in_flight(self, store, client) -> None:
        cart_of(await client.load())
        store.latency = lambda r: 0.05 if r.method == "POST" else 0

        add = client.add(variant_id=7)
        cart = cart_of(await client.set_options("tmp-1", {"size": "L"}))

        assert add.done() and isinstance(await add, Ok)
        assert [r.url.path for r in store.sent("PUT")] == [f"{CART}/items/42/options"]
        assert client.coordinator.transport.cart_token == "cart-abc"
        assert cart.item("42").selected_options == {"size": "L"}  # type: ignore[union-attr]
        assert [line.id for line in client.view.items] == ["42"]

    @pytest.mark.asyncio
    async def test_options_on_unresolved_add_fail_locally(self, store, client) -> None:
        cart_of(await client.load())
        store.fail("POST", f"{CART}/items", 503)

        add = client.add(variant_id=7)
        result = await client.set_options("tmp-1", {"size": "L"})

        assert isinstance(result, Error) and isinstance(result.value, X.Unclassified)
        assert result.value.status is None
        assert isinstance(await add, Error)
        assert store.sent("PUT") == []
        assert client.coordinator.transport.cart_token == "cart-abc"
        assert client.coordinator.tracker.current == 5
        assert [line.id for line in client.view.items] == ["tmp-1"]

    @pytest.mark.asyncio
    async def test_attach_sends_idempotency_key(self, store, client) -> None:
        cart_of(await client.load())

        cart = cart_of(await client.attach())

        attach = store.sent("POST", f"{CART}/attach")[0]
        assert attach.headers["Idempotency-Key"]
        assert cart.version == 6
