"""Shared fixtures: an in-memory storefront API served through httpx.MockTransport."""

from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
import pytest

from cartsync.config import ClientSettings
from cartsync.errors import TypedError
from cartsync.optimistic import TransactionLog
from cartsync.retry import RetryCoordinator
from cartsync.transport import MutationTransport, TransportFactory

BASE_URL = "http://shop.test"
CART_TOKEN = "cart-abc"

SHIPPING_METHODS = {
    "courier": {"id": 1, "code": "courier", "name": "Courier", "price": 500, "currency": "USD", "estimated_days": 2},
    "pickup": {"id": 2, "code": "pickup", "name": "Pickup point", "price": 0, "currency": "USD"},
}
PAYMENT_PROVIDERS = {
    "cod": {"code": "cod", "name": "Cash on delivery", "type": "offline"},
    "card": {"code": "card", "name": "Card", "type": "online", "fee": 100},
}


def json_body(request: httpx.Request) -> Any:
    if not request.content:
        return {}
    try:
        return json.loads(request.content)
    except ValueError:
        return {}


# ═══════════════════════════════════════════════════════════════════════════════
# Fake storefront
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class Line:
    id: str
    variant_id: int | None
    sku: str | None
    qty: int
    unit: int
    options: dict[str, str] = field(default_factory=dict)

    def same(self, variant_id: int | None, sku: str | None, options: dict[str, str]) -> bool:
        matched = (variant_id is not None and self.variant_id == variant_id) or (
            sku is not None and self.sku == sku
        )
        return matched and self.options == options

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "sku": self.sku,
            "name": f"Variant {self.variant_id or self.sku}",
            "qty": self.qty,
            "price": {"currency": "USD", "list_minor": self.unit, "effective_minor": self.unit},
            "options": [{"name": k, "value": v, "price_minor": 0} for k, v in self.options.items()],
            "options_total_minor": 0,
            "line_total_minor": self.unit * self.qty,
        }


@dataclass
class Fault:
    method: str
    path: str
    status: int | None = None
    body: Any = None
    exc: Exception | None = None
    times: int = 1
    after: bool = False  # apply the request, then fail (lost response)


class FakeStorefront:
    """
    Storefront API double.

    Honours If-Match on cart mutations, replays the stored 2xx response for
    a repeated Idempotency-Key and counts applied effects.
    """

    def __init__(self, *, version: int = 5, token: str = CART_TOKEN) -> None:
        self.version = version
        self.token = token
        self.lines: dict[str, Line] = {}
        self.coupons: list[str] = []
        self.valid_coupons: dict[str, int] = {"SPRING": 500}
        self.stock: dict[int, int] = {}
        self.cart_exists = True
        self.report_version_on_conflict = True
        self.require_xsrf = False
        self.xsrf = "tok=1"
        self.csrf_status = 204
        self.effects = 0
        self.requests: list[httpx.Request] = []
        self.latency: Callable[[httpx.Request], float] | None = None
        self.faults: list[Fault] = []
        self.replays: dict[str, tuple[int, Any]] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.orders: list[str] = []
        self._line_ids = itertools.count(42)
        self._session_ids = itertools.count(1)
        self._order_ids = itertools.count(1000)
        self._xsrf_ids = itertools.count(2)

    # Test controls

    def seed(self, variant_id: int, qty: int, unit: int = 1000, *, options: dict[str, str] | None = None) -> str:
        """Put a line in the cart without bumping the version."""
        line_id = str(next(self._line_ids))
        self.lines[line_id] = Line(line_id, variant_id, None, qty, unit, dict(options or {}))
        return line_id

    def bump(self) -> None:
        """Another tab changed the cart."""
        self.version += 1

    def fail(
        self,
        method: str,
        path: str,
        status: int | None = None,
        *,
        body: Any = None,
        exc: Exception | None = None,
        times: int = 1,
        after: bool = False,
    ) -> None:
        self.faults.append(Fault(method, path, status, body, exc, times, after))

    def sent(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def line_for(self, variant_id: int) -> Line | None:
        return next((line for line in self.lines.values() if line.variant_id == variant_id), None)

    def cart_json(self) -> dict[str, Any]:
        items_total = sum(line.unit * line.qty for line in self.lines.values())
        discounts = sum(self.valid_coupons[code] for code in self.coupons)
        return {
            "token": self.token,
            "version": self.version,
            "context": {"currency": "USD", "locale": "en"},
            "items": [line.to_json() for line in self.lines.values()],
            "promotions": [
                {
                    "id": f"promo-{code}",
                    "code": code,
                    "description": f"Coupon {code}",
                    "discount_minor": self.valid_coupons[code],
                    "type": "coupon",
                }
                for code in self.coupons
            ],
            "totals": {
                "items_minor": items_total,
                "discounts_minor": discounts,
                "grand_total_minor": items_total - discounts,
            },
        }

    # Handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency is not None:
            delay = self.latency(request)
            if delay:
                await asyncio.sleep(delay)

        method, path = request.method, request.url.path
        for fault in self.faults:
            if fault.times > 0 and fault.method == method and fault.path == path:
                fault.times -= 1
                if fault.after:
                    await self._apply(request)
                if fault.exc is not None:
                    raise fault.exc
                return httpx.Response(fault.status or 500, json=fault.body)

        if path == "/sanctum/csrf-cookie":
            return self._csrf()

        return await self._apply(request)

    async def _apply(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        key = request.headers.get("Idempotency-Key")
        if method != "GET" and key is not None and key in self.replays:
            status, body = self.replays[key]
            return httpx.Response(status, json=body)

        if method != "GET" and self.require_xsrf and request.headers.get("X-XSRF-TOKEN") != self.xsrf:
            return httpx.Response(419, json={"message": "CSRF token mismatch."})

        status, body = self._route(method, path, request)
        if method != "GET" and key is not None and 200 <= status < 300:
            self.replays[key] = (status, body)
        return httpx.Response(status, json=body)

    def _csrf(self) -> httpx.Response:
        if self.csrf_status >= 400:
            return httpx.Response(self.csrf_status, json={"message": "Unavailable"})
        self.xsrf = f"tok={next(self._xsrf_ids)}"
        return httpx.Response(
            self.csrf_status,
            headers={"Set-Cookie": f"XSRF-TOKEN={quote(self.xsrf)}; Path=/"},
        )

    def _route(self, method: str, path: str, request: httpx.Request) -> tuple[int, Any]:
        body = json_body(request)
        if path.startswith("/api/v1/cart"):
            return self._cart(method, path.removeprefix("/api/v1/cart"), request, body)
        if path.startswith("/api/v1/checkout"):
            return self._checkout(method, path.removeprefix("/api/v1/checkout"), body)
        if method == "GET" and path == "/api/v1/shipping/methods":
            return 200, {"data": {"currency": "USD", "methods": list(SHIPPING_METHODS.values())}}
        if method == "GET" and path == "/api/v1/payments/providers":
            return 200, {"data": list(PAYMENT_PROVIDERS.values())}
        return 404, {"message": "Not found"}

    # Cart

    def _mutated(self, status: int = 200) -> tuple[int, Any]:
        self.version += 1
        self.effects += 1
        return status, {"data": self.cart_json()}

    def _cart(self, method: str, rest: str, request: httpx.Request, body: Any) -> tuple[int, Any]:
        if not self.cart_exists:
            return 404, {"message": "Cart not found"}
        if method == "GET" and rest == "":
            return 200, {"data": self.cart_json()}

        if_match = request.headers.get("If-Match")
        if if_match is not None and int(if_match) != self.version:
            conflict: dict[str, Any] = {"message": "Cart version mismatch"}
            if self.report_version_on_conflict:
                conflict["version"] = self.version
            return 409, conflict

        match method, rest.split("/")[1:]:
            case "POST", ["items"]:
                return self._add(body)
            case "PATCH", ["items", item_id]:
                line = self.lines.get(item_id)
                if line is None:
                    return 404, {"message": "Cart item not found"}
                qty = int(body["qty"])
                available = self.stock.get(line.variant_id or -1)
                if available is not None and qty > available:
                    return 422, {"message": "Insufficient stock", "errors": {"qty": [f"Only {available} left"]}}
                line.qty = qty
                return self._mutated()
            case "DELETE", ["items", item_id]:
                if self.lines.pop(item_id, None) is None:
                    return 404, {"message": "Cart item not found"}
                return self._mutated()
            case "PUT", ["items", item_id, "options"]:
                line = self.lines.get(item_id)
                if line is None:
                    return 404, {"message": "Cart item not found"}
                line.options = dict(body.get("options") or {})
                return self._mutated()
            case "POST", ["coupons"]:
                code = body.get("code", "")
                if code not in self.valid_coupons:
                    return 422, {
                        "message": "The coupon code is invalid.",
                        "errors": {"code": ["The coupon code is invalid."]},
                    }
                if code not in self.coupons:
                    self.coupons.append(code)
                self.version += 1
                self.effects += 1
                return 200, {"cart": self.cart_json(), "coupon": {"code": code}}
            case "DELETE", ["coupons", code]:
                if code not in self.coupons:
                    return 404, {"message": "Coupon not applied"}
                self.coupons.remove(code)
                return self._mutated()
            case "POST", ["attach"]:
                return self._mutated()
        return 404, {"message": "Not found"}

    def _add(self, body: Any) -> tuple[int, Any]:
        variant_id = body.get("variant_id")
        sku = body.get("sku")
        qty = int(body["qty"])
        options = dict(body.get("options") or {})
        existing = next((line for line in self.lines.values() if line.same(variant_id, sku, options)), None)
        total = qty + (existing.qty if existing else 0)
        available = self.stock.get(variant_id) if variant_id is not None else None
        if available is not None and total > available:
            return 422, {"message": "Insufficient stock", "errors": {"qty": [f"Only {available} left"]}}
        if existing is not None:
            existing.qty = total
        else:
            line_id = str(next(self._line_ids))
            self.lines[line_id] = Line(line_id, variant_id, sku, qty, 1000, options)
        return self._mutated(201)

    # Checkout

    def _pricing(self, session: dict[str, Any]) -> dict[str, Any]:
        items = sum(line.unit * line.qty for line in self.lines.values())
        discounts = sum(self.valid_coupons[code] for code in self.coupons)
        shipping = SHIPPING_METHODS[session["method"]]["price"] if session.get("method") else 0
        fee = PAYMENT_PROVIDERS[session["provider"]].get("fee", 0) if session.get("provider") else 0
        return {
            "currency": "USD",
            "items_minor": items,
            "shipping_minor": shipping + fee,
            "discounts_minor": discounts,
            "tax_minor": 0,
            "grand_total_minor": items + shipping + fee - discounts,
        }

    def _checkout(self, method: str, rest: str, body: Any) -> tuple[int, Any]:
        match method, rest.split("/")[1:]:
            case "POST", ["start"]:
                session_id = f"co-{next(self._session_ids)}"
                session = {"id": session_id, "cart_version": self.version}
                self.sessions[session_id] = session
                return 201, {"data": {"id": session_id, "cart_version": self.version, "pricing": self._pricing(session)}}
            case _, [session_id, step]:
                session = self.sessions.get(session_id)
                if session is None:
                    return 404, {"message": "Checkout session not found"}
                if session["cart_version"] != self.version:
                    return 422, {"message": "Cart changed", "code": "CART_CHANGED"}
                return self._step(session, method, step, body)
        return 404, {"message": "Not found"}

    def _step(self, session: dict[str, Any], method: str, step: str, body: Any) -> tuple[int, Any]:
        match method, step:
            case "PUT", "address":
                session["shipping_address"] = body["shipping_address"]
                return 200, {
                    "data": {
                        "id": session["id"],
                        "shipping_address": body["shipping_address"],
                        "billing_same_as_shipping": body.get("billing_same_as_shipping", True),
                        "pricing": self._pricing(session),
                    }
                }
            case "PUT", "shipping-method":
                code = body.get("method_code")
                if code not in SHIPPING_METHODS:
                    return 422, {"message": "Invalid shipping method", "code": "INVALID_SHIPPING"}
                session["method"] = code
                return 200, {"shipping_method": SHIPPING_METHODS[code], "pricing": self._pricing(session)}
            case "PUT", "payment-provider":
                code = body.get("provider_code")
                if code not in PAYMENT_PROVIDERS:
                    return 422, {"message": "Invalid payment provider", "code": "INVALID_PAYMENT"}
                session["provider"] = code
                return 200, {"payment_provider": PAYMENT_PROVIDERS[code], "pricing": self._pricing(session)}
            case "POST", "confirm":
                order_id = f"ord-{next(self._order_ids)}"
                self.orders.append(order_id)
                self.effects += 1
                pricing = self._pricing(session)
                self.lines.clear()
                self.version += 1
                return 200, {"data": {"order_id": order_id, "pricing": pricing}}
        return 404, {"message": "Not found"}


class RecordingNotifier:
    def __init__(self) -> None:
        self.seen: list[tuple[TypedError, str | None]] = []

    def notify(self, error: TypedError, *, op_id: str | None = None) -> None:
        self.seen.append((error, op_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def store() -> FakeStorefront:
    return FakeStorefront()


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(base_url=BASE_URL)


@pytest.fixture
def factory(store: FakeStorefront, settings: ClientSettings) -> TransportFactory:
    return TransportFactory(settings, http_transport=httpx.MockTransport(store.handle))


@pytest.fixture
def transport(factory: TransportFactory) -> MutationTransport:
    return factory.for_browser(cart_token=CART_TOKEN)


@pytest.fixture
def coordinator(transport: MutationTransport, settings: ClientSettings) -> RetryCoordinator:
    return RetryCoordinator(
        transport,
        policy=settings.retry_policy(),
        version_path=settings.paths().cart_root,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def transactions(
    coordinator: RetryCoordinator,
    settings: ClientSettings,
    notifier: RecordingNotifier,
) -> TransactionLog:
    return TransactionLog(coordinator, settings.paths(), notifier=notifier)
