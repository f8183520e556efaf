"""
API route layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote


@dataclass(frozen=True, slots=True)
class ApiPaths:
    """
    Route builder for the storefront API.

    Note: Paths are relative to the client's base_url.
    """

    prefix: str = "/api/v1"
    cart: str = "/cart"
    checkout: str = "/checkout"
    shipping_methods: str = "/shipping/methods"
    payment_providers: str = "/payments/providers"

    # Cart resource (versioned)

    @property
    def cart_root(self) -> str:
        return f"{self.prefix}{self.cart}"

    @property
    def cart_items(self) -> str:
        return f"{self.cart_root}/items"

    def cart_item(self, item_id: str) -> str:
        return f"{self.cart_items}/{quote(item_id, safe='')}"

    def cart_item_options(self, item_id: str) -> str:
        return f"{self.cart_item(item_id)}/options"

    @property
    def cart_coupons(self) -> str:
        return f"{self.cart_root}/coupons"

    def cart_coupon(self, code: str) -> str:
        return f"{self.cart_coupons}/{quote(code, safe='')}"

    @property
    def cart_attach(self) -> str:
        return f"{self.cart_root}/attach"

    # Checkout protocol

    @property
    def checkout_start(self) -> str:
        return f"{self.prefix}{self.checkout}/start"

    def checkout_step(self, session_id: str, step: str) -> str:
        return f"{self.prefix}{self.checkout}/{quote(session_id, safe='')}/{step}"

    # Reads

    @property
    def shipping_methods_url(self) -> str:
        return f"{self.prefix}{self.shipping_methods}"

    @property
    def payment_providers_url(self) -> str:
        return f"{self.prefix}{self.payment_providers}"


__all__ = ("ApiPaths",)
