"""
Checkout wire codec.

The server spells addresses as address_line1/2 and money as *_minor.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from kungfu import Result, Ok, Error

from cartsync.checkout._types import (
    Address,
    Addresses,
    Destination,
    PaymentProvider,
    PricingSnapshot,
    ShippingMethod,
)
from cartsync.errors import TypedError, Unclassified
from cartsync.transport import TransportResponse


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ═══════════════════════════════════════════════════════════════════════════════
# Address
# ═══════════════════════════════════════════════════════════════════════════════


class AddressIO(_Wire):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    postal: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None

    @classmethod
    def from_domain(cls, address: Address) -> AddressIO:
        return cls(
            first_name=address.first_name,
            last_name=address.last_name,
            phone=address.phone,
            email=address.email,
            country=address.country,
            region=address.region,
            city=address.city,
            postal=address.postal,
            address_line1=address.line1,
            address_line2=address.line2,
        )

    def to_domain(self) -> Address | None:
        """None when every field is blank (server sends empty shells)."""
        fields = (
            self.first_name,
            self.last_name,
            self.phone,
            self.country,
            self.region,
            self.city,
            self.postal,
            self.address_line1,
            self.address_line2,
        )
        if not any(fields):
            return None
        return Address(
            first_name=self.first_name or "",
            last_name=self.last_name or "",
            phone=self.phone or "",
            country=self.country or "",
            city=self.city or "",
            line1=self.address_line1 or "",
            region=self.region or "",
            postal=self.postal or "",
            line2=self.address_line2 or None,
            email=self.email or None,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound
# ═══════════════════════════════════════════════════════════════════════════════


class PricingIn(_Wire):
    currency: str = "USD"
    items_minor: int = 0
    shipping_minor: int | None = None
    discounts_minor: int = 0
    tax_minor: int | None = None
    grand_total_minor: int = 0

    def to_domain(self) -> PricingSnapshot:
        return PricingSnapshot(
            currency=self.currency,
            items=self.items_minor,
            shipping=self.shipping_minor or 0,
            discounts=self.discounts_minor,
            tax=self.tax_minor or 0,
            total=self.grand_total_minor,
        )


class ShippingMethodIn(_Wire):
    id: int | None = None
    code: str
    name: str = ""
    description: str | None = None
    price: int = 0
    currency: str = "USD"
    estimated_days: int | None = None
    quote_id: str | None = None

    def to_domain(self) -> ShippingMethod:
        return ShippingMethod(
            code=self.code,
            name=self.name or self.code,
            price=self.price,
            currency=self.currency,
            id=self.id,
            description=self.description,
            estimated_days=self.estimated_days,
            quote_id=self.quote_id,
        )


class PaymentProviderIn(_Wire):
    code: str
    name: str = ""
    type: str = "offline"
    fee: int = 0
    instructions: str | None = None

    def to_domain(self) -> PaymentProvider:
        return PaymentProvider(
            code=self.code,
            name=self.name or self.code,
            type=self.type,
            fee=self.fee,
            instructions=self.instructions,
        )


class StepIn(_Wire):
    """Any checkout step response. Fields absent from a step stay None."""

    id: str | int | None = None
    cart_version: int | None = None
    shipping_address: AddressIO | None = None
    billing_address: AddressIO | None = None
    billing_same_as_shipping: bool | None = None
    shipping_method: ShippingMethodIn | None = None
    payment_provider: PaymentProviderIn | None = None
    pricing: PricingIn | None = None
    order_id: str | int | None = None

    def addresses(self, fallback: Addresses) -> Addresses:
        if self.shipping_address is None and self.billing_address is None:
            return fallback
        same = (
            self.billing_same_as_shipping
            if self.billing_same_as_shipping is not None
            else fallback.billing_same_as_shipping
        )
        return Addresses(
            shipping=self.shipping_address.to_domain() if self.shipping_address else None,
            billing=self.billing_address.to_domain() if self.billing_address else None,
            billing_same_as_shipping=same,
        )


class ShippingMethodsIn(_Wire):
    currency: str | None = None
    methods: list[ShippingMethodIn] = Field(default_factory=list)


def _unwrap(body: Any) -> Any:
    if isinstance(body, Mapping) and "data" in body:
        return body["data"]
    return body


def _malformed(response: TransportResponse, what: str, cause: Exception) -> TypedError:
    return Unclassified(
        message=f"Response body is not {what}",
        status=response.status,
        data=response.body,
        cause=cause,
    )


def decode_step(response: TransportResponse) -> Result[StepIn, TypedError]:
    try:
        return Ok(StepIn.model_validate(_unwrap(response.body) or {}))
    except ValidationError as e:
        return Error(_malformed(response, "a checkout step", e))


def decode_shipping_methods(response: TransportResponse) -> Result[tuple[ShippingMethod, ...], TypedError]:
    body = _unwrap(response.body)
    try:
        if isinstance(body, list):
            methods = [ShippingMethodIn.model_validate(item) for item in body]
        else:
            methods = ShippingMethodsIn.model_validate(body or {}).methods
    except ValidationError as e:
        return Error(_malformed(response, "a shipping method list", e))
    return Ok(tuple(method.to_domain() for method in methods))


def decode_payment_providers(
    response: TransportResponse,
) -> Result[tuple[PaymentProvider, ...], TypedError]:
    body = _unwrap(response.body)
    if not isinstance(body, list):
        return Ok(())
    try:
        return Ok(tuple(PaymentProviderIn.model_validate(item).to_domain() for item in body))
    except ValidationError as e:
        return Error(_malformed(response, "a payment provider list", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Outbound
# ═══════════════════════════════════════════════════════════════════════════════


def start_body(billing_same_as_shipping: bool) -> dict[str, Any]:
    return {"billing_same_as_shipping": billing_same_as_shipping}


def address_body(addresses: Addresses) -> dict[str, Any]:
    if addresses.shipping is None:
        raise ValueError("shipping address is required")
    body: dict[str, Any] = {
        "shipping_address": AddressIO.from_domain(addresses.shipping).model_dump(exclude_none=True),
        "billing_same_as_shipping": addresses.billing_same_as_shipping,
    }
    if not addresses.billing_same_as_shipping and addresses.billing is not None:
        body["billing_address"] = AddressIO.from_domain(addresses.billing).model_dump(exclude_none=True)
    return body


def shipping_body(method: ShippingMethod) -> dict[str, Any]:
    body: dict[str, Any] = {"method_code": method.code}
    if method.quote_id:
        body["quote_id"] = method.quote_id
    return body


def payment_body(provider: PaymentProvider) -> dict[str, Any]:
    return {"provider_code": provider.code}


def destination_query(session_id: str, destination: Destination) -> dict[str, str]:
    query = {
        "checkout_session_id": session_id,
        "dest[country]": destination.country,
        "dest[city]": destination.city,
    }
    if destination.region:
        query["dest[region]"] = destination.region
    if destination.postal:
        query["dest[postal]"] = destination.postal
    return query


__all__ = (
    "AddressIO",
    "PricingIn",
    "StepIn",
    "decode_step",
    "decode_shipping_methods",
    "decode_payment_providers",
    "start_body",
    "address_body",
    "shipping_body",
    "payment_body",
    "destination_query",
)
