"""
Wire codec — pydantic models mirroring the storefront JSON.

    match decode_cart(response):
        case Ok(cart): ...
        case Error(X.Unclassified()): ...   # body is not a cart
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kungfu import Result, Ok, Error
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cartsync.cart._model import Cart, CartItem, CartTotals, CartWarning, ItemOption, Promotion
from cartsync.errors import TypedError, Unclassified
from cartsync.transport import TransportResponse


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound
# ═══════════════════════════════════════════════════════════════════════════════


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PriceIn(_Wire):
    currency: str = ""
    list_minor: int = 0
    effective_minor: int = 0


class OptionIn(_Wire):
    name: str
    value: str
    price_minor: int = 0

    def to_domain(self) -> ItemOption:
        return ItemOption(name=self.name, value=self.value, price=self.price_minor)


class ImageIn(_Wire):
    id: int | None = None
    url: str


class ItemIn(_Wire):
    id: str
    variant_id: int | None = None
    sku: str | None = None
    name: str | None = None
    qty: int = Field(gt=0)
    price: PriceIn = Field(default_factory=PriceIn)
    options: list[OptionIn] = Field(default_factory=list)
    options_total_minor: int = 0
    line_total_minor: int | None = None
    image: ImageIn | str | None = None

    def to_domain(self) -> CartItem:
        unit = self.price.effective_minor
        line_total = self.line_total_minor
        if line_total is None:
            line_total = unit * self.qty + self.options_total_minor
        match self.image:
            case ImageIn(url=url):
                image_url: str | None = url
            case str() as url:
                image_url = url
            case _:
                image_url = None
        return CartItem(
            id=self.id,
            quantity=self.qty,
            unit_price=unit,
            variant_id=self.variant_id,
            sku=self.sku,
            options=tuple(option.to_domain() for option in self.options),
            options_total=self.options_total_minor,
            line_total=line_total,
            list_price=self.price.list_minor or None,
            name=self.name,
            image_url=image_url,
        )


class TotalsIn(_Wire):
    items_minor: int = 0
    discounts_minor: int = 0
    grand_total_minor: int = 0
    shipping_minor: int | None = None
    tax_minor: int | None = None

    def to_domain(self) -> CartTotals:
        return CartTotals(
            items=self.items_minor,
            discounts=self.discounts_minor,
            shipping=self.shipping_minor or 0,
            tax=self.tax_minor or 0,
            grand_total=self.grand_total_minor,
        )


class PromotionIn(_Wire):
    id: str
    code: str | None = None
    description: str = ""
    discount_minor: int = 0
    type: str = ""

    def to_domain(self) -> Promotion:
        return Promotion(
            id=self.id,
            description=self.description,
            discount=self.discount_minor,
            type=self.type,
            code=self.code,
        )


class WarningIn(_Wire):
    code: str
    item_id: str | None = None
    variant_id: int | None = None
    available: int | None = None
    message: str | None = None

    def to_domain(self) -> CartWarning:
        return CartWarning(
            code=self.code,
            item_id=self.item_id,
            variant_id=self.variant_id,
            available=self.available,
            message=self.message,
        )


class ContextIn(_Wire):
    currency: str = "USD"
    locale: str = "en"


class CartIn(_Wire):
    token: str
    version: int
    context: ContextIn = Field(default_factory=ContextIn)
    items: list[ItemIn] = Field(default_factory=list)
    promotions: list[PromotionIn] = Field(default_factory=list)
    warnings: list[WarningIn] = Field(default_factory=list)
    totals: TotalsIn = Field(default_factory=TotalsIn)

    def to_domain(self) -> Cart:
        return Cart(
            token=self.token,
            version=self.version,
            items=tuple(item.to_domain() for item in self.items),
            totals=self.totals.to_domain(),
            promotions=tuple(p.to_domain() for p in self.promotions),
            warnings=tuple(w.to_domain() for w in self.warnings),
            currency=self.context.currency,
            locale=self.context.locale,
        )


def unwrap_cart(body: Any) -> Any:
    """Accept ``{"data": cart}``, ``{"cart": cart, ...}`` or a bare cart."""
    if isinstance(body, Mapping):
        for envelope in ("data", "cart"):
            inner = body.get(envelope)
            if isinstance(inner, Mapping):
                return inner
    return body


def decode_cart(response: TransportResponse) -> Result[Cart, TypedError]:
    try:
        return Ok(CartIn.model_validate(unwrap_cart(response.body)).to_domain())
    except ValidationError as e:
        return Error(
            Unclassified(
                message="Response body is not a cart",
                status=response.status,
                data=response.body,
                cause=e,
            )
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Outbound
# ═══════════════════════════════════════════════════════════════════════════════


class AddItemOut(_Wire):
    variant_id: int | None = None
    sku: str | None = None
    qty: int
    options: dict[str, str] | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class UpdateItemOut(_Wire):
    qty: int

    def to_body(self) -> dict[str, Any]:
        return self.model_dump()


class ItemOptionsOut(_Wire):
    options: dict[str, str]

    def to_body(self) -> dict[str, Any]:
        return self.model_dump()


class CouponOut(_Wire):
    code: str

    def to_body(self) -> dict[str, Any]:
        return self.model_dump()


__all__ = (
    "CartIn",
    "ItemIn",
    "TotalsIn",
    "unwrap_cart",
    "decode_cart",
    "AddItemOut",
    "UpdateItemOut",
    "ItemOptionsOut",
    "CouponOut",
)
