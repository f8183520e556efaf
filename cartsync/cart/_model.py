"""
Cart domain — immutable values. Every change produces a new Cart.

Amounts are integers in minor units (cents).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace


# ═══════════════════════════════════════════════════════════════════════════════
# Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ItemOption:
    """Selected option of a line (size, color, engraving)."""

    name: str
    value: str
    price: int = 0


@dataclass(frozen=True, slots=True)
class CartItem:
    """
    One cart line.

    id is stable across quantity changes. A line that has not been confirmed
    by the server carries a temporary id (``tmp-<n>``).

    Note: line_total = unit_price * quantity + options_total
    """

    id: str
    quantity: int
    unit_price: int
    variant_id: int | None = None
    sku: str | None = None
    options: tuple[ItemOption, ...] = ()
    options_total: int = 0
    line_total: int = 0
    list_price: int | None = None
    name: str | None = None
    image_url: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")

    @property
    def selected_options(self) -> dict[str, str]:
        return {option.name: option.value for option in self.options}

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_PREFIX)

    def with_quantity(self, quantity: int) -> CartItem:
        return replace(
            self,
            quantity=quantity,
            line_total=self.unit_price * quantity + self.options_total,
        )

    def with_id(self, item_id: str) -> CartItem:
        return replace(self, id=item_id)

    def same_variant(
        self,
        variant_id: int | None,
        sku: str | None,
        options: Mapping[str, str] | None = None,
    ) -> bool:
        """Same purchasable thing: variant (or sku) and, when given, the same options."""
        matched = (variant_id is not None and self.variant_id == variant_id) or (
            sku is not None and self.sku == sku
        )
        if not matched:
            return False
        return options is None or dict(options) == self.selected_options


TEMP_PREFIX = "tmp-"


# ═══════════════════════════════════════════════════════════════════════════════
# Totals / Promotions / Warnings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartTotals:
    """Server-computed totals. Recomputed locally only for optimistic views."""

    items: int = 0
    discounts: int = 0
    shipping: int = 0
    tax: int = 0
    grand_total: int = 0

    def recalculated(self, lines: tuple[CartItem, ...]) -> CartTotals:
        items = sum(line.line_total for line in lines)
        return replace(
            self,
            items=items,
            grand_total=items + self.shipping + self.tax - self.discounts,
        )


@dataclass(frozen=True, slots=True)
class Promotion:
    id: str
    description: str
    discount: int
    type: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class CartWarning:
    """Stock or price warning, e.g. INSUFFICIENT_STOCK."""

    code: str
    item_id: str | None = None
    variant_id: int | None = None
    available: int | None = None
    message: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    """
    Server-authoritative cart snapshot.

    version: optimistic-lock token, only ever increases on the server.
    """

    token: str
    version: int
    items: tuple[CartItem, ...] = ()
    totals: CartTotals = field(default_factory=CartTotals)
    promotions: tuple[Promotion, ...] = ()
    warnings: tuple[CartWarning, ...] = ()
    currency: str = "USD"
    locale: str = "en"

    @classmethod
    def empty(cls, token: str = "", version: int = 0) -> Cart:
        return cls(token=token, version=version)

    # Queries

    def item(self, item_id: str) -> CartItem | None:
        return next((line for line in self.items if line.id == item_id), None)

    def find(
        self,
        variant_id: int | None,
        sku: str | None,
        options: Mapping[str, str] | None = None,
    ) -> CartItem | None:
        return next(
            (line for line in self.items if line.same_variant(variant_id, sku, options)),
            None,
        )

    @property
    def item_count(self) -> int:
        """Sum of quantities."""
        return sum(line.quantity for line in self.items)

    @property
    def unique_item_count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def applied_codes(self) -> tuple[str, ...]:
        return tuple(p.code for p in self.promotions if p.code)

    # Changes

    def with_items(self, items: tuple[CartItem, ...]) -> Cart:
        """New cart with these lines and totals recomputed from them."""
        return replace(self, items=items, totals=self.totals.recalculated(items))

    def replace_item(self, item: CartItem) -> Cart:
        return self.with_items(tuple(item if line.id == item.id else line for line in self.items))

    def without_item(self, item_id: str) -> Cart:
        return self.with_items(tuple(line for line in self.items if line.id != item_id))

    def appended(self, item: CartItem) -> Cart:
        return self.with_items((*self.items, item))


__all__ = (
    "ItemOption",
    "CartItem",
    "CartTotals",
    "Promotion",
    "CartWarning",
    "Cart",
    "TEMP_PREFIX",
)
