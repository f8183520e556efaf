"""
Optimistic actions — local cart changes that mirror one server mutation each.

Every action knows how to:
    apply(cart)        → cart with the change
    revert(cart)       → cart without it (uses state captured at submit time)
    to_request(paths)  → the MutationRequest that makes it real
    remap(old, new)    → same action addressed to another line id
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto

from cartsync.cart._codec import AddItemOut, UpdateItemOut
from cartsync.cart._model import Cart, CartItem, ItemOption
from cartsync.config import ApiPaths
from cartsync.errors import TypedError
from cartsync.transport import MutationRequest


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds / Status
# ═══════════════════════════════════════════════════════════════════════════════


class OpKind(Enum):
    ADD = auto()
    UPDATE_QUANTITY = auto()
    REMOVE = auto()


class OpStatus(Enum):
    """
    Lifecycle:
        PENDING → CONFIRMED
                → ROLLED_BACK
    """

    PENDING = auto()
    CONFIRMED = auto()
    ROLLED_BACK = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Actions
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class AddItem:
    """
    Add quantity of a variant.

    Merges into a line with the same variant and options, otherwise renders a
    new line under temp_id until the server assigns the real id.
    """

    quantity: int
    variant_id: int | None = None
    sku: str | None = None
    unit_price: int = 0
    options: Mapping[str, str] = field(default_factory=dict)
    options_total: int = 0
    name: str | None = None
    temp_id: str | None = None

    def __post_init__(self) -> None:
        if self.variant_id is None and self.sku is None:
            raise ValueError("Either variant_id or sku must be provided")
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")

    @property
    def kind(self) -> OpKind:
        return OpKind.ADD

    @property
    def target(self) -> str | None:
        """Adds never address an existing line."""
        return None

    def matches(self, line: CartItem) -> bool:
        return line.same_variant(self.variant_id, self.sku, self.options or None)

    def apply(self, cart: Cart) -> Cart:
        existing = next((line for line in cart.items if self.matches(line)), None)
        if existing is not None:
            return cart.replace_item(existing.with_quantity(existing.quantity + self.quantity))
        if self.temp_id is None:
            return cart
        line = CartItem(
            id=self.temp_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            variant_id=self.variant_id,
            sku=self.sku,
            options=tuple(ItemOption(name=k, value=v) for k, v in self.options.items()),
            options_total=self.options_total,
            line_total=self.unit_price * self.quantity + self.options_total,
            name=self.name,
        )
        return cart.appended(line)

    def revert(self, cart: Cart) -> Cart:
        if self.temp_id is not None and cart.item(self.temp_id) is not None:
            return cart.without_item(self.temp_id)
        existing = next((line for line in cart.items if self.matches(line)), None)
        if existing is None:
            return cart
        remaining = existing.quantity - self.quantity
        if remaining <= 0:
            return cart.without_item(existing.id)
        return cart.replace_item(existing.with_quantity(remaining))

    def to_request(self, paths: ApiPaths) -> MutationRequest:
        body = AddItemOut(
            variant_id=self.variant_id,
            sku=self.sku if self.variant_id is None else None,
            qty=self.quantity,
            options=dict(self.options) or None,
        )
        return MutationRequest("POST", paths.cart_items, body=body.to_body())

    def remap(self, old: str, new: str) -> AddItem:
        return self

    def capture(self, view: Cart) -> AddItem:
        return self

    def resolve(self, cart: Cart) -> CartItem | None:
        """Line in a server cart that this add produced or merged into."""
        return next((line for line in cart.items if self.matches(line)), None)


@dataclass(frozen=True, slots=True)
class UpdateQuantity:
    """Set a line's quantity. previous is captured at submit time for revert."""

    item_id: str
    quantity: int
    previous: int | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("quantity must be positive; use RemoveItem to drop a line")

    @property
    def kind(self) -> OpKind:
        return OpKind.UPDATE_QUANTITY

    @property
    def target(self) -> str:
        return self.item_id

    def apply(self, cart: Cart) -> Cart:
        line = cart.item(self.item_id)
        if line is None:
            return cart
        return cart.replace_item(line.with_quantity(self.quantity))

    def revert(self, cart: Cart) -> Cart:
        line = cart.item(self.item_id)
        if line is None or self.previous is None:
            return cart
        return cart.replace_item(line.with_quantity(self.previous))

    def to_request(self, paths: ApiPaths) -> MutationRequest:
        return MutationRequest(
            "PATCH",
            paths.cart_item(self.item_id),
            body=UpdateItemOut(qty=self.quantity).to_body(),
        )

    def remap(self, old: str, new: str) -> UpdateQuantity:
        return replace(self, item_id=new) if self.item_id == old else self

    def capture(self, view: Cart) -> UpdateQuantity:
        line = view.item(self.item_id)
        return replace(self, previous=line.quantity if line else None)


@dataclass(frozen=True, slots=True)
class RemoveItem:
    """Drop a line. removed is captured at submit time for revert."""

    item_id: str
    removed: CartItem | None = None

    @property
    def kind(self) -> OpKind:
        return OpKind.REMOVE

    @property
    def target(self) -> str:
        return self.item_id

    def apply(self, cart: Cart) -> Cart:
        if cart.item(self.item_id) is None:
            return cart
        return cart.without_item(self.item_id)

    def revert(self, cart: Cart) -> Cart:
        if self.removed is None or cart.item(self.item_id) is not None:
            return cart
        return cart.appended(self.removed)

    def to_request(self, paths: ApiPaths) -> MutationRequest:
        return MutationRequest("DELETE", paths.cart_item(self.item_id))

    def remap(self, old: str, new: str) -> RemoveItem:
        if self.item_id != old:
            return self
        removed = self.removed.with_id(new) if self.removed else None
        return replace(self, item_id=new, removed=removed)

    def capture(self, view: Cart) -> RemoveItem:
        return replace(self, removed=view.item(self.item_id))


type CartAction = AddItem | UpdateQuantity | RemoveItem


# ═══════════════════════════════════════════════════════════════════════════════
# Pending Operation — public, immutable view of one log entry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PendingOperation:
    """
    Snapshot of one operation held by the log.

    last_error: set when the op failed without rollback (session, network)
    and waits for resubmit() or discard().
    """

    op_id: str
    action: CartAction
    status: OpStatus = OpStatus.PENDING
    last_error: TypedError | None = None
    in_flight: bool = False

    @property
    def kind(self) -> OpKind:
        return self.action.kind

    def apply(self, cart: Cart) -> Cart:
        return self.action.apply(cart)

    def revert(self, cart: Cart) -> Cart:
        return self.action.revert(cart)


__all__ = (
    "OpKind",
    "OpStatus",
    "AddItem",
    "UpdateQuantity",
    "RemoveItem",
    "CartAction",
    "PendingOperation",
)
