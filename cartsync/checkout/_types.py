"""
Checkout types — immutable session values and step rejections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Status
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutStatus(Enum):
    """
    Forward-only protocol states.

        STARTED → ADDRESS_SET → SHIPPING_SET → PAYMENT_SET → CONFIRMED
           └───────────┴─────────────┴──────────────┴──→ STALE

    Note: STALE is irreversible. A new session must be started.
    """

    STARTED = "started"
    ADDRESS_SET = "address-set"
    SHIPPING_SET = "shipping-set"
    PAYMENT_SET = "payment-set"
    CONFIRMED = "confirmed"
    STALE = "stale"

    @property
    def is_terminal(self) -> bool:
        return self is CheckoutStatus.CONFIRMED

    @property
    def is_active(self) -> bool:
        return self not in (CheckoutStatus.CONFIRMED, CheckoutStatus.STALE)


# ═══════════════════════════════════════════════════════════════════════════════
# Values
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Address:
    first_name: str
    last_name: str
    phone: str
    country: str
    city: str
    line1: str
    region: str = ""
    postal: str = ""
    line2: str | None = None
    email: str | None = None


@dataclass(frozen=True, slots=True)
class Addresses:
    shipping: Address | None = None
    billing: Address | None = None
    billing_same_as_shipping: bool = True

    @property
    def billing_address(self) -> Address | None:
        """Billing address in effect."""
        return self.shipping if self.billing_same_as_shipping else self.billing


@dataclass(frozen=True, slots=True)
class Destination:
    """Where a parcel goes; the query for shipping methods."""

    country: str
    city: str
    region: str | None = None
    postal: str | None = None

    @classmethod
    def of(cls, address: Address) -> Destination:
        return cls(
            country=address.country,
            city=address.city,
            region=address.region or None,
            postal=address.postal or None,
        )


@dataclass(frozen=True, slots=True)
class ShippingMethod:
    code: str
    name: str
    price: int
    currency: str
    id: int | None = None
    description: str | None = None
    estimated_days: int | None = None
    quote_id: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentProvider:
    code: str
    name: str
    type: str = "offline"
    fee: int = 0
    instructions: str | None = None

    @property
    def is_online(self) -> bool:
        return self.type == "online"


@dataclass(frozen=True, slots=True)
class PricingSnapshot:
    """Server-computed price of the order at one step, minor units."""

    currency: str = "USD"
    items: int = 0
    shipping: int = 0
    discounts: int = 0
    tax: int = 0
    total: int = 0


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """
    One checkout session.

    Note: Immutable. Every transition swaps in a whole new session, so
    status and pricing are never observed half-updated.

    cart_version: cart version the session was started from.
    """

    id: str
    status: CheckoutStatus
    addresses: Addresses = field(default_factory=Addresses)
    shipping_method: ShippingMethod | None = None
    payment_provider: PaymentProvider | None = None
    pricing: PricingSnapshot = field(default_factory=PricingSnapshot)
    cart_version: int | None = None
    order_id: str | None = None

    @property
    def can_confirm(self) -> bool:
        return self.status is CheckoutStatus.PAYMENT_SET


@dataclass(frozen=True, slots=True)
class OrderConfirmation:
    order_id: str
    session_id: str
    pricing: PricingSnapshot


# ═══════════════════════════════════════════════════════════════════════════════
# Rejection — decided locally, no network call made
# ═══════════════════════════════════════════════════════════════════════════════


class RejectReason(Enum):
    NO_SESSION = "no-session"
    OUT_OF_ORDER = "out-of-order"
    IN_FLIGHT = "in-flight"
    STALE = "stale"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class StepRejected:
    """
    A step the machine refused before contacting the server.

    current: session status at the time (None without a session).
    """

    reason: RejectReason
    step: str
    current: CheckoutStatus | None = None

    @property
    def message(self) -> str:
        match self.reason:
            case RejectReason.NO_SESSION:
                return f"Cannot {self.step}: no checkout session"
            case RejectReason.OUT_OF_ORDER:
                state = self.current.value if self.current else "none"
                return f"Cannot {self.step} while checkout is {state}"
            case RejectReason.IN_FLIGHT:
                return f"Cannot {self.step}: another checkout step is in progress"
            case RejectReason.STALE:
                return "Your cart has changed. Please review your order."
            case RejectReason.TERMINAL:
                return f"Cannot {self.step}: checkout is already confirmed"


__all__ = (
    "CheckoutStatus",
    "Address",
    "Addresses",
    "Destination",
    "ShippingMethod",
    "PaymentProvider",
    "PricingSnapshot",
    "CheckoutSession",
    "OrderConfirmation",
    "RejectReason",
    "StepRejected",
)
