"""
Checkout — forward-only session protocol that goes stale when the cart moves.

    from cartsync.checkout import CheckoutMachine, Address

    machine = CheckoutMachine(coordinator)
    machine.watch(log)
    await machine.start()
    await machine.set_address(Address(...))
"""

from cartsync.checkout._types import (
    CheckoutStatus,
    Address,
    Addresses,
    Destination,
    ShippingMethod,
    PaymentProvider,
    PricingSnapshot,
    CheckoutSession,
    OrderConfirmation,
    RejectReason,
    StepRejected,
)
from cartsync.checkout._codec import (
    AddressIO,
    PricingIn,
    StepIn,
    decode_step,
    decode_shipping_methods,
    decode_payment_providers,
)
from cartsync.checkout._machine import (
    CheckoutMachine,
    CheckoutError,
    CART_CHANGED,
    is_stale_signal,
)

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
    "AddressIO",
    "PricingIn",
    "StepIn",
    "decode_step",
    "decode_shipping_methods",
    "decode_payment_providers",
    "CheckoutMachine",
    "CheckoutError",
    "CART_CHANGED",
    "is_stale_signal",
)
