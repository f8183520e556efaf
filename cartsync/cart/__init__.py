"""
Cart — immutable cart values and the wire codec.

    from cartsync import cart as C

    match C.decode_cart(response):
        case Ok(cart): cart.items, cart.totals.grand_total
        case Error(err): ...   # body is not a cart

The client facade is cartsync.client.CartClient.
"""

from cartsync.cart._model import (
    ItemOption,
    CartItem,
    CartTotals,
    Promotion,
    CartWarning,
    Cart,
    TEMP_PREFIX,
)
from cartsync.cart._codec import (
    CartIn,
    ItemIn,
    TotalsIn,
    unwrap_cart,
    decode_cart,
    AddItemOut,
    UpdateItemOut,
    ItemOptionsOut,
    CouponOut,
)

__all__ = (
    # Model
    "ItemOption",
    "CartItem",
    "CartTotals",
    "Promotion",
    "CartWarning",
    "Cart",
    "TEMP_PREFIX",
    # Codec
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
