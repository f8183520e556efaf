"""
cartsync — versioned cart mutations for storefront clients.

    from cartsync import errors as X       # Typed failure taxonomy
    from cartsync import transport as T    # Single HTTP round trips
    from cartsync import retry as R        # Bounded idempotent retries
    from cartsync import optimistic as O   # Optimistic transaction log
    from cartsync import checkout as CO    # Checkout state machine
"""

from cartsync import errors
from cartsync import transport
from cartsync import retry
from cartsync import cart
from cartsync import optimistic
from cartsync import checkout
from cartsync import config
from cartsync.client import CartClient
from cartsync.config import ClientSettings
from cartsync.context import StorefrontContext, use_context, current_context
from cartsync._logging import configure_logging
from cartsync._types import (
    Lazy,
    Unsubscribe,
)

__version__ = "0.1.0"

__all__ = (
    "errors",
    "transport",
    "retry",
    "cart",
    "optimistic",
    "checkout",
    "config",
    "CartClient",
    "ClientSettings",
    "StorefrontContext",
    "use_context",
    "current_context",
    "configure_logging",
    "Lazy",
    "Unsubscribe",
)
