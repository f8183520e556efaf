"""
CartClient — cart operations for one tab or render request.

Line changes go through the optimistic log; everything else (coupons,
options, attaching a guest cart) is confirmed by the server before the view
changes.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from kungfu import Result, Ok, Error, LazyCoroResult

from cartsync.cart import Cart, CouponOut, ItemOptionsOut, decode_cart
from cartsync.config import ApiPaths
from cartsync.errors import TypedError, Unclassified
from cartsync.optimistic import AddItem, RemoveItem, Submission, TransactionLog, UpdateQuantity
from cartsync.retry import MutationIntent, RetryCoordinator
from cartsync.transport import MutationRequest

log = structlog.get_logger("cartsync.client")


class CartClient:
    """
    Facade over RetryCoordinator and TransactionLog.

    Example:
        client = CartClient(coordinator, log, paths)
        await client.load()

        client.add(variant_id=7, quantity=2, unit_price=1999)    # shown now
        client.update_quantity("42", 0)                          # same as remove("42")

        match await client.apply_coupon("SPRING"):
            case Ok(cart): cart.applied_codes
            case Error(X.ValidationFailure() as err): X.field_errors(err)
    """

    def __init__(
        self,
        coordinator: RetryCoordinator,
        transactions: TransactionLog,
        paths: ApiPaths | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.transactions = transactions
        self.paths = paths or ApiPaths()

    @property
    def view(self) -> Cart:
        return self.transactions.view

    # ═══════════════════════════════════════════════════════════════════════════
    # Read
    # ═══════════════════════════════════════════════════════════════════════════

    def load(self) -> LazyCoroResult[Cart, TypedError]:
        """
        Fetch the cart and adopt it as the confirmed snapshot.

        Note: A 404 means the cart token is no longer known to the server.
        The token and the tracked version are forgotten so the next mutation
        starts a new cart.
        """

        async def run() -> Result[Cart, TypedError]:
            match await self.coordinator.read(MutationRequest("GET", self.paths.cart_root)):
                case Ok(response):
                    match decode_cart(response):
                        case Ok(cart):
                            self._adopt_token(cart)
                            self.transactions.load(cart)
                            return Ok(cart)
                        case Error(error):
                            return Error(error)
                case Error(Unclassified(status=404) as error):
                    self.forget()
                    return Error(error)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    def forget(self) -> None:
        """Drop cart token, version and local state."""
        log.info("cart.forgotten", token=self.coordinator.transport.cart_token)
        self.coordinator.transport.cart_token = None
        self.coordinator.tracker.reset()
        self.transactions.reset()

    # ═══════════════════════════════════════════════════════════════════════════
    # Lines (optimistic)
    # ═══════════════════════════════════════════════════════════════════════════

    def add(
        self,
        *,
        quantity: int = 1,
        variant_id: int | None = None,
        sku: str | None = None,
        unit_price: int = 0,
        options: Mapping[str, str] | None = None,
        name: str | None = None,
    ) -> Submission:
        return self.transactions.submit(
            AddItem(
                quantity=quantity,
                variant_id=variant_id,
                sku=sku,
                unit_price=unit_price,
                options=dict(options or {}),
                name=name,
            )
        )

    def update_quantity(self, item_id: str, quantity: int) -> Submission:
        """Quantity 0 or less removes the line."""
        if quantity <= 0:
            return self.remove(item_id)
        return self.transactions.submit(UpdateQuantity(item_id, quantity))

    def remove(self, item_id: str) -> Submission:
        return self.transactions.submit(RemoveItem(item_id))

    # ═══════════════════════════════════════════════════════════════════════════
    # Server-confirmed mutations
    # ═══════════════════════════════════════════════════════════════════════════

    def apply_coupon(self, code: str) -> LazyCoroResult[Cart, TypedError]:
        return self._mutate(
            MutationRequest("POST", self.paths.cart_coupons, body=CouponOut(code=code).to_body())
        )

    def remove_coupon(self, code: str) -> LazyCoroResult[Cart, TypedError]:
        return self._mutate(MutationRequest("DELETE", self.paths.cart_coupon(code)))

    def set_options(self, item_id: str, options: Mapping[str, str]) -> LazyCoroResult[Cart, TypedError]:
        """
        Replace the options of a line.

        Note: A temporary id waits for its add. If the add is left pending
        the call fails locally and nothing is sent.
        """

        async def run() -> Result[Cart, TypedError]:
            match await self.transactions.server_id(item_id):
                case Ok(target):
                    pass
                case Error(error):
                    return Error(error)

            return await self._mutate(
                MutationRequest(
                    "PUT",
                    self.paths.cart_item_options(target),
                    body=ItemOptionsOut(options=dict(options)).to_body(),
                )
            )

        return LazyCoroResult(run)

    def attach(self) -> LazyCoroResult[Cart, TypedError]:
        """
        Attach the guest cart to the signed-in customer.

        Note: Sent with a one-shot idempotency key; repeated calls after a
        successful attach rely on the server treating re-attachment as a no-op.
        """
        return self._mutate(MutationRequest("POST", self.paths.cart_attach))

    def _mutate(self, request: MutationRequest) -> LazyCoroResult[Cart, TypedError]:
        async def run() -> Result[Cart, TypedError]:
            match await self.coordinator.mutate(MutationIntent(request)):
                case Ok(outcome):
                    match decode_cart(outcome.response):
                        case Ok(cart):
                            self._adopt_token(cart)
                            self.transactions.confirm_external(cart)
                            return Ok(cart)
                        case Error(error):
                            return Error(error)
                case Error(Unclassified(status=404) as error):
                    self.forget()
                    return Error(error)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    def _adopt_token(self, cart: Cart) -> None:
        if cart.token:
            self.coordinator.transport.cart_token = cart.token


__all__ = ("CartClient",)
