"""
CheckoutMachine — sequences the checkout protocol and goes stale on cart changes.

    start → set_address → set_shipping → set_payment → confirm

Each step needs the exact predecessor status. Violations are rejected with
StepRejected before any request is made.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

import structlog
from kungfu import Result, Ok, Error, LazyCoroResult

from cartsync._types import Unsubscribe
from cartsync.cart._model import Cart
from cartsync.checkout._codec import (
    StepIn,
    address_body,
    decode_payment_providers,
    decode_shipping_methods,
    decode_step,
    destination_query,
    payment_body,
    shipping_body,
    start_body,
)
from cartsync.checkout._types import (
    Address,
    Addresses,
    CheckoutSession,
    CheckoutStatus,
    Destination,
    OrderConfirmation,
    PaymentProvider,
    PricingSnapshot,
    RejectReason,
    ShippingMethod,
    StepRejected,
)
from cartsync.config import ApiPaths
from cartsync.errors import ConcurrencyConflict, TypedError, Unclassified, ValidationFailure
from cartsync.retry import MutationIntent, RetryCoordinator
from cartsync.transport import MutationRequest

if TYPE_CHECKING:
    from cartsync.optimistic import Notifier, TransactionLog

log = structlog.get_logger("cartsync.checkout")

type CheckoutError = StepRejected | TypedError
"""Local rejection or classified server failure."""

CART_CHANGED = "CART_CHANGED"


def is_stale_signal(error: TypedError) -> bool:
    """
    Server says the cart moved under the session.

    Note: Conflict, a gone session (404/410, server-side expiry) or the
    CART_CHANGED validation code.
    """
    match error:
        case ConcurrencyConflict():
            return True
        case Unclassified() if error.is_gone:
            return True
        case ValidationFailure() if error.has_code(CART_CHANGED):
            return True
        case _:
            return False


class CheckoutMachine:
    """
    Single checkout session owner.

    Example:
        machine = CheckoutMachine(coordinator, paths)
        machine.watch(log)                       # cart changes → STALE

        await machine.start()
        await machine.set_address(address)
        match await machine.shipping_methods(Destination.of(address)):
            case Ok(methods): await machine.set_shipping(methods[0])
        await machine.set_payment("cod")
        match await machine.confirm():
            case Ok(order): order.order_id
            case Error(StepRejected(reason=RejectReason.STALE)): await machine.restart()
            case Error(err): ...

    Note: At most one step is in flight. A second call while one is pending
    is rejected with IN_FLIGHT, not queued.
    """

    def __init__(
        self,
        coordinator: RetryCoordinator,
        paths: ApiPaths | None = None,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._paths = paths or ApiPaths()
        self._notifier = notifier
        self._session: CheckoutSession | None = None
        self._in_flight: str | None = None
        self._confirmed_callbacks: list[Callable[[OrderConfirmation], None]] = []

    @property
    def session(self) -> CheckoutSession | None:
        return self._session

    @property
    def status(self) -> CheckoutStatus | None:
        return self._session.status if self._session else None

    @property
    def in_flight(self) -> str | None:
        """Name of the step awaiting the server, if any."""
        return self._in_flight

    # ═══════════════════════════════════════════════════════════════════════════
    # Staleness
    # ═══════════════════════════════════════════════════════════════════════════

    def invalidate(self, reason: str = "cart changed") -> bool:
        """Force the active session to STALE. Returns False if nothing changed."""
        session = self._session
        if session is None or not session.status.is_active:
            return False
        self._session = replace(session, status=CheckoutStatus.STALE)
        log.info("checkout.stale", session_id=session.id, was=session.status.value, reason=reason)
        return True

    def watch(self, transactions: TransactionLog) -> Unsubscribe:
        """Go stale whenever the log confirms a cart mutation after start."""
        unsubscribers = (
            transactions.on_cart_changed(self.cart_changed),
            transactions.on_cart_unverified(lambda: self.invalidate("cart changed, new version unread")),
        )

        def unsubscribe() -> None:
            for fn in unsubscribers:
                fn()

        return unsubscribe

    def cart_changed(self, cart: Cart) -> None:
        session = self._session
        if session is None or not session.status.is_active:
            return
        if session.cart_version is not None and cart.version <= session.cart_version:
            return
        self.invalidate(f"cart moved to version {cart.version}")

    def on_confirmed(self, callback: Callable[[OrderConfirmation], None]) -> Unsubscribe:
        self._confirmed_callbacks.append(callback)
        return lambda: (
            self._confirmed_callbacks.remove(callback)
            if callback in self._confirmed_callbacks
            else None
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Steps
    # ═══════════════════════════════════════════════════════════════════════════

    def start(self, *, billing_same_as_shipping: bool = True) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        """Open a new session. Replaces any previous one."""

        async def run() -> Result[CheckoutSession, CheckoutError]:
            if self._in_flight is not None:
                return Error(StepRejected(RejectReason.IN_FLIGHT, "start", self.status))

            previous = self._session
            cart_version = self._coordinator.tracker.current
            request = MutationRequest(
                "POST",
                self._paths.checkout_start,
                body=start_body(billing_same_as_shipping),
            )
            self._in_flight = "start"
            try:
                result = await self._coordinator.mutate(MutationIntent(request))
            finally:
                self._in_flight = None

            if self._session is not previous:
                return Error(StepRejected(RejectReason.STALE, "start", self.status))

            match result:
                case Ok(outcome):
                    match decode_step(outcome.response):
                        case Ok(step) if step.id is not None:
                            session = CheckoutSession(
                                id=str(step.id),
                                status=CheckoutStatus.STARTED,
                                addresses=step.addresses(
                                    Addresses(billing_same_as_shipping=billing_same_as_shipping)
                                ),
                                pricing=step.pricing.to_domain() if step.pricing else PricingSnapshot(),
                                cart_version=step.cart_version if step.cart_version is not None else cart_version,
                            )
                            self._session = session
                            log.info("checkout.started", session_id=session.id, cart_version=session.cart_version)
                            return Ok(session)
                        case Ok(_):
                            return Error(
                                Unclassified(
                                    message="Checkout start returned no session id",
                                    status=outcome.response.status,
                                    data=outcome.response.body,
                                )
                            )
                        case Error(error):
                            return Error(error)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    def restart(self) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        """
        Start a fresh session, keeping the addresses entered so far.

        Note: Addresses are kept locally only; set_address() must still be
        called on the new session.
        """

        async def run() -> Result[CheckoutSession, CheckoutError]:
            saved = self._session.addresses if self._session else None
            same = saved.billing_same_as_shipping if saved else True
            match await self.start(billing_same_as_shipping=same):
                case Ok(session) if saved is not None and saved.shipping is not None:
                    restored = replace(session, addresses=saved)
                    self._session = restored
                    return Ok(restored)
                case other:
                    return other

        return LazyCoroResult(run)

    def set_address(
        self,
        shipping: Address,
        billing: Address | None = None,
        *,
        billing_same_as_shipping: bool = True,
    ) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        addresses = Addresses(
            shipping=shipping,
            billing=None if billing_same_as_shipping else billing,
            billing_same_as_shipping=billing_same_as_shipping,
        )

        def absorb(session: CheckoutSession, step: StepIn) -> CheckoutSession:
            return replace(
                session,
                status=CheckoutStatus.ADDRESS_SET,
                addresses=step.addresses(addresses),
                pricing=step.pricing.to_domain() if step.pricing else session.pricing,
            )

        return self._step(
            "set_address",
            required=CheckoutStatus.STARTED,
            build=lambda s: MutationRequest(
                "PUT", self._paths.checkout_step(s.id, "address"), body=address_body(addresses)
            ),
            absorb=absorb,
        )

    def set_shipping(self, method: ShippingMethod | str) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        chosen = method if isinstance(method, ShippingMethod) else ShippingMethod(method, method, 0, "")

        def absorb(session: CheckoutSession, step: StepIn) -> CheckoutSession:
            return replace(
                session,
                status=CheckoutStatus.SHIPPING_SET,
                shipping_method=step.shipping_method.to_domain() if step.shipping_method else chosen,
                pricing=step.pricing.to_domain() if step.pricing else session.pricing,
            )

        return self._step(
            "set_shipping",
            required=CheckoutStatus.ADDRESS_SET,
            build=lambda s: MutationRequest(
                "PUT", self._paths.checkout_step(s.id, "shipping-method"), body=shipping_body(chosen)
            ),
            absorb=absorb,
        )

    def set_payment(self, provider: PaymentProvider | str) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        chosen = provider if isinstance(provider, PaymentProvider) else PaymentProvider(provider, provider)

        def absorb(session: CheckoutSession, step: StepIn) -> CheckoutSession:
            return replace(
                session,
                status=CheckoutStatus.PAYMENT_SET,
                payment_provider=step.payment_provider.to_domain() if step.payment_provider else chosen,
                pricing=step.pricing.to_domain() if step.pricing else session.pricing,
            )

        return self._step(
            "set_payment",
            required=CheckoutStatus.SHIPPING_SET,
            build=lambda s: MutationRequest(
                "PUT", self._paths.checkout_step(s.id, "payment-provider"), body=payment_body(chosen)
            ),
            absorb=absorb,
        )

    def confirm(self) -> LazyCoroResult[OrderConfirmation, CheckoutError]:
        """
        Place the order.

        Note: The idempotency key is scoped to the session, so confirming
        again after a network failure cannot create a second order.
        """

        def absorb(session: CheckoutSession, step: StepIn) -> CheckoutSession:
            return replace(
                session,
                status=CheckoutStatus.CONFIRMED,
                order_id=str(step.order_id) if step.order_id is not None else None,
                pricing=step.pricing.to_domain() if step.pricing else session.pricing,
            )

        async def run() -> Result[OrderConfirmation, CheckoutError]:
            outcome = await self._step(
                "confirm",
                required=CheckoutStatus.PAYMENT_SET,
                build=lambda s: MutationRequest("POST", self._paths.checkout_step(s.id, "confirm")),
                absorb=absorb,
                scope=lambda s: f"checkout:{s.id}:confirm",
            )
            match outcome:
                case Ok(session):
                    confirmation = OrderConfirmation(
                        order_id=session.order_id or "",
                        session_id=session.id,
                        pricing=session.pricing,
                    )
                    log.info("checkout.confirmed", session_id=session.id, order_id=session.order_id)
                    for callback in list(self._confirmed_callbacks):
                        callback(confirmation)
                    return Ok(confirmation)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    # ═══════════════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════════════

    def shipping_methods(self, destination: Destination) -> LazyCoroResult[tuple[ShippingMethod, ...], CheckoutError]:
        """Shipping options for the session's cart and this destination."""

        async def run() -> Result[tuple[ShippingMethod, ...], CheckoutError]:
            if self._session is None:
                return Error(StepRejected(RejectReason.NO_SESSION, "load shipping methods"))
            request = MutationRequest(
                "GET",
                self._paths.shipping_methods_url,
                query=destination_query(self._session.id, destination),
            )
            match await self._coordinator.read(request):
                case Ok(response):
                    return decode_shipping_methods(response)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    def payment_providers(self) -> LazyCoroResult[tuple[PaymentProvider, ...], CheckoutError]:
        async def run() -> Result[tuple[PaymentProvider, ...], CheckoutError]:
            request = MutationRequest("GET", self._paths.payment_providers_url)
            match await self._coordinator.read(request):
                case Ok(response):
                    return decode_payment_providers(response)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    # ═══════════════════════════════════════════════════════════════════════════
    # Internal
    # ═══════════════════════════════════════════════════════════════════════════

    def _admit(self, step: str, required: CheckoutStatus) -> Result[CheckoutSession, StepRejected]:
        session = self._session
        if session is None:
            return Error(StepRejected(RejectReason.NO_SESSION, step))
        if self._in_flight is not None:
            return Error(StepRejected(RejectReason.IN_FLIGHT, step, session.status))
        if session.status is CheckoutStatus.STALE:
            return Error(StepRejected(RejectReason.STALE, step, session.status))
        if session.status.is_terminal:
            return Error(StepRejected(RejectReason.TERMINAL, step, session.status))
        if session.status is not required:
            return Error(StepRejected(RejectReason.OUT_OF_ORDER, step, session.status))
        return Ok(session)

    def _step(
        self,
        step: str,
        *,
        required: CheckoutStatus,
        build: Callable[[CheckoutSession], MutationRequest],
        absorb: Callable[[CheckoutSession, StepIn], CheckoutSession],
        scope: Callable[[CheckoutSession], str] | None = None,
    ) -> LazyCoroResult[CheckoutSession, CheckoutError]:
        return LazyCoroResult(lambda: self._advance(step, required, build, absorb, scope))

    async def _advance(
        self,
        step: str,
        required: CheckoutStatus,
        build: Callable[[CheckoutSession], MutationRequest],
        absorb: Callable[[CheckoutSession, StepIn], CheckoutSession],
        scope: Callable[[CheckoutSession], str] | None,
    ) -> Result[CheckoutSession, CheckoutError]:
        match self._admit(step, required):
            case Ok(session):
                pass
            case Error(rejected):
                log.debug("checkout.rejected", step=step, reason=rejected.reason.value)
                return Error(rejected)

        intent = MutationIntent(build(session), scope=scope(session) if scope else None)
        self._in_flight = step
        try:
            result = await self._coordinator.mutate(intent)
        finally:
            self._in_flight = None

        if self._session is not session:
            # Went stale (or was replaced) while the request was in flight.
            log.info("checkout.response_discarded", step=step, session_id=session.id)
            return Error(StepRejected(RejectReason.STALE, step, self.status))

        match result:
            case Ok(outcome):
                match decode_step(outcome.response):
                    case Ok(body):
                        self._session = absorb(session, body)
                        log.debug("checkout.step", step=step, status=self._session.status.value)
                        return Ok(self._session)
                    case Error(error):
                        return Error(error)
            case Error(error) if is_stale_signal(error):
                self.invalidate(f"{step} rejected: {error.message}")
                if self._notifier is not None:
                    self._notifier.notify(error)
                return Error(error)
            case Error(error):
                return Error(error)


__all__ = (
    "CheckoutMachine",
    "CheckoutError",
    "CART_CHANGED",
    "is_stale_signal",
)
