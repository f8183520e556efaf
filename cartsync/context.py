"""
StorefrontContext — the cart and checkout objects of one tab or render request.

Owned by the application shell and looked up through a scoped accessor:

    ctx = StorefrontContext.create(settings, factory=factory)
    with use_context(ctx):
        ...
        current_context().client.add(variant_id=7)

No module-level instance exists. Each test, tab or render request builds its own.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from types import TracebackType

from cartsync._types import Unsubscribe
from cartsync.checkout import CheckoutMachine, OrderConfirmation
from cartsync.client import CartClient
from cartsync.config import ClientSettings
from cartsync.optimistic import Notifier, TransactionLog
from cartsync.retry import KeyStore, RetryCoordinator
from cartsync.transport import MinimalRequestContext, MutationTransport, TransportFactory

_current: ContextVar[StorefrontContext | None] = ContextVar("cartsync_context", default=None)


@dataclass(slots=True)
class StorefrontContext:
    """
    Wired transport, coordinator, optimistic log, checkout machine and client.

    Wiring done by create():
        checkout.watch(log)          confirmed cart mutations make checkout STALE
        checkout.on_confirmed(...)   a placed order forgets the cart

    owns_transport: aclose() closes the transport (per-request mode).
    """

    settings: ClientSettings
    transport: MutationTransport
    coordinator: RetryCoordinator
    transactions: TransactionLog
    checkout: CheckoutMachine
    client: CartClient
    owns_transport: bool = False
    _unsubscribe: list[Unsubscribe] = field(default_factory=list, repr=False)

    @classmethod
    def create(
        cls,
        settings: ClientSettings | None = None,
        *,
        factory: TransportFactory | None = None,
        request: MinimalRequestContext | None = None,
        cart_token: str | None = None,
        keys: KeyStore | None = None,
        notifier: Notifier | None = None,
    ) -> StorefrontContext:
        """
        Build a context.

        request: server rendering. A fresh transport carrying only the
        inbound cookie is created and owned by the context. Without it the
        factory's long-lived browser transport is used.
        """
        factory = factory or TransportFactory(settings)
        settings = settings or factory.settings
        paths = settings.paths()

        if request is not None:
            transport = factory.for_request(request, cart_token=cart_token)
        else:
            transport = factory.for_browser(cart_token=cart_token)

        coordinator = RetryCoordinator(
            transport,
            keys=keys,
            policy=settings.retry_policy(),
            version_path=paths.cart_root,
        )
        transactions = TransactionLog(coordinator, paths, notifier=notifier)
        checkout = CheckoutMachine(coordinator, paths, notifier=notifier)
        client = CartClient(coordinator, transactions, paths)

        ctx = cls(
            settings=settings,
            transport=transport,
            coordinator=coordinator,
            transactions=transactions,
            checkout=checkout,
            client=client,
            owns_transport=request is not None,
        )
        ctx._unsubscribe.append(checkout.watch(transactions))
        ctx._unsubscribe.append(checkout.on_confirmed(ctx._order_placed))
        return ctx

    def _order_placed(self, confirmation: OrderConfirmation) -> None:
        self.client.forget()

    def detach(self) -> None:
        """Unhook checkout from the log. In-flight mutations still complete."""
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    async def aclose(self) -> None:
        self.detach()
        if self.owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> StorefrontContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


# ═══════════════════════════════════════════════════════════════════════════════
# Scoped access
# ═══════════════════════════════════════════════════════════════════════════════


@contextmanager
def use_context(ctx: StorefrontContext) -> Generator[StorefrontContext]:
    """Make ctx the current context for the enclosed block (and tasks it spawns)."""
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def current_context() -> StorefrontContext:
    """
    Context installed by use_context().

    Raises:
        LookupError: no context is active.
    """
    ctx = _current.get()
    if ctx is None:
        raise LookupError("No StorefrontContext is active; wrap the call in use_context()")
    return ctx


__all__ = (
    "StorefrontContext",
    "use_context",
    "current_context",
)
