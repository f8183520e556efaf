"""
TransactionLog — pending local mutations rendered on top of the last confirmed cart.

    view = fold(apply, pending ops in submission order, confirmed snapshot)

Transitions:
    submit     → op PENDING, view re-rendered, request dispatched
    confirmed  → snapshot replaced (if not older), op dropped by op_id
    rollback   → ConcurrencyConflict / ValidationFailure: op dropped, user notified
    other      → op stays PENDING with last_error until resubmit() or discard()
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from collections.abc import Callable, Generator
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

import structlog
from kungfu import Result, Ok, Error

from cartsync._types import Unsubscribe
from cartsync.cart._codec import decode_cart
from cartsync.cart._model import TEMP_PREFIX, Cart
from cartsync.config import ApiPaths
from cartsync.errors import TypedError, Unclassified, is_rollback_eligible
from cartsync.optimistic._actions import AddItem, CartAction, OpStatus, PendingOperation
from cartsync.retry import MutationIntent, RetryCoordinator
from cartsync.transport import MutationRequest

log = structlog.get_logger("cartsync.optimistic")

type CartListener = Callable[[Cart], None]


# ═══════════════════════════════════════════════════════════════════════════════
# Collaborators
# ═══════════════════════════════════════════════════════════════════════════════


class Notifier(Protocol):
    """User-facing sink for conflicts and validation failures (toast, field hint)."""

    def notify(self, error: TypedError, *, op_id: str | None = None) -> None: ...


@dataclass(slots=True)
class _Entry:
    """Mutable log record. Never leaves the log; PendingOperation is its public view."""

    op_id: str
    action: CartAction
    line: str
    status: OpStatus = OpStatus.PENDING
    last_error: TypedError | None = None
    task: asyncio.Task[Result[Cart, TypedError]] | None = None

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    def snapshot(self) -> PendingOperation:
        return PendingOperation(
            op_id=self.op_id,
            action=self.action,
            status=self.status,
            last_error=self.last_error,
            in_flight=self.in_flight,
        )


@dataclass(frozen=True, slots=True)
class Submission:
    """
    Handle of a submitted operation.

    Await it for the server outcome:
        result = await log.submit(UpdateQuantity("42", 3))
    """

    op_id: str
    line: str
    task: asyncio.Task[Result[Cart, TypedError]] = field(repr=False)

    def __await__(self) -> Generator[Any, None, Result[Cart, TypedError]]:
        return self.task.__await__()

    def done(self) -> bool:
        return self.task.done()


# ═══════════════════════════════════════════════════════════════════════════════
# Log
# ═══════════════════════════════════════════════════════════════════════════════


class TransactionLog:
    """
    Optimistic view of one cart, owned by one tab or session.

    Example:
        log = TransactionLog(coordinator, paths, notifier=toasts)
        log.load(cart)

        submission = log.submit(UpdateQuantity("42", 3))
        log.view                   # already shows quantity 3
        match await submission:
            case Ok(cart): ...     # confirmed
            case Error(err): ...   # rolled back or still pending

    Note: Ops addressing the same line are sent one after another in
    submission order. Ops on different lines are in flight together.
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
        self._confirmed: Cart | None = None
        self._entries: dict[str, _Entry] = {}
        self._view: Cart = Cart.empty()
        self._tails: dict[str, asyncio.Task[Result[Cart, TypedError]]] = {}
        self._aliases: dict[str, str] = {}
        self._parked: dict[str, list[str]] = {}
        self._temp_ids = itertools.count(1)
        self._listeners: list[CartListener] = []
        self._cart_observers: list[CartListener] = []
        self._unverified_observers: list[Callable[[], None]] = []

    # ═══════════════════════════════════════════════════════════════════════════
    # State
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def confirmed(self) -> Cart | None:
        return self._confirmed

    @property
    def view(self) -> Cart:
        """Confirmed snapshot with every pending op applied."""
        return self._view

    @property
    def pending(self) -> tuple[PendingOperation, ...]:
        return tuple(entry.snapshot() for entry in self._entries.values())

    def operation(self, op_id: str) -> PendingOperation | None:
        entry = self._entries.get(op_id)
        return entry.snapshot() if entry else None

    def resolve_id(self, item_id: str) -> str:
        """Server id for a confirmed temporary id, otherwise item_id unchanged."""
        return self._aliases.get(item_id, item_id)

    async def server_id(self, item_id: str) -> Result[str, TypedError]:
        """
        Server id for item_id, waiting for the add that creates a temporary line.

        Error when the add is still unresolved after its request settles; no
        request addressed to the temporary id ever reaches the server.
        """
        if not item_id.startswith(TEMP_PREFIX) or item_id in self._aliases:
            return Ok(self.resolve_id(item_id))

        creator = self._creator_of(item_id)
        if creator is not None and creator.in_flight:
            await asyncio.wait({creator.task})  # type: ignore[arg-type]

        if item_id in self._aliases:
            return Ok(self._aliases[item_id])
        return Error(_awaiting_line(item_id) if self._creator_of(item_id) else _line_gone(item_id))

    async def settled(self) -> None:
        """Wait until no op is in flight, including ops released by a confirmed add."""
        while running := {e.task for e in self._entries.values() if e.in_flight and e.task is not None}:
            await asyncio.wait(running)

    def load(self, cart: Cart) -> None:
        """Adopt a fetched cart. Pending ops stay and are re-applied on top."""
        if self._confirmed is None or cart.version >= self._confirmed.version:
            self._confirmed = cart
        self._render()

    def reset(self, cart: Cart | None = None) -> None:
        """
        Replace everything: snapshot, pending ops, temporary ids.

        Note: In-flight requests still complete on the server; their
        responses no longer touch this log.
        """
        self._confirmed = cart
        self._entries.clear()
        self._tails.clear()
        self._aliases.clear()
        self._parked.clear()
        self._render()

    def confirm_external(self, cart: Cart) -> bool:
        """
        Adopt a cart confirmed outside the log (coupon, options, another tab).

        Returns False when the cart is older than the current snapshot.
        """
        if self._confirmed is not None and cart.version < self._confirmed.version:
            return False
        self._confirmed = cart
        self._render()
        self._cart_changed(cart)
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # Observers
    # ═══════════════════════════════════════════════════════════════════════════

    def subscribe(self, listener: CartListener) -> Unsubscribe:
        """listener(view) after every transition."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def on_cart_changed(self, callback: CartListener) -> Unsubscribe:
        """callback(confirmed) whenever the server confirms a cart mutation."""
        self._cart_observers.append(callback)
        return lambda: (
            self._cart_observers.remove(callback) if callback in self._cart_observers else None
        )

    def on_cart_unverified(self, callback: Callable[[], None]) -> Unsubscribe:
        """callback() when the server accepted a mutation but the new cart could not be read."""
        self._unverified_observers.append(callback)
        return lambda: (
            self._unverified_observers.remove(callback) if callback in self._unverified_observers else None
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Submit / Resubmit / Discard
    # ═══════════════════════════════════════════════════════════════════════════

    def submit(self, action: CartAction) -> Submission:
        """
        Render action immediately and send it.

        Note: Must be called from a running event loop.
        """
        if action.target is not None:
            target = self.resolve_id(action.target)
            action = action.remap(action.target, target)

        if isinstance(action, AddItem):
            merged = next((line for line in self._view.items if action.matches(line)), None)
            if action.temp_id is None:
                action = replace(action, temp_id=f"{TEMP_PREFIX}{next(self._temp_ids)}")
            line = merged.id if merged is not None else action.temp_id
        else:
            line = action.target

        entry = _Entry(op_id=str(uuid.uuid4()), action=action.capture(self._view), line=line or "")
        self._entries[entry.op_id] = entry
        self._render()
        log.debug("optimistic.submitted", op_id=entry.op_id, kind=action.kind.name, line=entry.line)
        return self._schedule(entry)

    def resubmit(self, op_id: str) -> Submission:
        """
        Send a pending op again with its original idempotency key.

        Raises:
            ValueError: op unknown, already resolved, or still in flight.
        """
        entry = self._entries.get(op_id)
        if entry is None or entry.status is not OpStatus.PENDING:
            raise ValueError(f"No pending operation {op_id!r}")
        if entry.in_flight:
            raise ValueError(f"Operation {op_id!r} is still in flight")
        entry.last_error = None
        return self._schedule(entry)

    async def discard(self, op_id: str) -> bool:
        """Drop a pending, failed op and forget its idempotency key."""
        entry = self._entries.get(op_id)
        if entry is None or entry.in_flight:
            return False
        self._drop(entry, entry.last_error, notify=False)
        await self._coordinator.keys.discard(op_id)
        log.info("optimistic.discarded", op_id=op_id)
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # Dispatch
    # ═══════════════════════════════════════════════════════════════════════════

    def _schedule(self, entry: _Entry) -> Submission:
        predecessor = self._tails.get(entry.line)
        task = asyncio.ensure_future(self._dispatch(entry, predecessor))
        entry.task = task
        self._tails[entry.line] = task
        return Submission(op_id=entry.op_id, line=entry.line, task=task)

    async def _dispatch(
        self,
        entry: _Entry,
        predecessor: asyncio.Task[Result[Cart, TypedError]] | None,
    ) -> Result[Cart, TypedError]:
        if predecessor is not None and not predecessor.done():
            await asyncio.wait({predecessor})

        if self._entries.get(entry.op_id) is not entry:
            # Rolled back with its add, or reset() while waiting
            return Error(entry.last_error or _discarded(entry))

        target = entry.action.target
        if target is not None and target.startswith(TEMP_PREFIX):
            if target not in self._aliases:
                creator = self._creator_of(target)
                if creator is None:
                    # Add confirmed but the server cart has no matching line.
                    gone = _line_gone(target)
                    self._drop(entry, gone, notify=False)
                    return Error(gone)
                # The add that creates this line is unresolved; sent once it confirms.
                waiting = _awaiting_line(target)
                entry.last_error = waiting
                parked = self._parked.setdefault(target, [])
                if entry.op_id not in parked:
                    parked.append(entry.op_id)
                self._render()
                log.info("optimistic.parked", op_id=entry.op_id, line=target, creator=creator.op_id)
                return Error(waiting)
            self._remap(target, self._aliases[target])

        request = entry.action.to_request(self._paths)
        result = await self._coordinator.mutate(MutationIntent(request, scope=entry.op_id))

        if self._entries.get(entry.op_id) is not entry:
            # reset() happened while the request was in flight
            match result:
                case Ok(outcome):
                    return decode_cart(outcome.response)
                case Error(error):
                    return Error(error)

        match result:
            case Ok(outcome):
                match decode_cart(outcome.response):
                    case Ok(cart):
                        self._confirm(entry, cart)
                        return Ok(cart)
                    case Error(error):
                        # Accepted, but the body is not a cart: read the new one.
                        match await self._reread():
                            case Ok(cart) if self._entries.get(entry.op_id) is not entry:
                                return Ok(cart)
                            case Ok(cart):
                                self._confirm(entry, cart)
                                return Ok(cart)
                            case Error(_):
                                self._confirm(entry, None)
                                self._cart_unverified()
                                return Error(error)
            case Error(error) if is_rollback_eligible(error):
                self._drop(entry, error, notify=True)
                return Error(error)
            case Error(error):
                entry.last_error = error
                self._render()
                log.info(
                    "optimistic.left_pending",
                    op_id=entry.op_id,
                    kind=error.kind.name,
                    message=error.message,
                )
                return Error(error)

    # ═══════════════════════════════════════════════════════════════════════════
    # Reconciliation
    # ═══════════════════════════════════════════════════════════════════════════

    def _confirm(self, entry: _Entry, cart: Cart | None) -> None:
        entry.status = OpStatus.CONFIRMED
        self._entries.pop(entry.op_id, None)

        action = entry.action
        released: list[_Entry] = []
        if cart is not None and isinstance(action, AddItem) and action.temp_id is not None:
            line = action.resolve(cart)
            if line is not None:
                self._aliases[action.temp_id] = line.id
                self._remap(action.temp_id, line.id)
                for op_id in self._parked.pop(action.temp_id, []):
                    parked = self._entries.get(op_id)
                    if parked is not None and not parked.in_flight:
                        parked.line = line.id
                        parked.last_error = None
                        released.append(parked)

        if cart is not None and (self._confirmed is None or cart.version >= self._confirmed.version):
            self._confirmed = cart
        self._render()
        log.debug("optimistic.confirmed", op_id=entry.op_id, version=cart.version if cart else None)
        if self._confirmed is not None:
            self._cart_changed(self._confirmed)

        for parked in released:
            log.info("optimistic.released", op_id=parked.op_id, line=parked.line)
            self._schedule(parked)

    def _drop(self, entry: _Entry, error: TypedError | None, *, notify: bool) -> None:
        dropped = [entry]
        action = entry.action
        if isinstance(action, AddItem) and action.temp_id is not None:
            # Ops addressed to a line that will never exist go with it.
            dropped += [e for e in self._entries.values() if e is not entry and e.action.target == action.temp_id]
            self._parked.pop(action.temp_id, None)

        for item in dropped:
            item.status = OpStatus.ROLLED_BACK
            item.last_error = error
            self._entries.pop(item.op_id, None)
        self._render()

        for item in dropped:
            log.info(
                "optimistic.rolled_back",
                op_id=item.op_id,
                kind=error.kind.name if error else None,
            )
        if notify and error is not None and self._notifier is not None:
            self._notifier.notify(error, op_id=entry.op_id)

    def _remap(self, old: str, new: str) -> None:
        for entry in self._entries.values():
            if entry.action.target == old:
                entry.action = entry.action.remap(old, new)
        tail = self._tails.get(old)
        current = self._tails.get(new)
        if tail is not None and (current is None or current.done()):
            self._tails[new] = tail

    def _creator_of(self, temp_id: str) -> _Entry | None:
        return next(
            (
                e
                for e in self._entries.values()
                if isinstance(e.action, AddItem) and e.action.temp_id == temp_id
            ),
            None,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Rendering
    # ═══════════════════════════════════════════════════════════════════════════

    def _render(self) -> None:
        view = self._confirmed or Cart.empty()
        for entry in self._entries.values():
            view = entry.action.apply(view)
        self._view = view
        for listener in list(self._listeners):
            listener(view)

    def _cart_changed(self, cart: Cart) -> None:
        for callback in list(self._cart_observers):
            callback(cart)

    def _cart_unverified(self) -> None:
        log.warning("optimistic.cart_unverified", version=self._confirmed.version if self._confirmed else None)
        for callback in list(self._unverified_observers):
            callback()

    async def _reread(self) -> Result[Cart, TypedError]:
        match await self._coordinator.read(MutationRequest("GET", self._paths.cart_root)):
            case Ok(response):
                return decode_cart(response)
            case Error(error):
                return Error(error)


def _discarded(entry: _Entry) -> TypedError:
    return Unclassified(message=f"Operation {entry.op_id} was discarded", status=None)


def _awaiting_line(item_id: str) -> TypedError:
    return Unclassified(message=f"Cart line {item_id} is waiting for its add to be confirmed", status=None)


def _line_gone(item_id: str) -> TypedError:
    return Unclassified(message=f"Cart line {item_id} does not exist on the server", status=404)


__all__ = (
    "Notifier",
    "Submission",
    "TransactionLog",
)
