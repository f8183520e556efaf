"""
Optimistic — instant local cart changes reconciled against server responses.

    from cartsync import optimistic as O

    log = O.TransactionLog(coordinator, paths, notifier=toasts)
    log.load(cart)

    add = log.submit(O.AddItem(quantity=1, variant_id=7, unit_price=1999))
    log.view.item("tmp-1")           # rendered right away
    remove = log.submit(O.RemoveItem("tmp-1"))   # waits for the add, then targets the server id

    await add
    await remove
"""

from cartsync.optimistic._actions import (
    OpKind,
    OpStatus,
    AddItem,
    UpdateQuantity,
    RemoveItem,
    CartAction,
    PendingOperation,
)
from cartsync.optimistic._log import (
    Notifier,
    Submission,
    TransactionLog,
)

__all__ = (
    "OpKind",
    "OpStatus",
    "AddItem",
    "UpdateQuantity",
    "RemoveItem",
    "CartAction",
    "PendingOperation",
    "Notifier",
    "Submission",
    "TransactionLog",
)
