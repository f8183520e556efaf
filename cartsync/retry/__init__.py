"""
Retry — idempotent, bounded retries for versioned mutations.

    from cartsync import retry as R

    coordinator = R.RetryCoordinator(
        transport,
        policy=R.RetryPolicy().with_conflict_attempts(3).with_session_refreshes(1),
        version_path=paths.cart_root,
    )

    match await coordinator.mutate(R.MutationIntent(request, scope="op-7")):
        case Ok(outcome): ...
        case Error(err): ...   # TypedError

SQLAlchemyKeyStore lives in cartsync.retry._sqlalchemy (needs the sqlalchemy extra).
"""

from cartsync.retry._policy import RetryPolicy, DEFAULT_POLICY
from cartsync.retry._keys import (
    IdempotencyKey,
    StoreError,
    KeyStore,
    MemoryKeyStore,
)
from cartsync.retry._tracker import VersionTracker
from cartsync.retry._coordinator import (
    MutationIntent,
    MutationOutcome,
    RetryCoordinator,
)

__all__ = (
    "RetryPolicy",
    "DEFAULT_POLICY",
    "IdempotencyKey",
    "StoreError",
    "KeyStore",
    "MemoryKeyStore",
    "VersionTracker",
    "MutationIntent",
    "MutationOutcome",
    "RetryCoordinator",
)
