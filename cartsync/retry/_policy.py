"""
Retry policy — per-mutation retry budgets.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Retry budgets for one logical mutation.

    Fluent builder pattern, each method returns a new policy.

    Example:
        policy = (
            RetryPolicy()
            .with_conflict_attempts(3)
            .with_session_refreshes(1)
            .with_key_ttl(hours=24)
        )

    Note: The two budgets are independent. A credential refresh does not use
    up a conflict retry and vice versa.

    key_ttl: how long an unresolved idempotency key may be reused by a
    resubmission. None keeps it until discarded.
    """

    conflict_attempts: int = 3
    session_refreshes: int = 1
    key_ttl: timedelta | None = timedelta(hours=24)

    def __post_init__(self) -> None:
        if self.conflict_attempts < 0:
            raise ValueError("conflict_attempts must be >= 0")
        if self.session_refreshes < 0:
            raise ValueError("session_refreshes must be >= 0")

    def with_conflict_attempts(self, attempts: int) -> RetryPolicy:
        """
        Set how many times a version conflict is re-read and replayed.

        Example:
            .with_conflict_attempts(0)  # surface the first conflict
        """
        return replace(self, conflict_attempts=attempts)

    def with_session_refreshes(self, refreshes: int) -> RetryPolicy:
        return replace(self, session_refreshes=refreshes)

    def with_key_ttl(
        self,
        *,
        seconds: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> RetryPolicy:
        """
        Set idempotency key lifetime.

        Example:
            .with_key_ttl(hours=24)
            .with_key_ttl(delta=timedelta(minutes=30))
        """
        if delta is not None:
            ttl = delta
        else:
            total = (seconds or 0) + (hours or 0) * 3600
            ttl = timedelta(seconds=total) if total > 0 else None
        return replace(self, key_ttl=ttl)


DEFAULT_POLICY = RetryPolicy()


__all__ = ("RetryPolicy", "DEFAULT_POLICY")
