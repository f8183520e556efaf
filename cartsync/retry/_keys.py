"""
Idempotency keys — one key per logical mutation, kept until it is resolved.

KeyStore — where keys live between attempts and resubmissions.
All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from kungfu import Result, Ok


# ═══════════════════════════════════════════════════════════════════════════════
# Idempotency Key
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class IdempotencyKey:
    """
    Opaque token bound to one logical mutation.

    Note: Sent unchanged on the first attempt, every retry and every
    resubmission, so the server applies the mutation at most once.
    """

    value: str

    @classmethod
    def new(cls) -> IdempotencyKey:
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StoreError:
    """Key storage operation error."""

    message: str
    cause: Exception | None = field(default=None, compare=False)


# ═══════════════════════════════════════════════════════════════════════════════
# KeyStore Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class KeyStore(Protocol):
    """
    Storage for unresolved idempotency keys, addressed by mutation scope.

    scope: stable identity of the logical mutation (an operation id).
    """

    async def get(self, scope: str) -> Result[IdempotencyKey | None, StoreError]:
        """Get live key. Returns Ok(None) if absent or expired."""
        ...

    async def put(
        self,
        scope: str,
        key: IdempotencyKey,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        ...

    async def discard(self, scope: str) -> Result[bool, StoreError]:
        """Forget key. Returns Ok(True) if it existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Entry:
    key: IdempotencyKey
    expires_at: datetime | None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and datetime.now() > self.expires_at


class MemoryKeyStore:
    """
    In-memory key store.

    Note: One per browser tab or process. Keys do not survive a restart;
    use SQLAlchemyKeyStore for server-side mutations that must.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    async def get(self, scope: str) -> Result[IdempotencyKey | None, StoreError]:
        async with self._lock:
            entry = self._entries.get(scope)
            if entry is None:
                return Ok(None)
            if entry.expired:
                del self._entries[scope]
                return Ok(None)
            return Ok(entry.key)

    async def put(
        self,
        scope: str,
        key: IdempotencyKey,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        async with self._lock:
            expires_at = datetime.now() + ttl if ttl else None
            self._entries[scope] = _Entry(key=key, expires_at=expires_at)
            return Ok(None)

    async def discard(self, scope: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._entries.pop(scope, None) is not None)

    def __contains__(self, scope: object) -> bool:
        entry = self._entries.get(scope) if isinstance(scope, str) else None
        return entry is not None and not entry.expired

    def __len__(self) -> int:
        return sum(1 for entry in self._entries.values() if not entry.expired)


__all__ = (
    "IdempotencyKey",
    "StoreError",
    "KeyStore",
    "MemoryKeyStore",
)
