"""
SQLAlchemy integration — persisted idempotency keys.

For server-side callers that must reuse a key across process restarts.

Usage:
    engine = create_async_engine("sqlite+aiosqlite:///keys.db")
    async with engine.begin() as conn:
        await conn.run_sync(KeyBase.metadata.create_all)

    store = SQLAlchemyKeyStore(async_sessionmaker(engine, expire_on_commit=False))
    coordinator = RetryCoordinator(transport, keys=store)
"""

from datetime import datetime, timedelta

from sqlalchemy import select, String, DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kungfu import Result, Ok, Error

from cartsync.retry._keys import IdempotencyKey, StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════════


class KeyBase(DeclarativeBase):
    pass


class IdempotencyKeyRow(KeyBase):
    """One unresolved key per mutation scope."""

    __tablename__ = "idempotency_keys"

    scope: Mapped[str] = mapped_column(String(255), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyKeyStore:
    """
    KeyStore backed by the idempotency_keys table.

    Example:
        store = SQLAlchemyKeyStore(session_factory)
        await store.put("op-1", IdempotencyKey.new(), timedelta(hours=24))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, scope: str) -> Result[IdempotencyKey | None, StoreError]:
        """Get key by scope. Expired rows read as absent."""
        try:
            async with self._session_factory() as session:
                row = await session.get(IdempotencyKeyRow, scope)
                if row is None:
                    return Ok(None)

                if row.expires_at and datetime.now() > row.expires_at:
                    await session.delete(row)
                    await session.commit()
                    return Ok(None)

                return Ok(IdempotencyKey(row.idempotency_key))

        except Exception as e:
            return Error(StoreError(f"Failed to get: {e}", e))

    async def put(
        self,
        scope: str,
        key: IdempotencyKey,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        """Insert or replace the key for scope."""
        try:
            async with self._session_factory() as session:
                now = datetime.now()
                row = await session.get(IdempotencyKeyRow, scope)
                if row is None:
                    session.add(
                        IdempotencyKeyRow(
                            scope=scope,
                            idempotency_key=key.value,
                            created_at=now,
                            expires_at=now + ttl if ttl else None,
                        )
                    )
                else:
                    row.idempotency_key = key.value
                    row.created_at = now
                    row.expires_at = now + ttl if ttl else None
                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(StoreError(f"Failed to put: {e}", e))

    async def discard(self, scope: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(IdempotencyKeyRow).where(IdempotencyKeyRow.scope == scope)
                )
                row = result.scalar_one_or_none()

                if row is None:
                    return Ok(False)

                await session.delete(row)
                await session.commit()
                return Ok(True)

        except Exception as e:
            return Error(StoreError(f"Failed to discard: {e}", e))


__all__ = (
    "KeyBase",
    "IdempotencyKeyRow",
    "SQLAlchemyKeyStore",
)
