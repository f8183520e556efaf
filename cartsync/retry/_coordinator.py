"""
RetryCoordinator — bounded, idempotent retries around MutationTransport.

Every logical mutation:
    1. reuse or create its idempotency key (by scope)
    2. send with the tracked cart version as precondition
    3. success             → advance version, discard key
       conflict            → re-read version, replay (versioned requests only)
       session expired     → refresh credential once, replay
       non-replayable body → surface immediately
       anything else       → surface, key kept for resubmission
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass

import structlog
from kungfu import Result, Ok, Error, LazyCoroResult

from cartsync.errors import (
    ConcurrencyConflict,
    SessionExpired,
    TypedError,
    Unclassified,
    ValidationFailure,
    classify,
)
from cartsync.retry._keys import IdempotencyKey, KeyStore, MemoryKeyStore
from cartsync.retry._policy import DEFAULT_POLICY, RetryPolicy
from cartsync.retry._tracker import VersionTracker
from cartsync.transport import CredentialProvider, MutationRequest, MutationTransport, TransportResponse

log = structlog.get_logger("cartsync.retry")


# ═══════════════════════════════════════════════════════════════════════════════
# Intent / Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MutationIntent:
    """
    One logical mutation.

    scope: identity shared by every submission of the same mutation. The
    idempotency key is stored under it, so resubmitting with the same scope
    sends the same key. None makes a one-shot scope.
    """

    request: MutationRequest
    scope: str | None = None


@dataclass(frozen=True, slots=True)
class MutationOutcome:
    """Successful mutation and how it got there."""

    response: TransportResponse
    version: int | None
    attempts: int
    key: IdempotencyKey


@dataclass(slots=True)
class _Budget:
    attempts: int = 0
    conflicts: int = 0
    refreshes: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# Coordinator
# ═══════════════════════════════════════════════════════════════════════════════


class RetryCoordinator:
    """
    Wraps a transport with retry, idempotency and version tracking.

    Example:
        coordinator = RetryCoordinator(transport, version_path=paths.cart_root)

        match await coordinator.mutate(MutationIntent(request, scope=op_id)):
            case Ok(outcome): outcome.version
            case Error(X.ConcurrencyConflict()): ...   # budget exhausted
            case Error(err): ...

    Note: Always yields a TypedError on failure, never a raw status.
    """

    def __init__(
        self,
        transport: MutationTransport,
        *,
        tracker: VersionTracker | None = None,
        credentials: CredentialProvider | None = None,
        keys: KeyStore | None = None,
        policy: RetryPolicy = DEFAULT_POLICY,
        version_path: str = "/api/v1/cart",
    ) -> None:
        self.transport = transport
        self.tracker = tracker or VersionTracker()
        self.credentials = credentials if credentials is not None else transport.credentials
        self.keys: KeyStore = keys if keys is not None else MemoryKeyStore()
        self.policy = policy
        self.version_path = version_path

    # Public

    def mutate(self, intent: MutationIntent) -> LazyCoroResult[MutationOutcome, TypedError]:
        async def run() -> Result[MutationOutcome, TypedError]:
            one_shot = intent.scope is None
            scope = intent.scope or f"once-{uuid.uuid4()}"

            match await self._key_for(scope):
                case Ok(key):
                    pass
                case Error(err):
                    return Error(err)

            request = intent.request.with_key(key.value)
            if request.version is None and self.transport.is_versioned(request):
                request = request.with_version(self.tracker.current)

            result = await self._exchange(request, scope=scope)
            match result:
                case Ok((response, budget)):
                    await self.keys.discard(scope)
                    return Ok(
                        MutationOutcome(
                            response=response,
                            version=response.version if self.transport.tracks(request.path) else None,
                            attempts=budget.attempts,
                            key=key,
                        )
                    )
                case Error(error):
                    if one_shot or isinstance(error, (ConcurrencyConflict, ValidationFailure)):
                        await self.keys.discard(scope)
                    return Error(error)

        return LazyCoroResult(run)

    def read(self, request: MutationRequest) -> LazyCoroResult[TransportResponse, TypedError]:
        """Classified read. Session refresh applies; nothing else is retried."""

        async def run() -> Result[TransportResponse, TypedError]:
            match await self._exchange(request, scope=None):
                case Ok((response, _)):
                    return Ok(response)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    def refresh_version(self) -> LazyCoroResult[int | None, TypedError]:
        """Re-read the cart and advance the tracked version."""

        async def run() -> Result[int | None, TypedError]:
            match await self.read(MutationRequest("GET", self.version_path)):
                case Ok(_):
                    return Ok(self.tracker.current)
                case Error(error):
                    return Error(error)

        return LazyCoroResult(run)

    # Internal

    async def _key_for(self, scope: str) -> Result[IdempotencyKey, TypedError]:
        match await self.keys.get(scope):
            case Ok(IdempotencyKey() as existing):
                return Ok(existing)
            case Ok(None):
                pass
            case Error(err):
                return Error(Unclassified(message=err.message, status=None, cause=err.cause))

        key = IdempotencyKey.new()
        match await self.keys.put(scope, key, self.policy.key_ttl):
            case Error(err):
                return Error(Unclassified(message=err.message, status=None, cause=err.cause))
            case _:
                return Ok(key)

    async def _exchange(
        self,
        request: MutationRequest,
        *,
        scope: str | None,
    ) -> Result[tuple[TransportResponse, _Budget], TypedError]:
        budget = _Budget()
        versioned = self.transport.is_versioned(request)

        while True:
            budget.attempts += 1
            sent = await self.transport.send(request)

            match sent:
                case Ok(response):
                    if self.transport.tracks(request.path):
                        self.tracker.advance(response.version)
                    return Ok((response, budget))
                case Error(raw):
                    error = classify(raw)

            if not request.replayable:
                log.info(
                    "mutation.not_replayable",
                    method=request.method,
                    path=request.path,
                    kind=error.kind.name,
                )
                return Error(error)

            match error:
                case ConcurrencyConflict() if versioned and budget.conflicts < self.policy.conflict_attempts:
                    budget.conflicts += 1
                    log.info(
                        "mutation.retry",
                        reason="conflict",
                        attempt=budget.attempts,
                        conflicts=budget.conflicts,
                        scope=scope,
                        path=request.path,
                    )
                    match await self._reread(error):
                        case Error(reread_error):
                            return Error(reread_error)
                        case _:
                            request = request.with_version(self.tracker.current)

                case SessionExpired() if (
                    self.credentials is not None and budget.refreshes < self.policy.session_refreshes
                ):
                    budget.refreshes += 1
                    log.info(
                        "mutation.retry",
                        reason="session",
                        attempt=budget.attempts,
                        scope=scope,
                        path=request.path,
                    )
                    match await self.credentials.refresh():
                        case Error(failed):
                            log.warning("session.refresh_failed", message=failed.message)
                            return Error(dataclasses.replace(error, requires_reauth=True))
                        case _:
                            pass

                case _:
                    log.debug(
                        "mutation.failed",
                        kind=error.kind.name,
                        attempts=budget.attempts,
                        scope=scope,
                        path=request.path,
                    )
                    return Error(error)

    async def _reread(self, conflict: ConcurrencyConflict) -> Result[int | None, TypedError]:
        if conflict.server_version is not None:
            self.tracker.advance(conflict.server_version)
            return Ok(self.tracker.current)
        return await self.refresh_version()


__all__ = (
    "MutationIntent",
    "MutationOutcome",
    "RetryCoordinator",
)
