"""
Typed error kinds — the closed set every transport failure is normalised into.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Discriminator shared by all typed errors."""

    CONCURRENCY_CONFLICT = auto()  # Version precondition failed
    VALIDATION_FAILURE = auto()  # Field-level rejection
    SESSION_EXPIRED = auto()  # Auth / CSRF credential must be refreshed
    UNCLASSIFIED = auto()  # Everything else, raw status preserved


class SessionReason(Enum):
    """Why the session credential was rejected."""

    CSRF = auto()  # 419
    UNAUTHORIZED = auto()  # 401


# ═══════════════════════════════════════════════════════════════════════════════
# Kinds
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ConcurrencyConflict:
    """
    The stated version did not match the server's version.

    Note: server_version is filled only when the server reports it.
    """

    message: str
    resource: str = "cart"
    server_version: int | None = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.CONCURRENCY_CONFLICT


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    """
    Server rejected the input.

    fields maps a field name to its messages. Empty when the server sent no
    field-level detail.
    """

    message: str
    fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    data: Any = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.VALIDATION_FAILURE

    def has_code(self, code: str) -> bool:
        """Check for a machine-readable code in the message or field names."""
        if code in self.message:
            return True
        if isinstance(self.data, Mapping) and self.data.get("code") == code:
            return True
        return any(code in name for name in self.fields)


@dataclass(frozen=True, slots=True)
class SessionExpired:
    """
    Session credential is no longer valid.

    requires_reauth: the credential refresh itself failed, the user must sign
    in again.
    """

    message: str
    reason: SessionReason
    status: int
    requires_reauth: bool = False

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.SESSION_EXPIRED


@dataclass(frozen=True, slots=True)
class Unclassified:
    """
    Any other failure.

    status is None when no response was received (network failure).
    """

    message: str
    status: int | None
    data: Any = None
    cause: Exception | None = field(default=None, compare=False)

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.UNCLASSIFIED

    @property
    def is_network(self) -> bool:
        return self.status is None

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and self.status >= 500

    @property
    def is_gone(self) -> bool:
        """Resource no longer exists (expired checkout session, dropped cart)."""
        return self.status in (404, 410)


type TypedError = ConcurrencyConflict | ValidationFailure | SessionExpired | Unclassified
"""Closed set of errors seen by every component above the transport."""


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def is_rollback_eligible(error: TypedError) -> bool:
    """Optimistic changes are reverted only for conflicts and validation failures."""
    return isinstance(error, (ConcurrencyConflict, ValidationFailure))


def field_errors(error: TypedError) -> dict[str, str]:
    """First message per field, for feedback at the point of input."""
    if not isinstance(error, ValidationFailure):
        return {}
    return {name: messages[0] if messages else "" for name, messages in error.fields.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ErrorKind",
    "SessionReason",
    "ConcurrencyConflict",
    "ValidationFailure",
    "SessionExpired",
    "Unclassified",
    "TypedError",
    "is_rollback_eligible",
    "field_errors",
)
