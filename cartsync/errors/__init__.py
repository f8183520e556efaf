"""
Errors — closed taxonomy of transport failures.

    from cartsync import errors as X

    match X.classify(raw):
        case X.ConcurrencyConflict(): ...
        case X.ValidationFailure(fields=fields): ...
        case X.SessionExpired(): ...
        case X.Unclassified(status=status): ...
"""

from cartsync.errors._kinds import (
    ErrorKind,
    SessionReason,
    ConcurrencyConflict,
    ValidationFailure,
    SessionExpired,
    Unclassified,
    TypedError,
    is_rollback_eligible,
    field_errors,
)
from cartsync.errors._classify import (
    RawFailure,
    classify,
    DEFAULT_MESSAGES,
)

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
    "RawFailure",
    "classify",
    "DEFAULT_MESSAGES",
)
