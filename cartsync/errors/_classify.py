"""
Classification — the single point where raw transport failures become typed errors.

No other module branches on HTTP status codes.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from cartsync.errors._kinds import (
    ConcurrencyConflict,
    SessionExpired,
    SessionReason,
    TypedError,
    Unclassified,
    ValidationFailure,
)


DEFAULT_MESSAGES: dict[int, str] = {
    400: "Invalid request. Please check your input.",
    401: "You are not authenticated. Please log in.",
    403: "You do not have permission to access this resource.",
    404: "The requested resource was not found.",
    409: "The request could not be completed due to a conflict.",
    419: "Session expired. Please try again.",
    422: "Validation failed. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "An unexpected error occurred. Please try again later.",
}
NETWORK_MESSAGE = "The server could not be reached. Please check your connection."


# ═══════════════════════════════════════════════════════════════════════════════
# Raw Failure — classifier input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RawFailure:
    """
    Transport-level failure before classification.

    Note: status is None when the request never produced a response.
    """

    status: int | None
    body: Any = None
    reason: str | None = None
    cause: Exception | None = field(default=None, compare=False)

    @classmethod
    def from_response(cls, response: httpx.Response) -> RawFailure:
        return cls(
            status=response.status_code,
            body=_parse_body(response),
            reason=response.reason_phrase or None,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> RawFailure:
        return cls(status=None, reason=str(exc) or type(exc).__name__, cause=exc)


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


# ═══════════════════════════════════════════════════════════════════════════════
# classify()
# ═══════════════════════════════════════════════════════════════════════════════


def classify(raw: RawFailure) -> TypedError:
    """
    Map a raw failure onto exactly one typed error.

    Total and deterministic: unknown statuses and network failures become
    Unclassified with the original status kept.
    """
    data = raw.body if isinstance(raw.body, Mapping) else None
    message = _message(raw, data)

    match raw.status:
        case None:
            return Unclassified(message=message, status=None, data=raw.body, cause=raw.cause)
        case 409:
            version = data.get("version") if data else None
            return ConcurrencyConflict(
                message=message,
                server_version=version if isinstance(version, int) else None,
            )
        case 422:
            errors = data.get("errors") if data else None
            return ValidationFailure(message=message, fields=_field_map(errors), data=raw.body)
        case 401:
            return SessionExpired(message=message, reason=SessionReason.UNAUTHORIZED, status=401)
        case 419:
            return SessionExpired(message=message, reason=SessionReason.CSRF, status=419)
        case status:
            return Unclassified(message=message, status=status, data=raw.body, cause=raw.cause)


def _message(raw: RawFailure, data: Mapping[str, Any] | None) -> str:
    if data:
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    if raw.status is None:
        return NETWORK_MESSAGE
    if raw.reason:
        return raw.reason
    return DEFAULT_MESSAGES.get(raw.status, DEFAULT_MESSAGES[500])


def _field_map(errors: Any) -> dict[str, tuple[str, ...]]:
    if not isinstance(errors, Mapping):
        return {}
    fields: dict[str, tuple[str, ...]] = {}
    for name, messages in errors.items():
        if isinstance(messages, str):
            fields[str(name)] = (messages,)
        elif isinstance(messages, (list, tuple)):
            fields[str(name)] = tuple(str(m) for m in messages)
        else:
            fields[str(name)] = (str(messages),)
    return fields


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "RawFailure",
    "classify",
    "DEFAULT_MESSAGES",
)
