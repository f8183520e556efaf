"""
Transport values — request description and raw response.
"""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass, field
from typing import IO, Any

import httpx

# ═══════════════════════════════════════════════════════════════════════════════
# Body
# ═══════════════════════════════════════════════════════════════════════════════

type JsonBody = Mapping[str, Any] | list[Any] | tuple[Any, ...] | str | int | float | bool
type Body = JsonBody | bytes | bytearray | memoryview | AsyncIterable[bytes] | IO[bytes]
"""JSON-able values are sent as JSON; anything else is sent as raw content."""

_JSON_TYPES = (Mapping, list, tuple, str, int, float, bool)

READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def is_json_body(body: Any) -> bool:
    return isinstance(body, _JSON_TYPES)


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MutationRequest:
    """
    One HTTP request as the core describes it.

    version: caller-stated cart version for the If-Match precondition.
    idempotency_key: sent verbatim as Idempotency-Key.
    """

    method: str
    path: str
    body: Body | None = None
    query: Mapping[str, str] | None = None
    version: int | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())

    @property
    def is_read(self) -> bool:
        return self.method in READ_METHODS

    @property
    def replayable(self) -> bool:
        """
        Whether the same body can be sent again.

        Note: Streams, file objects and binary payloads are consumed on send.
        """
        return self.body is None or is_json_body(self.body)

    def with_version(self, version: int | None) -> MutationRequest:
        return dataclasses.replace(self, version=version)

    def with_key(self, key: str | None) -> MutationRequest:
        return dataclasses.replace(self, idempotency_key=key)


# ═══════════════════════════════════════════════════════════════════════════════
# Response
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Successful (2xx) response, body already decoded."""

    status: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> TransportResponse:
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text
        return cls(
            status=response.status_code,
            body=body,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    @property
    def data(self) -> Any:
        """Body with the ``{"data": ...}`` envelope removed."""
        if isinstance(self.body, Mapping) and "data" in self.body:
            return self.body["data"]
        return self.body

    @property
    def version(self) -> int | None:
        """Resource version from X-Cart-Version, ETag, or the body."""
        for header in ("x-cart-version", "etag"):
            raw = self.headers.get(header)
            if raw is None:
                continue
            parsed = _parse_version(raw.removeprefix("W/").strip('"'))
            if parsed is not None:
                return parsed
        data = self.data
        if not isinstance(data, Mapping):
            return None
        # {"cart": {...}, "coupon": {...}} from coupon endpoints
        for candidate in (data, data.get("cart")):
            if not isinstance(candidate, Mapping):
                continue
            value = candidate.get("version")
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        return None


def _parse_version(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


__all__ = (
    "Body",
    "JsonBody",
    "MutationRequest",
    "TransportResponse",
    "READ_METHODS",
    "is_json_body",
)
