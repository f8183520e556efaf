"""
Request context and session credentials.

MinimalRequestContext is the only thing taken from an inbound render request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import unquote

import httpx
from kungfu import Result, Ok, Error


# ═══════════════════════════════════════════════════════════════════════════════
# Minimal Request Context — server rendering
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class MinimalRequestContext:
    """
    What a server-side render may forward upstream.

    Note: Only the cookie. Authorization, forwarding and host headers of the
    inbound request never reach the storefront API.
    """

    cookie: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> MinimalRequestContext:
        for name, value in headers.items():
            if name.lower() == "cookie":
                return cls(cookie=value or None)
        return cls()

    def to_headers(self) -> dict[str, str]:
        return {"Cookie": self.cookie} if self.cookie else {}


# ═══════════════════════════════════════════════════════════════════════════════
# Session Credential
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SessionCredential:
    """CSRF token for state-changing requests."""

    xsrf_token: str


@dataclass(frozen=True, slots=True)
class RefreshFailed:
    """Credential refresh did not produce a usable credential."""

    message: str
    cause: Exception | None = None


class CredentialProvider(Protocol):
    """
    Source of the session credential.

    current() is read on every state-changing request. refresh() is called
    once by the retry coordinator after a session expiry.
    """

    def current(self) -> SessionCredential | None: ...

    async def refresh(self) -> Result[SessionCredential, RefreshFailed]: ...


class StaticCredentials:
    """
    Credential holder without a refresh endpoint.

    refresh() rotates to the next queued token. With nothing queued and no
    token held the refresh fails.
    """

    def __init__(self, token: str | None = None, *, rotations: tuple[str, ...] = ()) -> None:
        self._credential = SessionCredential(token) if token else None
        self._rotations = list(rotations)
        self.refreshes = 0

    def current(self) -> SessionCredential | None:
        return self._credential

    async def refresh(self) -> Result[SessionCredential, RefreshFailed]:
        self.refreshes += 1
        if self._rotations:
            self._credential = SessionCredential(self._rotations.pop(0))
        if self._credential is None:
            return Error(RefreshFailed("No session credential available"))
        return Ok(self._credential)


class CookieCredentials:
    """
    XSRF token read from the client's cookie jar.

    refresh() hits the CSRF cookie endpoint; the server answers with a fresh
    XSRF-TOKEN cookie, stored URL-encoded.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        endpoint: str = "/sanctum/csrf-cookie",
        cookie_name: str = "XSRF-TOKEN",
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._cookie_name = cookie_name

    def current(self) -> SessionCredential | None:
        raw = self._client.cookies.get(self._cookie_name)
        return SessionCredential(unquote(raw)) if raw else None

    async def refresh(self) -> Result[SessionCredential, RefreshFailed]:
        try:
            response = await self._client.get(self._endpoint, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            return Error(RefreshFailed(f"CSRF cookie request failed: {e}", e))
        if response.is_error:
            return Error(RefreshFailed(f"CSRF cookie request returned {response.status_code}"))
        credential = self.current()
        if credential is None:
            return Error(RefreshFailed(f"Server did not set {self._cookie_name}"))
        return Ok(credential)


__all__ = (
    "MinimalRequestContext",
    "SessionCredential",
    "RefreshFailed",
    "CredentialProvider",
    "StaticCredentials",
    "CookieCredentials",
)
