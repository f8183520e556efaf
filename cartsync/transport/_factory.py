"""
TransportFactory — explicit construction instead of a shared global client.

Browser mode keeps one transport for the tab's lifetime. Server rendering
gets a fresh transport per inbound request, so no cookie jar, credential or
cart token can leak between users.
"""

from __future__ import annotations

import httpx

from cartsync.config import ClientSettings
from cartsync.transport._context import CookieCredentials, MinimalRequestContext
from cartsync.transport._transport import MutationTransport


class TransportFactory:
    """
    Builds MutationTransport instances from ClientSettings.

    Example:
        factory = TransportFactory(ClientSettings(base_url="https://shop.example.com"))

        # Browser / long-lived client
        transport = factory.for_browser()

        # Server rendering, one per inbound request
        async with factory.for_request(MinimalRequestContext.from_headers(headers)) as t:
            ...

    Note: http_transport replaces the network layer (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._http_transport = http_transport
        self._browser: MutationTransport | None = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout,
            headers={
                "Accept-Language": self.settings.locale,
                "Accept-Currency": self.settings.currency,
            },
            transport=self._http_transport,
        )

    @property
    def versioned_prefixes(self) -> tuple[str, ...]:
        return (self.settings.paths().cart_root,)

    def for_browser(self, *, cart_token: str | None = None) -> MutationTransport:
        """Long-lived transport, created on first use and reused afterwards."""
        if self._browser is None:
            client = self._client()
            self._browser = MutationTransport(
                client,
                versioned_prefixes=self.versioned_prefixes,
                credentials=CookieCredentials(client, endpoint=self.settings.csrf_path),
                cart_token=cart_token,
            )
        elif cart_token is not None:
            self._browser.cart_token = cart_token
        return self._browser

    def for_request(
        self,
        context: MinimalRequestContext,
        *,
        cart_token: str | None = None,
    ) -> MutationTransport:
        """Fresh transport bound to one inbound render request."""
        return MutationTransport(
            self._client(),
            versioned_prefixes=self.versioned_prefixes,
            context=context,
            cart_token=cart_token,
        )

    async def aclose(self) -> None:
        if self._browser is not None:
            await self._browser.aclose()
            self._browser = None


__all__ = ("TransportFactory",)
