from collections.abc import AsyncIterator, Callable
from typing import Any

import fastapi

from cartsync.context import StorefrontContext
from cartsync.optimistic import Notifier
from cartsync.transport import MinimalRequestContext, MutationTransport, TransportFactory


def request_context(request: fastapi.Request) -> MinimalRequestContext:
    """Cookie of the inbound request, nothing else."""
    return MinimalRequestContext.from_headers(request.headers)


def transport_dependency(
    factory: TransportFactory,
) -> Callable[[fastapi.Request], AsyncIterator[MutationTransport]]:
    """
    Dependency yielding a fresh transport per inbound request.

    Note: The transport is closed once the response is sent.
    """

    async def _dependency(request: fastapi.Request) -> AsyncIterator[MutationTransport]:
        transport = factory.for_request(request_context(request))
        try:
            yield transport
        finally:
            await transport.aclose()

    return _dependency


def context_dependency(
    factory: TransportFactory,
    *,
    notifier: Notifier | None = None,
    **kwargs: Any,
) -> Callable[[fastapi.Request], AsyncIterator[StorefrontContext]]:
    """Dependency yielding a StorefrontContext bound to the inbound request."""

    async def _dependency(request: fastapi.Request) -> AsyncIterator[StorefrontContext]:
        ctx = StorefrontContext.create(
            factory.settings,
            factory=factory,
            request=request_context(request),
            notifier=notifier,
            **kwargs,
        )
        async with ctx:
            yield ctx

    return _dependency


__all__ = (
    "transport_dependency",
    "context_dependency",
    "request_context",
)
