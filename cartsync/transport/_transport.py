"""
MutationTransport — one HTTP round trip, headers attached, never retried.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from types import TracebackType

import httpx
import structlog
from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

from cartsync.errors import RawFailure
from cartsync.transport._context import CredentialProvider, MinimalRequestContext
from cartsync.transport._request import MutationRequest, TransportResponse, is_json_body

log = structlog.get_logger("cartsync.transport")

IF_MATCH = "If-Match"
IDEMPOTENCY_KEY = "Idempotency-Key"
XSRF_TOKEN = "X-XSRF-TOKEN"
CART_TOKEN = "X-Cart-Token"


class MutationTransport:
    """
    Sends a MutationRequest and reports the raw outcome.

    Headers:
        If-Match          non-read request on a versioned path with a version
        Idempotency-Key   whenever the request carries one
        X-XSRF-TOKEN      non-read request and a credential is available
        X-Cart-Token      when a cart token is known
        Cookie            server rendering only, from MinimalRequestContext

    Note: No retries and no classification here. 2xx is Ok, everything else
    (including exceptions raised by httpx) is Error(RawFailure).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        versioned_prefixes: Sequence[str] = ("/api/v1/cart",),
        credentials: CredentialProvider | None = None,
        context: MinimalRequestContext | None = None,
        cart_token: str | None = None,
    ) -> None:
        self._client = client
        self._versioned_prefixes = tuple(versioned_prefixes)
        self._credentials = credentials
        self._context = context
        self.cart_token = cart_token

    @property
    def credentials(self) -> CredentialProvider | None:
        return self._credentials

    @property
    def context(self) -> MinimalRequestContext | None:
        return self._context

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def tracks(self, path: str) -> bool:
        """Path belongs to a versioned resource."""
        return any(path.startswith(prefix) for prefix in self._versioned_prefixes)

    def is_versioned(self, request: MutationRequest) -> bool:
        """State-changing request against a versioned resource."""
        return not request.is_read and self.tracks(request.path)

    def headers_for(self, request: MutationRequest) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._context is not None:
            headers.update(self._context.to_headers())
        if self.cart_token:
            headers[CART_TOKEN] = self.cart_token
        if not request.is_read and self._credentials is not None:
            credential = self._credentials.current()
            if credential is not None and credential.xsrf_token:
                headers[XSRF_TOKEN] = credential.xsrf_token
        if request.version is not None and self.is_versioned(request):
            headers[IF_MATCH] = str(request.version)
        if request.idempotency_key:
            headers[IDEMPOTENCY_KEY] = request.idempotency_key
        return headers

    def send(self, request: MutationRequest) -> LazyCoroResult[TransportResponse, RawFailure]:
        """
        Build a lazy round trip.

        Example:
            match await transport.send(MutationRequest("GET", paths.cart_root)):
                case Ok(response): ...
                case Error(raw): ...
        """

        def do_request() -> Awaitable[httpx.Response]:
            headers = self.headers_for(request)
            if request.body is None:
                return self._client.request(
                    request.method, request.path, params=request.query, headers=headers
                )
            if is_json_body(request.body):
                return self._client.request(
                    request.method,
                    request.path,
                    params=request.query,
                    headers=headers,
                    json=request.body,
                )
            return self._client.request(
                request.method,
                request.path,
                params=request.query,
                headers=headers,
                content=request.body,  # type: ignore[arg-type]
            )

        async def run() -> Result[TransportResponse, RawFailure]:
            sent = await L.catching_async(do_request, on_error=RawFailure.from_exception)
            match sent:
                case Ok(response) if response.is_success:
                    return Ok(TransportResponse.from_httpx(response))
                case Ok(response):
                    log.debug(
                        "transport.failed",
                        method=request.method,
                        path=request.path,
                        status=response.status_code,
                    )
                    return Error(RawFailure.from_response(response))
                case Error(raw):
                    log.debug("transport.unreachable", method=request.method, path=request.path, reason=raw.reason)
                    return Error(raw)

        return LazyCoroResult(run)

    # Lifecycle

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> MutationTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = (
    "MutationTransport",
    "IF_MATCH",
    "IDEMPOTENCY_KEY",
    "XSRF_TOKEN",
    "CART_TOKEN",
)
