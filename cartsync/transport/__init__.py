"""
Transport — single HTTP round trips with version, idempotency and session headers.

    from cartsync import transport as T

    factory = T.TransportFactory(settings)
    tx = factory.for_browser()

    match await tx.send(T.MutationRequest("PATCH", path, body={"qty": 2}, version=5)):
        case Ok(response): ...
        case Error(raw): ...   # RawFailure, classify() it
"""

from cartsync.transport._request import (
    Body,
    JsonBody,
    MutationRequest,
    TransportResponse,
    READ_METHODS,
    is_json_body,
)
from cartsync.transport._context import (
    MinimalRequestContext,
    SessionCredential,
    RefreshFailed,
    CredentialProvider,
    StaticCredentials,
    CookieCredentials,
)
from cartsync.transport._transport import (
    MutationTransport,
    IF_MATCH,
    IDEMPOTENCY_KEY,
    XSRF_TOKEN,
    CART_TOKEN,
)
from cartsync.transport._factory import TransportFactory

__all__ = (
    # Values
    "Body",
    "JsonBody",
    "MutationRequest",
    "TransportResponse",
    "READ_METHODS",
    "is_json_body",
    # Context / credentials
    "MinimalRequestContext",
    "SessionCredential",
    "RefreshFailed",
    "CredentialProvider",
    "StaticCredentials",
    "CookieCredentials",
    # Transport
    "MutationTransport",
    "IF_MATCH",
    "IDEMPOTENCY_KEY",
    "XSRF_TOKEN",
    "CART_TOKEN",
    "TransportFactory",
)
