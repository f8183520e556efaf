"""Client settings — environment variables and code defaults in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — values passed by the application shell
  2. Env vars     — ``CARTSYNC_*`` prefix
  3. Code defaults
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cartsync.config._paths import ApiPaths

if TYPE_CHECKING:
    from cartsync.retry import RetryPolicy


class ClientSettings(BaseSettings):
    """Settings for one storefront client.

    Attributes:
        base_url: Backend origin, e.g. ``https://shop.example.com``.
        api_prefix: Prefix of versioned API routes.
        timeout: Per-request timeout in seconds.
        conflict_attempts: Version-conflict retry budget per logical mutation.
        session_refreshes: Credential-refresh retry budget per logical mutation.
        locale: Sent as Accept-Language.
        currency: Sent as Accept-Currency.
        csrf_path: Endpoint that re-issues the XSRF-TOKEN cookie.
    """

    model_config = SettingsConfigDict(env_prefix="CARTSYNC_", frozen=True)

    base_url: str = "http://localhost:8000"
    api_prefix: str = "/api/v1"
    cart_path: str = "/cart"
    checkout_path: str = "/checkout"
    timeout: float = Field(default=10.0, gt=0)
    conflict_attempts: int = Field(default=3, ge=0)
    session_refreshes: int = Field(default=1, ge=0)
    verbose: bool = False
    log_json: bool = False
    locale: str = "en"
    currency: str = "USD"
    csrf_path: str = "/sanctum/csrf-cookie"

    def paths(self) -> ApiPaths:
        return ApiPaths(
            prefix=self.api_prefix,
            cart=self.cart_path,
            checkout=self.checkout_path,
        )

    def retry_policy(self) -> RetryPolicy:
        # Import here to avoid circular import
        from cartsync.retry import RetryPolicy

        return (
            RetryPolicy()
            .with_conflict_attempts(self.conflict_attempts)
            .with_session_refreshes(self.session_refreshes)
        )


__all__ = ("ClientSettings",)
