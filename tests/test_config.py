"""Tests for ClientSettings and ApiPaths."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from cartsync.config import ApiPaths, ClientSettings


class TestClientSettingsDefaults:
    def test_all_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CARTSYNC_BASE_URL", raising=False)
        settings = ClientSettings()
        assert settings.base_url == "http://localhost:8000"
        assert settings.timeout == 10.0
        assert settings.conflict_attempts == 3
        assert settings.session_refreshes == 1
        assert (settings.locale, settings.currency) == ("en", "USD")
        assert settings.csrf_path == "/sanctum/csrf-cookie"

    def test_frozen(self) -> None:
        settings = ClientSettings()
        with pytest.raises(ValidationError):
            settings.timeout = 1.0  # type: ignore[misc]

    def test_budgets_must_not_be_negative(self) -> None:
        with pytest.raises(ValidationError):
            ClientSettings(conflict_attempts=-1)
        with pytest.raises(ValidationError):
            ClientSettings(timeout=0)


class TestEnvVars:
    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTSYNC_BASE_URL", "https://shop.example.com")
        monkeypatch.setenv("CARTSYNC_CONFLICT_ATTEMPTS", "5")
        monkeypatch.setenv("CARTSYNC_LOG_JSON", "true")
        settings = ClientSettings()
        assert settings.base_url == "https://shop.example.com"
        assert settings.conflict_attempts == 5
        assert settings.log_json is True

    def test_init_kwargs_win_over_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTSYNC_CURRENCY", "EUR")
        assert ClientSettings(currency="GBP").currency == "GBP"


class TestDerived:
    def test_retry_policy(self) -> None:
        policy = ClientSettings(conflict_attempts=1, session_refreshes=0).retry_policy()
        assert (policy.conflict_attempts, policy.session_refreshes) == (1, 0)
        assert policy.key_ttl == timedelta(hours=24)

    def test_paths(self) -> None:
        paths = ClientSettings(api_prefix="/api/v2", cart_path="/basket").paths()
        assert paths.cart_root == "/api/v2/basket"
        assert paths.checkout_start == "/api/v2/checkout/start"


class TestApiPaths:
    def test_cart_routes(self) -> None:
        paths = ApiPaths()
        assert paths.cart_items == "/api/v1/cart/items"
        assert paths.cart_item_options("42") == "/api/v1/cart/items/42/options"
        assert paths.cart_attach == "/api/v1/cart/attach"

    def test_segments_are_quoted(self) -> None:
        paths = ApiPaths()
        assert paths.cart_coupon("10% OFF/X") == "/api/v1/cart/coupons/10%25%20OFF%2FX"
        assert paths.checkout_step("co 1", "confirm") == "/api/v1/checkout/co%201/confirm"

    def test_read_routes(self) -> None:
        paths = ApiPaths()
        assert paths.shipping_methods_url == "/api/v1/shipping/methods"
        assert paths.payment_providers_url == "/api/v1/payments/providers"
