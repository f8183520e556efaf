"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from cartsync import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    cartsync = logging.getLogger("cartsync")
    cartsync_level = cartsync.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    cartsync.setLevel(cartsync_level)


class TestConfigureLogging:
    def test_verbose_enables_debug(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("cartsync").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_default_is_info(self) -> None:
        configure_logging()
        assert logging.getLogger("cartsync").level == logging.INFO

    def test_json_mode_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        log = structlog.get_logger("cartsync.checkout")
        log.info("checkout.stale", session_id="co-1", cart_version=6)
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "checkout.stale"
        assert parsed["session_id"] == "co-1"
        assert parsed["cart_version"] == 6
        assert parsed["level"] == "info"
        assert parsed["logger"] == "cartsync.checkout"
        assert "timestamp" in parsed

    def test_debug_hidden_unless_verbose(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True)
        structlog.get_logger("cartsync.optimistic").debug("optimistic.submitted")
        assert capfd.readouterr().err == ""

    def test_http_client_noise_is_suppressed(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("httpx").info("HTTP Request: GET /api/v1/cart")
        logging.getLogger("aiosqlite").debug("executing")
        assert capfd.readouterr().err == ""

    def test_idempotent_calls(self) -> None:
        configure_logging(log_json=False)
        configure_logging(log_json=True)
        assert len(logging.getLogger().handlers) == 1
