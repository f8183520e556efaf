"""Tests for failure classification."""

from __future__ import annotations

import httpx
import pytest

from cartsync import errors as X


def response(status: int, body: object) -> httpx.Response:
    return httpx.Response(status, json=body)


class TestClassify:
    def test_409_is_conflict_with_server_version(self) -> None:
        error = X.classify(X.RawFailure(status=409, body={"message": "stale", "version": 6}))
        assert isinstance(error, X.ConcurrencyConflict)
        assert error.server_version == 6
        assert error.message == "stale"
        assert error.kind is X.ErrorKind.CONCURRENCY_CONFLICT

    def test_409_without_version(self) -> None:
        error = X.classify(X.RawFailure(status=409, body={"version": "six"}))
        assert isinstance(error, X.ConcurrencyConflict)
        assert error.server_version is None

    def test_422_normalises_field_map(self) -> None:
        raw = X.RawFailure(
            status=422,
            body={"message": "Invalid", "errors": {"qty": ["Too many", "Really"], "code": "Bad"}},
        )
        error = X.classify(raw)
        assert isinstance(error, X.ValidationFailure)
        assert error.fields == {"qty": ("Too many", "Really"), "code": ("Bad",)}
        assert X.field_errors(error) == {"qty": "Too many", "code": "Bad"}

    def test_422_without_field_detail_stays_validation(self) -> None:
        error = X.classify(X.RawFailure(status=422, body="nope"))
        assert isinstance(error, X.ValidationFailure)
        assert error.fields == {}
        assert error.message == X.DEFAULT_MESSAGES[422]

    @pytest.mark.parametrize(
        ("status", "reason"),
        [(401, X.SessionReason.UNAUTHORIZED), (419, X.SessionReason.CSRF)],
    )
    def test_session_statuses(self, status: int, reason: X.SessionReason) -> None:
        error = X.classify(X.RawFailure(status=status))
        assert isinstance(error, X.SessionExpired)
        assert error.reason is reason
        assert error.status == status
        assert not error.requires_reauth

    @pytest.mark.parametrize("status", [400, 403, 404, 410, 429, 500, 503, 418])
    def test_everything_else_is_unclassified_with_status(self, status: int) -> None:
        error = X.classify(X.RawFailure(status=status))
        assert isinstance(error, X.Unclassified)
        assert error.status == status

    def test_network_failure(self) -> None:
        cause = httpx.ConnectError("refused")
        error = X.classify(X.RawFailure.from_exception(cause))
        assert isinstance(error, X.Unclassified)
        assert error.is_network
        assert error.cause is cause
        assert "could not be reached" in error.message

    def test_deterministic(self) -> None:
        raw = X.RawFailure(status=422, body={"errors": {"qty": ["x"]}})
        assert X.classify(raw) == X.classify(raw)


class TestMessages:
    def test_body_message_wins(self) -> None:
        assert X.classify(X.RawFailure(status=500, body={"message": "Boom"})).message == "Boom"

    def test_error_and_detail_keys(self) -> None:
        assert X.classify(X.RawFailure(status=400, body={"error": "Bad"})).message == "Bad"
        assert X.classify(X.RawFailure(status=400, body={"detail": "Worse"})).message == "Worse"

    def test_reason_then_default(self) -> None:
        assert X.classify(X.RawFailure(status=404, reason="Not Found")).message == "Not Found"
        assert X.classify(X.RawFailure(status=404)).message == X.DEFAULT_MESSAGES[404]
        assert X.classify(X.RawFailure(status=599)).message == X.DEFAULT_MESSAGES[500]

    def test_from_response_parses_json_and_text(self) -> None:
        raw = X.RawFailure.from_response(response(422, {"message": "Invalid"}))
        assert raw.status == 422
        assert raw.body == {"message": "Invalid"}

        text = X.RawFailure.from_response(httpx.Response(502, text="<html>bad gateway</html>"))
        assert text.body == "<html>bad gateway</html>"
        assert text.reason == "Bad Gateway"


class TestHelpers:
    def test_rollback_eligibility(self) -> None:
        assert X.is_rollback_eligible(X.ConcurrencyConflict("c"))
        assert X.is_rollback_eligible(X.ValidationFailure("v"))
        assert not X.is_rollback_eligible(X.SessionExpired("s", X.SessionReason.CSRF, 419))
        assert not X.is_rollback_eligible(X.Unclassified("u", status=500))

    def test_unclassified_predicates(self) -> None:
        assert X.Unclassified("x", status=503).is_server_error
        assert X.Unclassified("x", status=404).is_gone
        assert X.Unclassified("x", status=410).is_gone
        assert not X.Unclassified("x", status=None).is_gone

    def test_has_code(self) -> None:
        assert X.ValidationFailure("Cart changed", data={"code": "CART_CHANGED"}).has_code("CART_CHANGED")
        assert X.ValidationFailure("CART_CHANGED").has_code("CART_CHANGED")
        assert not X.ValidationFailure("Invalid").has_code("CART_CHANGED")

    def test_field_errors_of_other_kinds_is_empty(self) -> None:
        assert X.field_errors(X.Unclassified("x", status=500)) == {}
