"""Tests for the structlog processor that keeps PII out of log events."""

from checkout.utils.logging import get_log_level, redact_sensitive_fields


class TestRedaction:
    def test_pii_and_card_data_are_masked(self):
        event = redact_sensitive_fields(
            None,
            "info",
            {
                "event": "Order attempt",
                "card_number": "4111111111111111",
                "cvv": "123",
                "date_of_birth": "1990-01-01",
                "first_name": "Jane",
                "last4": "1111",
            },
        )
        assert event["card_number"] == "[REDACTED]"
        assert event["cvv"] == "[REDACTED]"
        assert event["date_of_birth"] == "[REDACTED]"
        assert event["first_name"] == "[REDACTED]"
        assert event["last4"] == "1111"
        assert event["event"] == "Order attempt"

    def test_events_without_pii_are_untouched(self):
        event = {"event": "Order placed", "order_id": "order-001"}
        assert redact_sensitive_fields(None, "info", dict(event)) == event


class TestLogLevel:
    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level() == "ERROR"

    def test_level_by_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "production")
        assert get_log_level() == "INFO"
        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"
