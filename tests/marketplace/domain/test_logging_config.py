"""Tests for logging configuration helpers."""

import structlog
from marketplace.utils.logging import (
    bind_request_context,
    clear_request_context,
    current_environment,
    get_log_level,
    log_context,
)


class TestLogLevel:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert current_environment() == "production"
        assert get_log_level() == "INFO"

    def test_protean_env_is_the_fallback(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"


class TestLogContext:
    def test_request_context_is_bound_and_cleared(self):
        bind_request_context(path="/cart", user_id="buyer-001")
        assert structlog.contextvars.get_contextvars() == {"path": "/cart", "user_id": "buyer-001"}

        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_is_scoped_to_block(self):
        clear_request_context()
        with log_context(sweep="reservations"):
            assert structlog.contextvars.get_contextvars() == {"sweep": "reservations"}
        assert structlog.contextvars.get_contextvars() == {}
