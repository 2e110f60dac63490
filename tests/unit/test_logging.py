"""Unit tests for logging service."""

import json

import structlog

from src.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_authorization(self):
        """Test authorization field is redacted."""
        event_dict = {"authorization": "Bearer eyJhbGciOi", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"

    def test_redacts_secret_in_key_name(self):
        """Test fields containing 'secret' are redacted."""
        event_dict = {"jwt_refresh_secret": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["jwt_refresh_secret"] == "REDACTED"

    def test_redacts_password(self):
        """Test password and password_hash fields are redacted."""
        event_dict = {"password": "secret1", "password_hash": "$2b$12$x", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"
        assert result["password_hash"] == "REDACTED"

    def test_redacts_tokens(self):
        """Test raw access and refresh tokens are redacted."""
        event_dict = {"refresh_token": "eyJ...", "access_token": "eyJ...", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["refresh_token"] == "REDACTED"
        assert result["access_token"] == "REDACTED"

    def test_token_type_is_kept(self):
        """Test metadata keys that merely mention tokens are preserved."""
        event_dict = {"token_type": "refresh", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["token_type"] == "refresh"

    def test_preserves_non_sensitive_fields(self):
        """Test non-sensitive fields are preserved."""
        event_dict = {
            "correlation_id": "abc-123",
            "user_id": "42",
            "handle": "alice",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result == {"correlation_id": "abc-123", "user_id": "42", "handle": "alice"}

    def test_case_insensitive_redaction(self):
        """Test redaction works regardless of case."""
        event_dict = {"Password": "secret2", "REFRESH_TOKEN": "secret3"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Password"] == "REDACTED"
        assert result["REFRESH_TOKEN"] == "REDACTED"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_get_logger_returns_bound_logger(self):
        """Test get_logger returns a structlog logger."""
        configure_logging("INFO")
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("test_event", data="value")

    def test_log_output_is_redacted_json(self, capsys):
        """Test emitted lines are JSON with sensitive values replaced."""
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()

        get_logger("auth").info("user_logged_in", handle="alice", refresh_token="eyJraw")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "user_logged_in"
        assert entry["handle"] == "alice"
        assert entry["refresh_token"] == "REDACTED"
        assert entry["level"] == "info"
        assert "eyJraw" not in line


class TestCorrelationIdBinding:
    """Tests for correlation ID context binding."""

    def test_correlation_id_binds_to_context(self):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()

        structlog.contextvars.bind_contextvars(correlation_id="test-correlation-123")

        context = structlog.contextvars.get_contextvars()
        assert context.get("correlation_id") == "test-correlation-123"

    def test_correlation_id_clears_correctly(self):
        configure_logging("INFO")

        structlog.contextvars.bind_contextvars(correlation_id="to-be-cleared")
        structlog.contextvars.clear_contextvars()

        assert "correlation_id" not in structlog.contextvars.get_contextvars()
