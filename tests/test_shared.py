"""Tests for shared components: redaction, event logging, config and schemas."""

import json
import logging

import pytest
import structlog
from structlog.testing import LogCapture


def capturing_events(min_level: str = "DEBUG"):
    """Build an EventLogger whose output lands in a LogCapture."""
    from shared.logging import EventLogger

    capture = LogCapture()
    logger = structlog.wrap_logger(
        None,
        processors=[capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    )
    return EventLogger(min_level, logger=logger), capture


class TestRedaction:
    """Tests for credential redaction."""

    def test_redacts_nested_credentials(self):
        """Test that sensitive keys are masked at any depth."""
        from shared.redaction import REDACTED, redact

        payload = {"accessToken": "X", "nested": {"apiKey": "Y", "name": "ok"}}

        result = redact(payload)

        assert result == {"accessToken": REDACTED, "nested": {"apiKey": REDACTED, "name": "ok"}}
        # Input untouched
        assert payload["accessToken"] == "X"

    def test_redacts_inside_lists(self):
        """Test that dicts inside lists are walked."""
        from shared.redaction import REDACTED, redact

        result = redact({"items": [{"client_secret": "s"}, {"id": 1}], "pair": ({"password": "p"}, 2)})

        assert result["items"] == [{"client_secret": REDACTED}, {"id": 1}]
        assert result["pair"] == ({"password": REDACTED}, 2)

    def test_key_variants(self):
        """Test case and separator insensitive matching."""
        from shared.redaction import is_sensitive

        for key in ("Authorization", "refresh_token", "X-Api-Key", "codeVerifier", "Cookie"):
            assert is_sensitive(key), key
        for key in ("userId", "text", "callbackUrl", 42):
            assert not is_sensitive(key), key

    def test_idempotent(self):
        """Test that redacting twice gives the same result."""
        from shared.redaction import redact

        payload = {"headers": {"Authorization": "Bearer abc"}, "body": [{"token": "t"}]}

        once = redact(payload)

        assert redact(once) == once

    def test_scalars_pass_through(self):
        """Test that non-container values are returned unchanged."""
        from shared.redaction import redact

        assert redact("Bearer abc") == "Bearer abc"
        assert redact(None) is None
        assert redact(3) == 3

    def test_truncate_secret(self):
        """Test shortening one-time secrets."""
        from shared.redaction import truncate_secret

        assert truncate_secret("abcdefghijklmnop") == "abcdefghij..."
        assert truncate_secret("abc", keep=2) == "ab..."
        assert truncate_secret(None) == ""
        assert truncate_secret(truncate_secret("abc")) == "abc..."

    def test_authorization_code_truncated(self):
        """Test that only a prefix of an authorization code survives."""
        from shared.redaction import redact

        payload = {"code": "AUTHCODE-0123456789", "error": {"code": 100}, "zipcode": "12345"}

        once = redact(payload)

        assert once == {"code": "AUTHCODE-0...", "error": {"code": 100}, "zipcode": "12345"}
        assert redact(once) == once


class TestEventLogger:
    """Tests for the EventLogger."""

    def test_min_level_filters(self):
        """Test that events below the minimum level are dropped."""
        events, capture = capturing_events("WARNING")

        events.debug("debug event")
        events.info("info event")
        events.warning("warning event")
        events.error("error event")

        assert [e["event"] for e in capture.entries] == ["warning event", "error event"]

    def test_unknown_level_rejected(self):
        """Test that an unknown minimum level raises."""
        from shared.logging import EventLogger

        with pytest.raises(ValueError, match="Unknown log level"):
            EventLogger("VERBOSE")

    def test_api_call_redacts_headers(self):
        """Test that outbound request events never carry tokens."""
        events, capture = capturing_events()

        events.api_call(
            "Twitter",
            "/tweets",
            "POST",
            payload={"text": "hi", "accessToken": "secret-token"},
            headers={"Authorization": "Bearer secret-token"},
        )

        entry = capture.entries[0]
        assert entry["event"] == "API call"
        assert entry["type"] == "API_CALL"
        assert entry["headers"] == {"Authorization": "[REDACTED]"}
        assert entry["payload"] == {"text": "hi", "accessToken": "[REDACTED]"}
        assert "secret-token" not in repr(capture.entries)

    def test_api_response_error_level(self):
        """Test that failed responses are logged at error level."""
        events, capture = capturing_events()

        events.api_response("Twitter", "/tweets", 200, response={"data": {}})
        events.api_response("Twitter", "/tweets", 403, error="Request failed with status code 403")

        assert capture.entries[0]["log_level"] == "info"
        assert capture.entries[0]["event"] == "API response"
        assert capture.entries[1]["log_level"] == "error"
        assert capture.entries[1]["event"] == "API response error"

    def test_operation_events(self):
        """Test started and finished events for a tool."""
        events, capture = capturing_events()

        events.operation_started("echo", "tool", {"accessToken": "t", "x": 1})
        events.operation_finished("echo", "tool", success=False, error="boom", duration_ms=1.5)

        started, finished = capture.entries
        assert started["event"] == "Tool execution started"
        assert started["params"] == {"accessToken": "[REDACTED]", "x": 1}
        assert finished["event"] == "Tool execution failed"
        assert finished["success"] is False
        assert finished["error"] == "boom"
        assert finished["duration_ms"] == 1.5

    def test_service_is_bound(self):
        """Test that every event carries the service name."""
        events, capture = capturing_events()

        events.info("hello")

        assert capture.entries[0]["service"] == "mcpsocial"

    def test_default_logger_follows_later_setup(self, capsys):
        """Test that an EventLogger built before setup_logging renders JSON."""
        from shared.logging import EventLogger, setup_logging

        structlog.reset_defaults()
        try:
            events = EventLogger("INFO", service="gateway-test")
            setup_logging("INFO", json_output=True)

            events.info("hello", code="AUTHCODE-0123456789")

            entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        finally:
            structlog.reset_defaults()

        assert entry["event"] == "hello"
        assert entry["service"] == "gateway-test"
        assert entry["code"] == "AUTHCODE-0..."

    def test_bound_context_merged(self):
        """Test that bound context reaches events until cleared."""
        from shared.logging import EventLogger, bind_context, clear_context

        capture = LogCapture()
        logger = structlog.wrap_logger(
            None,
            processors=[structlog.contextvars.merge_contextvars, capture],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        )
        events = EventLogger("DEBUG", logger=logger)

        bind_context(rpc_id=7, rpc_method="tools/list")
        events.info("inside")
        clear_context()
        events.info("outside")

        assert capture.entries[0]["rpc_id"] == 7
        assert capture.entries[0]["rpc_method"] == "tools/list"
        assert "rpc_id" not in capture.entries[1]

    def test_timer(self):
        """Test that the timer reports non-negative milliseconds."""
        from shared.logging import EventLogger

        elapsed = EventLogger.start_timer()

        assert elapsed() >= 0


class TestConfig:
    """Tests for settings and credentials."""

    def test_require_credentials(self):
        """Test reading configured credentials."""
        from shared.config import TwitterSettings

        settings = TwitterSettings(client_id="id", client_secret="secret")

        assert settings.configured
        assert settings.require_credentials() == ("id", "secret")

    def test_missing_client_id_names_variable(self):
        """Test that a missing client id names the variable to set."""
        from shared.config import ConfigurationError, LinkedInSettings

        settings = LinkedInSettings(client_id=None, client_secret=None)

        assert not settings.configured
        with pytest.raises(ConfigurationError, match="LINKEDIN_CLIENT_ID"):
            settings.require_client_id()

    def test_missing_secret_names_variable(self):
        """Test that a missing secret names the variable to set."""
        from shared.config import ConfigurationError, FacebookSettings

        settings = FacebookSettings(client_id="app", client_secret=None)

        with pytest.raises(ConfigurationError, match="FACEBOOK_APP_SECRET"):
            settings.require_credentials()

    def test_secret_not_in_repr(self):
        """Test that secrets are masked in repr."""
        from shared.config import InstagramSettings

        settings = InstagramSettings(client_id="app", client_secret="very-secret")

        assert "very-secret" not in repr(settings)

    def test_provider_credentials(self):
        """Test credentials keyed by family."""
        from shared.config import Settings

        credentials = Settings().provider_credentials()

        assert set(credentials) == {"linkedin", "twitter", "facebook", "instagram"}
        assert credentials["twitter"].secret_variable == "TWITTER_CLIENT_SECRET"

    def test_from_yaml_missing_file(self, tmp_path):
        """Test that a missing YAML file falls back to defaults."""
        from shared.config import Settings

        settings = Settings.from_yaml(tmp_path / "missing.yaml")

        assert settings.gateway.port == 3001

    def test_from_yaml(self, tmp_path):
        """Test loading nested settings from YAML."""
        from shared.config import Settings

        path = tmp_path / "settings.yaml"
        path.write_text("log_level: DEBUG\ngateway:\n  port: 4000\n  validate_types: true\n")

        settings = Settings.from_yaml(path)

        assert settings.log_level == "DEBUG"
        assert settings.gateway.port == 4000
        assert settings.gateway.validate_types is True

    def test_load_yaml_config(self, tmp_path):
        """Test reading raw YAML mappings."""
        from shared.config import load_yaml_config

        path = tmp_path / "settings.yaml"
        path.write_text("environment: production\n")
        empty = tmp_path / "empty.yaml"
        empty.write_text("")

        assert load_yaml_config(path) == {"environment": "production"}
        assert load_yaml_config(empty) == {}
        assert load_yaml_config(tmp_path / "missing.yaml") == {}


class TestSchema:
    """Tests for schema helpers."""

    def test_create_tool_schema(self):
        """Test building a schema from parameter declarations."""
        from shared.models import ToolParameter
        from shared.schema import create_tool_schema

        schema = create_tool_schema([
            ToolParameter(name="accessToken", description="Token"),
            ToolParameter(name="maxResults", type="int", description="Count", required=False, default=10),
            ToolParameter(name="visibility", description="Who", required=False, enum=["PUBLIC", "CONNECTIONS"]),
        ])

        assert schema["type"] == "object"
        assert schema["required"] == ["accessToken"]
        assert schema["properties"]["maxResults"] == {
            "type": "integer",
            "description": "Count",
            "default": 10,
        }
        assert schema["properties"]["visibility"]["enum"] == ["PUBLIC", "CONNECTIONS"]

    def test_missing_required(self):
        """Test that missing keys are reported in declaration order."""
        from shared.schema import missing_required

        schema = {"type": "object", "required": ["a", "b", "c"]}

        assert missing_required({"b": 1}, schema) == ["a", "c"]
        assert missing_required({"a": 1, "b": 2, "c": 3, "d": 4}, schema) == []

    def test_validate_schema(self):
        """Test type validation messages."""
        from shared.schema import validate_schema

        schema = {
            "type": "object",
            "properties": {"count": {"type": "integer"}},
            "required": ["count"],
        }

        assert validate_schema({"count": 3}, schema) == (True, [])
        is_valid, errors = validate_schema({"count": "three"}, schema)
        assert not is_valid
        assert errors[0].startswith("count:")
