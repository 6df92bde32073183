"""
Tests for configuration, timeouts, errors, the model catalog and transaction logs.
"""

import json

import httpx
import pytest

from antigravity_bridge.config import BridgeConfig
from antigravity_bridge.constants import (
    ANTIGRAVITY_DEFAULT_PROJECT_ID,
    ANTIGRAVITY_ENDPOINT,
    DEFAULT_THINKING_BUDGET,
)
from antigravity_bridge.error_handler import (
    MissingCredentialError,
    TransportError,
    classify_status,
    extract_retry_after_from_body,
)
from antigravity_bridge.model_catalog import DEFAULT_MODELS, list_available_models
from antigravity_bridge.timeout_config import TimeoutConfig
from antigravity_bridge.transaction_logger import TransactionLogger


class TestBridgeConfig:
    """Test environment-driven settings."""

    def test_defaults(self):
        config = BridgeConfig.from_env()

        assert config.antigravity_endpoint == ANTIGRAVITY_ENDPOINT
        assert config.default_project_id == ANTIGRAVITY_DEFAULT_PROJECT_ID
        assert config.claude_fallback_signature is True
        assert config.tool_instructions is True
        assert config.enable_warmup is True
        assert config.request_logging is False
        assert config.default_thinking_budget == DEFAULT_THINKING_BUDGET

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ANTIGRAVITY_ENDPOINT", "https://example.test/")
        monkeypatch.setenv("ANTIGRAVITY_PROJECT_ID", "proj-1")
        monkeypatch.setenv("ANTIGRAVITY_CLAUDE_FALLBACK_SIGNATURE", "false")
        monkeypatch.setenv("ANTIGRAVITY_ENABLE_WARMUP", "0")
        monkeypatch.setenv("ANTIGRAVITY_REQUEST_LOGGING", "yes")
        monkeypatch.setenv("ANTIGRAVITY_DEFAULT_THINKING_BUDGET", "2048")

        config = BridgeConfig.from_env()

        assert config.antigravity_endpoint == "https://example.test"
        assert config.default_project_id == "proj-1"
        assert config.claude_fallback_signature is False
        assert config.enable_warmup is False
        assert config.request_logging is True
        assert config.default_thinking_budget == 2048

    def test_blank_string_uses_default(self, monkeypatch):
        monkeypatch.setenv("ANTIGRAVITY_PROJECT_ID", "  ")
        assert BridgeConfig.from_env().default_project_id == ANTIGRAVITY_DEFAULT_PROJECT_ID


class TestTimeoutConfig:
    def test_defaults(self):
        timeout = TimeoutConfig.streaming()

        assert isinstance(timeout, httpx.Timeout)
        assert timeout.connect == 30.0
        assert timeout.read == 180.0
        assert TimeoutConfig.warmup().read == 60.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TIMEOUT_READ_STREAMING", "5")
        assert TimeoutConfig.streaming().read == 5.0

    def test_invalid_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("TIMEOUT_CONNECT", "soon")
        assert TimeoutConfig.seconds("TIMEOUT_CONNECT") == 30.0


class TestErrors:
    @pytest.mark.parametrize(
        "status,category",
        [
            (None, "api_connection"),
            (401, "authentication"),
            (403, "authentication"),
            (429, "rate_limit"),
            (400, "invalid_request"),
            (503, "server_error"),
            (302, "unknown"),
        ],
    )
    def test_classify_status(self, status, category):
        assert classify_status(status) == category

    @pytest.mark.parametrize(
        "body,seconds",
        [
            ("Your quota will reset after 39s.", 39),
            ("quota will reset after 2h30m", 9000),
            ("Please try again in 12 seconds", 12),
            ("no hint here", None),
            ("", None),
        ],
    )
    def test_retry_after(self, body, seconds):
        assert extract_retry_after_from_body(body) == seconds

    def test_transport_error_message(self):
        assert str(TransportError(500, "oops")) == "oops"
        assert str(TransportError(500)) == "Antigravity request failed (500)"
        assert str(TransportError(None, message="offline")) == "offline"

    def test_missing_credential_message(self):
        assert "access token missing" in str(MissingCredentialError())


class TestModelCatalog:
    def test_default_models(self):
        assert list_available_models() == DEFAULT_MODELS

    def test_env_list(self, monkeypatch):
        monkeypatch.setenv("ANTIGRAVITY_MODELS", '["claude-sonnet-4-5", "gemini-3-flash"]')
        models = list_available_models()

        assert [m.id for m in models] == ["claude-sonnet-4-5", "gemini-3-flash"]
        assert models[0].family == "claude"
        assert models[0].image_input is False
        assert models[1].family == "gemini"

    def test_env_dict_with_overrides(self, monkeypatch):
        monkeypatch.setenv(
            "ANTIGRAVITY_MODELS",
            json.dumps({"claude-sonnet-4-5": {"name": "Sonnet", "max_output_tokens": 32000}}),
        )
        model = list_available_models()[0]

        assert model.name == "Sonnet"
        assert model.max_output_tokens == 32000

    def test_invalid_env_falls_back(self, monkeypatch):
        monkeypatch.setenv("ANTIGRAVITY_MODELS", "{broken")
        assert list_available_models() == DEFAULT_MODELS


class TestTransactionLogger:
    def test_writes_request_files(self, tmp_path):
        logger = TransactionLogger("gemini-3-pro/low", root=tmp_path)
        logger.log_request({"model": "gemini-3-pro"})
        logger.log_response_chunk(b"data: one\n")
        logger.log_response_chunk("data: two\n")
        logger.log_error("failed")
        logger.log_final_response({"text": "hi"})

        assert logger.log_dir.parent == tmp_path / "logs" / "antigravity_logs"
        assert "/" not in logger.log_dir.name
        assert json.loads((logger.log_dir / "request_payload.json").read_text()) == {
            "model": "gemini-3-pro"
        }
        assert (logger.log_dir / "response_stream.log").read_text() == "data: one\ndata: two\n"
        assert "failed" in (logger.log_dir / "error.log").read_text()
        assert json.loads((logger.log_dir / "final_response.json").read_text()) == {"text": "hi"}

    def test_disabled_writes_nothing(self, tmp_path):
        logger = TransactionLogger("model", enabled=False, root=tmp_path)
        logger.log_request({"a": 1})

        assert logger.log_dir is None
        assert not (tmp_path / "logs").exists()
