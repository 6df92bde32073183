# src/antigravity_bridge/config.py
"""Environment-driven settings for the bridge."""

import os
from dataclasses import dataclass

from .constants import (
    ANTIGRAVITY_DEFAULT_PROJECT_ID,
    ANTIGRAVITY_ENDPOINT,
    DEFAULT_THINKING_BUDGET,
    GEMINI_CLI_ENDPOINT,
)


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    return os.getenv(key, str(default).lower()).lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    return int(os.getenv(key, str(default)))


def _env_str(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


@dataclass(frozen=True)
class BridgeConfig:
    antigravity_endpoint: str = ANTIGRAVITY_ENDPOINT
    gemini_cli_endpoint: str = GEMINI_CLI_ENDPOINT
    default_project_id: str = ANTIGRAVITY_DEFAULT_PROJECT_ID
    # Borrow the latest session thought signature for unsigned Claude tool calls
    claude_fallback_signature: bool = True
    tool_instructions: bool = True
    enable_warmup: bool = True
    request_logging: bool = False
    default_thinking_budget: int = DEFAULT_THINKING_BUDGET

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(
            antigravity_endpoint=_env_str("ANTIGRAVITY_ENDPOINT", ANTIGRAVITY_ENDPOINT).rstrip("/"),
            gemini_cli_endpoint=_env_str(
                "ANTIGRAVITY_GEMINI_CLI_ENDPOINT", GEMINI_CLI_ENDPOINT
            ).rstrip("/"),
            default_project_id=_env_str("ANTIGRAVITY_PROJECT_ID", ANTIGRAVITY_DEFAULT_PROJECT_ID),
            claude_fallback_signature=_env_bool("ANTIGRAVITY_CLAUDE_FALLBACK_SIGNATURE", True),
            tool_instructions=_env_bool("ANTIGRAVITY_TOOL_INSTRUCTIONS", True),
            enable_warmup=_env_bool("ANTIGRAVITY_ENABLE_WARMUP", True),
            request_logging=_env_bool("ANTIGRAVITY_REQUEST_LOGGING", False),
            default_thinking_budget=_env_int(
                "ANTIGRAVITY_DEFAULT_THINKING_BUDGET", DEFAULT_THINKING_BUDGET
            ),
        )
