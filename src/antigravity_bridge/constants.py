# src/antigravity_bridge/constants.py
"""Endpoints, client identity headers and fixed wire values."""

import json

# =============================================================================
# ENDPOINTS
# =============================================================================

ANTIGRAVITY_ENDPOINT_DAILY = "https://daily-cloudcode-pa.sandbox.googleapis.com"
ANTIGRAVITY_ENDPOINT_AUTOPUSH = "https://autopush-cloudcode-pa.sandbox.googleapis.com"
ANTIGRAVITY_ENDPOINT_PROD = "https://cloudcode-pa.googleapis.com"

ANTIGRAVITY_ENDPOINT = ANTIGRAVITY_ENDPOINT_DAILY
GEMINI_CLI_ENDPOINT = ANTIGRAVITY_ENDPOINT_PROD

API_VERSION_PATH = "v1internal"

# Used when neither the credential source nor the environment yields a project
ANTIGRAVITY_DEFAULT_PROJECT_ID = "rising-fact-p41fc"

# =============================================================================
# CLIENT IDENTITY HEADERS
# =============================================================================

ANTIGRAVITY_HEADERS = {
    "User-Agent": "antigravity/1.18.4 windows/amd64",
    "X-Goog-Api-Client": "google-cloud-sdk vscode_cloudshelleditor/0.1",
    "Client-Metadata": json.dumps(
        {
            "ideType": "IDE_UNSPECIFIED",
            "platform": "PLATFORM_UNSPECIFIED",
            "pluginType": "GEMINI",
        },
        separators=(",", ":"),
    ),
}

GEMINI_CLI_HEADERS = {
    "User-Agent": "google-api-nodejs-client/9.15.1",
    "X-Goog-Api-Client": "gl-node/22.17.0",
    "Client-Metadata": "ideType=IDE_UNSPECIFIED,platform=PLATFORM_UNSPECIFIED,pluginType=GEMINI",
}

# =============================================================================
# ENVELOPE
# =============================================================================

REQUEST_TYPE = "agent"
USER_AGENT_TAG = "antigravity"
REQUEST_ID_PREFIX = "agent-"

# =============================================================================
# SCHEMA PLACEHOLDER
# =============================================================================

EMPTY_SCHEMA_PLACEHOLDER_NAME = "_placeholder"
EMPTY_SCHEMA_PLACEHOLDER_DESCRIPTION = "Placeholder. Always pass true."

# =============================================================================
# THINKING
# =============================================================================

DEFAULT_THINKING_BUDGET = 16000
CLAUDE_THINKING_MAX_OUTPUT_TOKENS = 64000
CLAUDE_DEFAULT_THINKING_BUDGET = 32768

WARMUP_PROMPT = "Warmup request for thinking signature."

# =============================================================================
# TOOL USAGE INSTRUCTIONS
# =============================================================================

TOOL_ENABLED_INSTRUCTION = (
    "When tools are provided, use tool calls instead of describing tool use. "
    "Never claim you lack tool access or permissions."
)

TOOL_DISABLED_INSTRUCTION = (
    "Do not mention tool availability or lack thereof. If tools are unavailable, "
    "respond directly without narrating tool steps."
)
