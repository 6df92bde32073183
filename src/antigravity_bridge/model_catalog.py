# src/antigravity_bridge/model_catalog.py
"""
Static catalog of models exposed through the bridge.

The built-in list can be replaced through the ANTIGRAVITY_MODELS environment
variable, in either of two formats:

    ANTIGRAVITY_MODELS='["antigravity-gemini-3-pro", "claude-sonnet-4-5"]'
    ANTIGRAVITY_MODELS='{"claude-sonnet-4-5": {"name": "Sonnet", "max_output_tokens": 32000}}'
"""

import json
import logging
import os
from typing import Any, Dict, List

from .model_resolver import model_family, resolve_model
from .types import ModelDescriptor

lib_logger = logging.getLogger("antigravity_bridge")

GEMINI_MAX_INPUT_TOKENS = 1048576
GEMINI_MAX_OUTPUT_TOKENS = 65536
CLAUDE_MAX_INPUT_TOKENS = 200000
CLAUDE_MAX_OUTPUT_TOKENS = 64000

DEFAULT_MODELS: List[ModelDescriptor] = [
    ModelDescriptor(
        id="antigravity-gemini-3-pro",
        name="Gemini 3 Pro (Antigravity)",
        family="gemini",
        max_input_tokens=GEMINI_MAX_INPUT_TOKENS,
        max_output_tokens=GEMINI_MAX_OUTPUT_TOKENS,
        image_input=True,
    ),
    ModelDescriptor(
        id="antigravity-gemini-3-flash",
        name="Gemini 3 Flash (Antigravity)",
        family="gemini",
        max_input_tokens=GEMINI_MAX_INPUT_TOKENS,
        max_output_tokens=GEMINI_MAX_OUTPUT_TOKENS,
        image_input=True,
    ),
    ModelDescriptor(
        id="gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        family="gemini",
        max_input_tokens=GEMINI_MAX_INPUT_TOKENS,
        max_output_tokens=GEMINI_MAX_OUTPUT_TOKENS,
        image_input=True,
    ),
    ModelDescriptor(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        family="gemini",
        max_input_tokens=GEMINI_MAX_INPUT_TOKENS,
        max_output_tokens=GEMINI_MAX_OUTPUT_TOKENS,
        image_input=True,
    ),
    ModelDescriptor(
        id="claude-sonnet-4-5",
        name="Claude Sonnet 4.5",
        family="claude",
        max_input_tokens=CLAUDE_MAX_INPUT_TOKENS,
        max_output_tokens=CLAUDE_MAX_OUTPUT_TOKENS,
    ),
    ModelDescriptor(
        id="claude-sonnet-4-5-thinking",
        name="Claude Sonnet 4.5 Thinking",
        family="claude",
        max_input_tokens=CLAUDE_MAX_INPUT_TOKENS,
        max_output_tokens=CLAUDE_MAX_OUTPUT_TOKENS,
    ),
    ModelDescriptor(
        id="claude-opus-4-6-thinking",
        name="Claude Opus 4.6 Thinking",
        family="claude",
        max_input_tokens=CLAUDE_MAX_INPUT_TOKENS,
        max_output_tokens=CLAUDE_MAX_OUTPUT_TOKENS,
    ),
]


def _descriptor_for(model_id: str, overrides: Dict[str, Any]) -> ModelDescriptor:
    family = model_family(resolve_model(model_id).actual_model)
    claude = family == "claude"
    return ModelDescriptor(
        id=model_id,
        name=str(overrides.get("name") or model_id),
        family=family,
        max_input_tokens=int(
            overrides.get("max_input_tokens")
            or (CLAUDE_MAX_INPUT_TOKENS if claude else GEMINI_MAX_INPUT_TOKENS)
        ),
        max_output_tokens=int(
            overrides.get("max_output_tokens")
            or (CLAUDE_MAX_OUTPUT_TOKENS if claude else GEMINI_MAX_OUTPUT_TOKENS)
        ),
        tool_calling=bool(overrides.get("tool_calling", True)),
        image_input=bool(overrides.get("image_input", not claude)),
    )


def _models_from_env(raw: str) -> List[ModelDescriptor]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        lib_logger.warning(f"Invalid JSON in ANTIGRAVITY_MODELS: {e}")
        return []

    if isinstance(parsed, list):
        return [_descriptor_for(m, {}) for m in parsed if isinstance(m, str)]
    if isinstance(parsed, dict):
        return [
            _descriptor_for(m, opts if isinstance(opts, dict) else {})
            for m, opts in parsed.items()
        ]
    lib_logger.warning(
        f"ANTIGRAVITY_MODELS must be a JSON object or array, got {type(parsed).__name__}"
    )
    return []


def list_available_models() -> List[ModelDescriptor]:
    raw = os.getenv("ANTIGRAVITY_MODELS")
    if raw:
        models = _models_from_env(raw)
        if models:
            return models
    return list(DEFAULT_MODELS)
