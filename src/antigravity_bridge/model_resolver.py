# src/antigravity_bridge/model_resolver.py
"""
Model id resolution.

Requested ids have the shape `[antigravity-]<family>[-<tier>]`. Resolution
strips the quota prefix and tier suffix, applies alias and fallback tables
and derives the reasoning configuration for the backend model.
"""

import re
from typing import Dict, Optional

from .constants import CLAUDE_DEFAULT_THINKING_BUDGET
from .types import QuotaFamily, ResolvedModel

THINKING_TIER_BUDGETS: Dict[str, Dict[str, int]] = {
    "claude": {"low": 8192, "medium": 16384, "high": 32768},
    "gemini-2.5-pro": {"low": 8192, "medium": 16384, "high": 32768},
    "gemini-2.5-flash": {"low": 6144, "medium": 12288, "high": 24576},
    "default": {"low": 4096, "medium": 8192, "high": 16384},
}

MODEL_ALIASES: Dict[str, str] = {
    "gemini-3-pro-low": "gemini-3-pro",
    "gemini-3-pro-high": "gemini-3-pro",
    "gemini-3-flash-low": "gemini-3-flash",
    "gemini-3-flash-medium": "gemini-3-flash",
    "gemini-3-flash-high": "gemini-3-flash",
    "gemini-claude-sonnet-4-5": "claude-sonnet-4-5",
    "gemini-claude-sonnet-4-5-thinking-low": "claude-sonnet-4-5-thinking",
    "gemini-claude-sonnet-4-5-thinking-medium": "claude-sonnet-4-5-thinking",
    "gemini-claude-sonnet-4-5-thinking-high": "claude-sonnet-4-5-thinking",
    "gemini-claude-opus-4-6-thinking-low": "claude-opus-4-6-thinking",
    "gemini-claude-opus-4-6-thinking-medium": "claude-opus-4-6-thinking",
    "gemini-claude-opus-4-6-thinking-high": "claude-opus-4-6-thinking",
    "claude-opus-4-6-thinking-max": "claude-opus-4-6-thinking",
    "gemini-3-pro-image-preview": "gemini-3-pro-image",
}

# Retired models mapped to their closest live replacement
MODEL_FALLBACKS: Dict[str, str] = {
    "gemini-2.5-flash-image": "gemini-2.5-flash",
}

TIER_PATTERN = re.compile(r"-(minimal|low|medium|high)$")
QUOTA_PREFIX_PATTERN = re.compile(r"^antigravity-", re.IGNORECASE)
ANTIGRAVITY_ONLY_PATTERN = re.compile(r"^(claude|gpt)", re.IGNORECASE)


def is_claude_model(model: str) -> bool:
    return "claude" in model.lower()


def is_claude_thinking_model(model: str) -> bool:
    lower = model.lower()
    return "claude" in lower and "thinking" in lower


def is_gemini3_model(model: str) -> bool:
    return "gemini-3" in model.lower()


def model_family(model: str) -> str:
    """Signature family of a backend model: "claude" or "gemini"."""
    return "claude" if is_claude_model(model) else "gemini"


def _supports_thinking_tiers(model: str) -> bool:
    lower = model.lower()
    return "gemini-3" in lower or "gemini-2.5" in lower or is_claude_thinking_model(lower)


def _is_thinking_capable(model: str) -> bool:
    lower = model.lower()
    return "thinking" in lower or "gemini-3" in lower or "gemini-2.5" in lower


def _budget_family(model: str) -> str:
    if "claude" in model:
        return "claude"
    if "gemini-2.5-pro" in model:
        return "gemini-2.5-pro"
    if "gemini-2.5-flash" in model:
        return "gemini-2.5-flash"
    return "default"


def _extract_tier(model: str) -> Optional[str]:
    if not _supports_thinking_tiers(model):
        return None
    match = TIER_PATTERN.search(model)
    return match.group(1) if match else None


def resolve_model(requested_id: str) -> ResolvedModel:
    """
    Resolve a requested model id into the backend model and its reasoning
    configuration. Total: unknown ids pass through unchanged.

    Examples:
        "antigravity-gemini-3-pro"  -> gemini-3-pro-low, thinking_level "low"
        "gemini-2.5-flash-high"     -> gemini-2.5-flash, thinking_budget 24576
        "claude-opus-4-6-thinking"  -> thinking_budget 32768, antigravity quota
    """
    explicit_quota = bool(QUOTA_PREFIX_PATTERN.match(requested_id))
    model = QUOTA_PREFIX_PATTERN.sub("", requested_id, count=1)

    tier = _extract_tier(model)
    base_name = TIER_PATTERN.sub("", model) if tier else model

    antigravity_only = bool(ANTIGRAVITY_ONLY_PATTERN.match(model))
    quota = (
        QuotaFamily.ANTIGRAVITY
        if explicit_quota or antigravity_only
        else QuotaFamily.GEMINI_CLI
    )

    lower = model.lower()
    skip_alias = explicit_quota and lower.startswith("gemini-3")

    if skip_alias:
        actual = model
        if lower.startswith("gemini-3-pro") and not tier:
            actual = f"{model}-low"
        elif lower.startswith("gemini-3-flash") and tier:
            actual = base_name
    else:
        actual = MODEL_ALIASES.get(model) or MODEL_ALIASES.get(base_name) or base_name

    actual = MODEL_FALLBACKS.get(actual, actual)
    thinking_capable = _is_thinking_capable(actual)
    gemini3 = is_gemini3_model(actual)

    if not tier:
        if gemini3:
            return ResolvedModel(
                actual_model=actual,
                thinking_level="low",
                is_thinking_model=True,
                quota_preference=quota,
                explicit_quota=explicit_quota,
            )
        if is_claude_thinking_model(actual):
            return ResolvedModel(
                actual_model=actual,
                thinking_budget=CLAUDE_DEFAULT_THINKING_BUDGET,
                is_thinking_model=True,
                quota_preference=quota,
                explicit_quota=explicit_quota,
            )
        return ResolvedModel(
            actual_model=actual,
            is_thinking_model=thinking_capable,
            quota_preference=quota,
            explicit_quota=explicit_quota,
        )

    if gemini3:
        return ResolvedModel(
            actual_model=actual,
            thinking_level=tier,
            tier=tier,
            is_thinking_model=True,
            quota_preference=quota,
            explicit_quota=explicit_quota,
        )

    budgets = THINKING_TIER_BUDGETS[_budget_family(actual)]
    budget_tier = "low" if tier == "minimal" else tier
    return ResolvedModel(
        actual_model=actual,
        thinking_budget=budgets[budget_tier],
        tier=tier,
        is_thinking_model=thinking_capable,
        quota_preference=quota,
        explicit_quota=explicit_quota,
    )
