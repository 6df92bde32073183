# src/antigravity_bridge/types.py
"""
Data model shared by the request and response translation layers.

Messages and parts are immutable value objects supplied by the caller.
Wire-level structures (contents, parts, payloads) stay plain dicts so they
serialize straight to JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ToolMode(str, Enum):
    AUTO = "auto"
    REQUIRED = "required"


class QuotaFamily(str, Enum):
    """Backend quota family a request is routed to."""

    ANTIGRAVITY = "antigravity"
    GEMINI_CLI = "gemini-cli"


# =============================================================================
# CONVERSATION PARTS
# =============================================================================


@dataclass(frozen=True)
class TextPart:
    value: str


@dataclass(frozen=True)
class ToolCallPart:
    call_id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    """
    Result of a previously issued tool call.

    `content` is a sequence of TextParts (or plain strings); non-text items
    are ignored when the result is serialized.
    """

    call_id: str
    content: Sequence[Union[TextPart, str]] = ()


@dataclass(frozen=True)
class ThinkingPart:
    """A reasoning block replayed from an earlier assistant turn."""

    value: str
    signature: Optional[str] = None


Part = Union[TextPart, ToolCallPart, ToolResultPart, ThinkingPart]


@dataclass(frozen=True)
class Message:
    role: MessageRole
    parts: Tuple[Part, ...] = ()

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(MessageRole.SYSTEM, (TextPart(text),))

    @classmethod
    def user(cls, *parts: Union[Part, str]) -> "Message":
        return cls(MessageRole.USER, _coerce_parts(parts))

    @classmethod
    def assistant(cls, *parts: Union[Part, str]) -> "Message":
        return cls(MessageRole.ASSISTANT, _coerce_parts(parts))


def _coerce_parts(parts: Sequence[Union[Part, str]]) -> Tuple[Part, ...]:
    return tuple(TextPart(p) if isinstance(p, str) else p for p in parts)


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None


@dataclass
class ChatRequestOptions:
    """Per-request options supplied alongside the message history."""

    tools: Sequence[ToolDeclaration] = ()
    tool_mode: ToolMode = ToolMode.AUTO
    model_options: Mapping[str, Any] = field(default_factory=dict)


# =============================================================================
# RESPONSE PARTS
# =============================================================================


@dataclass(frozen=True)
class TextResponsePart:
    value: str


@dataclass(frozen=True)
class ToolCallResponsePart:
    call_id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


ResponsePart = Union[TextResponsePart, ToolCallResponsePart]


class WirePartKind(str, Enum):
    TEXT = "text"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    UNKNOWN = "unknown"


_THINKING_PART_TYPES = ("thinking", "redacted_thinking", "reasoning")


def wire_part_signature(part: Dict[str, Any]) -> Optional[str]:
    """Signature attached to a wire part, wherever the backend put it."""
    for key in ("thoughtSignature", "signature"):
        if isinstance(part.get(key), str) and part[key]:
            return part[key]
    metadata = part.get("metadata")
    google = metadata.get("google") if isinstance(metadata, dict) else None
    if isinstance(google, dict) and isinstance(google.get("thoughtSignature"), str):
        return google["thoughtSignature"] or None
    return None


def wire_thought_text(part: Dict[str, Any]) -> str:
    for key in ("text", "thinking"):
        if isinstance(part.get(key), str):
            return part[key]
    return ""


def classify_wire_part(part: Any) -> WirePartKind:
    """Classify one backend content part by its shape."""
    if not isinstance(part, dict):
        return WirePartKind.UNKNOWN
    if part.get("thought") is True or part.get("type") in _THINKING_PART_TYPES:
        return WirePartKind.THOUGHT
    if isinstance(part.get("functionCall"), dict):
        return WirePartKind.TOOL_CALL
    if isinstance(part.get("functionResponse"), dict):
        return WirePartKind.TOOL_RESULT
    if isinstance(part.get("text"), str):
        return WirePartKind.TEXT
    return WirePartKind.UNKNOWN


# =============================================================================
# MODELS
# =============================================================================


@dataclass(frozen=True)
class ResolvedModel:
    actual_model: str
    thinking_budget: Optional[int] = None
    thinking_level: Optional[str] = None
    tier: Optional[str] = None
    is_thinking_model: bool = False
    quota_preference: QuotaFamily = QuotaFamily.GEMINI_CLI
    explicit_quota: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "actualModel": self.actual_model,
            "isThinkingModel": self.is_thinking_model,
            "quotaPreference": self.quota_preference.value,
            "explicitQuota": self.explicit_quota,
        }
        if self.thinking_budget is not None:
            data["thinkingBudget"] = self.thinking_budget
        if self.thinking_level is not None:
            data["thinkingLevel"] = self.thinking_level
        if self.tier is not None:
            data["tier"] = self.tier
        return data


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    name: str
    family: str
    max_input_tokens: int
    max_output_tokens: int
    tool_calling: bool = True
    image_input: bool = False
