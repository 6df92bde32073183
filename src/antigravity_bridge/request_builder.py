# src/antigravity_bridge/request_builder.py
"""
Conversion of the abstract conversation into the backend request payload.

The payload produced here is the inner `request` object of the wire envelope:

    {contents, tools?, systemInstruction?, generationConfig?, toolConfig?}

Message conversion, tool pairing and thinking-history repair operate on plain
wire dicts; the session state is only read here, never written.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .constants import (
    CLAUDE_THINKING_MAX_OUTPUT_TOKENS,
    DEFAULT_THINKING_BUDGET,
    TOOL_DISABLED_INSTRUCTION,
    TOOL_ENABLED_INSTRUCTION,
    WARMUP_PROMPT,
)
from .model_resolver import (
    is_claude_model,
    is_claude_thinking_model,
    is_gemini3_model,
    model_family,
)
from .schema_cleaning import (
    ensure_gemini_cli_object_schema,
    ensure_object_schema,
    normalize_gemini_cli_schema_types,
)
from .signature_cache import SessionState, ThoughtSignature
from .types import (
    ChatRequestOptions,
    Message,
    MessageRole,
    QuotaFamily,
    ResolvedModel,
    TextPart,
    ThinkingPart,
    ToolCallPart,
    ToolDeclaration,
    ToolMode,
    ToolResultPart,
    WirePartKind,
    classify_wire_part,
)

lib_logger = logging.getLogger("antigravity_bridge")

WireContent = Dict[str, Any]
Payload = Dict[str, Any]

_TOOL_NAME_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
MAX_TOOL_NAME_LENGTH = 64

# Caller option name -> generationConfig field
_NUMERIC_OPTIONS = {
    "temperature": "temperature",
    "topP": "topP",
    "top_p": "topP",
    "topK": "topK",
    "top_k": "topK",
    "maxOutputTokens": "maxOutputTokens",
    "max_output_tokens": "maxOutputTokens",
    "max_tokens": "maxOutputTokens",
}
_STOP_SEQUENCE_OPTIONS = ("stopSequences", "stop_sequences", "stop")


@dataclass
class ConvertedMessages:
    contents: List[WireContent]
    system_instruction: Optional[Dict[str, Any]] = None


def message_text(parts: Sequence[Any]) -> str:
    """Concatenate the text of a part sequence, ignoring non-text items."""
    chunks = []
    for part in parts:
        if isinstance(part, TextPart):
            chunks.append(part.value)
        elif isinstance(part, str):
            chunks.append(part)
    return "".join(chunk for chunk in chunks if chunk)


def _tool_result_text(part: ToolResultPart) -> str:
    values = []
    for item in part.content:
        value = item.value if isinstance(item, TextPart) else item
        if isinstance(value, str) and value:
            values.append(value)
    return "\n".join(values)


def has_tool_history(messages: Sequence[Message]) -> bool:
    return any(
        isinstance(part, (ToolCallPart, ToolResultPart))
        for message in messages
        for part in message.parts
    )


def has_tool_calls(payload: Payload) -> bool:
    for content in payload.get("contents") or []:
        for part in content.get("parts") or []:
            if classify_wire_part(part) == WirePartKind.TOOL_CALL:
                return True
    return False


# =============================================================================
# MESSAGE CONVERSION
# =============================================================================


def _thinking_wire_part(
    part: ThinkingPart, session: Optional[SessionState], family: str
) -> Optional[Dict[str, Any]]:
    """Replay a reasoning block only with a signature this session issued."""
    if session is None or not part.value:
        return None
    if session.is_trusted(part.value, part.signature, family):
        signature = part.signature
    else:
        signature = session.signature_for_text(part.value, family)
        if signature:
            lib_logger.debug("[Antigravity] Restored thought signature from session cache")
    if not signature:
        lib_logger.debug(
            "[Antigravity] Dropping thinking block without a session-issued signature"
        )
        return None
    return {"thought": True, "text": part.value, "thoughtSignature": signature}


def convert_messages(
    messages: Sequence[Message],
    session: Optional[SessionState] = None,
    family: str = "gemini",
    allow_tool_history: bool = True,
    allow_fallback_signature: bool = False,
) -> ConvertedMessages:
    """
    Map caller messages onto wire turns.

    Tool results carried by an assistant message are moved into a synthetic
    `user` turn immediately after it. Tool calls get the signature this
    session recorded for their call id; when `allow_fallback_signature` is set
    the first unsigned call of a turn borrows the latest session thought
    signature instead.
    """
    contents: List[WireContent] = []
    system_texts: List[str] = []
    tool_names: Dict[str, str] = {}
    fallback = session.last_thought_for(family) if session else None

    for message in messages:
        if message.role == MessageRole.SYSTEM:
            text = message_text(message.parts)
            if text:
                system_texts.append(text)
            continue

        role = "model" if message.role == MessageRole.ASSISTANT else "user"
        parts: List[Dict[str, Any]] = []
        result_parts: List[Dict[str, Any]] = []
        fallback_used = False

        for part in message.parts:
            if isinstance(part, TextPart):
                if part.value:
                    parts.append({"text": part.value})

            elif isinstance(part, ThinkingPart):
                if role != "model":
                    continue
                thought = _thinking_wire_part(part, session, family)
                if thought:
                    parts.append(thought)

            elif isinstance(part, ToolCallPart):
                if not allow_tool_history:
                    continue
                tool_names[part.call_id] = part.name
                wire_part: Dict[str, Any] = {
                    "functionCall": {
                        "name": part.name,
                        "args": dict(part.input or {}),
                        "id": part.call_id,
                    }
                }
                signature = session.signature_for_call(part.call_id, family) if session else None
                if not signature and allow_fallback_signature and fallback and not fallback_used:
                    signature = fallback.signature
                    fallback_used = True
                    lib_logger.debug(
                        f"[Antigravity] Attached fallback thought signature to call '{part.call_id}'"
                    )
                if signature:
                    wire_part["thoughtSignature"] = signature
                parts.append(wire_part)

            elif isinstance(part, ToolResultPart):
                if not allow_tool_history:
                    continue
                text = _tool_result_text(part)
                response_part = {
                    "functionResponse": {
                        "name": tool_names.get(part.call_id, "tool"),
                        "id": part.call_id,
                        "response": {"content": text} if text else {},
                    }
                }
                if role == "model":
                    result_parts.append(response_part)
                else:
                    parts.append(response_part)

        if parts:
            contents.append({"role": role, "parts": parts})
        if result_parts:
            contents.append({"role": "user", "parts": result_parts})

    system_instruction = None
    if system_texts:
        system_instruction = {"parts": [{"text": text} for text in system_texts]}
    return ConvertedMessages(contents=contents, system_instruction=system_instruction)


def _call_id(part: Dict[str, Any]) -> Optional[str]:
    call = part.get("functionCall") or part.get("functionResponse")
    call_id = call.get("id") if isinstance(call, dict) else None
    return call_id if isinstance(call_id, str) and call_id else None


def enforce_tool_pairing(contents: List[WireContent]) -> List[WireContent]:
    """
    Keep only tool calls answered by the immediately following user turn.

    Calls without a matching adjacent result, and results without a matching
    adjacent call, are removed. Turns left without parts are dropped.
    """
    normalized: List[WireContent] = []
    index = 0

    while index < len(contents):
        current = contents[index]
        parts = current.get("parts") or []
        kinds = [classify_wire_part(part) for part in parts]

        if current.get("role") == "model" and WirePartKind.TOOL_CALL in kinds:
            following = contents[index + 1] if index + 1 < len(contents) else None
            call_ids = {
                _call_id(part) for part, kind in zip(parts, kinds) if kind == WirePartKind.TOOL_CALL
            }
            response_ids = set()
            if following is not None and following.get("role") == "user":
                response_ids = {
                    _call_id(part)
                    for part in following.get("parts") or []
                    if classify_wire_part(part) == WirePartKind.TOOL_RESULT
                }
            matched = (call_ids & response_ids) - {None}

            kept_calls = [
                part
                for part, kind in zip(parts, kinds)
                if kind != WirePartKind.TOOL_CALL or _call_id(part) in matched
            ]
            dropped = len(parts) - len(kept_calls)
            if dropped:
                lib_logger.debug(f"[Antigravity] Dropped {dropped} unpaired tool call(s)")
            if kept_calls:
                normalized.append({**current, "parts": kept_calls})

            if matched:
                kept_results = [
                    part
                    for part in following["parts"]
                    if classify_wire_part(part) != WirePartKind.TOOL_RESULT
                    or _call_id(part) in matched
                ]
                if kept_results:
                    normalized.append({**following, "parts": kept_results})
                index += 2
                continue

            index += 1
            continue

        if WirePartKind.TOOL_RESULT in kinds:
            # Results not directly answering a call in the previous turn
            kept = [part for part, kind in zip(parts, kinds) if kind != WirePartKind.TOOL_RESULT]
            lib_logger.debug(
                f"[Antigravity] Dropped {len(parts) - len(kept)} orphaned tool result(s)"
            )
            if kept:
                normalized.append({**current, "parts": kept})
            index += 1
            continue

        normalized.append(current)
        index += 1

    return normalized


def ensure_claude_thinking_tool_history(
    contents: List[WireContent], fallback_thought: Optional[ThoughtSignature]
) -> List[WireContent]:
    """
    Enforce reasoning-first ordering in model turns for Claude thinking models.

    A model turn with tool calls but no reasoning gets the cached thought
    prepended, since the backend rejects tool calls without one.
    """
    result: List[WireContent] = []
    for content in contents:
        parts = content.get("parts")
        if content.get("role") != "model" or not parts:
            result.append(content)
            continue

        kinds = [classify_wire_part(part) for part in parts]
        thinking = [p for p, k in zip(parts, kinds) if k == WirePartKind.THOUGHT]
        others = [p for p, k in zip(parts, kinds) if k != WirePartKind.THOUGHT]

        if thinking:
            result.append({**content, "parts": thinking + others})
            continue

        if (
            WirePartKind.TOOL_CALL in kinds
            and fallback_thought is not None
            and fallback_thought.text
            and fallback_thought.signature
        ):
            synthesized = {
                "thought": True,
                "text": fallback_thought.text,
                "thoughtSignature": fallback_thought.signature,
            }
            result.append({**content, "parts": [synthesized] + list(parts)})
            continue

        result.append(content)
    return result


# =============================================================================
# TOOLS
# =============================================================================


def build_tools(declarations: Sequence[ToolDeclaration]) -> Optional[List[Dict[str, Any]]]:
    if not declarations:
        return None
    function_declarations = [
        {
            "name": declaration.name,
            "description": declaration.description or "",
            "parameters": ensure_object_schema(declaration.input_schema or {}),
        }
        for declaration in declarations
    ]
    return [{"functionDeclarations": function_declarations}]


def _iter_function_declarations(payload: Payload):
    for tool in payload.get("tools") or []:
        if isinstance(tool, dict) and isinstance(tool.get("functionDeclarations"), list):
            for declaration in tool["functionDeclarations"]:
                if isinstance(declaration, dict):
                    yield declaration


def normalize_gemini_cli_tool_schemas(payload: Payload) -> None:
    for declaration in _iter_function_declarations(payload):
        parameters = declaration.get("parameters")
        if parameters:
            declaration["parameters"] = ensure_gemini_cli_object_schema(
                normalize_gemini_cli_schema_types(parameters)
            )
        else:
            declaration["parameters"] = {"type": "OBJECT", "properties": {}}


def sanitize_tool_name(name: str) -> str:
    return _TOOL_NAME_INVALID_CHARS.sub("_", name)[:MAX_TOOL_NAME_LENGTH]


# =============================================================================
# SYSTEM INSTRUCTION & GENERATION OPTIONS
# =============================================================================


def apply_system_instruction(
    payload: Payload,
    system_instruction: Optional[Dict[str, Any]],
    quota: QuotaFamily,
) -> None:
    if not system_instruction:
        return
    if quota == QuotaFamily.ANTIGRAVITY and isinstance(system_instruction.get("parts"), list):
        payload["systemInstruction"] = {"role": "user", "parts": system_instruction["parts"]}
        return
    payload["systemInstruction"] = system_instruction


def append_system_instruction_text(payload: Payload, text: str) -> None:
    """Append `text` to the last text part of the system instruction."""
    existing = payload.get("systemInstruction")
    if isinstance(existing, str):
        payload["systemInstruction"] = f"{existing}\n\n{text}" if existing.strip() else text
        return
    if isinstance(existing, dict):
        parts = existing.get("parts")
        if isinstance(parts, list):
            for part in reversed(parts):
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    part["text"] = f"{part['text']}\n\n{text}"
                    return
            parts.append({"text": text})
            return
        existing["parts"] = [{"text": text}]
        return
    payload["systemInstruction"] = {"parts": [{"text": text}]}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def apply_generation_options(payload: Payload, model_options: Optional[Mapping[str, Any]]) -> None:
    """Copy well-typed sampling options into generationConfig; drop the rest."""
    if not model_options:
        return
    generation_config = payload.get("generationConfig") or {}

    for option, field_name in _NUMERIC_OPTIONS.items():
        value = model_options.get(option)
        if _is_number(value) and field_name not in generation_config:
            generation_config[field_name] = value

    for option in _STOP_SEQUENCE_OPTIONS:
        value = model_options.get(option)
        if isinstance(value, (list, tuple)):
            generation_config["stopSequences"] = list(value)
            break

    payload["generationConfig"] = generation_config


# =============================================================================
# PAYLOAD
# =============================================================================


def build_request_payload(
    resolved: ResolvedModel,
    messages: Sequence[Message],
    options: Optional[ChatRequestOptions] = None,
    session: Optional[SessionState] = None,
    fallback_signature: bool = True,
    tool_instructions: bool = True,
) -> Payload:
    options = options or ChatRequestOptions()
    model = resolved.actual_model
    quota = resolved.quota_preference
    family = model_family(model)
    claude = is_claude_model(model)

    converted = convert_messages(
        messages,
        session=session,
        family=family,
        allow_tool_history=bool(options.tools) or has_tool_history(messages),
        allow_fallback_signature=claude and fallback_signature,
    )
    contents = converted.contents

    if quota == QuotaFamily.GEMINI_CLI:
        contents = enforce_tool_pairing(contents)

    if is_claude_thinking_model(model):
        cached = session.last_thought_for("claude") if session else None
        contents = ensure_claude_thinking_tool_history(contents, cached)

    payload: Payload = {"contents": contents}

    tools = build_tools(options.tools)
    if tools:
        payload["tools"] = tools

    apply_system_instruction(payload, converted.system_instruction, quota)
    apply_generation_options(payload, options.model_options)

    if tool_instructions:
        append_system_instruction_text(
            payload, TOOL_ENABLED_INSTRUCTION if options.tools else TOOL_DISABLED_INSTRUCTION
        )

    if options.tool_mode == ToolMode.REQUIRED and not claude:
        payload["toolConfig"] = {"functionCallingConfig": {"mode": "ANY"}}

    if quota == QuotaFamily.GEMINI_CLI:
        normalize_gemini_cli_tool_schemas(payload)

    return payload


def _apply_claude_transforms(
    payload: Payload, resolved: ResolvedModel, normalized_thinking: Optional[Dict[str, Any]]
) -> None:
    tool_config = payload.setdefault("toolConfig", {})
    tool_config.setdefault("functionCallingConfig", {})["mode"] = "VALIDATED"

    generation_config = payload.get("generationConfig")
    if isinstance(generation_config, dict) and isinstance(generation_config.get("stop_sequences"), list):
        generation_config["stopSequences"] = generation_config.pop("stop_sequences")

    if normalized_thinking and is_claude_thinking_model(resolved.actual_model):
        budget = resolved.thinking_budget or normalized_thinking["thinkingBudget"]
        generation_config = payload.setdefault("generationConfig", {})
        thinking_config: Dict[str, Any] = {"include_thoughts": True}
        if budget and budget > 0:
            thinking_config["thinking_budget"] = budget
            current_max = generation_config.get("maxOutputTokens") or generation_config.get(
                "max_output_tokens"
            )
            if not current_max or current_max <= budget:
                generation_config["maxOutputTokens"] = CLAUDE_THINKING_MAX_OUTPUT_TOKENS
                generation_config.pop("max_output_tokens", None)
        generation_config["thinkingConfig"] = thinking_config

    if is_claude_thinking_model(resolved.actual_model):
        generation_config = payload.setdefault("generationConfig", {})
        if not _is_number(generation_config.get("maxOutputTokens")):
            generation_config["maxOutputTokens"] = CLAUDE_THINKING_MAX_OUTPUT_TOKENS

    for declaration in _iter_function_declarations(payload):
        declaration["name"] = sanitize_tool_name(str(declaration.get("name") or "tool"))
        declaration["parameters"] = ensure_object_schema(declaration.get("parameters") or {})


def _apply_gemini_transforms(
    payload: Payload, resolved: ResolvedModel, normalized_thinking: Optional[Dict[str, Any]]
) -> None:
    if not normalized_thinking:
        return
    if resolved.thinking_level and is_gemini3_model(resolved.actual_model):
        thinking_config = {"includeThoughts": True, "thinkingLevel": resolved.thinking_level}
    else:
        thinking_config = {"includeThoughts": True}
        budget = resolved.thinking_budget or normalized_thinking["thinkingBudget"]
        if budget and budget > 0:
            thinking_config["thinkingBudget"] = budget
    payload.setdefault("generationConfig", {})["thinkingConfig"] = thinking_config


def apply_model_transforms(
    payload: Payload,
    resolved: ResolvedModel,
    default_thinking_budget: int = DEFAULT_THINKING_BUDGET,
) -> None:
    """Apply family-specific reasoning and tool configuration in place."""
    normalized_thinking = None
    if resolved.is_thinking_model:
        normalized_thinking = {
            "includeThoughts": True,
            "thinkingBudget": resolved.thinking_budget or default_thinking_budget,
        }

    if is_claude_model(resolved.actual_model):
        _apply_claude_transforms(payload, resolved, normalized_thinking)
    else:
        _apply_gemini_transforms(payload, resolved, normalized_thinking)


def inject_cached_thinking_signature(
    payload: Payload, cached: Optional[ThoughtSignature]
) -> None:
    """
    Give every unsigned tool call in a model turn the cached signature and
    prepend the cached thought where a turn has no signed reasoning.
    """
    if cached is None or not cached.signature or not cached.text.strip():
        return

    contents = []
    for content in payload.get("contents") or []:
        parts = content.get("parts")
        if content.get("role") not in ("model", "assistant") or not parts:
            contents.append(content)
            continue

        kinds = [classify_wire_part(part) for part in parts]
        if WirePartKind.TOOL_CALL not in kinds:
            contents.append(content)
            continue

        has_signed_thought = any(
            kind == WirePartKind.THOUGHT and part.get("thoughtSignature")
            for part, kind in zip(parts, kinds)
        )
        injected = [
            {**part, "thoughtSignature": cached.signature}
            if kind == WirePartKind.TOOL_CALL and not part.get("thoughtSignature")
            else part
            for part, kind in zip(parts, kinds)
        ]
        if not has_signed_thought:
            injected.insert(
                0, {"thought": True, "text": cached.text, "thoughtSignature": cached.signature}
            )
        contents.append({**content, "parts": injected})

    payload["contents"] = contents


def build_warmup_payload(resolved: ResolvedModel) -> Payload:
    return {
        "contents": [{"role": "user", "parts": [{"text": WARMUP_PROMPT}]}],
        "generationConfig": {
            "thinkingConfig": {
                "includeThoughts": True,
                "thinkingLevel": resolved.thinking_level or "low",
            }
        },
    }
