# src/antigravity_bridge/response_translator.py
"""Translation of backend response bodies into caller-facing response parts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .json_repair import repair_json_strings
from .signature_cache import SessionState, ThoughtSignature
from .types import (
    ResponsePart,
    TextResponsePart,
    ToolCallResponsePart,
    WirePartKind,
    classify_wire_part,
    wire_part_signature,
    wire_thought_text,
)

lib_logger = logging.getLogger("antigravity_bridge")


@dataclass
class ThoughtState:
    """Reasoning text accumulated across chunks plus the latest signed thought."""

    buffer: str = ""
    pending: Optional[ThoughtSignature] = None


def iter_candidate_parts(body: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    candidates = body.get("candidates")
    if not isinstance(candidates, list):
        return
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        yield from parts


class ResponseTranslator:
    """
    Stateful translator for one backend response.

    One instance is used for the whole response so thought accumulation and
    synthesized call ids (`tool-call-<n>`) stay consistent across stream
    chunks. Signed thoughts are held as pending until `commit()` writes them
    into the session; call signatures are recorded as they arrive.
    """

    def __init__(self, session: Optional[SessionState] = None, family: str = "gemini"):
        self.session = session
        self.family = family
        self.thought_state = ThoughtState()
        self.call_id_seed = 0

    def translate(self, body: Dict[str, Any]) -> List[ResponsePart]:
        parts: List[ResponsePart] = []
        if not isinstance(body, dict):
            return parts

        for part in iter_candidate_parts(body):
            kind = classify_wire_part(part)

            if kind == WirePartKind.THOUGHT:
                self._on_thought(part)
            elif kind == WirePartKind.TEXT:
                parts.append(TextResponsePart(part["text"]))
            elif kind == WirePartKind.TOOL_CALL:
                parts.append(self._on_tool_call(part))
            else:
                lib_logger.debug(f"[Antigravity] Skipping {kind.value} response part")

        return parts

    def _on_thought(self, part: Dict[str, Any]) -> None:
        text = wire_thought_text(part)
        state = self.thought_state
        if text:
            state.buffer += text
        signature = wire_part_signature(part)
        full_text = state.buffer or text
        if signature and full_text:
            state.pending = ThoughtSignature(full_text, signature, self.family)

    def _on_tool_call(self, part: Dict[str, Any]) -> ToolCallResponsePart:
        call = part["functionCall"]
        call_id = call.get("id")
        if not isinstance(call_id, str) or not call_id:
            self.call_id_seed += 1
            call_id = f"tool-call-{self.call_id_seed}"
        name = call.get("name") if isinstance(call.get("name"), str) else "tool"
        args = call.get("args")
        args = repair_json_strings(args) if isinstance(args, dict) else {}

        signature = wire_part_signature(part)
        if signature:
            self.thought_state.pending = ThoughtSignature(
                self.thought_state.buffer, signature, self.family
            )
            if self.session is not None:
                self.session.record_call_signature(
                    call_id, signature, self.family, self.thought_state.buffer
                )

        return ToolCallResponsePart(call_id=call_id, name=name, input=args)

    @property
    def pending_thought(self) -> Optional[ThoughtSignature]:
        return self.thought_state.pending

    def commit(self) -> Optional[ThoughtSignature]:
        """Write the latest signed thought into the session cache."""
        pending = self.thought_state.pending
        if pending is not None and self.session is not None:
            self.session.record_thought(pending.text, pending.signature, pending.family)
        return pending
