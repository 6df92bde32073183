# src/antigravity_bridge/signature_cache.py
"""
Per-session thought signature state.

Some backends issue an opaque signature alongside each reasoning block and
reject later turns whose tool calls are not accompanied by a signature they
issued. The session keeps the most recent signed thought and the signature
each tool call was issued with, scoped to the model family that produced it
so a signature never crosses from one backend to another.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

lib_logger = logging.getLogger("antigravity_bridge")


@dataclass(frozen=True)
class ThoughtSignature:
    text: str
    signature: str
    family: str


class SessionState:
    """
    Signature state for one chat session (one provider instance).

    The cache only ever holds signatures this session received from a
    backend. Nothing is invalidated explicitly: a newer signed thought simply
    replaces the previous one.
    """

    def __init__(self):
        self.last_thought: Optional[ThoughtSignature] = None
        self.call_signatures: Dict[str, ThoughtSignature] = {}
        # Held for a whole turn so concurrent turns cannot interleave cache writes
        self.lock = asyncio.Lock()

    def record_thought(self, text: str, signature: str, family: str) -> None:
        if not signature:
            return
        self.last_thought = ThoughtSignature(text=text, signature=signature, family=family)
        lib_logger.debug(
            f"[Antigravity] Cached {family} thought signature ({len(text)} chars of thinking)"
        )

    def record_call_signature(
        self, call_id: str, signature: str, family: str, text: str = ""
    ) -> None:
        if not call_id or not signature:
            return
        self.call_signatures[call_id] = ThoughtSignature(
            text=text, signature=signature, family=family
        )

    def last_thought_for(self, family: str) -> Optional[ThoughtSignature]:
        if self.last_thought and self.last_thought.family == family:
            return self.last_thought
        return None

    def signature_for_call(self, call_id: str, family: str) -> Optional[str]:
        entry = self.call_signatures.get(call_id)
        if entry and entry.family == family:
            return entry.signature
        return None

    def signature_for_text(self, text: str, family: str) -> Optional[str]:
        """Return the signature this session recorded for exactly `text`."""
        if not text:
            return None
        last = self.last_thought_for(family)
        if last and last.text == text:
            return last.signature
        for entry in self.call_signatures.values():
            if entry.family == family and entry.text == text:
                return entry.signature
        return None

    def is_trusted(self, text: str, signature: Optional[str], family: str) -> bool:
        return bool(signature) and self.signature_for_text(text, family) == signature

    def clear(self) -> None:
        self.last_thought = None
        self.call_signatures.clear()
