# src/antigravity_bridge/json_repair.py
"""
Repair of tool-call arguments returned by the backend.

The backend sometimes returns JSON-stringified values inside tool arguments,
e.g. {"files": "[{...}]"} instead of {"files": [{...}]}, occasionally with
stray trailing brackets or literal "\\n" escapes.
"""

import json
import logging
from typing import Any, FrozenSet, Optional

lib_logger = logging.getLogger("antigravity_bridge")

# Values under these keys are literal text and are never decoded
LITERAL_TEXT_KEYS: FrozenSet[str] = frozenset(
    {
        "oldString",
        "newString",
        "content",
        "filePath",
        "path",
        "text",
        "code",
        "source",
        "data",
        "body",
        "message",
        "prompt",
        "input",
        "output",
        "result",
        "value",
        "query",
        "pattern",
        "replacement",
        "template",
        "script",
        "command",
        "snippet",
    }
)

_CLOSERS = {"[": "]", "{": "}"}


def _unescape_control_chars(text: str) -> Optional[str]:
    # Strings with \" or \\ carry intentional escapes and are left alone
    if "\\n" not in text and "\\t" not in text:
        return None
    if '\\"' in text or "\\\\" in text:
        return None
    try:
        return json.loads(f'"{text}"')
    except ValueError:
        return None


def _decode_json_like(text: str) -> Any:
    """Decode a string that looks like a JSON array/object; raises ValueError."""
    stripped = text.strip()
    closer = _CLOSERS[stripped[0]]
    if stripped.endswith(closer):
        return json.loads(stripped)

    # Trailing garbage after the real closing bracket
    last = stripped.rfind(closer)
    if last <= 0:
        raise ValueError("no closing bracket")
    candidate = stripped[: last + 1]
    decoded = json.loads(candidate)
    lib_logger.debug(
        f"[Antigravity] Auto-corrected malformed JSON string: "
        f"truncated {len(stripped) - len(candidate)} extra chars"
    )
    return decoded


def repair_json_strings(
    obj: Any,
    literal_keys: FrozenSet[str] = LITERAL_TEXT_KEYS,
    key: Optional[str] = None,
) -> Any:
    """Recursively decode JSON-stringified values in tool arguments."""
    if isinstance(obj, dict):
        return {k: repair_json_strings(v, literal_keys, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [repair_json_strings(item, literal_keys) for item in obj]
    if not isinstance(obj, str) or (key is not None and key in literal_keys):
        return obj

    unescaped = _unescape_control_chars(obj)
    if unescaped is not None:
        return unescaped

    stripped = obj.strip()
    if stripped and stripped[0] in _CLOSERS:
        try:
            return repair_json_strings(_decode_json_like(stripped), literal_keys)
        except ValueError:
            pass
    return obj
