# src/antigravity_bridge/schema_cleaning.py
"""
Tool schema normalization for the Gemini/Claude backends.

The backends accept a small subset of JSON Schema. Arbitrary tool schemas are
rewritten into that subset in fixed stages, each applied to the whole tree
(children before parents) before the next one runs:

    1. $ref / const resolution
    2. allOf merge
    3. anyOf / oneOf flattening
    4. type-array flattening
    5. hint extraction into `description`
    6. keyword stripping (whitelist)
    7. `required` cleanup
    8. empty-object placeholder

Constraints the backends cannot express are never dropped silently: they are
appended to the description as "(hint)" text so the model still sees them.
Normalization is total and idempotent.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from .constants import (
    EMPTY_SCHEMA_PLACEHOLDER_DESCRIPTION,
    EMPTY_SCHEMA_PLACEHOLDER_NAME,
)

lib_logger = logging.getLogger("antigravity_bridge")

SchemaNode = Dict[str, Any]

ALLOWED_KEYWORDS = frozenset(
    {"type", "description", "properties", "required", "items", "enum"}
)

# Scalar constraints surfaced as description hints before stripping
HINTED_CONSTRAINTS = (
    "minLength",
    "maxLength",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
    "minProperties",
    "maxProperties",
    "format",
    "default",
    "examples",
)

MAX_ENUM_HINT_VALUES = 10

_SINGLE_SCHEMA_KEYS = ("additionalProperties", "not")
_SCHEMA_LIST_KEYS = ("anyOf", "oneOf", "allOf", "prefixItems")
_UNION_KEYS = ("anyOf", "oneOf")


# =============================================================================
# TREE WALKING
# =============================================================================


def map_schema(node: Any, fn: Callable[[SchemaNode], SchemaNode]) -> Any:
    """
    Apply `fn` to every schema node of the tree, children first.

    Only genuine sub-schema positions are visited: values of `properties`
    (never the property names), `items`, `additionalProperties`, `not` and the
    members of `anyOf`/`oneOf`/`allOf`/`prefixItems`. Literal data such as
    `enum`, `const` or `default` is left untouched.
    """
    if not isinstance(node, dict):
        return node

    result = dict(node)

    properties = result.get("properties")
    if isinstance(properties, dict):
        result["properties"] = {
            name: map_schema(sub, fn) for name, sub in properties.items()
        }

    items = result.get("items")
    if isinstance(items, dict):
        result["items"] = map_schema(items, fn)
    elif isinstance(items, list):
        result["items"] = [map_schema(sub, fn) for sub in items]

    for key in _SINGLE_SCHEMA_KEYS:
        if isinstance(result.get(key), dict):
            result[key] = map_schema(result[key], fn)

    for key in _SCHEMA_LIST_KEYS:
        if isinstance(result.get(key), list):
            result[key] = [map_schema(sub, fn) for sub in result[key]]

    return fn(result)


def _literal_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _append_hint(node: SchemaNode, hint: str) -> SchemaNode:
    description = node.get("description")
    if isinstance(description, str) and description:
        if hint in description:
            return node
        return {**node, "description": f"{description} ({hint})"}
    return {**node, "description": hint}


def _deep_merge(primary: Dict[str, Any], secondary: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two dicts; values from `primary` win on conflict."""
    merged = dict(secondary)
    for key, value in primary.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(value, merged[key])
        else:
            merged[key] = value
    return merged


# =============================================================================
# STAGES
# =============================================================================


def _resolve_refs_and_const(node: SchemaNode) -> SchemaNode:
    ref = node.get("$ref")
    if isinstance(ref, str):
        name = ref.rsplit("/", 1)[-1]
        resolved: SchemaNode = {"type": "object"}
        if isinstance(node.get("description"), str):
            resolved["description"] = node["description"]
        return _append_hint(resolved, f"See: {name}")

    if "const" in node and not isinstance(node.get("enum"), list):
        result = {k: v for k, v in node.items() if k != "const"}
        result["enum"] = [node["const"]]
        return result

    return node


def _merge_all_of(node: SchemaNode) -> SchemaNode:
    members = node.get("allOf")
    if not isinstance(members, list):
        return node

    result = {k: v for k, v in node.items() if k != "allOf"}

    merged_properties: Dict[str, Any] = {}
    merged_required: List[str] = []
    merged_other: Dict[str, Any] = {}

    for member in members:
        if not isinstance(member, dict):
            continue
        if isinstance(member.get("properties"), dict):
            merged_properties.update(member["properties"])
        if isinstance(member.get("required"), list):
            for entry in member["required"]:
                if isinstance(entry, str) and entry not in merged_required:
                    merged_required.append(entry)
        for key, value in member.items():
            if key in ("properties", "required"):
                continue
            if key not in merged_other:
                merged_other[key] = value
            elif isinstance(value, dict) and isinstance(merged_other[key], dict):
                merged_other[key] = _deep_merge(merged_other[key], value)

    own_properties = result.get("properties")
    if isinstance(own_properties, dict):
        merged_properties.update(own_properties)
    if merged_properties:
        result["properties"] = merged_properties

    required: List[str] = []
    own_required = result.get("required")
    for entry in (own_required if isinstance(own_required, list) else []) + merged_required:
        if isinstance(entry, str) and entry not in required:
            required.append(entry)
    if required:
        result["required"] = required
    else:
        result.pop("required", None)

    for key, value in merged_other.items():
        if key not in result:
            result[key] = value
        elif isinstance(value, dict) and isinstance(result[key], dict):
            result[key] = _deep_merge(result[key], value)

    return result


def _score_union_option(option: Any):
    """Rank a union member: object > array > scalar > null/untyped."""
    if not isinstance(option, dict):
        return 0, "unknown"
    option_type = option.get("type")
    if option_type == "object" or "properties" in option:
        return 3, "object"
    if option_type == "array" or "items" in option:
        return 2, "array"
    if isinstance(option_type, str) and option_type != "null":
        return 1, option_type
    return 0, option_type if isinstance(option_type, str) else "null"


def _merge_literal_options(options: List[Any]) -> Optional[List[str]]:
    """Collect enum values when every union member is a plain literal."""
    values: List[str] = []
    for option in options:
        if not isinstance(option, dict):
            return None
        if any(key in option for key in ("properties", "items", "anyOf", "oneOf", "allOf")):
            return None
        if option.get("type") in ("object", "array"):
            return None
        if "const" in option:
            literals = [option["const"]]
        elif isinstance(option.get("enum"), list) and option["enum"]:
            literals = option["enum"]
        elif isinstance(option.get("type"), str):
            return None
        else:
            # Untyped members (description-only) carry no literal.
            continue
        for literal in literals:
            text = _literal_text(literal)
            if text not in values:
                values.append(text)
    return values or None


def _flatten_unions(node: SchemaNode) -> SchemaNode:
    result = node
    for union_key in _UNION_KEYS:
        options = result.get(union_key)
        if not isinstance(options, list):
            continue
        rest = {k: v for k, v in result.items() if k != union_key}
        if not options:
            result = rest
            continue

        literal_values = _merge_literal_options(options)
        if literal_values is not None:
            rest["type"] = "string"
            rest["enum"] = literal_values
            result = rest
            continue

        best_index, best_score = 0, -1
        type_names: List[str] = []
        for index, option in enumerate(options):
            score, type_name = _score_union_option(option)
            if type_name not in type_names:
                type_names.append(type_name)
            if score > best_score:
                best_index, best_score = index, score

        chosen = options[best_index]
        selected = dict(chosen) if isinstance(chosen, dict) else {"type": "string"}

        parent_description = rest.get("description")
        if isinstance(parent_description, str) and parent_description:
            child_description = selected.get("description")
            if isinstance(child_description, str) and child_description and child_description != parent_description:
                selected["description"] = f"{parent_description} ({child_description})"
            else:
                selected["description"] = parent_description

        if len(type_names) > 1:
            selected = _append_hint(selected, f"Accepts: {' | '.join(type_names)}")

        result = {**rest, **selected}
    return result


def _flatten_type_arrays(node: SchemaNode) -> SchemaNode:
    types = node.get("type")
    if not isinstance(types, list):
        return node

    names = [t for t in types if isinstance(t, str)]
    non_null = [t for t in names if t != "null"]

    result = {**node, "type": non_null[0] if non_null else "string"}
    if len(non_null) > 1:
        result = _append_hint(result, f"Accepts: {' | '.join(non_null)}")
    if "null" in names:
        result = _append_hint(result, "nullable")
    return result


def _add_hints(node: SchemaNode) -> SchemaNode:
    result = node

    enum = result.get("enum")
    if isinstance(enum, list) and 1 < len(enum) <= MAX_ENUM_HINT_VALUES:
        allowed = ", ".join(_literal_text(value) for value in enum)
        result = _append_hint(result, f"Allowed: {allowed}")

    if result.get("additionalProperties") is False:
        result = _append_hint(result, "No extra properties allowed")

    for key in HINTED_CONSTRAINTS:
        if key not in result:
            continue
        value = result[key]
        if isinstance(value, (dict, list)):
            continue
        result = _append_hint(result, f"{key}: {_literal_text(value)}")

    return result


def _strip_unsupported(node: SchemaNode) -> SchemaNode:
    result: SchemaNode = {}
    for key, value in node.items():
        if key not in ALLOWED_KEYWORDS:
            continue
        if key == "type" and not isinstance(value, str):
            continue
        if key == "description" and not isinstance(value, str):
            continue
        if key == "properties" and not isinstance(value, dict):
            continue
        if key in ("enum", "required") and not isinstance(value, list):
            continue
        if key == "items" and isinstance(value, list):
            # Tuple-form items collapse to their first schema
            first = next((sub for sub in value if isinstance(sub, dict)), None)
            if first is None:
                continue
            value = first
        elif key == "items" and not isinstance(value, dict):
            continue
        result[key] = value
    return result


def _cleanup_required(node: SchemaNode) -> SchemaNode:
    required = node.get("required")
    if required is None:
        return node

    properties = node.get("properties")
    rest = {k: v for k, v in node.items() if k != "required"}
    if not isinstance(properties, dict) or not properties:
        return rest

    filtered: List[str] = []
    for entry in required:
        if isinstance(entry, str) and entry in properties and entry not in filtered:
            filtered.append(entry)
    if not filtered:
        return rest
    rest["required"] = filtered
    return rest


def _placeholder_property() -> SchemaNode:
    return {"type": "boolean", "description": EMPTY_SCHEMA_PLACEHOLDER_DESCRIPTION}


def _add_empty_object_placeholder(node: SchemaNode) -> SchemaNode:
    if node.get("type") != "object":
        return node
    properties = node.get("properties")
    if isinstance(properties, dict) and properties:
        return node
    return {
        **node,
        "properties": {EMPTY_SCHEMA_PLACEHOLDER_NAME: _placeholder_property()},
        "required": [EMPTY_SCHEMA_PLACEHOLDER_NAME],
    }


_STAGES = (
    _resolve_refs_and_const,
    _merge_all_of,
    _flatten_unions,
    _flatten_type_arrays,
    _add_hints,
    _strip_unsupported,
    _cleanup_required,
    _add_empty_object_placeholder,
)


# =============================================================================
# PUBLIC API
# =============================================================================


def clean_json_schema(schema: Any) -> SchemaNode:
    """
    Normalize an arbitrary JSON Schema into the backend-accepted subset.

    Never raises; anything that is not a dict normalizes to `{}`. The input
    is not modified.
    """
    if not isinstance(schema, dict):
        return {}

    result = copy.deepcopy(schema)
    for stage in _STAGES:
        result = map_schema(result, stage)
    return result


def create_placeholder_schema(base: Optional[SchemaNode] = None) -> SchemaNode:
    """Object schema carrying only the mandatory placeholder property."""
    base = base or {}
    required = [r for r in base.get("required", []) if isinstance(r, str)]
    if EMPTY_SCHEMA_PLACEHOLDER_NAME not in required:
        required.append(EMPTY_SCHEMA_PLACEHOLDER_NAME)
    return {
        **base,
        "type": "object",
        "properties": {EMPTY_SCHEMA_PLACEHOLDER_NAME: _placeholder_property()},
        "required": required,
    }


def ensure_object_schema(schema: Any) -> SchemaNode:
    """
    Normalize a tool input schema and guarantee an object root with at least
    one property, as required for function declaration parameters.
    """
    cleaned = clean_json_schema(schema if schema is not None else {})
    if "type" in cleaned and cleaned["type"] != "object":
        lib_logger.debug(
            f"[Antigravity] Tool schema root type '{cleaned['type']}' is not an object; using placeholder schema"
        )
        return create_placeholder_schema()
    properties = cleaned.get("properties")
    if not isinstance(properties, dict) or not properties:
        return create_placeholder_schema(cleaned)
    return {**cleaned, "type": "object"}


def _upper_case_type(node: SchemaNode) -> SchemaNode:
    node_type = node.get("type")
    if isinstance(node_type, str):
        return {**node, "type": node_type.upper()}
    if isinstance(node_type, list):
        return {
            **node,
            "type": [t.upper() if isinstance(t, str) else t for t in node_type],
        }
    return node


def normalize_gemini_cli_schema_types(schema: Any) -> Any:
    """Upper-case every `type` token (gemini-cli expects OpenAPI enum names)."""
    return map_schema(schema, _upper_case_type)


def ensure_gemini_cli_object_schema(schema: Any) -> SchemaNode:
    if not isinstance(schema, dict):
        return {"type": "OBJECT", "properties": {}}
    properties = schema.get("properties")
    return {
        **schema,
        "type": "OBJECT",
        "properties": properties if isinstance(properties, dict) else {},
    }
