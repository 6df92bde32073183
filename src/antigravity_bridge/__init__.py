import logging

from .auth import CredentialSource, EnvCredentialSource, StaticCredentialSource
from .config import BridgeConfig
from .error_handler import BridgeError, MissingCredentialError, TransportError
from .model_catalog import list_available_models
from .model_resolver import resolve_model
from .provider import AntigravityChatProvider
from .schema_cleaning import clean_json_schema, ensure_object_schema
from .signature_cache import SessionState, ThoughtSignature
from .types import (
    ChatRequestOptions,
    Message,
    MessageRole,
    ModelDescriptor,
    QuotaFamily,
    ResolvedModel,
    TextPart,
    TextResponsePart,
    ThinkingPart,
    ToolCallPart,
    ToolCallResponsePart,
    ToolDeclaration,
    ToolMode,
    ToolResultPart,
)

lib_logger = logging.getLogger("antigravity_bridge")
lib_logger.propagate = False
if not lib_logger.handlers:
    lib_logger.addHandler(logging.NullHandler())

__all__ = [
    "AntigravityChatProvider",
    "BridgeConfig",
    "BridgeError",
    "ChatRequestOptions",
    "CredentialSource",
    "EnvCredentialSource",
    "Message",
    "MessageRole",
    "MissingCredentialError",
    "ModelDescriptor",
    "QuotaFamily",
    "ResolvedModel",
    "SessionState",
    "StaticCredentialSource",
    "TextPart",
    "TextResponsePart",
    "ThinkingPart",
    "ThoughtSignature",
    "ToolCallPart",
    "ToolCallResponsePart",
    "ToolDeclaration",
    "ToolMode",
    "ToolResultPart",
    "TransportError",
    "clean_json_schema",
    "ensure_object_schema",
    "list_available_models",
    "resolve_model",
]
