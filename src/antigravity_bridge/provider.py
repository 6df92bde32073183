# src/antigravity_bridge/provider.py
"""
Antigravity chat provider.

Composition root for one chat session: resolves the model, builds the
payload against the session's signature state, primes a Gemini 3 signature
when needed, dispatches the request and streams back response parts.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import AsyncGenerator, List, Optional, Sequence, Union

import httpx
import litellm

from .auth import CredentialSource
from .config import BridgeConfig
from .dispatcher import RequestDispatcher
from .error_handler import MissingCredentialError, TransportError
from .model_catalog import list_available_models
from .model_resolver import is_gemini3_model, model_family, resolve_model
from .request_builder import (
    apply_model_transforms,
    build_request_payload,
    has_tool_calls,
    inject_cached_thinking_signature,
    message_text,
)
from .response_translator import ResponseTranslator
from .signature_cache import SessionState
from .transaction_logger import TransactionLogger
from .types import (
    ChatRequestOptions,
    Message,
    ModelDescriptor,
    ResponsePart,
    TextResponsePart,
    ToolCallResponsePart,
)

lib_logger = logging.getLogger("antigravity_bridge")


class AntigravityChatProvider:
    """
    Chat provider for Gemini and Claude models behind the Antigravity gateway.

    One instance corresponds to one chat session: thought signatures cached
    during a turn are offered again on later turns. Turns on the same
    instance are serialized.

    Usage:
        async with AntigravityChatProvider(EnvCredentialSource()) as provider:
            async for part in provider.provide_chat_response(
                "antigravity-gemini-3-pro", [Message.user("hi")]
            ):
                ...
    """

    def __init__(
        self,
        credentials: CredentialSource,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[BridgeConfig] = None,
        session: Optional[SessionState] = None,
    ):
        self.credentials = credentials
        self.config = config or BridgeConfig.from_env()
        self.session = session or SessionState()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self.dispatcher = RequestDispatcher(self._client, self.config)

    async def __aenter__(self) -> "AntigravityChatProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def list_models(self) -> List[ModelDescriptor]:
        return list_available_models()

    async def _access_token(self) -> str:
        token = await self.credentials.get_valid_bearer_token(True)
        if not token:
            raise MissingCredentialError()
        return token

    async def provide_chat_response(
        self,
        model_id: str,
        messages: Sequence[Message],
        options: Optional[ChatRequestOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[ResponsePart, None]:
        """
        Run one conversation turn and yield text and tool-call parts in order.

        Raises:
            MissingCredentialError: the credential source returned no token
            TransportError: network failure or non-2xx backend status
        """
        options = options or ChatRequestOptions()
        token = await self._access_token()
        project_id = self.credentials.get_project_id() or self.config.default_project_id

        resolved = resolve_model(model_id)
        model = resolved.actual_model
        family = model_family(model)
        lib_logger.debug(
            f"[Antigravity] Resolved '{model_id}' -> '{model}' "
            f"(quota={resolved.quota_preference.value}, thinking={resolved.is_thinking_model})"
        )

        async with self.session.lock:
            payload = build_request_payload(
                resolved,
                messages,
                options,
                session=self.session,
                fallback_signature=self.config.claude_fallback_signature,
                tool_instructions=self.config.tool_instructions,
            )
            apply_model_transforms(payload, resolved, self.config.default_thinking_budget)

            file_logger = TransactionLogger(model, enabled=self.config.request_logging)

            if is_gemini3_model(model):
                if (
                    self.config.enable_warmup
                    and has_tool_calls(payload)
                    and self.session.last_thought_for(family) is None
                ):
                    warmed = await self.dispatcher.warmup(
                        resolved, token, project_id, file_logger, cancel_event=cancel_event
                    )
                    if warmed is not None:
                        self.session.record_thought(warmed.text, warmed.signature, warmed.family)
                inject_cached_thinking_signature(payload, self.session.last_thought_for(family))

            translator = ResponseTranslator(self.session, family)
            emitted: List[ResponsePart] = []
            try:
                async for part in self.dispatcher.stream_chat(
                    resolved,
                    payload,
                    token,
                    project_id,
                    translator,
                    cancel_event=cancel_event,
                    file_logger=file_logger,
                ):
                    emitted.append(part)
                    yield part
            except TransportError as e:
                lib_logger.warning(
                    f"[Antigravity] Request for '{model}' failed: HTTP {e.status_code} ({e.error_type})"
                )
                file_logger.log_error(str(e))
                raise

            file_logger.log_final_response(
                {
                    "model": model,
                    "text": "".join(p.value for p in emitted if isinstance(p, TextResponsePart)),
                    "tool_calls": [
                        {"id": p.call_id, "name": p.name, "input": p.input}
                        for p in emitted
                        if isinstance(p, ToolCallResponsePart)
                    ],
                }
            )

    def count_tokens(self, text: Union[str, Message], model: str = "") -> int:
        """Approximate token count for a string or a message's text."""
        value = text if isinstance(text, str) else message_text(text.parts)
        if not value:
            return 0
        try:
            return litellm.token_counter(model=model, text=value)
        except Exception as e:
            lib_logger.debug(f"[Antigravity] Tokenizer unavailable ({e}); using length estimate")
            return math.ceil(len(value) / 4)
