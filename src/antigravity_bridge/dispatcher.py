# src/antigravity_bridge/dispatcher.py
"""
HTTP dispatch of wrapped requests to the Cloud Code gateway.

The dispatcher owns endpoint and header selection per quota family, the
request envelope, the optional signature warmup call and the transport of
the main streaming call. It never retries: a failed call surfaces as a
TransportError carrying the response body.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional, Union

import httpx

from .config import BridgeConfig
from .constants import (
    ANTIGRAVITY_HEADERS,
    API_VERSION_PATH,
    GEMINI_CLI_HEADERS,
    REQUEST_ID_PREFIX,
    REQUEST_TYPE,
    USER_AGENT_TAG,
)
from .error_handler import TransportError
from .model_resolver import model_family
from .request_builder import build_warmup_payload
from .response_translator import ResponseTranslator
from .signature_cache import ThoughtSignature
from .stream_reassembler import CANCELLED, DATA_MARKER, consume_stream, wait_or_cancel
from .timeout_config import TimeoutConfig
from .transaction_logger import TransactionLogger
from .types import QuotaFamily, ResolvedModel, ResponsePart

lib_logger = logging.getLogger("antigravity_bridge")

STREAM_ACTION = "streamGenerateContent"
GENERATE_ACTION = "generateContent"


def _generate_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4()}"


def _unwrap_response(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    body = data.get("response")
    return body if isinstance(body, dict) else data


async def _single_chunk(text: str) -> AsyncIterator[str]:
    yield text


class RequestDispatcher:
    def __init__(self, client: httpx.AsyncClient, config: Optional[BridgeConfig] = None):
        self.client = client
        self.config = config or BridgeConfig()

    # =========================================================================
    # ENVELOPE, ENDPOINT & HEADERS
    # =========================================================================

    def build_wrapped_request(
        self, model: str, payload: Dict[str, Any], project_id: str
    ) -> Dict[str, Any]:
        return {
            "project": project_id,
            "model": model,
            "request": payload,
            "requestType": REQUEST_TYPE,
            "userAgent": USER_AGENT_TAG,
            "requestId": _generate_request_id(),
        }

    def build_endpoint(self, action: str, quota: QuotaFamily) -> str:
        base = (
            self.config.gemini_cli_endpoint
            if quota == QuotaFamily.GEMINI_CLI
            else self.config.antigravity_endpoint
        )
        suffix = "?alt=sse" if action == STREAM_ACTION else ""
        return f"{base}/{API_VERSION_PATH}:{action}{suffix}"

    def build_headers(self, token: str, quota: QuotaFamily, accept: str) -> Dict[str, str]:
        identity = GEMINI_CLI_HEADERS if quota == QuotaFamily.GEMINI_CLI else ANTIGRAVITY_HEADERS
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": accept,
            **identity,
        }

    # =========================================================================
    # WARMUP
    # =========================================================================

    async def warmup(
        self,
        resolved: ResolvedModel,
        token: str,
        project_id: str,
        file_logger: Optional[TransactionLogger] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[ThoughtSignature]:
        """
        Issue a minimal non-streaming request to obtain a signed thought.

        Failures are logged and reported as None; they never abort the turn.
        A cancelled warmup also returns None.
        """
        quota = resolved.quota_preference
        url = self.build_endpoint(GENERATE_ACTION, quota)
        wrapped = self.build_wrapped_request(
            resolved.actual_model, build_warmup_payload(resolved), project_id
        )
        try:
            response = await wait_or_cancel(
                self.client.post(
                    url,
                    headers=self.build_headers(token, quota, "application/json"),
                    json=wrapped,
                    timeout=TimeoutConfig.warmup(),
                ),
                cancel_event,
            )
        except httpx.HTTPError as e:
            lib_logger.warning(f"[Antigravity] Signature warmup failed: {e}")
            if file_logger:
                file_logger.log_error(f"Warmup transport error: {e}")
            return None

        if response is CANCELLED:
            lib_logger.debug("[Antigravity] Signature warmup cancelled")
            return None

        if response.status_code >= 400:
            lib_logger.warning(
                f"[Antigravity] Signature warmup returned HTTP {response.status_code}; continuing without signature"
            )
            if file_logger:
                file_logger.log_error(f"Warmup HTTP {response.status_code}: {response.text[:500]}")
            return None

        try:
            data = response.json()
        except ValueError:
            lib_logger.warning("[Antigravity] Signature warmup returned a non-JSON body")
            return None

        translator = ResponseTranslator(session=None, family=model_family(resolved.actual_model))
        translator.translate(_unwrap_response(data))
        signed = translator.pending_thought
        if signed is None or not signed.text:
            lib_logger.debug("[Antigravity] Warmup response carried no signed thought")
            return None
        lib_logger.debug("[Antigravity] Obtained thought signature from warmup")
        return signed

    # =========================================================================
    # MAIN CALL
    # =========================================================================

    async def _logged_chunks(
        self,
        chunks: AsyncIterator[bytes],
        file_logger: Optional[TransactionLogger],
    ) -> AsyncIterator[Union[bytes, str]]:
        async for chunk in chunks:
            if file_logger:
                file_logger.log_response_chunk(chunk)
            yield chunk

    async def stream_chat(
        self,
        resolved: ResolvedModel,
        payload: Dict[str, Any],
        token: str,
        project_id: str,
        translator: ResponseTranslator,
        cancel_event: Optional[asyncio.Event] = None,
        file_logger: Optional[TransactionLogger] = None,
    ) -> AsyncGenerator[ResponsePart, None]:
        """
        Send the main request and yield translated response parts.

        SSE bodies are consumed chunk by chunk; a plain JSON body is
        translated in one go. Sending and every read are raced against the
        cancellation event, and closing the response (normal end,
        cancellation or consumer exit) aborts the underlying request.
        """
        quota = resolved.quota_preference
        url = self.build_endpoint(STREAM_ACTION, quota)
        wrapped = self.build_wrapped_request(resolved.actual_model, payload, project_id)
        if file_logger:
            file_logger.log_request(wrapped)

        lib_logger.debug(
            f"[Antigravity] POST {url} model={resolved.actual_model} quota={quota.value}"
        )

        request = self.client.build_request(
            "POST",
            url,
            headers=self.build_headers(token, quota, "text/event-stream"),
            json=wrapped,
            timeout=TimeoutConfig.streaming(),
        )
        try:
            response = await wait_or_cancel(self.client.send(request, stream=True), cancel_event)
            if response is CANCELLED:
                lib_logger.debug("[Antigravity] Request cancelled before the response arrived")
                return
            try:
                async for part in self._read_response(
                    response, url, translator, cancel_event, file_logger
                ):
                    yield part
            finally:
                await response.aclose()
        except httpx.HTTPError as e:
            raise TransportError(None, "", url, message=f"Antigravity request failed: {e}") from e

    async def _read_response(
        self,
        response: httpx.Response,
        url: str,
        translator: ResponseTranslator,
        cancel_event: Optional[asyncio.Event],
        file_logger: Optional[TransactionLogger],
    ) -> AsyncGenerator[ResponsePart, None]:
        if response.status_code >= 400:
            raw = await wait_or_cancel(response.aread(), cancel_event)
            if raw is CANCELLED:
                return
            raise TransportError(response.status_code, raw.decode("utf-8", errors="replace"), url)

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            chunks = self._logged_chunks(response.aiter_bytes(), file_logger)
            async for part in consume_stream(chunks, translator, cancel_event):
                yield part
            return

        raw = await wait_or_cancel(response.aread(), cancel_event)
        if raw is CANCELLED:
            return
        if file_logger:
            file_logger.log_response_chunk(raw)
        text = raw.decode("utf-8", errors="replace")

        # Some gateways answer the ?alt=sse call without an event-stream content type.
        if text.lstrip().startswith(DATA_MARKER):
            async for part in consume_stream(_single_chunk(text), translator, cancel_event):
                yield part
            return

        try:
            data = json.loads(text)
        except ValueError:
            lib_logger.warning(
                f"[Antigravity] Response body is neither SSE nor JSON (content-type: {content_type or 'none'})"
            )
            raise TransportError(response.status_code, text, url)
        parts = translator.translate(_unwrap_response(data))
        translator.commit()
        for part in parts:
            if cancel_event is not None and cancel_event.is_set():
                return
            yield part
