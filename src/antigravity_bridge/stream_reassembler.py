# src/antigravity_bridge/stream_reassembler.py
"""
Server-sent event reassembly.

The streaming endpoint answers with newline-delimited lines of the form

    data: {"response": {...}}

delivered in arbitrary chunk boundaries. The reassembler holds back the
trailing partial line of every chunk and only parses complete lines, so the
result does not depend on where the transport split the body.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, Union

from .response_translator import ResponseTranslator
from .types import ResponsePart

lib_logger = logging.getLogger("antigravity_bridge")

DATA_MARKER = "data:"
DONE_SENTINEL = "[DONE]"


def parse_event_line(line: str) -> Optional[Dict[str, Any]]:
    """Return the event body carried by one SSE line, or None to skip it."""
    stripped = line.strip()
    if not stripped.startswith(DATA_MARKER):
        return None
    data = stripped[len(DATA_MARKER):].strip()
    if not data or data == DONE_SENTINEL:
        return None
    try:
        event = json.loads(data)
    except json.JSONDecodeError as e:
        lib_logger.debug(f"[Antigravity] Skipping malformed stream line: {e}")
        return None
    if not isinstance(event, dict):
        return None
    body = event.get("response")
    return body if isinstance(body, dict) else None


class StreamReassembler:
    """Line reader state machine: pending text plus a done flag."""

    def __init__(self):
        self.pending = ""
        self.done = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> List[Dict[str, Any]]:
        """Consume one chunk and return the event bodies it completed."""
        if self.done:
            return []
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        lines = (self.pending + text).split("\n")
        self.pending = lines.pop()
        return [body for body in map(parse_event_line, lines) if body is not None]

    def flush(self) -> List[Dict[str, Any]]:
        """Mark the stream finished and parse a final unterminated line."""
        if self.done:
            return []
        self.done = True
        tail = self.pending + self._decoder.decode(b"", final=True)
        self.pending = ""
        body = parse_event_line(tail)
        return [body] if body is not None else []


CANCELLED = object()
_END_OF_STREAM = object()


async def wait_or_cancel(awaitable: Awaitable[Any], cancel_event: Optional[asyncio.Event]) -> Any:
    """
    Await `awaitable` unless `cancel_event` fires first.

    Returns CANCELLED when the event wins; the pending operation is then
    cancelled so a stalled read or connect does not outlive the turn.
    """
    if cancel_event is None:
        return await awaitable
    task = asyncio.ensure_future(awaitable)
    if cancel_event.is_set():
        task.cancel()
    else:
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
    if task.cancelled() or not task.done():
        await asyncio.gather(task, return_exceptions=True)
        return CANCELLED
    return task.result()


async def _next_chunk(iterator: AsyncIterator[Union[bytes, str]]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END_OF_STREAM


async def consume_stream(
    chunks: AsyncIterator[Union[bytes, str]],
    translator: ResponseTranslator,
    cancel_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[ResponsePart]:
    """
    Drive a reassembler from a chunk iterator and yield translated parts.

    Every read is raced against the cancellation event, and the event is
    checked again before every emitted part; once it is set the generator
    returns silently.
    """

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    reassembler = StreamReassembler()
    iterator = chunks.__aiter__()

    while True:
        if cancelled():
            lib_logger.debug("[Antigravity] Stream cancelled by caller")
            return
        chunk = await wait_or_cancel(_next_chunk(iterator), cancel_event)
        if chunk is _END_OF_STREAM:
            break
        if chunk is CANCELLED:
            lib_logger.debug("[Antigravity] Stream cancelled while waiting for data")
            return
        for body in reassembler.feed(chunk):
            for part in translator.translate(body):
                if cancelled():
                    return
                yield part
            translator.commit()

    for body in reassembler.flush():
        for part in translator.translate(body):
            yield part
        translator.commit()
