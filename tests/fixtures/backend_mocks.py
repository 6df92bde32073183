"""Backend response builders and mock transports for testing."""

import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional

import httpx


def candidate(*parts: Dict[str, Any]) -> Dict[str, Any]:
    """A response body with a single model candidate."""
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


def sse_line(body: Dict[str, Any]) -> str:
    return f"data: {json.dumps({'response': body}, ensure_ascii=False)}\n"


def sse_body(*bodies: Dict[str, Any], done: bool = True) -> bytes:
    text = "".join(sse_line(body) for body in bodies)
    if done:
        text += "data: [DONE]\n"
    return text.encode("utf-8")


class ChunkedStream(httpx.AsyncByteStream):
    """Async byte stream delivering a body in caller-chosen chunks."""

    def __init__(self, chunks: Iterable[bytes]):
        self.chunks = list(chunks)
        self.consumed = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.consumed += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class StallingStream(httpx.AsyncByteStream):
    """Delivers its chunks, then waits for data that never arrives."""

    def __init__(self, chunks: Iterable[bytes]):
        self.chunks = list(chunks)
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        await asyncio.Event().wait()
        yield b""

    async def aclose(self) -> None:
        self.closed = True


async def stalled_handler(request: httpx.Request) -> httpx.Response:
    """Handler that never sends response headers."""
    await asyncio.Event().wait()
    return httpx.Response(500)


def sse_response(*bodies: Dict[str, Any], chunks: Optional[List[bytes]] = None) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        stream=ChunkedStream(chunks if chunks is not None else [sse_body(*bodies)]),
    )


def json_response(body: Dict[str, Any], status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"response": body})


class RecordingBackend:
    """
    MockTransport handler that records every request and answers from a
    queue of responses (or exceptions) in order.
    """

    def __init__(self, responses: Iterable[Any]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request to {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
