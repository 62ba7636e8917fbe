"""
Stream adapters: turn a completion byte stream into text.

A CompletionStream is what providers hand back. It is owned by the caller,
who either drains it through the helpers below or closes it explicitly.
Both NDJSON (Ollama) and SSE-framed JSON (OpenAI, LM Studio, and the
synthesized non-streaming fallback) are read through the same helpers.
"""

import json
import logging
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Iterable, Optional

import httpx

from ai_shell.errors import KnownError

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class CompletionStream:
    """
    Caller-owned handle over an open completion byte stream.

    Iterate with ``async for chunk in stream`` (bytes). Closing is
    idempotent and releases the underlying connection, if any.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        format: Optional[str] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._chunks = chunks
        self.format = format
        self._on_close = on_close
        self._closed = False

    @classmethod
    def from_response(
        cls,
        response: httpx.Response,
        client: Optional[httpx.AsyncClient] = None,
        format: Optional[str] = None,
    ) -> "CompletionStream":
        """Wrap an open streaming httpx response (and the client that owns it)."""

        async def close() -> None:
            await response.aclose()
            if client is not None:
                await client.aclose()

        return cls(response.aiter_bytes(), format=format, on_close=close)

    @classmethod
    def from_chunks(cls, chunks: Iterable[bytes], format: Optional[str] = None) -> "CompletionStream":
        """Lazy stream over already-available chunks."""

        async def generate() -> AsyncGenerator[bytes, None]:
            for chunk in chunks:
                yield chunk

        return cls(generate(), format=format)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks.__aiter__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close()

    async def __aenter__(self) -> "CompletionStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def sse_frame(payload: dict) -> bytes:
    """Encode one JSON payload as a single event-stream data line."""
    return f"data: {json.dumps(payload)}\n".encode()


# ─────────────────────────────────────────────────────────────────────
# BUFFERING / LINE SPLITTING
# ─────────────────────────────────────────────────────────────────────

async def stream_to_string(stream: CompletionStream) -> str:
    """Read the whole stream and decode it as UTF-8."""
    parts: list[bytes] = []
    async with stream:
        async for chunk in stream:
            parts.append(chunk)
    return b"".join(parts).decode("utf-8", errors="replace")


async def stream_to_iterable(stream: CompletionStream) -> AsyncGenerator[str, None]:
    """
    Yield the stream's non-empty lines as they complete.

    Byte chunks may split a line (or a multi-byte character) anywhere;
    partial data is buffered until its newline arrives.
    """
    buffer = b""
    async with stream:
        async for chunk in stream:
            buffer += chunk
            *lines, buffer = buffer.split(b"\n")
            for line in lines:
                text = line.decode("utf-8", errors="replace").strip()
                if text:
                    yield text
        tail = buffer.decode("utf-8", errors="replace").strip()
        if tail:
            yield tail


# ─────────────────────────────────────────────────────────────────────
# FRAGMENT PARSING
# ─────────────────────────────────────────────────────────────────────

def parse_chunk(line: str) -> Optional[dict]:
    """
    Decode one NDJSON or SSE line into its JSON object.

    Returns None for blank lines, SSE comments/other fields, the [DONE]
    sentinel, and lines that are not JSON.
    """
    line = line.strip()
    if not line or line.startswith(":"):
        return None
    if line.startswith(SSE_DATA_PREFIX):
        line = line[len(SSE_DATA_PREFIX):].strip()
    elif not line.startswith("{"):
        # event:, id:, retry: fields carry no payload
        return None
    if line == SSE_DONE:
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        logger.debug(f"Skipping non-JSON stream line: {line[:80]}")
        return None
    return payload if isinstance(payload, dict) else None


def extract_text(payload: dict, choice_index: int = 0) -> str:
    """
    Text carried by one completion fragment, whatever the wire shape.

    Handles:
        OpenAI streaming:      {"choices": [{"index": 0, "delta": {"content": "..."}}]}
        OpenAI non-streaming:  {"choices": [{"index": 0, "message": {"content": "..."}}]}
        Ollama chat:           {"message": {"role": "assistant", "content": "..."}}
        Ollama generate:       {"response": "..."}
    """
    choices = payload.get("choices")
    if isinstance(choices, list):
        for position, choice in enumerate(choices):
            if not isinstance(choice, dict):
                continue
            if choice.get("index", position) != choice_index:
                continue
            delta = choice.get("delta") or choice.get("message") or {}
            content = delta.get("content") if isinstance(delta, dict) else None
            if isinstance(content, str):
                return content
            text = choice.get("text")
            return text if isinstance(text, str) else ""
        return ""

    message = payload.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]

    response = payload.get("response")
    if isinstance(response, str):
        return response
    return ""


async def iter_completion_text(
    stream: CompletionStream, choice_index: int = 0
) -> AsyncGenerator[str, None]:
    """Yield text deltas of one completion choice until the stream ends."""
    async for line in stream_to_iterable(stream):
        payload = parse_chunk(line)
        if payload is None:
            continue
        if "error" in payload and not payload.get("choices"):
            raise KnownError(f"Model server reported an error: {payload['error']}")
        text = extract_text(payload, choice_index)
        if text:
            yield text
