"""
LocalStreamHandler - negotiates a streaming chat connection with a local
model server without knowing in advance which wire dialect it speaks.

Dialects are tried one after another (never raced) in a fixed order:
Ollama native, LM Studio, plain OpenAI-compatible. The first dialect that
yields a usable stream wins. Each attempt owns its own httpx client; an
accepted stream takes the client with it, a rejected one closes it.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx

from ai_shell.config import (
    DEFAULT_TIMEOUT_SECONDS,
    LOCAL_TEMPERATURE,
    LOCAL_TOP_P,
    STREAM_CONTENT_TYPES,
)
from ai_shell.errors import DialectFailure, NegotiationExhausted
from ai_shell.streams import CompletionStream, sse_frame

logger = logging.getLogger(__name__)


class WireFormat(str, Enum):
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    OPENAI = "openai"


# ─────────────────────────────────────────────────────────────────────
# DIALECT TABLE
# ─────────────────────────────────────────────────────────────────────

def _ollama_body(model: str, messages: list[dict], stream: bool) -> dict:
    return {
        "model": model,
        "messages": messages,
        "stream": stream,
        "options": {"temperature": LOCAL_TEMPERATURE, "top_p": LOCAL_TOP_P},
    }


def _lmstudio_body(model: str, messages: list[dict], stream: bool) -> dict:
    return {
        "model": model,
        "messages": messages,
        "stream": stream,
        "temperature": LOCAL_TEMPERATURE,
    }


def _openai_body(model: str, messages: list[dict], stream: bool) -> dict:
    return {"model": model, "messages": messages, "stream": stream}


def _models_from_tags(data: dict) -> list[dict]:
    # Ollama: {"models": [{"name": "llama2:latest", ...}]}
    return [
        {"id": m["name"], "name": m["name"]}
        for m in (data.get("models") or [])
        if isinstance(m, dict) and m.get("name")
    ]


def _models_from_data(data: dict) -> list[dict]:
    # OpenAI-style: {"data": [{"id": "model-name", ...}]}
    return [
        {"id": m["id"], "name": m["id"]}
        for m in (data.get("data") or [])
        if isinstance(m, dict) and m.get("id")
    ]


@dataclass(frozen=True)
class Dialect:
    """How one local server family is spoken to."""
    format: WireFormat
    chat_path: str
    models_path: str
    build_body: Callable[[str, list[dict], bool], dict]
    parse_models: Callable[[dict], list[dict]]
    # Only accept a streaming reply whose content type is a stream framing
    requires_stream_content_type: bool = False
    # Reissue with stream=false when the streaming reply is rejected
    non_stream_fallback: bool = False


DIALECTS: dict[WireFormat, Dialect] = {
    WireFormat.OLLAMA: Dialect(
        format=WireFormat.OLLAMA,
        chat_path="/api/chat",
        models_path="/api/tags",
        build_body=_ollama_body,
        parse_models=_models_from_tags,
        requires_stream_content_type=True,
        non_stream_fallback=True,
    ),
    WireFormat.LMSTUDIO: Dialect(
        format=WireFormat.LMSTUDIO,
        chat_path="/v1/chat/completions",
        models_path="/v1/models",
        build_body=_lmstudio_body,
        parse_models=_models_from_data,
    ),
    WireFormat.OPENAI: Dialect(
        format=WireFormat.OPENAI,
        chat_path="/chat/completions",
        models_path="/models",
        build_body=_openai_body,
        parse_models=_models_from_data,
    ),
}

NEGOTIATION_ORDER: tuple[WireFormat, ...] = (
    WireFormat.OLLAMA,
    WireFormat.LMSTUDIO,
    WireFormat.OPENAI,
)


def is_stream_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return any(kind in content_type for kind in STREAM_CONTENT_TYPES)


@dataclass
class LocalStreamResponse:
    stream: CompletionStream
    format: WireFormat


# ─────────────────────────────────────────────────────────────────────
# NEGOTIATOR
# ─────────────────────────────────────────────────────────────────────

class LocalStreamHandler:
    """
    Establishes chat streams and model listings against a local server.

    Stateless apart from the transport timeout; safe to share.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self._timeout = timeout_seconds

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout)

    async def create_stream(
        self,
        endpoint: str,
        model: str,
        messages: list[dict],
        format: Optional[WireFormat] = None,
    ) -> LocalStreamResponse:
        """
        Open a chat stream using the first dialect the server accepts.

        Args:
            endpoint: Server base URL, e.g. "http://localhost:11434"
            model: Model name as the server knows it
            messages: OpenAI-format messages
            format: Pin one dialect; only that one is attempted

        Raises:
            NegotiationExhausted: If every attempted dialect failed
        """
        endpoint = endpoint.rstrip("/")
        attempted = (WireFormat(format),) if format else NEGOTIATION_ORDER

        for fmt in attempted:
            try:
                result = await self._create_stream_with_format(
                    endpoint, model, messages, DIALECTS[fmt]
                )
            except Exception as e:
                logger.debug(f"{fmt.value} negotiation with {endpoint} failed: {e}")
                continue
            logger.info(f"Negotiated {fmt.value} stream with {endpoint}")
            return result

        raise NegotiationExhausted(endpoint, [fmt.value for fmt in attempted])

    async def _create_stream_with_format(
        self,
        endpoint: str,
        model: str,
        messages: list[dict],
        dialect: Dialect,
    ) -> LocalStreamResponse:
        url = f"{endpoint}{dialect.chat_path}"
        body = dialect.build_body(model, messages, True)
        fmt = dialect.format

        client = self._client()
        try:
            response = await client.send(
                client.build_request("POST", url, json=body), stream=True
            )
        except BaseException:
            await client.aclose()
            raise

        if response.is_success:
            content_type = response.headers.get("content-type", "")
            if not dialect.requires_stream_content_type or is_stream_content_type(content_type):
                stream = CompletionStream.from_response(response, client, format=fmt.value)
                return LocalStreamResponse(stream=stream, format=fmt)
            logger.debug(
                f"{fmt.value} answered with content-type '{content_type}', retrying without streaming"
            )

        await response.aclose()
        status = f"{response.status_code} {response.reason_phrase}".strip()

        if not dialect.non_stream_fallback:
            await client.aclose()
            raise DialectFailure(fmt.value, status)

        try:
            response = await client.post(url, json=dialect.build_body(model, messages, False))
        finally:
            await client.aclose()

        if not response.is_success:
            raise DialectFailure(
                fmt.value,
                f"(non-stream) {response.status_code} {response.reason_phrase}".strip(),
            )
        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise DialectFailure(fmt.value, f"(non-stream) invalid JSON body: {e}") from e

        # One event-stream chunk so consumers read it like a real stream
        stream = CompletionStream.from_chunks([sse_frame(payload)], format=fmt.value)
        return LocalStreamResponse(stream=stream, format=fmt)

    async def list_models(self, endpoint: str) -> list[dict]:
        """
        List models from the first dialect whose models endpoint answers.

        Returns:
            [{"id": ..., "name": ...}, ...], or [] if no dialect answered
        """
        endpoint = endpoint.rstrip("/")

        async with self._client() as client:
            for fmt in NEGOTIATION_ORDER:
                dialect = DIALECTS[fmt]
                try:
                    response = await client.get(f"{endpoint}{dialect.models_path}")
                    if not response.is_success:
                        logger.debug(
                            f"{fmt.value} model listing at {endpoint} returned {response.status_code}"
                        )
                        continue
                    return dialect.parse_models(response.json())
                except Exception as e:
                    logger.debug(f"{fmt.value} model listing at {endpoint} failed: {e}")
                    continue

        return []
