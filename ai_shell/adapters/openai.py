"""
OpenAIProvider - hosted chat-completion API implementation of Provider.

Cloud inference: one request per call, no retries. Failures are classified
into connectivity, quota (429) and generic upstream errors so the caller
can show something actionable.
"""

import json
import logging
from typing import Any, Optional

import httpx

from ai_shell.adapters.schema import CompletionRequest, ModelDescriptor
from ai_shell.config import (
    DEFAULT_OPENAI_ENDPOINT,
    DEFAULT_OPENAI_MODEL,
    MAX_COMPLETION_COUNT,
    get_timeout_seconds,
)
from ai_shell.errors import ConnectivityError, QuotaError, UpstreamError, format_body
from ai_shell.streams import CompletionStream

logger = logging.getLogger(__name__)


def _parse_body(raw: bytes) -> Any:
    """JSON-decoded body when possible, raw text otherwise."""
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _raise_for_upstream(status_code: int, raw_body: bytes) -> None:
    body = _parse_body(raw_body)
    if status_code == 429:
        raise QuotaError(body)
    raise UpstreamError(status_code, body)


class OpenAIProvider:
    """
    Hosted OpenAI-style API implementation of the Provider protocol.

    Usage:
        provider = OpenAIProvider()
        stream = await provider.generate_completion(
            CompletionRequest(prompt="list files", key="sk-...")
        )
    """

    name = "openai"

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Args:
            timeout_seconds: httpx timeout; None reads AI_SHELL_TIMEOUT_SECONDS per call
        """
        self._timeout = timeout_seconds

    def _client(self) -> httpx.AsyncClient:
        timeout = self._timeout if self._timeout is not None else get_timeout_seconds()
        return httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def _headers(key: Optional[str]) -> dict:
        headers = {"Content-Type": "application/json"}
        if key:
            headers["Authorization"] = f"Bearer {key}"
        return headers

    @staticmethod
    def _base_url(endpoint: Optional[str]) -> str:
        return (endpoint or DEFAULT_OPENAI_ENDPOINT).rstrip("/")

    async def generate_completion(self, request: CompletionRequest) -> CompletionStream:
        """
        Open a streaming chat completion.

        Raises:
            ConnectivityError: Host could not be resolved or reached
            QuotaError: HTTP 429
            UpstreamError: Any other non-2xx response
        """
        url = f"{self._base_url(request.endpoint)}/chat/completions"
        payload = {
            "model": request.model or DEFAULT_OPENAI_MODEL,
            "messages": request.to_messages(),
            "n": min(request.count, MAX_COMPLETION_COUNT),
            "stream": True,
        }

        client = self._client()
        try:
            response = await client.send(
                client.build_request("POST", url, json=payload, headers=self._headers(request.key)),
                stream=True,
            )
        except httpx.ConnectError as e:
            await client.aclose()
            host = httpx.URL(url).host
            logger.debug(f"Connection to {host} failed: {e}")
            raise ConnectivityError(host, str(e) or type(e).__name__) from e
        except BaseException:
            await client.aclose()
            raise

        if response.status_code >= 400:
            try:
                error_body = await response.aread()
            finally:
                await response.aclose()
                await client.aclose()
            logger.debug(f"OpenAI request failed with status {response.status_code}")
            _raise_for_upstream(response.status_code, error_body)

        return CompletionStream.from_response(response, client, format="openai")

    async def get_models(
        self, key: Optional[str] = None, endpoint: Optional[str] = None
    ) -> list[ModelDescriptor]:
        """
        List models from GET {endpoint}/models, keeping only object == "model".

        Errors propagate, classified as in generate_completion.
        """
        url = f"{self._base_url(endpoint)}/models"

        async with self._client() as client:
            try:
                response = await client.get(url, headers=self._headers(key))
            except httpx.ConnectError as e:
                host = httpx.URL(url).host
                raise ConnectivityError(host, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            _raise_for_upstream(response.status_code, response.content)

        listing = _parse_body(response.content)
        if not isinstance(listing, dict):
            raise UpstreamError(
                response.status_code,
                listing,
                message=f"Unexpected model listing from {url}:\n\n{format_body(listing)}",
            )

        entries = listing.get("data") or []
        return [
            ModelDescriptor.model_validate(entry)
            for entry in entries
            if isinstance(entry, dict) and entry.get("object") == "model"
        ]
