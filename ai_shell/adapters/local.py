"""
LocalProvider - local model server implementation of Provider.

Key differences from OpenAIProvider:
- No fixed wire format: LocalStreamHandler negotiates Ollama / LM Studio /
  OpenAI-compatible dialects
- No credential needed: local servers are typically unauthenticated
- Model listing never fails: falls back to a built-in catalog
"""

import logging
import time
from typing import Optional

from ai_shell.adapters.local_stream import LocalStreamHandler, WireFormat
from ai_shell.adapters.schema import CompletionRequest, ModelDescriptor
from ai_shell.config import (
    DEFAULT_LOCAL_ENDPOINT,
    DEFAULT_LOCAL_MODEL,
    DEFAULT_LOCAL_MODELS,
    get_timeout_seconds,
)
from ai_shell.errors import ConfigError, LocalProviderError
from ai_shell.streams import CompletionStream

logger = logging.getLogger(__name__)


def resolve_model(model: Optional[str], key: Optional[str]) -> str:
    """
    Effective local model name.

    Precedence: explicit model > key used as a model name > DEFAULT_LOCAL_MODEL.
    Local servers take no credential, so a configured key is read as a model.
    """
    if model:
        return model
    if key:
        return key
    return DEFAULT_LOCAL_MODEL


def _pinned_format(value: Optional[str]) -> Optional[WireFormat]:
    if not value:
        return None
    try:
        return WireFormat(value)
    except ValueError:
        supported = ", ".join(f.value for f in WireFormat)
        raise ConfigError(
            f"Invalid local format: {value}. Supported formats: {supported}"
        ) from None


def default_models() -> list[ModelDescriptor]:
    created = int(time.time())
    return [
        ModelDescriptor(id=model_id, created=created, owned_by="local")
        for model_id in DEFAULT_LOCAL_MODELS
    ]


class LocalProvider:
    """
    Local server implementation of the Provider protocol.

    Usage:
        provider = LocalProvider()
        stream = await provider.generate_completion(
            CompletionRequest(prompt="list files", model="codellama")
        )
    """

    name = "local"

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Args:
            timeout_seconds: httpx timeout; None reads AI_SHELL_TIMEOUT_SECONDS per call
        """
        self._timeout = timeout_seconds

    def _handler(self) -> LocalStreamHandler:
        timeout = self._timeout if self._timeout is not None else get_timeout_seconds()
        return LocalStreamHandler(timeout_seconds=timeout)

    async def generate_completion(self, request: CompletionRequest) -> CompletionStream:
        """
        Negotiate a chat stream with the local server.

        ``request.count`` is not forwarded: local dialects return one choice.

        Raises:
            LocalProviderError: Naming the endpoint and the negotiation failure
            ConfigError: On a pinned wire format no dialect implements
        """
        endpoint = request.endpoint or DEFAULT_LOCAL_ENDPOINT
        model = resolve_model(request.model, request.key)
        pinned = _pinned_format(request.wire_format)

        try:
            result = await self._handler().create_stream(
                endpoint, model, request.to_messages(), format=pinned
            )
        except Exception as e:
            raise LocalProviderError(endpoint, e) from e

        return result.stream

    async def get_models(
        self, key: Optional[str] = None, endpoint: Optional[str] = None
    ) -> list[ModelDescriptor]:
        """
        List models the local server reports, or the built-in catalog.

        Never raises: any failure, or an empty listing, yields the catalog.
        """
        endpoint = endpoint or DEFAULT_LOCAL_ENDPOINT
        try:
            models = await self._handler().list_models(endpoint)
        except Exception as e:
            logger.warning(f"Could not list models at {endpoint}, using defaults: {e}")
            return default_models()

        if not models:
            logger.warning(f"No model listing from {endpoint}, using defaults")
            return default_models()

        created = int(time.time())
        return [
            ModelDescriptor(id=m.get("id") or m.get("name"), created=created, owned_by="local")
            for m in models
        ]
