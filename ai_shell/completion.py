"""
Completion call sites: configuration in, text or streams out.

These are the functions the interactive layer uses. They resolve the
provider from the registry, build the request from AppConfig, and read
provider streams through the stream adapters.
"""

import logging
from typing import AsyncGenerator, Union

from ai_shell.adapters.schema import CompletionRequest, Message, ModelDescriptor
from ai_shell.config import AppConfig
from ai_shell.registry import get_provider
from ai_shell.streams import CompletionStream, iter_completion_text

logger = logging.getLogger(__name__)

Prompt = Union[str, list[Message]]


def build_request(config: AppConfig, prompt: Prompt, number: int = 1) -> CompletionRequest:
    return CompletionRequest(
        prompt=prompt,
        count=number,
        model=config.model,
        key=config.api_key,
        endpoint=config.api_endpoint,
        wire_format=config.local_format,
    )


async def generate_completion(
    config: AppConfig, prompt: Prompt, number: int = 1
) -> CompletionStream:
    """Open a completion stream with the configured provider. Caller owns the stream."""
    provider = get_provider(config.provider)
    logger.debug(f"Requesting {number} completion(s) from {provider.name} ({config.model})")
    return await provider.generate_completion(build_request(config, prompt, number))


async def stream_completion_text(
    config: AppConfig, prompt: Prompt
) -> AsyncGenerator[str, None]:
    """Yield completion text as it arrives. The stream is closed when the generator is."""
    stream = await generate_completion(config, prompt)
    try:
        async for text in iter_completion_text(stream):
            yield text
    finally:
        await stream.aclose()


async def get_completion_text(config: AppConfig, prompt: Prompt) -> str:
    """Full completion text for one choice."""
    parts = []
    async for text in stream_completion_text(config, prompt):
        parts.append(text)
    return "".join(parts)


async def get_models(config: AppConfig) -> list[ModelDescriptor]:
    """Models available to the configured provider and endpoint."""
    provider = get_provider(config.provider)
    return await provider.get_models(key=config.api_key, endpoint=config.api_endpoint)
