"""
Providers for completion backends.

Protocol defines WHAT, implementations define HOW.
"""

from .base import Provider
from .local import LocalProvider
from .local_stream import LocalStreamHandler, LocalStreamResponse, WireFormat
from .openai import OpenAIProvider
from .schema import CompletionRequest, Message, ModelDescriptor

__all__ = [
    "Provider",
    "LocalProvider",
    "LocalStreamHandler",
    "LocalStreamResponse",
    "WireFormat",
    "OpenAIProvider",
    "CompletionRequest",
    "Message",
    "ModelDescriptor",
]
