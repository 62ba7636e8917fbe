"""
Provider Protocol - defines the contract for completion backends.

This is the WHAT (interface), not the HOW (implementation).
See openai.py and local.py for the two concrete providers.
"""

from typing import Optional, Protocol

from ai_shell.adapters.schema import CompletionRequest, ModelDescriptor
from ai_shell.streams import CompletionStream


class Provider(Protocol):
    """
    Contract for completion backends.

    Implementations must provide:
    - Streaming completion (generate_completion)
    - Model discovery (get_models)

    Providers are built once and shared; they hold no per-call state.
    """

    name: str

    async def generate_completion(self, request: CompletionRequest) -> CompletionStream:
        """
        Open a completion stream for the request.

        Returns:
            An open CompletionStream. The caller owns it and must drain or
            close it; the provider does not touch it again.

        Raises:
            KnownError subclass on a classified failure
        """
        ...

    async def get_models(
        self, key: Optional[str] = None, endpoint: Optional[str] = None
    ) -> list[ModelDescriptor]:
        """
        Return the models available at the endpoint for these credentials.
        """
        ...
