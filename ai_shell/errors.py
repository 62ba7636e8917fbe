"""
Error taxonomy for ai-shell.

KnownError marks failures with a message meant for the user. The CLI prints
these without a traceback; anything else is a bug and surfaces as one.
"""

import json
from typing import Any, Optional, Sequence


class KnownError(Exception):
    """User-facing failure with a readable message."""
    pass


class ConfigError(KnownError):
    """Invalid configuration value."""
    pass


class UnknownProviderError(KnownError):
    """Lookup of a provider name that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown provider: {name}")


class ConnectivityError(KnownError):
    """The remote API host could not be reached (DNS, refused connection)."""

    def __init__(self, host: str, detail: str):
        self.host = host
        self.detail = detail
        super().__init__(
            f"Error connecting to {host} ({detail}). Are you connected to the internet?"
        )


class UpstreamError(KnownError):
    """Non-2xx response from the remote API."""

    def __init__(self, status_code: int, body: Any, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(
            message
            or f"Request to OpenAI failed with status {status_code}:\n\n{format_body(body)}\n"
        )


class QuotaError(UpstreamError):
    """HTTP 429 from the remote API: billing or quota problem."""

    def __init__(self, body: Any):
        message = (
            "Request to OpenAI failed with status 429. This is due to incorrect "
            "billing setup or excessive quota usage. Please follow this guide to fix it: "
            "https://help.openai.com/en/articles/6891831-error-code-429-you-exceeded-your-current-quota-please-check-your-plan-and-billing-details\n\n"
            "You can activate billing here: https://platform.openai.com/account/billing/overview . "
            "Make sure to add a payment method if not under an active grant from OpenAI.\n\n"
            "Full message from OpenAI:\n\n"
            f"{format_body(body)}\n"
        )
        super().__init__(429, body, message=message)


class DialectFailure(Exception):
    """
    A single local wire dialect attempt failed.

    Internal to the negotiator: always absorbed there and turned into an
    attempt of the next dialect.
    """

    def __init__(self, format: str, reason: str):
        self.format = format
        self.reason = reason
        super().__init__(f"{format} request failed: {reason}")


class NegotiationExhausted(KnownError):
    """Every attempted local wire dialect failed."""

    def __init__(self, endpoint: str, attempted: Sequence[str]):
        self.endpoint = endpoint
        self.attempted = list(attempted)
        super().__init__(
            f"Failed to connect to any local model server at {endpoint}. "
            f"Tried formats: {', '.join(self.attempted)}"
        )


class LocalProviderError(KnownError):
    """The local provider could not produce a completion stream."""

    def __init__(self, endpoint: str, cause: BaseException):
        self.endpoint = endpoint
        super().__init__(
            f"Failed to connect to local model server at {endpoint}. "
            "Make sure your local model server (Ollama, LM Studio, etc.) is running."
            f"\n\nError: {cause}"
        )


def format_body(body: Any) -> str:
    """Render an upstream response body for an error message."""
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2)
    if body is None:
        return ""
    return str(body)
