"""Shared test fixtures for ai-shell tests."""

import json

import pytest


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

LOCAL_ENDPOINT = "http://localhost:11434"
REMOTE_ENDPOINT = "https://api.openai.com/v1"

MOCK_MODEL = "llama2"
MOCK_KEY = "sk-test-key-123"

MOCK_MESSAGES = [{"role": "user", "content": "list all files"}]

OLLAMA_NDJSON_CHUNKS = [
    {"model": MOCK_MODEL, "message": {"role": "assistant", "content": "ls"}, "done": False},
    {"model": MOCK_MODEL, "message": {"role": "assistant", "content": " -la"}, "done": False},
    {"model": MOCK_MODEL, "message": {"role": "assistant", "content": ""}, "done": True},
]

OLLAMA_FULL_RESPONSE = {
    "model": MOCK_MODEL,
    "created_at": "2024-01-01T00:00:00Z",
    "message": {"role": "assistant", "content": "ls -la"},
    "done": True,
}

OPENAI_SSE_CHUNKS = [
    {"choices": [{"index": 0, "delta": {"role": "assistant", "content": ""}}]},
    {"choices": [{"index": 0, "delta": {"content": "ls"}}]},
    {"choices": [{"index": 0, "delta": {"content": " -la"}}]},
    {"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
]


def ndjson_stream(chunks: list[dict] = OLLAMA_NDJSON_CHUNKS) -> bytes:
    """Build an Ollama NDJSON stream body."""
    return "".join(json.dumps(c) + "\n" for c in chunks).encode()


def sse_stream(chunks: list[dict] = OPENAI_SSE_CHUNKS) -> bytes:
    """Build an SSE stream body for chat completions."""
    body = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks)
    return (body + "data: [DONE]\n\n").encode()


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def clean_env(monkeypatch):
    """Remove ai-shell environment variables so defaults apply."""
    for key in (
        "AI_SHELL_PROVIDER",
        "AI_SHELL_API_KEY",
        "OPENAI_API_KEY",
        "AI_SHELL_API_ENDPOINT",
        "AI_SHELL_MODEL",
        "AI_SHELL_LOCAL_FORMAT",
        "AI_SHELL_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
