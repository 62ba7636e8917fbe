"""Tests for LocalProvider: defaults, model precedence, error wrapping, catalog fallback."""

import json

import httpx
import pytest
import respx
from unittest.mock import AsyncMock, patch

from ai_shell.adapters.local import LocalProvider, default_models, resolve_model
from ai_shell.adapters.local_stream import LocalStreamHandler, WireFormat
from ai_shell.adapters.schema import CompletionRequest, Message
from ai_shell.config import DEFAULT_LOCAL_MODELS
from ai_shell.errors import ConfigError, KnownError, LocalProviderError
from ai_shell.streams import stream_to_string
from tests.conftest import LOCAL_ENDPOINT, ndjson_stream


@pytest.fixture
def provider():
    return LocalProvider(timeout_seconds=5)


def ollama_stream_reply() -> httpx.Response:
    return httpx.Response(
        200, content=ndjson_stream(), headers={"content-type": "application/x-ndjson"}
    )


class TestResolveModel:

    def test_explicit_model_wins(self):
        assert resolve_model("codellama", "mistral") == "codellama"

    def test_key_used_as_model_when_model_missing(self):
        assert resolve_model(None, "mistral") == "mistral"

    def test_default_when_both_missing(self):
        assert resolve_model(None, None) == "llama2"
        assert resolve_model("", "") == "llama2"


class TestGenerateCompletion:

    @pytest.mark.asyncio
    @respx.mock
    async def test_default_endpoint_and_model(self, provider):
        route = respx.post(f"{LOCAL_ENDPOINT}/api/chat").mock(return_value=ollama_stream_reply())

        stream = await provider.generate_completion(CompletionRequest(prompt="list files"))
        await stream.aclose()

        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "llama2"
        assert body["messages"] == [{"role": "user", "content": "list files"}]
        assert stream.format == "ollama"

    @pytest.mark.asyncio
    @respx.mock
    async def test_custom_endpoint_and_message_list(self, provider):
        route = respx.post("http://gpu-box:11434/api/chat").mock(return_value=ollama_stream_reply())
        request = CompletionRequest(
            prompt=[
                Message(role="system", content="You translate to shell."),
                Message(role="user", content="show disk usage"),
            ],
            model="codellama",
            endpoint="http://gpu-box:11434",
        )

        stream = await provider.generate_completion(request)
        await stream.aclose()

        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "codellama"
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_stream_readable_by_caller(self, provider):
        respx.post(f"{LOCAL_ENDPOINT}/api/chat").mock(return_value=ollama_stream_reply())

        stream = await provider.generate_completion(CompletionRequest(prompt="hi"))
        text = await stream_to_string(stream)

        assert text == ndjson_stream().decode()

    @pytest.mark.asyncio
    async def test_pinned_wire_format_forwarded(self, provider):
        stream_result = AsyncMock()
        with patch.object(LocalStreamHandler, "create_stream", stream_result):
            await provider.generate_completion(
                CompletionRequest(prompt="hi", wire_format="lmstudio")
            )

        assert stream_result.call_args.kwargs["format"] == WireFormat.LMSTUDIO

    @pytest.mark.asyncio
    async def test_unknown_wire_format_raises_config_error(self, provider):
        stream_result = AsyncMock()
        with patch.object(LocalStreamHandler, "create_stream", stream_result):
            with pytest.raises(ConfigError, match="Invalid local format: vllm") as exc_info:
                await provider.generate_completion(
                    CompletionRequest(prompt="hi", wire_format="vllm")
                )

        assert isinstance(exc_info.value, KnownError)
        stream_result.assert_not_called()

    @pytest.mark.asyncio
    @respx.mock
    async def test_negotiation_failure_wrapped_with_endpoint(self, provider):
        for path in ("/api/chat", "/v1/chat/completions", "/chat/completions"):
            respx.post(f"{LOCAL_ENDPOINT}{path}").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )

        with pytest.raises(LocalProviderError) as exc_info:
            await provider.generate_completion(CompletionRequest(prompt="hi"))

        message = str(exc_info.value)
        assert LOCAL_ENDPOINT in message
        assert "Ollama, LM Studio" in message
        assert "Tried formats: ollama, lmstudio, openai" in message
        assert isinstance(exc_info.value, KnownError)

    @pytest.mark.asyncio
    async def test_count_not_forwarded(self, provider):
        stream_result = AsyncMock()
        with patch.object(LocalStreamHandler, "create_stream", stream_result):
            await provider.generate_completion(CompletionRequest(prompt="hi", count=5))

        args = stream_result.call_args.args
        assert args == (LOCAL_ENDPOINT, "llama2", [{"role": "user", "content": "hi"}])


class TestGetModels:

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_models_mapped_to_descriptors(self, provider):
        respx.get(f"{LOCAL_ENDPOINT}/api/tags").mock(
            return_value=httpx.Response(200, json={"models": [{"name": "mistral:7b"}]})
        )

        models = await provider.get_models()

        assert len(models) == 1
        assert models[0].id == "mistral:7b"
        assert models[0].object == "model"
        assert models[0].owned_by == "local"
        assert models[0].created > 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_probes_fail_returns_catalog(self, provider):
        for path in ("/api/tags", "/v1/models", "/models"):
            respx.get(f"{LOCAL_ENDPOINT}{path}").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )

        models = await provider.get_models()
        ids = [m.id for m in models]

        assert ids == DEFAULT_LOCAL_MODELS
        assert "llama2" in ids
        assert "codellama" in ids

    @pytest.mark.asyncio
    async def test_handler_exception_returns_catalog(self, provider):
        with patch.object(
            LocalStreamHandler, "list_models", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            models = await provider.get_models(endpoint="http://nowhere:1")

        assert [m.id for m in models] == DEFAULT_LOCAL_MODELS

    def test_default_models_are_local_descriptors(self):
        models = default_models()

        assert models
        assert all(m.owned_by == "local" and m.object == "model" for m in models)
