"""
Unit tests for the LLM module.
Tests LLMMessage, LLMResponse, providers, and factory.
"""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

import httpx

from topicchat.llm.base import LLMMessage, LLMResponse
from topicchat.llm.openai_provider import OpenAIProvider
from topicchat.llm.anthropic_provider import AnthropicProvider
from topicchat.llm.factory import create_llm_provider


def mock_http_client(mock_client, payload):
    """Wire a patched httpx.AsyncClient to return ``payload`` from post()."""
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()

    mock_instance = AsyncMock()
    mock_instance.post.return_value = mock_response
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=False)
    mock_client.return_value = mock_instance
    return mock_instance


class TestLLMMessage:
    """Tests for LLMMessage dataclass."""

    def test_text_message(self):
        msg = LLMMessage.text("user", "Hello")
        assert msg.role == "user"
        assert msg.content == "Hello"

    def test_system_message(self):
        msg = LLMMessage.text("system", "You are a helpful assistant")
        assert msg.role == "system"
        assert msg.content == "You are a helpful assistant"


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_basic_response(self):
        resp = LLMResponse(content="Hello!", model="gpt-4")
        assert resp.content == "Hello!"
        assert resp.model == "gpt-4"
        assert resp.usage == {}
        assert resp.raw is None
        assert resp.total_tokens is None

    def test_openai_usage(self):
        resp = LLMResponse(content="Hi", usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15})
        assert resp.total_tokens == 15

    def test_anthropic_usage(self):
        resp = LLMResponse(content="Hi", usage={"input_tokens": 7, "output_tokens": 3})
        assert resp.total_tokens == 10


class TestOpenAIProvider:
    """Tests for OpenAI-compatible provider."""

    def test_init_defaults(self):
        provider = OpenAIProvider(api_key="test-key")
        assert provider.api_key == "test-key"
        assert provider.model == "gpt-4"
        assert provider.base_url == "https://api.openai.com/v1"
        assert provider.provider_name == "openai"

    def test_init_custom(self):
        provider = OpenAIProvider(
            api_key="key",
            model="mistral-large-latest",
            base_url="https://api.mistral.ai/v1",
            provider_name="mistral",
        )
        assert provider.model == "mistral-large-latest"
        assert provider.base_url == "https://api.mistral.ai/v1"
        assert provider.provider_name == "mistral"

    def test_format_messages(self):
        provider = OpenAIProvider(api_key="test")
        messages = [
            LLMMessage.text("system", "sys prompt"),
            LLMMessage.text("user", "hello")
        ]
        formatted = provider._format_messages(messages)
        assert len(formatted) == 2
        assert formatted[0] == {"role": "system", "content": "sys prompt"}
        assert formatted[1] == {"role": "user", "content": "hello"}

    def test_headers(self):
        provider = OpenAIProvider(api_key="sk-test123")
        headers = provider._get_headers()
        assert headers["Authorization"] == "Bearer sk-test123"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_chat_completion_success(self):
        provider = OpenAIProvider(api_key="test-key", default_max_tokens=1000, default_temperature=0.7)

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = mock_http_client(mock_client, {
                "choices": [{"message": {"content": "Test response"}}],
                "model": "gpt-4",
                "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
            })

            result = await provider.chat_completion(
                [LLMMessage.text("user", "Hello")]
            )

            assert result.content == "Test response"
            assert result.model == "gpt-4"
            assert result.total_tokens == 15

            url = mock_instance.post.call_args.args[0]
            payload = mock_instance.post.call_args.kwargs["json"]
            assert url == "https://api.openai.com/v1/chat/completions"
            assert payload["max_tokens"] == 1000
            assert payload["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_empty_completion_raises(self):
        provider = OpenAIProvider(api_key="test-key")

        with patch("httpx.AsyncClient") as mock_client:
            mock_http_client(mock_client, {"choices": [{"message": {"content": ""}}]})
            with pytest.raises(ValueError, match="Empty completion"):
                await provider.chat_completion([LLMMessage.text("user", "Hello")])

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        provider = OpenAIProvider(api_key="bad-key")
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = httpx.HTTPStatusError("401", request=request, response=httpx.Response(401, request=request))

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = mock_http_client(mock_client, {})
            mock_instance.post.return_value.raise_for_status.side_effect = error
            with pytest.raises(httpx.HTTPStatusError):
                await provider.chat_completion([LLMMessage.text("user", "Hello")])


class TestAnthropicProvider:
    """Tests for the Anthropic messages provider."""

    def test_init_defaults(self):
        provider = AnthropicProvider(api_key="test-key")
        assert provider.model == "claude-3-sonnet-20240229"
        assert provider.base_url == "https://api.anthropic.com/v1"

    def test_headers(self):
        headers = AnthropicProvider(api_key="sk-ant")._get_headers()
        assert headers["x-api-key"] == "sk-ant"
        assert headers["anthropic-version"] == "2023-06-01"

    @pytest.mark.asyncio
    async def test_chat_completion_moves_system_prompt(self):
        provider = AnthropicProvider(api_key="test-key")

        with patch("httpx.AsyncClient") as mock_client:
            mock_instance = mock_http_client(mock_client, {
                "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}],
                "model": "claude-3-sonnet-20240229",
                "usage": {"input_tokens": 8, "output_tokens": 2}
            })

            result = await provider.chat_completion([
                LLMMessage.text("system", "Be brief"),
                LLMMessage.text("user", "Hi"),
            ])

            assert result.content == "Hello there"
            assert result.total_tokens == 10

            payload = mock_instance.post.call_args.kwargs["json"]
            assert payload["system"] == "Be brief"
            assert payload["messages"] == [{"role": "user", "content": "Hi"}]
            assert mock_instance.post.call_args.args[0] == "https://api.anthropic.com/v1/messages"


class TestLLMFactory:
    """Tests for LLM provider factory."""

    def test_create_openai_provider(self):
        provider = create_llm_provider(
            provider="openai",
            api_key="test-key",
            model="gpt-4"
        )
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4"

    def test_create_anthropic_provider(self):
        provider = create_llm_provider(
            provider="anthropic",
            api_key="test-key",
            provider_name="ignored",
        )
        assert isinstance(provider, AnthropicProvider)

    def test_no_api_key_returns_none(self):
        assert create_llm_provider(provider="openai", api_key="") is None
        assert create_llm_provider(provider="anthropic", api_key=None) is None

    def test_unsupported_provider_raises(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_llm_provider(provider="unsupported", api_key="key")

    def test_custom_base_url(self):
        provider = create_llm_provider(
            provider="openai",
            api_key="key",
            base_url="https://custom.api.com/v1"
        )
        assert provider.base_url == "https://custom.api.com/v1"
