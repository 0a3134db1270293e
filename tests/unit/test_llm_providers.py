"""Unit tests for the SDK-backed adapters: Anthropic, OpenAI and OpenAI embeddings."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from bookrouter.config.settings import Settings
from bookrouter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from bookrouter.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookrouter.providers.llm.openai_provider import OpenAILLMProvider
from bookrouter.utils.errors import EmbeddingError, LLMError, RateLimitError, StructuredOutputError

_SCHEMA = {"type": "object", "properties": {"search_query": {"type": "string"}}}


# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_embedding_model": "",
        "anthropic_api_key": "test-anthropic",
        "anthropic_model": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _status_error(cls: type, status: int, url: str) -> Exception:
    response = httpx.Response(status, request=httpx.Request("POST", url))
    return cls("slow down", response=response, body=None)


async def _structured(provider, tool_name: str = "extract_search_intent") -> dict:
    return await provider.complete_structured(
        system_prompt="system",
        user_prompt="Request: books about justice",
        tool_name=tool_name,
        tool_description="Pull the search intent out of the request.",
        input_schema=_SCHEMA,
    )


# ======================================================================
# Anthropic
# ======================================================================


def _anthropic_response(*blocks) -> SimpleNamespace:
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=120, output_tokens=30),
    )


class TestAnthropicLLMProvider:
    def test_availability(self) -> None:
        assert AnthropicLLMProvider(_settings()).is_available() is True
        assert AnthropicLLMProvider(_settings(anthropic_api_key="")).is_available() is False
        assert AnthropicLLMProvider(_settings()).get_provider_name() == "anthropic"

    @pytest.mark.asyncio()
    async def test_forced_tool_call_returns_input(self) -> None:
        block = SimpleNamespace(type="tool_use", name="extract_search_intent", input={"search_query": "justice"})
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(return_value=_anthropic_response(block))

        with patch(
            "bookrouter.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings(anthropic_model="claude-test"))
            result = await _structured(provider)

        assert result == {"search_query": "justice"}
        kwargs = mock_client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "system"
        assert kwargs["tool_choice"] == {"type": "tool", "name": "extract_search_intent"}
        assert kwargs["tools"][0]["input_schema"] == _SCHEMA

    @pytest.mark.asyncio()
    async def test_text_only_reply_is_structured_output_error(self) -> None:
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=_anthropic_response(SimpleNamespace(type="text", text="Sure! Here you go."))
        )

        with patch(
            "bookrouter.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(StructuredOutputError):
                await _structured(provider)

    @pytest.mark.asyncio()
    async def test_complete_joins_text_blocks(self) -> None:
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=_anthropic_response(
                SimpleNamespace(type="text", text="first"),
                SimpleNamespace(type="text", text="second"),
            )
        )

        with patch(
            "bookrouter.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            assert await provider.complete("system", "user") == "first\nsecond"

    @pytest.mark.asyncio()
    async def test_rate_limit_is_mapped(self) -> None:
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            side_effect=_status_error(anthropic.RateLimitError, 429, "https://api.anthropic.com/v1/messages")
        )

        with patch(
            "bookrouter.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(RateLimitError) as exc_info:
                await _structured(provider)

        assert exc_info.value.provider_name == "anthropic"


# ======================================================================
# OpenAI
# ======================================================================


def _openai_response(tool_calls=None, content=None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=SimpleNamespace(total_tokens=90))


def _tool_call(name: str, arguments: str) -> SimpleNamespace:
    return SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAILLMProvider:
    def test_compatible_base_url_label(self) -> None:
        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI") as client_cls:
            OpenAILLMProvider(_settings(openai_base_url="https://api.together.xyz/v1"))

        assert client_cls.call_args.kwargs["base_url"] == "https://api.together.xyz/v1"
        assert client_cls.call_args.kwargs["max_retries"] == 0

    @pytest.mark.asyncio()
    async def test_function_call_arguments_are_decoded(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_openai_response([_tool_call("extract_search_intent", '{"search_query": "justice"}')])
        )

        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            result = await _structured(provider)

        assert result == {"search_query": "justice"}
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["tool_choice"] == {"type": "function", "function": {"name": "extract_search_intent"}}

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "tool_calls",
        [None, [_tool_call("extract_search_intent", "{not json")], [_tool_call("other_tool", "{}")]],
    )
    async def test_unusable_tool_calls(self, tool_calls) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_openai_response(tool_calls))

        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(StructuredOutputError):
                await _structured(provider)

    @pytest.mark.asyncio()
    async def test_complete_success(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_openai_response(content="LLM text"))

        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            assert await provider.complete("system", "user") == "LLM text"

    @pytest.mark.asyncio()
    async def test_api_errors_are_mapped(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError(message="boom", request=MagicMock(), body=None)
        )

        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError):
                await provider.complete("system", "user")

    @pytest.mark.asyncio()
    async def test_rate_limit_is_mapped(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=_status_error(openai.RateLimitError, 429, "https://api.openai.com/v1/chat/completions")
        )

        with patch("bookrouter.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(RateLimitError):
                await _structured(provider)


# ======================================================================
# OpenAI embeddings
# ======================================================================


def _embedding_response(*vectors: list[float]) -> SimpleNamespace:
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=vector) for vector in vectors],
        usage=SimpleNamespace(total_tokens=12),
    )


class TestOpenAIEmbeddingProvider:
    def test_dimension_follows_model(self) -> None:
        assert OpenAIEmbeddingProvider(_settings()).get_dimension() == 1536
        large = OpenAIEmbeddingProvider(_settings(openai_embedding_model="text-embedding-3-large"))
        assert large.get_dimension() == 3072

    @pytest.mark.asyncio()
    async def test_embed(self) -> None:
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response([0.1, 0.2], [0.3, 0.4]))

        with patch(
            "bookrouter.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            result = await provider.embed(["justice", "faith"])

        assert result == [[0.1, 0.2], [0.3, 0.4]]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio()
    async def test_empty_input_makes_no_call(self) -> None:
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock()

        with patch(
            "bookrouter.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            assert await OpenAIEmbeddingProvider(_settings()).embed([]) == []

        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("vectors", [([0.1, 0.2],), ([0.1, 0.2], [])])
    async def test_short_or_empty_vectors_raise(self, vectors) -> None:
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(return_value=_embedding_response(*vectors))

        with patch(
            "bookrouter.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError):
                await provider.embed(["justice", "faith"])

    @pytest.mark.asyncio()
    async def test_api_error_is_embedding_error(self) -> None:
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="down", request=MagicMock(), body=None)
        )

        with patch(
            "bookrouter.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError):
                await provider.embed_single("justice")
