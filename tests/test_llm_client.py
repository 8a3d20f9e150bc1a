"""Tests for snaprag.llm_client: mock AsyncOpenAI."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from snaprag.errors import GenerationError, ProviderError
from snaprag.llm_client import parse_json_object
from tests.conftest import chat_response


def _make_client(create_return=None, create_side_effect=None, **kwargs):
    with patch("snaprag.llm_client.AsyncOpenAI") as mock_cls:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=create_return, side_effect=create_side_effect
        )
        mock_cls.return_value = mock_client

        from snaprag.llm_client import OpenAIClient

        client = OpenAIClient(api_key="sk-test", **kwargs)
        return client, mock_client, mock_cls


class TestOpenAIClientInit:
    def test_init_with_explicit_key(self):
        client, _, mock_cls = _make_client()
        mock_cls.assert_called_once_with(api_key="sk-test", max_retries=0)
        assert client.model == "gpt-4o-mini"

    def test_init_missing_key_raises(self):
        from snaprag.llm_client import OpenAIClient

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIClient()


class TestBuildPrompt:
    def test_formats_numbered_context_with_fallbacks(self, sample_search_results):
        client, _, _ = _make_client()
        prompt = client._build_prompt("when did I get coffee?", sample_search_results)

        assert "1. Espresso at the corner cafe (Tags: coffee, cafe)" in prompt
        assert "2. Latte art (Tags: No tags)" in prompt
        assert "3. No description (Tags: coffee)" in prompt
        assert '"when did I get coffee?"' in prompt
        assert "Answer based only on the provided content" in prompt

    def test_handles_empty_results(self):
        client, _, _ = _make_client()
        prompt = client._build_prompt("query", [])
        assert "query" in prompt
        assert "1." not in prompt


class TestComplete:
    async def test_returns_content_and_records_cost(self):
        client, mock_client, _ = _make_client(create_return=chat_response("hello", 100, 20))

        text = await client.complete("system", "prompt", max_tokens=50, purpose="tags")

        assert text == "hello"
        assert client.last_cost.input_tokens == 100
        assert client.last_cost.output_tokens == 20
        assert client.last_cost.purpose == "tags"
        assert client.last_cost.latency is not None

    async def test_passes_correct_params_to_api(self):
        client, mock_client, _ = _make_client(
            create_return=chat_response("ok"), model="gpt-4o", temperature=0.5
        )

        await client.complete("sys", "user prompt", max_tokens=77)

        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o"
        assert call_kwargs["temperature"] == 0.5
        assert call_kwargs["max_tokens"] == 77
        assert call_kwargs["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user prompt"},
        ]

    async def test_api_error_becomes_provider_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client, _, _ = _make_client(create_side_effect=openai.APIConnectionError(request=request))

        with pytest.raises(ProviderError):
            await client.complete("sys", "prompt")

    async def test_empty_content_is_provider_error(self):
        client, _, _ = _make_client(create_return=chat_response(None))
        with pytest.raises(ProviderError):
            await client.complete("sys", "prompt")

    async def test_complete_json_parses_object(self):
        client, _, _ = _make_client(create_return=chat_response('{"tags": ["a"]}'))
        assert await client.complete_json("sys", "prompt") == {"tags": ["a"]}

    async def test_complete_json_malformed_is_provider_error(self):
        client, _, _ = _make_client(create_return=chat_response("tags: a, b"))
        with pytest.raises(ProviderError, match="malformed"):
            await client.complete_json("sys", "prompt")


class TestGenerateAnswer:
    async def test_returns_generated_text(self, sample_search_results):
        client, mock_client, _ = _make_client(create_return=chat_response("You love coffee."))

        answer = await client.generate_answer("coffee?", sample_search_results)

        assert answer == "You love coffee."
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["max_tokens"] == 300
        assert "personal content" in call_kwargs["messages"][0]["content"]

    async def test_failure_raises_generation_error(self, sample_search_results):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client, _, _ = _make_client(create_side_effect=openai.APIConnectionError(request=request))

        with pytest.raises(GenerationError):
            await client.generate_answer("coffee?", sample_search_results)


class TestParseJsonObject:
    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_array_is_rejected(self):
        with pytest.raises(ProviderError):
            parse_json_object("[1, 2]")
