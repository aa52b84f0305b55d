from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from deskflow.services.chat_service import generate_reply
from deskflow.services.errors import ProviderError, ProviderUnavailable
from deskflow.services.llm import AnthropicProvider, FallbackProvider, LLMResponse, OpenAIProvider


def _client_returning(response=None, error=None):
    client = MagicMock()
    client.__enter__.return_value = client
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    return client


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


class TestOpenAIProvider:
    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_generate(self, mock_client_cls):
        client = _client_returning(
            _response(200, {"model": "gpt-x", "choices": [{"message": {"content": "hola"}}], "usage": {"total": 3}})
        )
        mock_client_cls.return_value = client

        result = OpenAIProvider(api_key="k", default_model="gpt-x").generate([{"role": "user", "content": "hi"}])

        assert result.content == "hola"
        assert result.provider == "openai"
        payload = client.post.call_args.kwargs["json"]
        assert payload["model"] == "gpt-x"
        assert payload["max_completion_tokens"] == 1000
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer k"

    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_timeout_override(self, mock_client_cls):
        mock_client_cls.return_value = _client_returning(_response(200, {"choices": []}))
        OpenAIProvider(api_key="k", timeout_seconds=20).generate([], timeout_seconds=4)
        mock_client_cls.assert_called_once_with(timeout=4)

    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_http_error_status(self, mock_client_cls):
        mock_client_cls.return_value = _client_returning(_response(500, text="oops"))
        with pytest.raises(ProviderError):
            OpenAIProvider(api_key="k").generate([])

    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_transport_error(self, mock_client_cls):
        mock_client_cls.return_value = _client_returning(error=httpx.ReadTimeout("slow"))
        with pytest.raises(ProviderError):
            OpenAIProvider(api_key="k").generate([])

    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_non_json_body(self, mock_client_cls):
        response = _response(200, text="<html>Bad gateway</html>")
        response.json.side_effect = ValueError("Expecting value")
        mock_client_cls.return_value = _client_returning(response)
        with pytest.raises(ProviderError):
            OpenAIProvider(api_key="k").generate([])

    @patch("deskflow.services.llm.openai_provider.httpx.Client")
    def test_unexpected_shape(self, mock_client_cls):
        mock_client_cls.return_value = _client_returning(_response(200, {"choices": ["oops"]}))
        with pytest.raises(ProviderError):
            OpenAIProvider(api_key="k").generate([])

    def test_missing_key(self):
        with pytest.raises(ProviderError):
            OpenAIProvider(api_key="").generate([])


class TestAnthropicProvider:
    @patch("deskflow.services.llm.anthropic_provider.httpx.Client")
    def test_system_turns_are_split_out(self, mock_client_cls):
        client = _client_returning(
            _response(200, {"content": [{"type": "text", "text": "hi "}, {"type": "text", "text": "there"}]})
        )
        mock_client_cls.return_value = client

        result = AnthropicProvider(api_key="k", default_model="claude-x").generate(
            [{"role": "system", "content": "be brief"}, {"role": "user", "content": "hola"}],
            temperature=1.5,
        )

        assert result.content == "hi there"
        payload = client.post.call_args.kwargs["json"]
        assert payload["system"] == "be brief"
        assert payload["messages"] == [{"role": "user", "content": "hola"}]
        assert payload["temperature"] == 1.0
        assert client.post.call_args.kwargs["headers"]["x-api-key"] == "k"

    @patch("deskflow.services.llm.anthropic_provider.httpx.Client")
    def test_error_status(self, mock_client_cls):
        mock_client_cls.return_value = _client_returning(_response(529, text="overloaded"))
        with pytest.raises(ProviderError):
            AnthropicProvider(api_key="k", default_model="claude-x").generate([])

    @patch("deskflow.services.llm.anthropic_provider.httpx.Client")
    def test_non_json_body(self, mock_client_cls):
        response = _response(200, text="upstream timeout")
        response.json.side_effect = ValueError("Expecting value")
        mock_client_cls.return_value = _client_returning(response)
        with pytest.raises(ProviderError):
            AnthropicProvider(api_key="k", default_model="claude-x").generate([])


class TestFallbackProvider:
    def test_first_success_wins(self):
        first, second = Mock(), Mock()
        first.generate.return_value = LLMResponse(content="a", model="m1")
        result = FallbackProvider([first, second]).generate([])
        assert result.content == "a"
        second.generate.assert_not_called()

    def test_falls_through_with_own_model(self):
        first, second = Mock(), Mock()
        first.name = "one"
        first.generate.side_effect = ProviderError("down")
        second.generate.return_value = LLMResponse(content="b", model="m2")

        result = FallbackProvider([first, second]).generate([], model="ignored")

        assert result.content == "b"
        assert second.generate.call_args.kwargs["model"] is None

    def test_all_fail(self):
        first = Mock()
        first.name = "one"
        first.generate.side_effect = ProviderError("down")
        with pytest.raises(ProviderUnavailable):
            FallbackProvider([first]).generate([])

    def test_complete_returns_text(self):
        inner = Mock()
        inner.generate.return_value = LLMResponse(content='{"intent": "help"}', model="m")
        assert FallbackProvider([inner]).complete("classify") == '{"intent": "help"}'

    @patch("httpx.Client")
    def test_malformed_bodies_become_unavailable(self, mock_client_cls):
        broken = _response(200, text="<html></html>")
        broken.json.side_effect = ValueError("Expecting value")
        mock_client_cls.return_value = _client_returning(broken)

        provider = FallbackProvider([OpenAIProvider(api_key="k"), AnthropicProvider(api_key="k", default_model="c")])
        with pytest.raises(ProviderUnavailable):
            provider.complete("hola")


class TestGenerateReply:
    def test_without_provider(self):
        result = generate_reply("hola", None)
        assert result.ok is False
        assert result.code == "ai_disabled"

    def test_provider_failure(self):
        provider = Mock()
        provider.generate.side_effect = ProviderUnavailable("all down")
        assert generate_reply("hola", provider).code == "ai_error"

    def test_empty_answer(self):
        provider = Mock()
        provider.generate.return_value = LLMResponse(content="   ", model="m")
        assert generate_reply("hola", provider).code == "ai_empty"
