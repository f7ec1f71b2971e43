"""
Tests for the chat client
"""
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from config import settings
from utils.clients import anthropic as chat_client


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "sk-ant-test")


def fake_message(text="Opens the cart drawer."):
    block = MagicMock(type="text", text=text)
    usage = MagicMock(input_tokens=12, output_tokens=8)
    return MagicMock(content=[block], usage=usage)


class TestGenerateChatResponse:
    def test_demo_reply_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
        with patch.object(chat_client, "call_anthropic_api_with_retry") as call:
            result = chat_client.generate_chat_response("hello there")

        call.assert_not_called()
        assert "hello there" in result["response"]
        assert result["usage"] is None

    def test_placeholder_key_is_demo_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "your_anthropic_api_key_here")
        result = chat_client.generate_chat_response("hi")
        assert result["usage"] is None

    def test_model_reply_and_usage(self, configured):
        with patch.object(chat_client, "call_anthropic_api_with_retry", return_value=fake_message()):
            result = chat_client.generate_chat_response("What does Checkout do?")

        assert result["response"] == "Opens the cart drawer."
        assert result["usage"] == {"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20}
        assert result["timestamp"]

    def test_api_error_falls_back_to_demo(self, configured):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))
        with patch.object(chat_client, "call_anthropic_api_with_retry", side_effect=error):
            result = chat_client.generate_chat_response("still there?")

        assert "still there?" in result["response"]
        assert result["usage"] is None


class TestApiCall:
    def test_uses_configured_model(self, configured):
        client = MagicMock()
        client.messages.create.return_value = fake_message()
        with patch.object(chat_client, "get_anthropic_client", return_value=client):
            chat_client.call_anthropic_api_with_retry("hi")

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == settings.ANTHROPIC_MODEL
        assert kwargs["max_tokens"] == settings.CHAT_MAX_TOKENS
        assert kwargs["temperature"] == settings.CHAT_TEMPERATURE
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
