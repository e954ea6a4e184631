import asyncio
import httpx
import pytest
from unittest.mock import MagicMock, patch
from typing import List

from groq import RateLimitError

from clinicscraper.domain.models.ai import ChatMessage, StructuredAIResponse
from clinicscraper.domain.models.common import MessageRole
from clinicscraper.infrastructure.ai.groq.groq_client import GroqClient
from clinicscraper.infrastructure.resilience.api_retry import extract_retry_delay, is_rate_limit_error

PATCH_TARGET = "clinicscraper.infrastructure.ai.groq.groq_client.GroqSDKClient"


# Fixture to provide a mock Groq SDK client instance
@pytest.fixture
def mock_groq_sdk():
    mock_client = MagicMock()
    mock_usage = MagicMock()
    mock_usage.prompt_tokens = 120
    mock_usage.completion_tokens = 40
    mock_usage.total_tokens = 160

    mock_choice = MagicMock()
    mock_choice.message.content = '{"isPrivateClinic": true}'
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    mock_completion.usage = mock_usage
    mock_completion.model = "llama-3.3-70b-versatile"

    mock_client.chat.completions.create.return_value = mock_completion
    return mock_client


@pytest.fixture
def test_messages() -> List[ChatMessage]:
    return [
        {'role': MessageRole('system'), 'content': 'Classify.'},
        {'role': MessageRole('user'), 'content': 'Name: "Dr. Ahmed Clinic"'},
    ]


@patch(PATCH_TARGET)
def test_groq_client_init_disables_sdk_retries(mock_constructor):
    client = GroqClient(api_key="gsk_test", timeout_s=45.0)

    mock_constructor.assert_called_once_with(api_key="gsk_test", timeout=45.0, max_retries=0)
    assert client.model == GroqClient.DEFAULT_MODEL


@patch(PATCH_TARGET)
def test_groq_client_init_no_key(mock_constructor, monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    with pytest.raises(ValueError, match="Groq API key not provided"):
        GroqClient(api_key=None)
    mock_constructor.assert_not_called()


@patch(PATCH_TARGET)
def test_groq_client_reads_key_from_environment(mock_constructor, monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_env")

    GroqClient(model="llama-3.1-8b-instant")

    assert mock_constructor.call_args.kwargs["api_key"] == "gsk_env"


@patch(PATCH_TARGET)
def test_send_messages_success(mock_constructor, mock_groq_sdk, test_messages):
    mock_constructor.return_value = mock_groq_sdk
    client = GroqClient(api_key="gsk_test")

    response: StructuredAIResponse = asyncio.run(client.send_messages(
        test_messages, response_format={"type": "json_object"}, temperature=0.1,
    ))

    assert response.content == '{"isPrivateClinic": true}'
    assert response.token_usage['total_tokens'] == 160
    assert response.model_name == "llama-3.3-70b-versatile"
    assert response.latency_ms is not None

    call_kwargs = mock_groq_sdk.chat.completions.create.call_args.kwargs
    assert call_kwargs['model'] == client.model
    assert call_kwargs['messages'] == test_messages
    assert call_kwargs['response_format'] == {"type": "json_object"}
    assert call_kwargs['temperature'] == 0.1


@patch(PATCH_TARGET)
def test_send_messages_omits_unset_options(mock_constructor, mock_groq_sdk, test_messages):
    mock_constructor.return_value = mock_groq_sdk
    client = GroqClient(api_key="gsk_test")

    asyncio.run(client.send_messages(test_messages))

    call_kwargs = mock_groq_sdk.chat.completions.create.call_args.kwargs
    assert "response_format" not in call_kwargs
    assert "temperature" not in call_kwargs


@patch(PATCH_TARGET)
def test_send_messages_empty_choices_yield_empty_content(mock_constructor, mock_groq_sdk, test_messages):
    mock_groq_sdk.chat.completions.create.return_value.choices = []
    mock_groq_sdk.chat.completions.create.return_value.usage = None
    mock_constructor.return_value = mock_groq_sdk
    client = GroqClient(api_key="gsk_test")

    response = asyncio.run(client.send_messages(test_messages))

    assert response.content == ""
    assert response.token_usage is None


@patch(PATCH_TARGET)
def test_rate_limit_error_propagates_with_retry_hint(mock_constructor, mock_groq_sdk, test_messages):
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    response = httpx.Response(429, headers={"retry-after": "3"}, request=request)
    error = RateLimitError("Rate limit reached", response=response, body=None)
    mock_groq_sdk.chat.completions.create.side_effect = error
    mock_constructor.return_value = mock_groq_sdk
    client = GroqClient(api_key="gsk_test")

    with pytest.raises(RateLimitError) as exc_info:
        asyncio.run(client.send_messages(test_messages))

    # Only one SDK call: retries belong to the retry executor
    mock_groq_sdk.chat.completions.create.assert_called_once()
    assert is_rate_limit_error(exc_info.value)
    assert extract_retry_delay(exc_info.value) == 3.0
