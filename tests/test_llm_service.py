"""
Unit tests for the model backend client.
"""

from unittest.mock import AsyncMock, patch

import pytest

from services.errors import MissingCredential, UnsupportedBackend, UpstreamBackendError
from services.llm_service import LLMService


MESSAGES = [
    {"role": "system", "content": "You are a helper."},
    {"role": "user", "content": "Add a README"},
]


@pytest.fixture
def config():
    return {
        "provider": "openai",
        "openai": {"apiKey": "sk-test", "model": "gpt-test", "url": "https://example.invalid/v1/chat"},
        "qwen": {"endpoint": "http://qwen.invalid/complete", "model": "qwen-test"},
        "generation": {"temperature": 0.3, "maxTokens": 512},
    }


def test_unknown_provider_is_rejected(config):
    """Test that only the known backend profiles are accepted."""
    with pytest.raises(UnsupportedBackend):
        LLMService(config, provider="claude")


def test_provider_defaults_to_config(config):
    """Test that the configured provider is used when none is given."""
    config["provider"] = "qwen"
    assert LLMService(config).provider == "qwen"


@pytest.mark.asyncio
async def test_missing_openai_key(config):
    """Test that a missing API key fails before any network call."""
    config["openai"]["apiKey"] = ""
    service = LLMService(config, provider="openai")

    with patch.object(service, "_request_json", new=AsyncMock()) as request:
        with pytest.raises(MissingCredential, match="OPENAI_API_KEY"):
            await service.complete(MESSAGES)
    request.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_qwen_endpoint(config):
    """Test that the self-hosted profile needs an endpoint."""
    config["qwen"]["endpoint"] = ""
    with pytest.raises(MissingCredential, match="QWEN_URL"):
        await LLMService(config, provider="qwen").complete(MESSAGES)


@pytest.mark.asyncio
async def test_openai_complete_sends_chat_payload(config):
    """Test the OpenAI request shape and response extraction."""
    service = LLMService(config, provider="openai")
    reply = {"choices": [{"message": {"content": "hello"}}]}

    with patch.object(service, "_request_json", new=AsyncMock(return_value=reply)) as request:
        text = await service.complete(MESSAGES, temperature=0.0)

    assert text == "hello"
    url, payload, headers = request.await_args.args[:3]
    assert url == "https://example.invalid/v1/chat"
    assert payload == {"model": "gpt-test", "messages": MESSAGES, "max_tokens": 512, "temperature": 0.0}
    assert headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_qwen_complete_flattens_prompt(config):
    """Test that the self-hosted profile gets a single prompt string."""
    service = LLMService(config, provider="qwen")
    reply = {"choices": [{"text": "done"}]}

    with patch.object(service, "_request_json", new=AsyncMock(return_value=reply)) as request:
        text = await service.complete(MESSAGES, model="qwen-other", max_tokens=64)

    assert text == "done"
    payload = request.await_args.args[1]
    assert payload["model"] == "qwen-other"
    assert payload["max_tokens"] == 64
    assert payload["temperature"] == 0.3
    assert payload["prompt"].startswith("You are a helper.")
    assert "User:\nAdd a README" in payload["prompt"]
    assert payload["prompt"].endswith("Return:")


@pytest.mark.parametrize(
    "data, expected",
    [
        ({"choices": [{"text": "plain"}]}, "plain"),
        ({"choices": [{"message": {"content": "chat"}}]}, "chat"),
        ({"output": "out"}, "out"),
        ({"unexpected": 1}, '{"unexpected": 1}'),
    ],
)
def test_parse_qwen_response_shapes(config, data, expected):
    """Test that the self-hosted response is read from whichever field is present."""
    assert LLMService(config, provider="qwen")._parse_qwen_response(data) == expected


def test_parse_openai_response_without_choices(config):
    """Test that an empty OpenAI reply is an upstream error."""
    with pytest.raises(UpstreamBackendError):
        LLMService(config)._parse_openai_response({"choices": []})


@pytest.mark.parametrize(
    "data",
    [
        {"choices": [{"message": None}]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [None]},
    ],
)
def test_parse_openai_response_with_null_message(config, data):
    """Test that null message fields become an upstream error rather than crashing."""
    with pytest.raises(UpstreamBackendError, match="no completion"):
        LLMService(config)._parse_openai_response(data)


def test_parse_openai_response_text_choice(config):
    """Test the completion-style fallback when no message is present."""
    assert LLMService(config)._parse_openai_response({"choices": [{"message": None, "text": "hi"}]}) == "hi"


@pytest.mark.parametrize(
    "line, expected",
    [
        ('data: {"choices": [{"delta": {"content": "Hi"}}]}', "Hi"),
        ('data: {"choices": [{"delta": {}}]}', None),
        ("data: [DONE]", None),
        ("data: not json", None),
        (": keep-alive", None),
        ("", None),
    ],
)
def test_parse_openai_stream_line(config, line, expected):
    """Test SSE line parsing for streamed deltas."""
    assert LLMService(config)._parse_openai_stream_line(line) == expected


@pytest.mark.asyncio
async def test_qwen_stream_yields_single_chunk(config):
    """Test that the non-streaming profile yields its whole reply once."""
    service = LLMService(config, provider="qwen")

    with patch.object(service, "complete", new=AsyncMock(return_value="whole reply")):
        chunks = [chunk async for chunk in service.complete_stream(MESSAGES)]

    assert chunks == ["whole reply"]


def test_upstream_error_message(config):
    """Test the upstream error carries provider and status."""
    error = UpstreamBackendError("OpenAI", 429, "rate limited")
    assert error.status_code == 502
    assert "OpenAI" in str(error) and "429" in str(error)
