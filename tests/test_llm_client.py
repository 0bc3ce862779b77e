"""Tests for LLM client -- Anthropic Messages API wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from codescore.clients.llm_client import ANTHROPIC_API_VERSION, chat_anthropic


def _make_mock_client(response_data, status_code=200):
    """Create a mock httpx.AsyncClient whose ``post`` returns *response_data*."""
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = response_data
    mock_response.text = str(response_data)

    mock_client = AsyncMock()
    mock_client.post.return_value = mock_response
    return mock_client


@pytest.mark.asyncio
async def test_chat_success():
    """Successful chat returns joined text and usage."""
    mock_client = _make_mock_client({
        "content": [{"type": "text", "text": "Hello"}, {"type": "text", "text": "world"}],
        "usage": {"input_tokens": 10, "output_tokens": 20},
        "stop_reason": "end_turn",
    })
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        result = await chat_anthropic(
            api_key="test-key",
            model="test-model",
            messages=[{"role": "user", "content": "Hi"}],
            system_prompt="You are helpful.",
        )

    assert result["text"] == "Hello\nworld"
    assert result["usage"] == {"input_tokens": 10, "output_tokens": 20}
    assert result["stop_reason"] == "end_turn"
    call = mock_client.post.call_args
    assert call.kwargs["json"]["model"] == "test-model"
    assert call.kwargs["json"]["system"] == "You are helpful."
    assert call.kwargs["headers"]["x-api-key"] == "test-key"
    assert call.kwargs["headers"]["anthropic-version"] == ANTHROPIC_API_VERSION


@pytest.mark.asyncio
async def test_chat_without_system_prompt_omits_field():
    mock_client = _make_mock_client({"content": [{"type": "text", "text": "ok"}]})
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        await chat_anthropic("k", "m", [{"role": "user", "content": "Hi"}])
    assert "system" not in mock_client.post.call_args.kwargs["json"]


@pytest.mark.asyncio
async def test_chat_empty_content():
    mock_client = _make_mock_client({"content": []})
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        with pytest.raises(ValueError, match="Empty response"):
            await chat_anthropic("k", "m", [{"role": "user", "content": "Hi"}])


@pytest.mark.asyncio
async def test_chat_no_text_block():
    mock_client = _make_mock_client({"content": [{"type": "tool_use", "id": "x"}]})
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        with pytest.raises(ValueError, match="No text block"):
            await chat_anthropic("k", "m", [{"role": "user", "content": "Hi"}])


@pytest.mark.asyncio
async def test_chat_api_error_status():
    mock_client = _make_mock_client(
        {"error": {"type": "overloaded_error", "message": "Overloaded"}},
        status_code=529,
    )
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        with pytest.raises(ValueError, match="Anthropic API 529: Overloaded"):
            await chat_anthropic("k", "m", [{"role": "user", "content": "Hi"}])
    mock_client.post.assert_awaited_once()


@pytest.mark.asyncio
async def test_chat_transport_error_propagates():
    mock_client = AsyncMock()
    mock_client.post.side_effect = httpx.ConnectError("connection refused")
    with patch("codescore.clients.llm_client._get_client", return_value=mock_client):
        with pytest.raises(httpx.ConnectError):
            await chat_anthropic("k", "m", [{"role": "user", "content": "Hi"}])
    mock_client.post.assert_awaited_once()
