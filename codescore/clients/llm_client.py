"""LLM client -- Anthropic Messages API wrapper."""

import logging

import httpx

logger = logging.getLogger(__name__)

# ── Shared HTTP client (connection pooling) ─────────────────────────────────

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Return (or create) the shared httpx client for LLM API calls."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=300.0)
    return _client


async def close_client() -> None:
    """Close the shared LLM HTTP client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


def _anthropic_headers(api_key: str) -> dict:
    """Return standard Anthropic API headers."""
    return {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_API_VERSION,
        "Content-Type": "application/json",
    }


async def chat_anthropic(
    api_key: str,
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    system_prompt: str | None = None,
) -> dict:
    """Send a single request to the Anthropic Messages API.

    Returns ``{"text": ..., "usage": {...}, "stop_reason": ...}``.

    There is no retry: a transport error propagates as the underlying
    ``httpx`` exception, API-level failures as ``ValueError``.
    """
    body: dict = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": messages,
    }
    if system_prompt:
        body["system"] = system_prompt

    client = _get_client()
    response = await client.post(
        ANTHROPIC_MESSAGES_URL,
        headers=_anthropic_headers(api_key),
        json=body,
    )
    if response.status_code >= 400:
        try:
            err_body = response.json()
            err_msg = err_body.get("error", {}).get("message", response.text)
        except ValueError:
            err_msg = response.text
        raise ValueError(f"Anthropic API {response.status_code}: {err_msg}")

    data = response.json()
    usage = data.get("usage", {})
    content_blocks = data.get("content", [])
    if not content_blocks:
        raise ValueError("Empty response from Anthropic API")

    text_parts = [b["text"] for b in content_blocks if b.get("type") == "text"]
    if not text_parts:
        raise ValueError("No text block in Anthropic API response")

    logger.debug(
        "Anthropic %s: %d in / %d out tokens",
        model, usage.get("input_tokens", 0), usage.get("output_tokens", 0),
    )
    return {
        "text": "\n".join(text_parts),
        "usage": {
            "input_tokens": usage.get("input_tokens", 0),
            "output_tokens": usage.get("output_tokens", 0),
        },
        "stop_reason": data.get("stop_reason", "end_turn"),
    }
