"""
Anthropic API client utilities for ToolTip Companion.

This module backs the chat endpoint: a lazily created Anthropic client,
a retrying call for transient failures, and a canned demo reply when no API
key is configured or the API call fails.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import anthropic
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from config import settings, is_chat_configured

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are ToolTip Companion, a friendly assistant embedded in a browser "
    "extension. You help users understand what buttons and links on the page "
    "they are viewing do before they click them. Keep answers short, concrete "
    "and helpful."
)

# Lazy initialization of Anthropic client
_anthropic_client = None


def get_anthropic_client():
    """Get or create the Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
    return _anthropic_client


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(
        (anthropic.APIConnectionError, anthropic.RateLimitError)
    ),
    reraise=True,
)
def call_anthropic_api_with_retry(message: str):
    """
    Calls Anthropic API with automatic retry logic for transient failures.

    Retries up to 3 times for:
    - APIConnectionError (network issues)
    - RateLimitError (rate limit exceeded)

    Args:
        message: User chat message

    Returns:
        Anthropic message response
    """
    client = get_anthropic_client()
    return client.messages.create(
        model=settings.ANTHROPIC_MODEL,
        max_tokens=settings.CHAT_MAX_TOKENS,
        temperature=settings.CHAT_TEMPERATURE,
        system=SYSTEM_PROMPT,
        messages=[{"role": "user", "content": message}],
    )


def demo_response(message: str) -> str:
    return (
        f'I received your message: "{message}". This is a demo response because '
        "the chat model is not configured. Add an ANTHROPIC_API_KEY to the backend "
        "environment to get real answers."
    )


def _usage(response) -> Optional[dict]:
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return {
        "prompt_tokens": usage.input_tokens,
        "completion_tokens": usage.output_tokens,
        "total_tokens": usage.input_tokens + usage.output_tokens,
    }


def generate_chat_response(message: str) -> dict:
    """
    Answer a chat message.

    Returns:
        Dictionary with response, timestamp and usage (None in demo mode)
    """
    timestamp = datetime.now(timezone.utc).isoformat()

    if not is_chat_configured():
        return {"response": demo_response(message), "timestamp": timestamp, "usage": None}

    try:
        response = call_anthropic_api_with_retry(message)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return {"response": text, "timestamp": timestamp, "usage": _usage(response)}
    except anthropic.APIError as e:
        logger.error(f"❌ Chat API call failed, using demo response: {str(e)}")
        return {"response": demo_response(message), "timestamp": timestamp, "usage": None}
