"""
LLM client for prompt-based frame classification.
Uses Anthropic Claude models with a forced tool call for structured replies.
"""

import base64
import logging
from typing import Optional

from anthropic import AsyncAnthropic

from minesight.config import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when the LLM call fails or returns no usable tool call."""


def create_async_client(api_key: Optional[str] = None) -> Optional[AsyncAnthropic]:
    """
    Build the async client, or None when no credential is configured.
    """
    api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
    if not api_key:
        logger.warning("ANTHROPIC_API_KEY not configured - prompt-based detection will be disabled")
        return None
    return AsyncAnthropic(api_key=api_key)


def build_content(prompt: str, image: Optional[bytes] = None, media_type: str = "image/jpeg") -> list:
    """User message content: optional image block followed by the instruction."""
    content = []
    if image is not None:
        content.append({
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.b64encode(image).decode("ascii"),
            },
        })
    content.append({"type": "text", "text": prompt})
    return content


async def call_tool_async(
    client: AsyncAnthropic,
    prompt: str,
    tool: dict,
    image: Optional[bytes] = None,
    media_type: str = "image/jpeg",
    model: Optional[str] = None,
) -> dict:
    """
    Calls the LLM forcing `tool` and returns the tool input arguments.
    """
    try:
        message = await client.messages.create(
            model=model or settings.CLASSIFIER_MODEL,
            max_tokens=settings.CLASSIFIER_MAX_TOKENS,
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
            messages=[{"role": "user", "content": build_content(prompt, image, media_type)}],
        )
    except Exception as e:
        raise LLMError(f"Classifier API Error: {e}") from e

    for block in message.content:
        if getattr(block, "type", None) == "tool_use" and block.name == tool["name"]:
            return dict(block.input)

    raise LLMError(f"No {tool['name']} tool call in response")
