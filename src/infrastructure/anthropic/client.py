"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements our LanguageModelClient protocol
2. Handles API-specific details (message format, text extraction)
3. Translates SDK errors into our own exceptions

It knows nothing about martial arts or parents. Prompts live in
src.core.progression.messages.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import anthropic
from anthropic import APIError, APITimeoutError, RateLimitError

from src.core.progression.messages import LanguageModelClient, TextGenerationError


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClientError(TextGenerationError):
    """Raised when API calls fail."""
    pass


class RateLimitExceeded(AnthropicClientError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """
    Configuration for the Anthropic client.

    Parent messages are one or two sentences, so max_tokens stays small.
    """
    api_key: str
    model: str = DEFAULT_MODEL
    max_tokens: int = 512
    temperature: float = 0.7
    timeout_seconds: float = 20.0

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


class AnthropicTextClient(LanguageModelClient):
    """Implementation of LanguageModelClient using Claude."""

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout_seconds,
        )

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if not user_prompt.strip():
            raise ValueError("Prompt cannot be empty")

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system_prompt,
                messages=[
                    {"role": "user", "content": user_prompt}
                ],
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.") from e
        except APITimeoutError as e:
            logger.warning("API timeout", extra={"timeout": self._config.timeout_seconds})
            raise AnthropicClientError("API request timed out") from e
        except APIError as e:
            logger.error("API error", extra={"error": str(e)})
            raise AnthropicClientError(f"API error: {e.message}") from e

        return self._extract_text_response(response)

    def _extract_text_response(self, response) -> str:
        """Extract text content from API response."""
        if not response.content:
            return ""

        text_blocks = [
            block.text
            for block in response.content
            if hasattr(block, 'text')
        ]

        return "\n".join(text_blocks)


class MockLanguageModelClient(LanguageModelClient):
    """
    Canned responses for local development and tests.

    Records every prompt it receives so tests can assert on them.
    """

    def __init__(self, reply: str = "Great work in class today! Keep it up.") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        logger.debug("Mock completion", extra={"prompt_length": len(user_prompt)})
        return self.reply


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_anthropic_client(
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 512,
    temperature: float = 0.7,
) -> AnthropicTextClient:
    """
    Factory function to create configured client.

    Reads API key from parameter or environment variable.
    """
    key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        raise ValueError(
            "API key must be provided or set in ANTHROPIC_API_KEY environment variable"
        )

    config = AnthropicConfig(
        api_key=key,
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return AnthropicTextClient(config)
