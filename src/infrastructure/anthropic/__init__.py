"""
Anthropic Claude API client wrapper.

Implements the LanguageModelClient protocol from core.progression.messages.
"""

from .client import (
    AnthropicClientError,
    AnthropicConfig,
    AnthropicTextClient,
    MockLanguageModelClient,
    RateLimitExceeded,
    create_anthropic_client,
)

__all__ = [
    "AnthropicClientError",
    "AnthropicConfig",
    "AnthropicTextClient",
    "MockLanguageModelClient",
    "RateLimitExceeded",
    "create_anthropic_client",
]
