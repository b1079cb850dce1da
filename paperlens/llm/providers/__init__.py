"""Provider adapters: OpenAI, OpenAI-compatible endpoints, and Anthropic."""

from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAICompatibleProvider, OpenAIProvider

__all__ = ["AnthropicProvider", "OpenAICompatibleProvider", "OpenAIProvider"]
