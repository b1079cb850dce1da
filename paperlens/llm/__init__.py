"""Provider-routed LLM runtime used by the paper analyzer."""

from paperlens.llm.errors import LLMCapabilityError, LLMConfigurationError, LLMProviderError
from paperlens.llm.interfaces import ChatProvider, ProviderCapabilities
from paperlens.llm.router import ProviderSelection, build_provider_registry, resolve_provider_selection
from paperlens.llm.runtime import ChatCapabilityRuntime, LLMRuntime, build_llm_runtime
from paperlens.llm.types import GenerateRequest, GenerateResponse

__all__ = [
    "ChatCapabilityRuntime",
    "ChatProvider",
    "GenerateRequest",
    "GenerateResponse",
    "LLMCapabilityError",
    "LLMConfigurationError",
    "LLMProviderError",
    "LLMRuntime",
    "ProviderCapabilities",
    "ProviderSelection",
    "build_llm_runtime",
    "build_provider_registry",
    "resolve_provider_selection",
]
