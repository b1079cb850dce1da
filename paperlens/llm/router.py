"""Provider selection and construction for the analysis and chat capabilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from paperlens.llm.errors import LLMConfigurationError
from paperlens.llm.interfaces import ChatProvider
from paperlens.llm.providers import AnthropicProvider, OpenAICompatibleProvider, OpenAIProvider

# capability -> setting naming its provider; "<setting>_fallback" names the fallback
CAPABILITY_SETTINGS: Dict[str, str] = {
    "analysis": "analysis_provider",
    "chat": "chat_provider",
}
DEFAULT_PROVIDER = "openai"


@dataclass(frozen=True)
class ProviderSelection:
    """Resolved provider ids for one capability."""

    capability: str
    primary_provider: str
    fallback_provider: Optional[str] = None

    def provider_ids(self) -> Tuple[str, ...]:
        if self.fallback_provider:
            return (self.primary_provider, self.fallback_provider)
        return (self.primary_provider,)


def _cfg_value(settings: Any, key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a string setting from a Settings object or dict, then the environment."""
    if settings is None:
        value = None
    elif isinstance(settings, dict):
        value = settings.get(key)
    else:
        value = getattr(settings, key, None)
    text = str(value or "").strip()
    if text:
        return text
    env_val = str(os.environ.get(key.upper()) or "").strip()
    return env_val or default


def resolve_provider_selection(settings: Any, capability: str) -> ProviderSelection:
    """Resolve primary/fallback provider ids for ``capability``.

    The capability setting wins over the global ``llm_provider``. A fallback
    equal to the primary is ignored.
    """
    setting_key = CAPABILITY_SETTINGS.get(capability)
    if setting_key is None:
        raise LLMConfigurationError(f"Unknown capability '{capability}'")
    global_provider = _cfg_value(settings, "llm_provider", default=DEFAULT_PROVIDER) or DEFAULT_PROVIDER
    primary = (_cfg_value(settings, setting_key, default=global_provider) or global_provider).lower()
    fallback = _cfg_value(settings, f"{setting_key}_fallback")
    fallback = fallback.lower() if fallback else None
    if fallback == primary:
        fallback = None
    return ProviderSelection(capability=capability, primary_provider=primary, fallback_provider=fallback)


def _openai(settings: Any) -> ChatProvider:
    return OpenAIProvider(api_key=_cfg_value(settings, "openai_api_key"))


def _openai_compatible(settings: Any) -> ChatProvider:
    base_url = _cfg_value(settings, "llm_base_url")
    if not base_url:
        raise LLMConfigurationError("openai_compatible provider requires llm_base_url or LLM_BASE_URL")
    return OpenAICompatibleProvider(base_url=base_url, api_key=_cfg_value(settings, "llm_api_key"))


def _anthropic(settings: Any) -> ChatProvider:
    return AnthropicProvider(api_key=_cfg_value(settings, "anthropic_api_key"))


PROVIDER_FACTORIES: Dict[str, Callable[[Any], ChatProvider]] = {
    "openai": _openai,
    "openai_compatible": _openai_compatible,
    "anthropic": _anthropic,
}


def create_provider(provider_id: str, settings: Any) -> ChatProvider:
    """Instantiate one provider by id."""
    factory = PROVIDER_FACTORIES.get(str(provider_id or "").strip().lower())
    if factory is None:
        supported = ", ".join(sorted(PROVIDER_FACTORIES))
        raise LLMConfigurationError(f"Unsupported llm provider '{provider_id}'. Supported: {supported}")
    return factory(settings)


def build_provider_registry(settings: Any) -> Dict[str, ChatProvider]:
    """Instantiate every provider referenced by any capability, once each."""
    registry: Dict[str, ChatProvider] = {}
    for capability in CAPABILITY_SETTINGS:
        for provider_id in resolve_provider_selection(settings, capability).provider_ids():
            if provider_id not in registry:
                registry[provider_id] = create_provider(provider_id, settings)
    return registry
