"""Capability runtimes that route generation calls to a provider with fallback."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, List, Optional

from paperlens.core.config import DEFAULT_CHAT_MODEL
from paperlens.core.logging_utils import log_event
from paperlens.llm.errors import LLMCapabilityError
from paperlens.llm.interfaces import ChatProvider
from paperlens.llm.router import ProviderSelection, _cfg_value, build_provider_registry, resolve_provider_selection
from paperlens.llm.types import GenerateRequest, GenerateResponse


@dataclass
class ChatCapabilityRuntime:
    """Bound runtime for one capability (``analysis`` or ``chat``).

    A request the primary provider cannot accept, such as page images on a
    text-only endpoint, goes to the fallback provider when one is configured.
    """

    capability: str
    model: str
    selection: ProviderSelection
    primary_provider: ChatProvider
    fallback_provider: Optional[ChatProvider] = None

    def _require(self, provider: ChatProvider, request: GenerateRequest) -> None:
        caps = getattr(provider, "capabilities", None)
        if caps is not None and caps.accepts(request):
            return
        kind = "image input" if request.images else "chat"
        raise LLMCapabilityError(f"Provider '{provider.name}' does not support {kind} for '{self.capability}'")

    def generate(
        self,
        *,
        instructions: str,
        user_input: str,
        images: Optional[List[str]] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> GenerateResponse:
        """Run one blocking generation call on the primary, or the fallback."""
        req = GenerateRequest(
            model=str(model or self.model),
            instructions=instructions,
            user_input=user_input,
            images=list(images or []),
            max_output_tokens=max_output_tokens,
            temperature=temperature,
            metadata=metadata or {},
        )
        try:
            self._require(self.primary_provider, req)
        except LLMCapabilityError as exc:
            if self.fallback_provider is None:
                raise
            self._require(self.fallback_provider, req)
            log_event(
                "provider_fallback",
                {
                    "capability": self.capability,
                    "from": self.primary_provider.name,
                    "to": self.fallback_provider.name,
                    "reason": str(exc),
                },
            )
            resp = self.fallback_provider.generate(req, capability=self.capability)
            return replace(resp, fallback_from=self.primary_provider.name)
        return self.primary_provider.generate(req, capability=self.capability)


@dataclass
class LLMRuntime:
    """The two capability runtimes used by the analyzer."""

    analysis: ChatCapabilityRuntime
    chat: ChatCapabilityRuntime


def build_llm_runtime(settings: Any) -> LLMRuntime:
    """Build the analysis and chat runtimes from settings and environment."""
    registry = build_provider_registry(settings)

    chat_model = _cfg_value(settings, "chat_model", default=DEFAULT_CHAT_MODEL) or DEFAULT_CHAT_MODEL
    analysis_model = _cfg_value(settings, "analysis_model", default=chat_model) or chat_model

    def _bind(capability: str, model: str) -> ChatCapabilityRuntime:
        selection = resolve_provider_selection(settings, capability)
        fallback = registry[selection.fallback_provider] if selection.fallback_provider else None
        return ChatCapabilityRuntime(
            capability=capability,
            model=model,
            selection=selection,
            primary_provider=registry[selection.primary_provider],
            fallback_provider=fallback,
        )

    return LLMRuntime(
        analysis=_bind("analysis", analysis_model),
        chat=_bind("chat", chat_model),
    )
