"""Anthropic Messages API adapter with base64 page-image blocks."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from paperlens.llm.errors import LLMConfigurationError, LLMProviderError
from paperlens.llm.interfaces import ProviderCapabilities
from paperlens.llm.types import GenerateRequest, GenerateResponse, token_counts

DEFAULT_MAX_TOKENS = 4096


def build_content(request: GenerateRequest) -> Any:
    """Build the user turn content; images precede the text block."""
    if not request.images:
        return request.user_input
    blocks: List[Dict[str, Any]] = [
        {"type": "image", "source": {"type": "base64", "media_type": "image/jpeg", "data": image}}
        for image in request.images
    ]
    if request.user_input:
        blocks.append({"type": "text", "text": request.user_input})
    return blocks


class AnthropicProvider:
    """Multimodal generation through ``client.messages.create``."""

    name = "anthropic"
    capabilities = ProviderCapabilities(supports_chat=True, supports_images=True)

    def __init__(self, *, api_key: Optional[str] = None, client: Any = None) -> None:
        if client is not None:
            self._client = client
            return
        from anthropic import Anthropic

        key = str(api_key or "").strip()
        if not key:
            raise LLMConfigurationError("anthropic provider requires ANTHROPIC_API_KEY")
        self._client = Anthropic(api_key=key)

    def generate(self, request: GenerateRequest, *, capability: str = "chat") -> GenerateResponse:
        from anthropic import AnthropicError

        payload: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": int(request.max_output_tokens or DEFAULT_MAX_TOKENS),
            "system": request.instructions,
            "messages": [{"role": "user", "content": build_content(request)}],
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        try:
            response = self._client.messages.create(**payload)
        except AnthropicError as exc:
            raise LLMProviderError(f"anthropic request failed: {exc}") from exc
        text = "\n".join(
            str(block.text)
            for block in (getattr(response, "content", None) or [])
            if getattr(block, "type", None) == "text" and getattr(block, "text", None)
        ).strip()
        input_tokens, output_tokens, total_tokens = token_counts(getattr(response, "usage", None))
        return GenerateResponse(
            text=text,
            provider=self.name,
            capability=capability,
            provider_request_id=str(getattr(response, "id", "") or "") or None,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            raw=response,
        )
