"""OpenAI Responses API adapters, multimodal and OpenAI-compatible text-only."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from paperlens.llm.errors import LLMConfigurationError, LLMProviderError
from paperlens.llm.interfaces import ProviderCapabilities
from paperlens.llm.types import GenerateRequest, GenerateResponse, token_counts


def response_text(response: Any) -> str:
    """Collect the text of a Responses API result.

    Prefers the SDK's ``output_text`` convenience field and otherwise joins
    every ``output_text`` part of every ``message`` output item.
    """
    direct = getattr(response, "output_text", None)
    if direct:
        return str(direct).strip()
    chunks: List[str] = [
        str(part.text)
        for item in (getattr(response, "output", None) or [])
        if getattr(item, "type", None) == "message"
        for part in (getattr(item, "content", None) or [])
        if getattr(part, "type", None) == "output_text" and getattr(part, "text", None)
    ]
    return "\n".join(chunks).strip()


def build_input(request: GenerateRequest) -> Any:
    """Build the ``input`` value; page images go first as ``input_image`` data URLs."""
    if not request.images:
        return request.user_input
    content: List[Dict[str, Any]] = [
        {"type": "input_image", "image_url": f"data:image/jpeg;base64,{image}"} for image in request.images
    ]
    if request.user_input:
        content.append({"type": "input_text", "text": request.user_input})
    return [{"role": "user", "content": content}]


class OpenAIProvider:
    """Multimodal generation through ``client.responses.create``."""

    name = "openai"
    capabilities = ProviderCapabilities(supports_chat=True, supports_images=True)

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
        provider_name: Optional[str] = None,
    ) -> None:
        self.name = str(provider_name or self.name)
        if client is not None:
            self._client = client
            return
        try:
            self._client = OpenAI(api_key=api_key, base_url=base_url)
        except OpenAIError as exc:
            raise LLMConfigurationError(f"{self.name} provider is not configured: {exc}") from exc

    def _payload(self, request: GenerateRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "instructions": request.instructions,
            "input": build_input(request),
        }
        if request.max_output_tokens:
            payload["max_output_tokens"] = int(request.max_output_tokens)
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def generate(self, request: GenerateRequest, *, capability: str = "chat") -> GenerateResponse:
        try:
            response = self._client.responses.create(**self._payload(request))
        except OpenAIError as exc:
            raise LLMProviderError(f"{self.name} request failed: {exc}") from exc
        input_tokens, output_tokens, total_tokens = token_counts(getattr(response, "usage", None))
        return GenerateResponse(
            text=response_text(response),
            provider=self.name,
            capability=capability,
            provider_request_id=str(getattr(response, "id", "") or "") or None,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            raw=response,
        )


class OpenAICompatibleProvider(OpenAIProvider):
    """Self-hosted endpoint speaking the Responses API; text input only."""

    name = "openai_compatible"
    capabilities = ProviderCapabilities(supports_chat=True, supports_images=False)

    def __init__(self, *, base_url: str, api_key: Optional[str] = None) -> None:
        """Initialize an OpenAI-compatible provider.

        Args:
            base_url (str): Endpoint base URL, e.g. ``http://localhost:8000/v1``.
            api_key (Optional[str]): Token, if the endpoint wants one.
        """
        if not str(base_url or "").strip():
            raise LLMConfigurationError("openai_compatible provider requires a non-empty base_url")
        # The SDK rejects a missing key even when the endpoint ignores it.
        super().__init__(api_key=api_key or "unused", base_url=base_url, provider_name=self.name)
