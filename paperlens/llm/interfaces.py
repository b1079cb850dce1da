"""Provider protocol and capability flags used by the routing runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .types import GenerateRequest, GenerateResponse


@dataclass(frozen=True)
class ProviderCapabilities:
    """What a provider can take as input."""

    supports_chat: bool = True
    supports_images: bool = False

    def accepts(self, request: GenerateRequest) -> bool:
        """Whether a request (text-only or with page images) can be sent as-is."""
        if not self.supports_chat:
            return False
        return self.supports_images or not request.images


class ChatProvider(Protocol):
    """Text generation backend, optionally multimodal."""

    name: str
    capabilities: ProviderCapabilities

    def generate(self, request: GenerateRequest, *, capability: str = "chat") -> GenerateResponse:
        """Run one blocking generation request."""
