"""Request/response values passed between the runtime and providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class GenerateRequest:
    """One generation call.

    ``images`` holds base64 JPEG page images (no data-URL prefix) that are
    sent ahead of ``user_input``. An empty list is a text-only request.
    """

    model: str
    instructions: str
    user_input: str
    images: List[str] = field(default_factory=list)
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerateResponse:
    """Provider output normalized to text plus token accounting.

    ``fallback_from`` names the primary provider when the answer came from
    the configured fallback instead.
    """

    text: str
    provider: str
    capability: str
    provider_request_id: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    fallback_from: Optional[str] = None
    raw: Any = None


def token_counts(usage: Any) -> Tuple[int, int, int]:
    """Return ``(input, output, total)`` from an SDK usage object or dict.

    A missing total is the sum of input and output.
    """
    if usage is None:
        return 0, 0, 0

    def _read(key: str) -> int:
        value = usage.get(key) if isinstance(usage, dict) else getattr(usage, key, None)
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    input_tokens, output_tokens = _read("input_tokens"), _read("output_tokens")
    return input_tokens, output_tokens, _read("total_tokens") or input_tokens + output_tokens
