"""Provider-layer errors.

Every provider error is a collaborator failure from the session's point of
view, so these subclass :class:`CollaboratorError` and map onto
``FailureKind.COLLABORATOR_ERROR`` without translation.
"""

from __future__ import annotations

from paperlens.core.errors import CollaboratorError


class LLMProviderError(CollaboratorError):
    """A provider call, or the provider's setup, failed."""


class LLMConfigurationError(LLMProviderError):
    """Unknown provider id, or a required API key / base URL is missing."""


class LLMCapabilityError(LLMProviderError):
    """The routed provider cannot serve the request, e.g. page images on a text-only endpoint."""
