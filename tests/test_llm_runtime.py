"""Unit tests for provider routing runtime composition."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from paperlens.core.errors import FailureKind
from paperlens.llm.errors import LLMCapabilityError, LLMConfigurationError
from paperlens.llm.interfaces import ProviderCapabilities
from paperlens.llm.providers.anthropic_provider import AnthropicProvider, build_content
from paperlens.llm.providers.openai_provider import OpenAIProvider, build_input, response_text
from paperlens.llm.router import ProviderSelection, build_provider_registry, resolve_provider_selection
from paperlens.llm.runtime import ChatCapabilityRuntime, build_llm_runtime
from paperlens.llm.types import GenerateRequest, GenerateResponse

ROUTING_ENV = (
    "CHAT_MODEL",
    "ANALYSIS_MODEL",
    "OPENAI_API_KEY",
    "LLM_PROVIDER",
    "ANALYSIS_PROVIDER",
    "CHAT_PROVIDER",
    "ANALYSIS_PROVIDER_FALLBACK",
    "CHAT_PROVIDER_FALLBACK",
    "LLM_BASE_URL",
)


@pytest.fixture(autouse=True)
def _clean_routing_env(monkeypatch) -> None:
    for key in ROUTING_ENV:
        monkeypatch.delenv(key, raising=False)


class _FakeChatProvider:
    """Simple in-memory chat provider for routing tests."""

    def __init__(self, *, name: str, supports_images: bool = True) -> None:
        self.name = name
        self.capabilities = ProviderCapabilities(supports_chat=True, supports_images=supports_images)
        self.requests: list[GenerateRequest] = []

    def generate(self, request: GenerateRequest, *, capability: str = "chat") -> GenerateResponse:
        self.requests.append(request)
        return GenerateResponse(
            text=f"{self.name}:{request.user_input}",
            provider=self.name,
            capability=capability,
            input_tokens=1,
            output_tokens=1,
            total_tokens=2,
        )


def _runtime(primary, fallback=None, capability: str = "analysis") -> ChatCapabilityRuntime:
    return ChatCapabilityRuntime(
        capability=capability,
        model="m",
        selection=ProviderSelection(
            capability=capability,
            primary_provider=primary.name,
            fallback_provider=getattr(fallback, "name", None),
        ),
        primary_provider=primary,
        fallback_provider=fallback,
    )


def test_resolve_provider_selection_prefers_override() -> None:
    cfg = {
        "llm_provider": "openai",
        "analysis_provider": "anthropic",
        "analysis_provider_fallback": "openai",
    }
    selection = resolve_provider_selection(cfg, "analysis")
    assert selection.primary_provider == "anthropic"
    assert selection.fallback_provider == "openai"


def test_resolve_provider_selection_defaults_to_global_provider() -> None:
    selection = resolve_provider_selection({"llm_provider": "anthropic"}, "chat")
    assert selection.primary_provider == "anthropic"
    assert selection.fallback_provider is None


def test_resolve_provider_selection_drops_fallback_equal_to_primary() -> None:
    selection = resolve_provider_selection({"chat_provider": "openai", "chat_provider_fallback": "openai"}, "chat")
    assert selection.fallback_provider is None


def test_resolve_provider_selection_rejects_unknown_capability() -> None:
    with pytest.raises(LLMConfigurationError):
        resolve_provider_selection({}, "embeddings")


def test_runtime_uses_primary_and_passes_images() -> None:
    primary = _FakeChatProvider(name="primary")
    resp = _runtime(primary).generate(instructions="x", user_input="pages", images=["img1", "img2"])
    assert resp.provider == "primary"
    assert resp.fallback_from is None
    assert primary.requests[0].images == ["img1", "img2"]
    assert primary.requests[0].model == "m"


def test_runtime_falls_back_when_primary_cannot_take_images() -> None:
    primary = _FakeChatProvider(name="local", supports_images=False)
    fallback = _FakeChatProvider(name="openai")
    resp = _runtime(primary, fallback).generate(instructions="x", user_input="pages", images=["img"])
    assert resp.provider == "openai"
    assert resp.fallback_from == "local"
    assert primary.requests == []


def test_runtime_keeps_text_only_request_on_text_only_primary() -> None:
    primary = _FakeChatProvider(name="local", supports_images=False)
    fallback = _FakeChatProvider(name="openai")
    resp = _runtime(primary, fallback, capability="chat").generate(instructions="x", user_input="question")
    assert resp.provider == "local"


def test_runtime_raises_without_fallback() -> None:
    primary = _FakeChatProvider(name="local", supports_images=False)
    with pytest.raises(LLMCapabilityError):
        _runtime(primary).generate(instructions="x", user_input="pages", images=["img"])


def test_openai_compatible_requires_base_url() -> None:
    with pytest.raises(LLMConfigurationError):
        build_provider_registry({"llm_provider": "openai_compatible"})


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(LLMConfigurationError, match="Unsupported llm provider"):
        build_provider_registry({"llm_provider": "mystery"})


def test_openai_input_puts_images_before_text() -> None:
    req = GenerateRequest(model="m", instructions="i", user_input="Analyze", images=["abc"])
    payload = build_input(req)
    content = payload[0]["content"]
    assert payload[0]["role"] == "user"
    assert content[0] == {"type": "input_image", "image_url": "data:image/jpeg;base64,abc"}
    assert content[-1] == {"type": "input_text", "text": "Analyze"}
    assert build_input(GenerateRequest(model="m", instructions="i", user_input="plain")) == "plain"


def test_openai_provider_generate_reads_output_text() -> None:
    captured: dict = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(
            id="resp_1",
            output_text=" hello ",
            usage=SimpleNamespace(input_tokens=3, output_tokens=2, total_tokens=0),
        )

    client = SimpleNamespace(responses=SimpleNamespace(create=_create))
    provider = OpenAIProvider(client=client)
    resp = provider.generate(
        GenerateRequest(model="m", instructions="sys", user_input="hi", temperature=0.2),
        capability="analysis",
    )

    assert resp.text == "hello"
    assert resp.provider_request_id == "resp_1"
    assert resp.total_tokens == 5
    assert captured["temperature"] == 0.2
    assert captured["instructions"] == "sys"


def test_anthropic_provider_sends_image_blocks() -> None:
    captured: dict = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(
            id="msg_1",
            content=[SimpleNamespace(type="text", text="{}")],
            usage=SimpleNamespace(input_tokens=10, output_tokens=4),
        )

    provider = AnthropicProvider(client=SimpleNamespace(messages=SimpleNamespace(create=_create)))
    resp = provider.generate(GenerateRequest(model="claude", instructions="sys", user_input="Analyze", images=["abc"]))

    blocks = captured["messages"][0]["content"]
    assert blocks[0]["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "abc"}
    assert blocks[-1] == {"type": "text", "text": "Analyze"}
    assert captured["system"] == "sys"
    assert captured["max_tokens"] == 4096
    assert resp.text == "{}"
    assert resp.total_tokens == 14


def test_anthropic_content_is_plain_text_without_images() -> None:
    assert build_content(GenerateRequest(model="m", instructions="i", user_input="q")) == "q"


def test_anthropic_provider_requires_key() -> None:
    with pytest.raises(LLMConfigurationError):
        AnthropicProvider(api_key="")


def test_build_llm_runtime_binds_models_and_providers() -> None:
    runtime = build_llm_runtime(
        {
            "llm_provider": "openai",
            "openai_api_key": "sk-test",
            "analysis_model": "gpt-analysis",
        }
    )
    assert runtime.analysis.model == "gpt-analysis"
    assert runtime.chat.model == "gpt-4.1-mini"
    assert runtime.analysis.primary_provider is runtime.chat.primary_provider
    assert runtime.analysis.fallback_provider is None


def test_provider_errors_are_collaborator_failures() -> None:
    assert LLMConfigurationError("x").kind is FailureKind.COLLABORATOR_ERROR
    assert LLMCapabilityError("x").kind is FailureKind.COLLABORATOR_ERROR


def test_response_text_joins_message_parts_without_output_text() -> None:
    response = SimpleNamespace(
        output_text="",
        output=[
            SimpleNamespace(type="reasoning", content=[]),
            SimpleNamespace(
                type="message",
                content=[
                    SimpleNamespace(type="output_text", text='{"paper_title":'),
                    SimpleNamespace(type="output_text", text='"T"}'),
                ],
            ),
        ],
    )
    assert response_text(response) == '{"paper_title":\n"T"}'
