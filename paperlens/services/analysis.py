"""Analysis and follow-up chat backed by the provider-routed LLM runtime."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from paperlens.core.errors import CollaboratorError, InvalidInputError
from paperlens.core.prompts import CHAT_FALLBACK_ANSWER, CHAT_PROMPT, analysis_instructions
from paperlens.llm.runtime import LLMRuntime, build_llm_runtime
from paperlens.services.schemas import PaperAnalysis
from paperlens.services.transcript import Message, conversation_turns

IMAGE_ONLY_INPUT = "Analyze the attached pages of the paper."


class AnalysisCollaborator(Protocol):
    """Async analysis/chat backend consumed by the session controller."""

    async def analyze(self, *, text: Optional[str] = None, images: Optional[List[str]] = None) -> PaperAnalysis:
        """Return a structured analysis of raw text and/or page images."""

    async def chat(self, analysis: PaperAnalysis, question: str, transcript: Sequence[Message]) -> str:
        """Answer one follow-up question about an existing analysis."""


def extract_json(text: str) -> Any:
    """Extract JSON from a string, tolerating markdown fences.

    Args:
        text (str): Input text value.

    Returns:
        Any: Decoded JSON value.
    """
    candidate = text.strip()
    if "```" in candidate:
        blocks = re.findall(r"```(?:json)?\s*(.*?)```", candidate, flags=re.DOTALL)
        if blocks:
            candidate = blocks[0].strip()

    start = min([i for i in [candidate.find("["), candidate.find("{")] if i != -1], default=-1)
    if start >= 0:
        candidate = candidate[start:]

    end_bracket = candidate.rfind("]")
    end_brace = candidate.rfind("}")
    end = max(end_bracket, end_brace)
    if end >= 0:
        candidate = candidate[: end + 1]

    return json.loads(candidate)


def parse_analysis(text: str) -> PaperAnalysis:
    """Parse model output into a validated :class:`PaperAnalysis`.

    Raises:
        CollaboratorError: If the output is empty, not JSON, or off-schema.
    """
    if not str(text or "").strip():
        raise CollaboratorError("No response from model.")
    try:
        payload = extract_json(text)
    except ValueError as exc:
        raise CollaboratorError(f"Model returned malformed JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise CollaboratorError("Model returned JSON that is not an object.")
    try:
        return PaperAnalysis.model_validate(payload)
    except ValidationError as exc:
        raise CollaboratorError(f"Model output does not match the analysis schema: {exc.error_count()} error(s)") from exc


def build_chat_input(analysis: PaperAnalysis, question: str, transcript: Sequence[Message]) -> str:
    """Build the chat user input from the analysis, recent turns and question."""
    parts = [
        "Here is the structured data you extracted:",
        f"Title: {analysis.paper_title}",
        f"Hypothesis: {analysis.core_hypothesis}",
        f"Key Results: {'; '.join(analysis.key_results)}",
        f"Methodology: {analysis.methodology_summary}",
        f"Conclusions: {analysis.conclusions}",
    ]
    if analysis.limitations:
        parts.append(f"Limitations: {analysis.limitations}")
    history = conversation_turns(list(transcript))
    if history:
        parts.append(f"\nPrior conversation (for continuity):\n{history}")
    parts.append(f"\nUser Question: {question}")
    return "\n".join(parts)


class PaperAnalyzer:
    """:class:`AnalysisCollaborator` implementation over :class:`LLMRuntime`.

    The runtime is built on first use so that missing credentials fail the
    session that needed them instead of process start-up. Provider SDK calls
    are blocking and run in worker threads.
    """

    def __init__(self, settings: Any, *, runtime: Optional[LLMRuntime] = None) -> None:
        self._settings = settings
        self._runtime_instance = runtime

    def _runtime(self) -> LLMRuntime:
        if self._runtime_instance is None:
            self._runtime_instance = build_llm_runtime(self._settings)
        return self._runtime_instance

    async def analyze(self, *, text: Optional[str] = None, images: Optional[List[str]] = None) -> PaperAnalysis:
        page_images = list(images or [])
        raw_text = str(text or "").strip()
        if not page_images and not raw_text:
            raise InvalidInputError("Nothing to analyze.")
        temperature = getattr(self._settings, "analysis_temperature", None)
        max_output_tokens = getattr(self._settings, "max_output_tokens", None)
        try:
            runtime = self._runtime()
            response = await asyncio.to_thread(
                runtime.analysis.generate,
                instructions=analysis_instructions(has_images=bool(page_images)),
                user_input=raw_text or IMAGE_ONLY_INPUT,
                images=page_images,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
                metadata={"capability": "analysis", "page_count": len(page_images)},
            )
        except Exception as exc:
            raise CollaboratorError(f"Analysis request failed: {exc}") from exc
        return parse_analysis(str(getattr(response, "text", "") or ""))

    async def chat(self, analysis: PaperAnalysis, question: str, transcript: Sequence[Message]) -> str:
        user_input = build_chat_input(analysis, question, transcript)
        try:
            runtime = self._runtime()
            response = await asyncio.to_thread(
                runtime.chat.generate,
                instructions=CHAT_PROMPT,
                user_input=user_input,
                metadata={"capability": "chat"},
            )
        except Exception as exc:
            raise CollaboratorError(f"Chat request failed: {exc}") from exc
        return str(getattr(response, "text", "") or "").strip() or CHAT_FALLBACK_ANSWER
