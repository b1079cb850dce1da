"""Analysis session controller.

The controller owns one "current session" id. Each user-initiated analysis
allocates a new id, and every asynchronous step re-checks that id when it
resumes: if another analysis started, or the user cancelled or reset in the
meantime, the result is dropped without touching controller state.
Cancellation never interrupts in-flight work; the identity check on resume is
the only thing that decides whether a result is applied.

All mutation happens on the event loop thread. Rasterization and provider
calls run in worker threads but only hand back values.
"""

from __future__ import annotations

import itertools
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from paperlens.core.config import DEFAULT_JPEG_QUALITY, DEFAULT_MAX_PAGES, DEFAULT_RENDER_DPI
from paperlens.core.errors import DecodeError, Failure, FailureKind, PaperLensError
from paperlens.core.logging_utils import log_event
from paperlens.core.rasterizer import RasterizationResult, SourceDocument, merge_results, rasterize_documents
from paperlens.services.analysis import AnalysisCollaborator
from paperlens.services.quota import QuotaTracker, UsageKind
from paperlens.services.schemas import PaperAnalysis
from paperlens.services.transcript import RESET_MESSAGE, WELCOME_MESSAGE, Message, Role, new_message

NO_SESSION = 0

Rasterize = Callable[[Sequence[SourceDocument]], Awaitable[List[RasterizationResult]]]


class AppState(str, Enum):
    IDLE = "idle"
    PROCESSING_DOCUMENTS = "processing_documents"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class RunOutcome:
    """Result of one controller operation.

    ``session_id`` is ``NO_SESSION`` when the request was rejected before a
    session was allocated. ``applied`` is true only when the result was
    written into controller state.
    """

    session_id: int
    applied: bool
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.applied and self.failure is None


def _rejected(kind: FailureKind, message: str, wait_seconds: Optional[int] = None) -> RunOutcome:
    return RunOutcome(session_id=NO_SESSION, applied=False, failure=Failure(kind, message, wait_seconds))


class AnalysisSessionController:
    """Single-flight analysis and follow-up chat over one document set."""

    def __init__(
        self,
        collaborator: AnalysisCollaborator,
        quota: QuotaTracker,
        *,
        rasterize: Optional[Rasterize] = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        render_dpi: int = DEFAULT_RENDER_DPI,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._collaborator = collaborator
        self._quota = quota
        self._rasterize: Rasterize = rasterize or partial(
            rasterize_documents,
            max_pages=max_pages,
            dpi=render_dpi,
            quality=jpeg_quality,
        )
        self._clock = clock
        self._session_ids = itertools.count(1)
        self._current_session = NO_SESSION
        self._state = AppState.IDLE
        self._state_history: List[AppState] = [AppState.IDLE]
        self._analysis: Optional[PaperAnalysis] = None
        self._error_detail: Optional[Failure] = None
        self._pending_chats: Counter[int] = Counter()
        self._messages: List[Message] = [new_message("system", WELCOME_MESSAGE, clock=clock)]
        self.last_rasterization: List[RasterizationResult] = []

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        collaborator: AnalysisCollaborator,
        quota: QuotaTracker,
    ) -> "AnalysisSessionController":
        return cls(
            collaborator,
            quota,
            max_pages=int(settings.max_pages),
            render_dpi=int(settings.render_dpi),
            jpeg_quality=int(settings.jpeg_quality),
        )

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def state_history(self) -> Tuple[AppState, ...]:
        return tuple(self._state_history)

    @property
    def analysis(self) -> Optional[PaperAnalysis]:
        return self._analysis

    @property
    def error_detail(self) -> Optional[Failure]:
        return self._error_detail

    @property
    def current_session_id(self) -> int:
        return self._current_session

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def is_chatting(self) -> bool:
        """True while a chat asked about the current analysis is pending."""
        return self._state is AppState.COMPLETE and self._pending_chats[self._current_session] > 0

    def _notify(self, role: Role, content: str) -> None:
        self._messages.append(new_message(role, content, clock=self._clock))

    def _set_state(self, state: AppState) -> None:
        self._state = state
        self._state_history.append(state)

    def _is_current(self, session_id: int) -> bool:
        return session_id != NO_SESSION and session_id == self._current_session

    def _begin_session(self) -> int:
        previous = self._current_session
        session_id = next(self._session_ids)
        self._current_session = session_id
        if previous != NO_SESSION and self._state in (AppState.PROCESSING_DOCUMENTS, AppState.ANALYZING):
            log_event("analysis_superseded", {"session_id": previous, "superseded_by": session_id})
        self._analysis = None
        self._error_detail = None
        self.last_rasterization = []
        return session_id

    def _gate(self, kind: UsageKind) -> Optional[RunOutcome]:
        decision = self._quota.check_limit()
        if decision.allowed:
            return None
        reason = decision.reason or "Usage limit reached."
        self._notify("system", f"Usage limit: {reason}")
        log_event("rate_limit_hit", {"type": kind.value, "reason": reason, "wait_seconds": decision.wait_seconds})
        return _rejected(FailureKind.QUOTA_EXCEEDED, reason, decision.wait_seconds)

    def _discard(self, session_id: int) -> RunOutcome:
        log_event("stale_result_discarded", {"session_id": session_id, "current_session_id": self._current_session})
        return RunOutcome(session_id=session_id, applied=False, failure=Failure(FailureKind.SUPERSEDED))

    def _fail(self, session_id: int, failure: Failure, *, event: str, prefix: str) -> RunOutcome:
        if not self._is_current(session_id):
            return self._discard(session_id)
        self._error_detail = failure
        self._set_state(AppState.ERROR)
        self._notify("assistant", f"{prefix}: {failure.message or 'Unknown error'}")
        log_event(event, {"session_id": session_id, "kind": failure.kind.value, "message": failure.message})
        return RunOutcome(session_id=session_id, applied=False, failure=failure)

    def _complete(self, analysis: PaperAnalysis, kind: UsageKind) -> None:
        self._quota.record_usage(kind)
        self._analysis = analysis
        self._set_state(AppState.COMPLETE)

    async def start_text_analysis(self, text: str) -> RunOutcome:
        """Analyze pasted text as the new current session."""
        if not str(text or "").strip():
            return _rejected(FailureKind.INVALID_INPUT, "Text is empty.")
        rejected = self._gate(UsageKind.TEXT)
        if rejected is not None:
            return rejected

        session_id = self._begin_session()
        self._set_state(AppState.ANALYZING)
        self._notify("user", "Submitted text for analysis.")
        self._notify("assistant", "Analyzing text content...")
        log_event("analyze_text_submitted", {"session_id": session_id, "text_length": len(text)})

        try:
            analysis = await self._collaborator.analyze(text=text)
        except Exception as exc:
            return self._fail(
                session_id,
                Failure.from_exception(exc),
                event="analyze_text_failed",
                prefix="Error processing text",
            )
        if not self._is_current(session_id):
            return self._discard(session_id)

        self._complete(analysis, UsageKind.TEXT)
        self._notify("assistant", "Analysis complete. You can now ask questions about the paper below.")
        log_event("analyze_text_completed", {"session_id": session_id, "paper_title": analysis.paper_title})
        return RunOutcome(session_id=session_id, applied=True)

    async def start_file_analysis(self, documents: Sequence[SourceDocument]) -> RunOutcome:
        """Rasterize the selected PDFs and analyze their pages as the new current session."""
        docs = list(documents or [])
        if not docs:
            return _rejected(FailureKind.INVALID_INPUT, "No documents selected.")
        if any(not doc.is_pdf for doc in docs):
            self._notify("system", "Please upload valid PDF files.")
            return _rejected(FailureKind.INVALID_INPUT, "Only PDF documents can be analyzed.")
        rejected = self._gate(UsageKind.PDF)
        if rejected is not None:
            return rejected

        session_id = self._begin_session()
        self._set_state(AppState.PROCESSING_DOCUMENTS)
        names = ", ".join(doc.name for doc in docs)
        self._notify("user", f"Uploaded {len(docs)} document(s): {names}")
        self._notify("assistant", f"Processing {len(docs)} document(s) for multimodal analysis...")
        log_event("batch_analysis_started", {"session_id": session_id, "file_count": len(docs)})

        try:
            results = await self._rasterize(docs)
        except PaperLensError as exc:
            return self._fail(
                session_id,
                Failure.from_exception(exc),
                event="analyze_pdf_failed",
                prefix="Error processing documents",
            )
        except Exception as exc:
            return self._fail(
                session_id,
                Failure.from_exception(DecodeError(str(exc) or exc.__class__.__name__)),
                event="analyze_pdf_failed",
                prefix="Error processing documents",
            )
        if not self._is_current(session_id):
            return self._discard(session_id)

        self.last_rasterization = list(results)
        for doc, result in zip(docs, results):
            if result.truncated:
                self._notify(
                    "system",
                    f"{doc.name}: only the first {result.processed_pages} of {result.total_pages} pages are analyzed.",
                )
            if result.skipped_pages:
                skipped = ", ".join(str(page) for page in result.skipped_pages)
                self._notify("system", f"{doc.name}: skipped unreadable page(s) {skipped}.")
        images = merge_results(results)

        self._set_state(AppState.ANALYZING)
        self._notify("assistant", f"Derendering documents ({len(images)} total pages) and interpreting visuals...")
        try:
            analysis = await self._collaborator.analyze(images=images)
        except Exception as exc:
            return self._fail(
                session_id,
                Failure.from_exception(exc),
                event="analyze_pdf_failed",
                prefix="Error processing documents",
            )
        if not self._is_current(session_id):
            return self._discard(session_id)

        self._complete(analysis, UsageKind.PDF)
        self._notify("assistant", "Analysis complete. Structured data extracted.")
        self._notify("assistant", "System is ready for Q&A. Type below to query the documents.")
        log_event(
            "analyze_pdf_completed",
            {"session_id": session_id, "page_count": len(images), "paper_title": analysis.paper_title},
        )
        return RunOutcome(session_id=session_id, applied=True)

    def _invalidate(self) -> int:
        previous = self._current_session
        self._current_session = NO_SESSION
        self._analysis = None
        self._error_detail = None
        self._set_state(AppState.IDLE)
        return previous

    def cancel(self) -> None:
        """Invalidate the current session; in-flight work resolves into a discard."""
        previous = self._invalidate()
        self._notify("system", "Analysis process cancelled by user.")
        log_event("analysis_cancelled", {"session_id": previous})

    def reset(self) -> None:
        """Invalidate the current session and clear the transcript."""
        previous = self._invalidate()
        self._messages = [new_message("system", RESET_MESSAGE, clock=self._clock)]
        log_event("app_reset", {"session_id": previous})

    async def submit_chat_query(self, question: str) -> RunOutcome:
        """Ask a follow-up question about the completed analysis.

        Chats never cancel each other: concurrent questions all run, and
        answers are appended in the order they resolve. An answer that
        arrives after its analysis was cancelled, reset or replaced is
        dropped.
        """
        query = str(question or "").strip()
        if not query:
            return _rejected(FailureKind.INVALID_INPUT, "Question is empty.")
        if self._state is not AppState.COMPLETE or self._analysis is None:
            return _rejected(FailureKind.INVALID_INPUT, "No completed analysis to ask about.")

        session_id = self._current_session
        analysis = self._analysis
        history = list(self._messages)
        self._notify("user", query)
        self._pending_chats[session_id] += 1
        log_event("chat_query_sent", {"session_id": session_id, "query_length": len(query)})
        try:
            try:
                answer = await self._collaborator.chat(analysis, query, history)
            except Exception as exc:
                failure = Failure.from_exception(exc)
                if not self._is_current(session_id):
                    return self._discard(session_id)
                self._notify("assistant", f"Error: {failure.message}")
                log_event("chat_error", {"session_id": session_id, "message": failure.message})
                return RunOutcome(session_id=session_id, applied=False, failure=failure)
            if not self._is_current(session_id):
                return self._discard(session_id)
            self._notify("assistant", answer)
            log_event("chat_response_received", {"session_id": session_id, "response_length": len(answer)})
            return RunOutcome(session_id=session_id, applied=True)
        finally:
            self._pending_chats[session_id] -= 1
            if self._pending_chats[session_id] <= 0:
                del self._pending_chats[session_id]

    async def submit_input(self, text: str) -> RunOutcome:
        """Route free-form input: a question once an analysis is complete, else new text to analyze."""
        if self._analysis is not None and self._state is AppState.COMPLETE:
            return await self.submit_chat_query(text)
        return await self.start_text_analysis(text)
