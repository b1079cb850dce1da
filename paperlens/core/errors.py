"""Failure taxonomy for analysis sessions.

Every failure the session controller can report is one of the
:class:`FailureKind` members. Exceptions raised by lower layers carry their
kind so the controller can turn them into a :class:`Failure` value without
inspecting message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """Closed set of failure categories surfaced by the controller."""

    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_INPUT = "invalid_input"
    DECODE_ERROR = "decode_error"
    RENDER_ERROR = "render_error"
    COLLABORATOR_ERROR = "collaborator_error"
    SUPERSEDED = "superseded"


class PaperLensError(RuntimeError):
    """Base error for session-level failures."""

    kind: FailureKind = FailureKind.COLLABORATOR_ERROR


class InvalidInputError(PaperLensError):
    """Raised when user input is empty or not an accepted document type."""

    kind = FailureKind.INVALID_INPUT


class DecodeError(PaperLensError):
    """Raised when a file cannot be parsed as a PDF document."""

    kind = FailureKind.DECODE_ERROR


class RenderError(PaperLensError):
    """Raised when a page (or every page of a file) cannot be rendered."""

    kind = FailureKind.RENDER_ERROR

    def __init__(self, message: str, *, page_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.page_number = page_number


class CollaboratorError(PaperLensError):
    """Raised when the analysis/chat call fails or returns unusable data."""

    kind = FailureKind.COLLABORATOR_ERROR


@dataclass(frozen=True)
class Failure:
    """Tagged failure value returned by controller operations."""

    kind: FailureKind
    message: str = ""
    wait_seconds: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Failure":
        """Map an exception onto the failure taxonomy.

        Unknown exception types count as collaborator failures.
        """
        kind = getattr(exc, "kind", FailureKind.COLLABORATOR_ERROR)
        if not isinstance(kind, FailureKind):
            kind = FailureKind.COLLABORATOR_ERROR
        return cls(kind=kind, message=str(exc) or exc.__class__.__name__)
