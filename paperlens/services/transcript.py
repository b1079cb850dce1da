"""Conversation transcript messages."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Literal
from uuid import uuid4

Role = Literal["user", "assistant", "system"]

WELCOME_MESSAGE = "System initialized. Upload a PDF or paste text to begin multimodal analysis."
RESET_MESSAGE = "Context cleared. Ready for new input."


@dataclass(frozen=True)
class Message:
    """One transcript entry; ``timestamp`` is epoch seconds."""

    id: str
    role: Role
    content: str
    timestamp: float


def new_message(role: Role, content: str, *, clock: Callable[[], float] = time.time) -> Message:
    return Message(id=uuid4().hex[:8], role=role, content=str(content), timestamp=float(clock()))


def conversation_turns(messages: List[Message], *, max_turns: int = 6, max_chars: int = 800) -> str:
    """Render the latest user/assistant exchanges as compact prompt context.

    System notices are left out. Long messages are clipped to ``max_chars``.
    """
    rows: List[str] = []
    for message in messages:
        if message.role == "system":
            continue
        content = message.content.strip()
        if not content:
            continue
        if len(content) > max_chars:
            content = content[: max_chars - 3] + "..."
        label = "User" if message.role == "user" else "Assistant"
        rows.append(f"{label}: {content}")
    return "\n".join(rows[-max_turns * 2 :])
