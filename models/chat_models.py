"""
Data models for chat processing.
Contains the normalized stream delta, per-turn accumulator and turn flow steps.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from models.api_models import Citation, Message
from utils.constants import ChatMode


@dataclass(frozen=True)
class StreamDelta:
    """One normalized fragment of a streamed response, whatever the provider."""
    text: str
    citations: Optional[list[Citation]] = None


@dataclass(frozen=True)
class ThinkingSplit:
    """Visible/hidden partition of accumulated response text."""
    visible: str
    thinking: Optional[str] = None
    thinking_complete: bool = False


@dataclass
class StreamAccumulator:
    """
    Per-turn mutable state. Created when a send begins, mutated on every delta,
    discarded once the final message has been built.
    """
    mode: ChatMode
    raw_text: str = ""
    citations: Optional[list[Citation]] = None
    delta_count: int = 0

    def add(self, delta: StreamDelta) -> None:
        """Append delta text; a delta carrying citations replaces the previous set."""
        self.raw_text += delta.text
        if delta.citations:
            self.citations = list(delta.citations)
        self.delta_count += 1


class TurnAction(Enum):
    """Types of steps emitted while a turn is processed."""
    STATUS = "status"
    UPDATE = "update"
    ERROR = "error"
    DONE = "done"


@dataclass
class TurnUpdate:
    """Represents a step in the turn processing flow."""
    action: TurnAction
    stage: Optional[str] = None
    message: Optional[Message] = None
    error: Optional[dict] = None
    history: Optional[list[Message]] = None


@dataclass
class ChatTurn:
    """Everything needed to run one user turn against a provider."""
    prompt: str
    mode: ChatMode
    history: list[Message] = field(default_factory=list)
    bot_message_id: Optional[str] = None
