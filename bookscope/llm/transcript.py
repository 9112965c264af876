"""
Conversation transcript for one detection call.

A Transcript is an immutable value: `append` returns a new Transcript and
leaves the receiver unchanged. Appends are checked for causal order, so a tool
result can only follow the assistant turn that requested it, and each
requested invocation is answered exactly once.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from bookscope.errors import TranscriptError
from bookscope.llm.images import ImageSource


class MessageRole(str, Enum):
    """Role in conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolInvocation:
    """One tool call requested by the model. `id` must be echoed back."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class SystemTurn:
    content: str
    role: MessageRole = field(default=MessageRole.SYSTEM, init=False)


@dataclass(frozen=True)
class UserImageTurn:
    """User turn carrying an image and an optional text prompt."""

    image: ImageSource
    text: Optional[str] = None
    role: MessageRole = field(default=MessageRole.USER, init=False)


@dataclass(frozen=True)
class AssistantTurn:
    """Model reply: free text, tool invocations, or both."""

    text: Optional[str] = None
    tool_invocations: tuple[ToolInvocation, ...] = ()
    role: MessageRole = field(default=MessageRole.ASSISTANT, init=False)

    @property
    def has_tool_invocations(self) -> bool:
        return bool(self.tool_invocations)

    def invocation_named(self, name: str) -> Optional[ToolInvocation]:
        for invocation in self.tool_invocations:
            if invocation.name == name:
                return invocation
        return None


@dataclass(frozen=True)
class ToolResultTurn:
    """Result of one tool invocation, keyed by the invocation id."""

    invocation_id: str
    name: str
    content: str
    role: MessageRole = field(default=MessageRole.TOOL, init=False)


Turn = Union[SystemTurn, UserImageTurn, AssistantTurn, ToolResultTurn]


@dataclass(frozen=True)
class Transcript:
    """Ordered, append-only conversation state."""

    turns: tuple[Turn, ...] = ()

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self):
        return iter(self.turns)

    def append(self, *turns: Turn) -> "Transcript":
        """Return a new Transcript with `turns` added at the end."""
        pending = list(self.pending_invocation_ids())
        for turn in turns:
            if isinstance(turn, ToolResultTurn):
                if turn.invocation_id not in pending:
                    raise TranscriptError(
                        f"Tool result '{turn.invocation_id}' does not answer a pending invocation"
                    )
                pending.remove(turn.invocation_id)
            elif isinstance(turn, AssistantTurn):
                if pending:
                    raise TranscriptError(
                        f"Assistant turn appended with unanswered invocations: {pending}"
                    )
                pending = [invocation.id for invocation in turn.tool_invocations]
        return Transcript(turns=self.turns + tuple(turns))

    def pending_invocation_ids(self) -> tuple[str, ...]:
        """Invocation ids of the last assistant turn with no result yet."""
        pending: list[str] = []
        for turn in self.turns:
            if isinstance(turn, AssistantTurn):
                pending = [invocation.id for invocation in turn.tool_invocations]
            elif isinstance(turn, ToolResultTurn) and turn.invocation_id in pending:
                pending.remove(turn.invocation_id)
        return tuple(pending)

    def require_settled(self) -> None:
        """Raise unless every requested invocation has been answered."""
        pending = self.pending_invocation_ids()
        if pending:
            raise TranscriptError(f"Unanswered tool invocations: {list(pending)}")

    @property
    def system_prompt(self) -> Optional[str]:
        for turn in self.turns:
            if isinstance(turn, SystemTurn):
                return turn.content
        return None

    @property
    def tool_results(self) -> list[ToolResultTurn]:
        return [turn for turn in self.turns if isinstance(turn, ToolResultTurn)]

    @classmethod
    def start(cls, system_prompt: str, image: ImageSource, text: Optional[str] = None) -> "Transcript":
        """Transcript for a fresh request: system instructions plus the image."""
        return cls().append(SystemTurn(system_prompt), UserImageTurn(image, text))
