"""
Detection result types.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from bookscope.errors import FaultKind
from bookscope.identification.models import BookRecord
from bookscope.llm.transcript import ToolInvocation, ToolResultTurn


NO_BOOKS_FOUND = "No books found"
NO_BOOKS_DETECTED = "No books detected"
NO_MATCHES_FOUND = "No matching books found"


@dataclass
class DetectionResult:
    """
    Outcome of one detect call.

    Either `records` is non-empty or `message` explains why it is empty.
    `fault` is set only when the message reports an error.
    """

    records: list[BookRecord] = field(default_factory=list)
    message: str = ""
    fault: Optional[FaultKind] = None

    @property
    def ok(self) -> bool:
        return self.fault is None

    @classmethod
    def found(cls, records: list[BookRecord], empty_message: str = NO_BOOKS_FOUND) -> "DetectionResult":
        """Result for a list of records, falling back to a message if empty."""
        if records:
            return cls(records=list(records))
        return cls(message=empty_message)

    @classmethod
    def failed(cls, description: str, fault: FaultKind) -> "DetectionResult":
        return cls(message=f"Error: {description}", fault=fault)


class DetectionState(str, Enum):
    """States of the tool-orchestrated detection protocol."""
    INIT = "init"
    FIRST_RESPONSE_RECEIVED = "first_response_received"
    ENRICHING = "enriching"
    SECOND_REQUEST = "second_request"
    FINALIZE = "finalize"
    DONE = "done"


@dataclass(frozen=True)
class ToolOutcome:
    """Resolved result of one tool invocation."""

    invocation: ToolInvocation
    records: tuple[BookRecord, ...] = ()
    fault: Optional[FaultKind] = None

    def to_content(self) -> str:
        """Serialized records as sent back to the model."""
        return json.dumps({"books": [record.to_dict() for record in self.records]})

    def to_turn(self) -> ToolResultTurn:
        return ToolResultTurn(
            invocation_id=self.invocation.id,
            name=self.invocation.name,
            content=self.to_content(),
        )
