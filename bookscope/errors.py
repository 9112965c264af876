"""
BookScope Errors

Fault taxonomy shared by the lookup client, the LLM gateway and the
detection pipeline. Each error carries a FaultKind tag so the detect
boundary can report which class of failure ended a call.
"""

from enum import Enum
from typing import Optional


class FaultKind(str, Enum):
    """Classes of failure a detection call can end with."""
    LOOKUP_MISS = "lookup_miss"
    LOOKUP_FAILED = "lookup_failed"
    PROTOCOL_VIOLATION = "protocol_violation"
    LLM_FAILED = "llm_failed"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class BookScopeError(Exception):
    """Base exception for BookScope errors."""

    kind: FaultKind = FaultKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class LookupFailed(BookScopeError):
    """The bibliographic search could not be completed (I/O or parse fault)."""

    kind = FaultKind.LOOKUP_FAILED

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="LOOKUP_FAILED",
            status_code=503,
            detail=detail,
        )


class ProtocolViolation(BookScopeError):
    """The LLM answered outside the declared tool contract."""

    kind = FaultKind.PROTOCOL_VIOLATION

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="PROTOCOL_VIOLATION",
            status_code=502,
            detail=detail,
        )


class LLMError(BookScopeError):
    """The LLM provider call failed."""

    kind = FaultKind.LLM_FAILED

    def __init__(self, provider: str, detail: Optional[str] = None):
        super().__init__(
            message=f"{provider} request failed",
            code="LLM_FAILED",
            status_code=503,
            detail=detail,
        )

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class TranscriptError(BookScopeError):
    """A turn was appended out of causal order."""

    kind = FaultKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message=message, code="TRANSCRIPT_ERROR")


class InvalidImageError(BookScopeError):
    """The supplied image cannot be sent to the model."""

    kind = FaultKind.INVALID_INPUT

    def __init__(self, message: str, detail: Optional[str] = None, status_code: int = 400):
        super().__init__(
            message=message,
            code="INVALID_IMAGE",
            status_code=status_code,
            detail=detail,
        )


def fault_kind_of(exc: BaseException) -> FaultKind:
    """Map any exception onto the fault taxonomy."""
    if isinstance(exc, BookScopeError):
        return exc.kind
    return FaultKind.INTERNAL


def describe_fault(exc: BaseException) -> str:
    """Human readable description used in `Error: ...` messages."""
    if isinstance(exc, BookScopeError):
        return f"{type(exc).__name__}: {exc}"
    text = str(exc)
    if text:
        return f"{type(exc).__name__}: {text}"
    return type(exc).__name__
