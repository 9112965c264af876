"""
API Schemas for BookScope

Pydantic models for request validation and response serialization.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from bookscope.detection import DetectionResult, DetectorVariant
from bookscope.identification import BookRecord


# =============================================================================
# Book Schemas
# =============================================================================

class BookRecordResponse(BaseModel):
    """One detected book."""

    title: str
    authors: Optional[list[str]] = None
    average_rating: Optional[float] = Field(None, alias="averageRating")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: BookRecord) -> "BookRecordResponse":
        return cls(
            title=record.title,
            authors=list(record.authors) if record.authors is not None else None,
            average_rating=record.average_rating,
        )


# =============================================================================
# Detection Schemas
# =============================================================================

class DetectionUrlRequest(BaseModel):
    """Detection request for a remote image."""

    image_url: str = Field(..., min_length=1, description="http(s) URL or base64 data URI")
    variant: Optional[DetectorVariant] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "image_url": "https://example.com/bookshelf.jpg",
                "variant": "tool_orchestrated",
            }
        }
    )


class DetectionResponse(BaseModel):
    """Detection result."""

    books: list[BookRecordResponse] = Field(default_factory=list)
    message: str = ""
    error_code: Optional[str] = None
    variant: DetectorVariant
    processing_time_ms: float = 0.0

    @classmethod
    def from_result(
        cls,
        result: DetectionResult,
        variant: DetectorVariant,
        processing_time_ms: float = 0.0,
    ) -> "DetectionResponse":
        return cls(
            books=[BookRecordResponse.from_record(r) for r in result.records],
            message=result.message,
            error_code=result.fault.value if result.fault else None,
            variant=variant,
            processing_time_ms=processing_time_ms,
        )


class DescriptionResponse(BaseModel):
    """Free-text image description."""

    description: str


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error envelope."""

    error: str
    code: str
    detail: Optional[str] = None
    timestamp: datetime
