"""
Detection API Routes

Endpoints for detecting books in uploaded images or remote image URLs.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from loguru import logger

from bookscope.api.dependencies import (
    ServiceContainer,
    Settings,
    get_service_container,
    get_settings,
)
from bookscope.api.schemas import (
    DescriptionResponse,
    DetectionResponse,
    DetectionUrlRequest,
    ErrorResponse,
)
from bookscope.detection import DetectorVariant
from bookscope.errors import InvalidImageError


router = APIRouter(prefix="/detect", tags=["detection"])


SUPPORTED_FORMATS = {"image/jpeg", "image/png", "image/webp", "image/gif"}


async def read_upload(file: UploadFile, settings: Settings) -> bytes:
    """Read and validate an uploaded image."""
    if file.content_type not in SUPPORTED_FORMATS:
        raise InvalidImageError(
            f"Unsupported image format: {file.content_type}",
            detail=f"Supported: {', '.join(sorted(SUPPORTED_FORMATS))}",
        )

    content = await file.read()

    if not content:
        raise InvalidImageError("Uploaded image is empty")
    if len(content) > settings.max_upload_bytes:
        raise InvalidImageError(
            "Image too large",
            detail=f"Image exceeds maximum size of {settings.max_upload_size_mb}MB",
            status_code=413,
        )
    return content


@router.post(
    "",
    response_model=DetectionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid image"},
        413: {"model": ErrorResponse, "description": "Image too large"},
    },
)
async def detect_books(
    file: UploadFile = File(..., description="Image file to process"),
    variant: Optional[DetectorVariant] = Form(None, description="Detection strategy"),
    settings: Settings = Depends(get_settings),
    container: ServiceContainer = Depends(get_service_container),
):
    """
    Detect books in an uploaded image.

    Always answers with a DetectionResponse; detection failures are reported
    in `message` and `error_code`.
    """
    content = await read_upload(file, settings)
    detector = container.detector(variant)

    logger.info(
        f"Processing image: {file.filename}, "
        f"size={len(content)//1024}KB, "
        f"variant={detector.variant.value}"
    )

    start_time = time.time()
    result = await detector.detect(content)
    elapsed_ms = (time.time() - start_time) * 1000

    return DetectionResponse.from_result(result, detector.variant, elapsed_ms)


@router.post("/url", response_model=DetectionResponse)
async def detect_books_from_url(
    request: DetectionUrlRequest,
    container: ServiceContainer = Depends(get_service_container),
):
    """Detect books in an image referenced by URL or data URI."""
    detector = container.detector(request.variant)

    start_time = time.time()
    result = await detector.detect(request.image_url)
    elapsed_ms = (time.time() - start_time) * 1000

    return DetectionResponse.from_result(result, detector.variant, elapsed_ms)


@router.post(
    "/describe",
    response_model=DescriptionResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid image"}},
)
async def describe_image(
    file: UploadFile = File(..., description="Image file to describe"),
    settings: Settings = Depends(get_settings),
    container: ServiceContainer = Depends(get_service_container),
):
    """Describe an uploaded image in free text."""
    content = await read_upload(file, settings)
    description = await container.detector().describe(content)
    return DescriptionResponse(description=description)
