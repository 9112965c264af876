"""
Book Detector

Public detection capability. A BookDetector wraps one of a closed set of
strategies, chosen from configuration:

- simple: one forced LLM call for (title, author) candidates, then a
  concurrent Open Library lookup per candidate.
- tool_orchestrated: the two-phase protocol in DetectionOrchestrator.

`detect` never raises for detection failures; every fault becomes an
"Error: ..." message on the result.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Union

from loguru import logger

from bookscope.errors import describe_fault, fault_kind_of
from bookscope.identification.openlibrary import OpenLibraryClient
from bookscope.llm.gateway import ChatGateway
from bookscope.llm.images import ImageSource
from bookscope.detection.extractor import VisionExtractor
from bookscope.detection.models import NO_BOOKS_FOUND, NO_MATCHES_FOUND, DetectionResult
from bookscope.detection.orchestrator import DetectionOrchestrator


ImageInput = Union[bytes, bytearray, str]


class DetectorVariant(str, Enum):
    """Available detection strategies."""
    SIMPLE = "simple"
    TOOL_ORCHESTRATED = "tool_orchestrated"


class DetectionStrategy(ABC):
    """One way of turning an image into a DetectionResult."""

    variant: DetectorVariant

    @abstractmethod
    async def run(self, image: ImageSource) -> DetectionResult:
        """Detect books; may raise, the BookDetector boundary recovers."""
        pass


class SimpleStrategy(DetectionStrategy):
    """Candidates first, then one lookup per candidate."""

    variant = DetectorVariant.SIMPLE

    def __init__(self, extractor: VisionExtractor, lookup_client: OpenLibraryClient):
        self.extractor = extractor
        self.lookup_client = lookup_client

    async def run(self, image: ImageSource) -> DetectionResult:
        extraction = await self.extractor.extract_candidates(image)

        if extraction.declined:
            return DetectionResult(message=extraction.text or NO_BOOKS_FOUND)
        if not extraction.candidates:
            return DetectionResult(message=NO_BOOKS_FOUND)

        matches = await asyncio.gather(*(
            self.lookup_client.get_first_match(candidate.title, candidate.author)
            for candidate in extraction.candidates
        ))
        records = [match for match in matches if match is not None]

        logger.info(f"Matched {len(records)} of {len(extraction.candidates)} candidate(s)")
        return DetectionResult.found(records, empty_message=NO_MATCHES_FOUND)


class ToolOrchestratedStrategy(DetectionStrategy):
    """Lets the model pick which books to verify before it reports."""

    variant = DetectorVariant.TOOL_ORCHESTRATED

    def __init__(self, orchestrator: DetectionOrchestrator):
        self.orchestrator = orchestrator

    async def run(self, image: ImageSource) -> DetectionResult:
        return await self.orchestrator.run(image)


class BookDetector:
    """
    Detects books in an image.

    Accepts raw image bytes (sent to the model as a base64 data URI) or an
    image URL.
    """

    def __init__(self, strategy: DetectionStrategy, extractor: Optional[VisionExtractor] = None):
        self.strategy = strategy
        self.extractor = extractor

    @property
    def variant(self) -> DetectorVariant:
        return self.strategy.variant

    async def detect(self, image: ImageInput) -> DetectionResult:
        """
        Detect books in `image`.

        Returns:
            DetectionResult with records, or a message when nothing was
            found or the detection failed
        """
        try:
            source = ImageSource.from_input(image)
            result = await self.strategy.run(source)
        except Exception as e:
            logger.error(f"Book detection ({self.variant.value}) failed: {describe_fault(e)}")
            return DetectionResult.failed(describe_fault(e), fault_kind_of(e))

        if result.records:
            logger.info(f"Detected {len(result.records)} book(s) using {self.variant.value}")
        return result

    async def describe(self, image: ImageInput) -> str:
        """Free-text description of the image."""
        if self.extractor is None:
            raise RuntimeError("This detector was built without an extractor")
        return await self.extractor.describe(ImageSource.from_input(image))


def create_detector(
    variant: Union[DetectorVariant, str],
    gateway: ChatGateway,
    lookup_client: Optional[OpenLibraryClient] = None,
) -> BookDetector:
    """
    Factory function to create a BookDetector for a configured variant.
    """
    variant = DetectorVariant(variant)
    lookup_client = lookup_client or OpenLibraryClient()
    extractor = VisionExtractor(gateway)

    if variant == DetectorVariant.SIMPLE:
        strategy: DetectionStrategy = SimpleStrategy(extractor, lookup_client)
    else:
        strategy = ToolOrchestratedStrategy(DetectionOrchestrator(gateway, lookup_client))

    logger.info(f"Created {variant.value} book detector (model={gateway.model})")
    return BookDetector(strategy, extractor=extractor)
