"""
Book Detection Module

Turns a photograph into book records:
- Vision extraction (request/response shaping)
- Concurrent tool-call dispatch
- Two-phase orchestration protocol
- BookDetector capability with simple and tool-orchestrated strategies
"""

from bookscope.detection.models import (
    DetectionResult,
    DetectionState,
    ToolOutcome,
    NO_BOOKS_FOUND,
    NO_BOOKS_DETECTED,
    NO_MATCHES_FOUND,
)
from bookscope.detection.extractor import VisionExtractor, CandidateExtraction
from bookscope.detection.dispatcher import ToolCallDispatcher
from bookscope.detection.orchestrator import DetectionOrchestrator
from bookscope.detection.detector import (
    BookDetector,
    DetectorVariant,
    DetectionStrategy,
    SimpleStrategy,
    ToolOrchestratedStrategy,
    create_detector,
)

__all__ = [
    # Models
    "DetectionResult",
    "DetectionState",
    "ToolOutcome",
    "NO_BOOKS_FOUND",
    "NO_BOOKS_DETECTED",
    "NO_MATCHES_FOUND",
    # Pipeline
    "VisionExtractor",
    "CandidateExtraction",
    "ToolCallDispatcher",
    "DetectionOrchestrator",
    # Detector
    "BookDetector",
    "DetectorVariant",
    "DetectionStrategy",
    "SimpleStrategy",
    "ToolOrchestratedStrategy",
    "create_detector",
]
