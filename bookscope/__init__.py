"""
BookScope

Identifies the books in a photograph with a vision LLM and Open Library.
"""

__version__ = "0.1.0"

from bookscope.detection import BookDetector, DetectionResult, DetectorVariant, create_detector
from bookscope.identification import BookRecord, OpenLibraryClient
from bookscope.llm import LLMProvider, create_gateway

__all__ = [
    "BookDetector",
    "DetectionResult",
    "DetectorVariant",
    "create_detector",
    "BookRecord",
    "OpenLibraryClient",
    "LLMProvider",
    "create_gateway",
]
