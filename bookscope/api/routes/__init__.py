"""
API Routes for BookScope

Route modules:
- detection: Image upload and book detection
"""

from bookscope.api.routes.detection import router as detection_router

__all__ = [
    "detection_router",
]
