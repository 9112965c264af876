"""
Book Identification Module

Book data model and the Open Library lookup client.
"""

from bookscope.identification.models import (
    Candidate,
    BookRecord,
    UNKNOWN_AUTHOR,
    is_known_author,
)
from bookscope.identification.openlibrary import (
    OpenLibraryClient,
    build_search_params,
    DEFAULT_LIMIT,
)

__all__ = [
    # Models
    "Candidate",
    "BookRecord",
    "UNKNOWN_AUTHOR",
    "is_known_author",
    # Lookup
    "OpenLibraryClient",
    "build_search_params",
    "DEFAULT_LIMIT",
]
