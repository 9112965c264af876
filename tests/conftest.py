"""
Pytest configuration and fixtures for BookScope tests.
"""

import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bookscope.identification.models import BookRecord


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def blank_image_bytes() -> bytes:
    """A plain white JPEG with nothing on it."""
    img = Image.new("RGB", (320, 240), color=(255, 255, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def bookshelf_image_bytes() -> bytes:
    """Synthetic bookshelf: colored vertical spines on a light background."""
    img = Image.new("RGB", (640, 480), color=(240, 240, 240))
    spine_colors = [
        (150, 50, 50),
        (50, 150, 50),
        (50, 50, 150),
        (150, 150, 50),
    ]

    x_start = 50
    for i, color in enumerate(spine_colors):
        width = 40 + (i * 5)
        img.paste(color, (x_start, 100, x_start + width, 400))
        x_start += width + 10

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def sapiens_record() -> BookRecord:
    return BookRecord(
        title="Sapiens",
        authors=("Yuval Noah Harari",),
        average_rating=4.3,
    )


@pytest.fixture
def catalog(sapiens_record) -> dict[str, list[BookRecord]]:
    """Lookup results keyed by title."""
    return {
        "Sapiens": [sapiens_record],
        "Dune": [
            BookRecord(title="Dune", authors=("Frank Herbert",), average_rating=4.2),
            BookRecord(title="Dune Messiah", authors=("Frank Herbert",)),
            BookRecord(title="Children of Dune", authors=("Frank Herbert",)),
        ],
        "1984": [BookRecord(title="1984", authors=("George Orwell",), average_rating=4.1)],
    }


@pytest.fixture
def openlibrary_docs() -> list[dict]:
    """Raw Open Library search documents."""
    return [
        {"title": "Dune", "author_name": ["Frank Herbert"], "ratings_average": 4.23},
        {"title": "Dune Messiah", "author_name": ["Frank Herbert"], "ratings_average": 3.9},
        {"title": "Children of Dune", "author_name": ["Frank Herbert"]},
        {"title": "God Emperor of Dune", "author_name": ["Frank Herbert"]},
        {"title": "Dune: House Atreides", "author_name": ["Brian Herbert", "Kevin J. Anderson"]},
    ]
