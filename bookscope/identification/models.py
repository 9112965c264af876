"""
Book data model.

Candidates are the model's raw (title, author) guesses; BookRecords are the
enriched records returned by Open Library or by the model's final report.
"""

from dataclasses import dataclass
from typing import Any, Optional


UNKNOWN_AUTHOR = "Unknown"


@dataclass(frozen=True)
class Candidate:
    """A book hypothesis proposed by the LLM before enrichment."""

    title: str
    author: str = UNKNOWN_AUTHOR

    @property
    def author_known(self) -> bool:
        return is_known_author(self.author)

    @classmethod
    def from_dict(cls, data: dict) -> "Candidate":
        return cls(
            title=data["title"],
            author=data.get("author") or UNKNOWN_AUTHOR,
        )


@dataclass(frozen=True)
class BookRecord:
    """
    Canonical enriched record for one book.

    `authors` and `average_rating` are optional; None means the source did
    not provide them, which is distinct from an empty author list.
    """

    title: str
    authors: Optional[tuple[str, ...]] = None
    average_rating: Optional[float] = None

    @property
    def primary_author(self) -> str:
        """Get primary author name."""
        if self.authors:
            return self.authors[0]
        return UNKNOWN_AUTHOR

    def to_dict(self) -> dict[str, Any]:
        """JSON form; absent optional fields are omitted."""
        data: dict[str, Any] = {"title": self.title}
        if self.authors is not None:
            data["authors"] = list(self.authors)
        if self.average_rating is not None:
            data["averageRating"] = self.average_rating
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BookRecord":
        """Create from the JSON form used in tool payloads."""
        authors = data.get("authors")
        rating = data.get("averageRating")
        return cls(
            title=data["title"],
            authors=tuple(authors) if authors is not None else None,
            average_rating=float(rating) if rating is not None else None,
        )

    @classmethod
    def from_openlibrary_doc(cls, doc: dict) -> Optional["BookRecord"]:
        """
        Parse an Open Library search document.

        Returns None for documents without a title.

        Raises:
            ValueError: a field is present but has the wrong shape
        """
        title = doc.get("title")
        if not title:
            return None
        if not isinstance(title, str):
            raise ValueError(f"title must be a string, got {type(title).__name__}")

        authors = doc.get("author_name")
        if authors is not None:
            if not isinstance(authors, list) or not all(isinstance(a, str) for a in authors):
                raise ValueError(f"author_name must be a list of strings, got {authors!r}")
            authors = tuple(authors)

        rating = doc.get("ratings_average")
        if rating is not None:
            # bool is an int subclass
            if isinstance(rating, bool) or not isinstance(rating, (int, float)):
                raise ValueError(f"ratings_average must be a number, got {rating!r}")
            rating = float(rating)

        return cls(title=title, authors=authors, average_rating=rating)


def is_known_author(author: Optional[str]) -> bool:
    """False for None, blank, or the "Unknown" placeholder."""
    if author is None:
        return False
    author = author.strip()
    return bool(author) and author.lower() != UNKNOWN_AUTHOR.lower()
