"""
Open Library Client

Searches the Open Library catalog by title and author.
"""

from typing import Optional

import httpx
from loguru import logger

from bookscope.errors import LookupFailed
from bookscope.identification.models import BookRecord, is_known_author


DEFAULT_LIMIT = 3


def build_search_params(
    title: str,
    author: Optional[str],
    limit: int = DEFAULT_LIMIT,
) -> dict[str, str | int]:
    """
    Build query parameters for the search endpoint.

    An unknown author (None, blank or "Unknown") adds no author filter.
    """
    params: dict[str, str | int] = {
        "title": title,
        "limit": limit,
    }
    if is_known_author(author):
        params["author"] = author.strip()
    return params


class OpenLibraryClient:
    """
    Client for the Open Library search API.

    Stateless between calls: no caching, no retries. The underlying
    httpx.AsyncClient is created lazily and can be shared by concurrent
    searches.
    """

    BASE_URL = "https://openlibrary.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        limit: int = DEFAULT_LIMIT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.limit = limit
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search(self, title: str, author: Optional[str] = None) -> list[BookRecord]:
        """
        Search by title and author.

        Args:
            title: Book title
            author: Author name; "Unknown" means no author constraint

        Returns:
            Up to `limit` records, best ranked first. May be empty.

        Raises:
            LookupFailed: on transport, HTTP status or response format errors
        """
        client = await self._get_client()
        params = build_search_params(title, author, self.limit)

        try:
            response = await client.get(f"{self.base_url}/search.json", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise LookupFailed(
                f"Open Library returned {e.response.status_code} for '{title}'",
                detail=e.response.text[:200],
            ) from e
        except httpx.HTTPError as e:
            raise LookupFailed(f"Open Library request failed for '{title}'", detail=str(e)) from e
        except ValueError as e:
            raise LookupFailed(f"Open Library returned invalid JSON for '{title}'", detail=str(e)) from e

        docs = data.get("docs") if isinstance(data, dict) else None
        if not isinstance(docs, list):
            raise LookupFailed(f"Open Library response for '{title}' has no docs list")

        records = []
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            try:
                record = BookRecord.from_openlibrary_doc(doc)
            except ValueError as e:
                logger.warning(f"Skipping malformed Open Library doc for '{title}': {e}")
                continue
            if record:
                records.append(record)

        logger.info(
            f"Open Library search title='{title}' author='{params.get('author', '')}': "
            f"{data.get('numFound', len(records))} found, {len(records[:self.limit])} kept"
        )
        return records[:self.limit]

    async def get_first_match(self, title: str, author: Optional[str] = None) -> Optional[BookRecord]:
        """
        Get the highest ranked record for a title and author.

        Returns None when nothing matches, which usually means the candidate
        was hallucinated or is unverifiable.
        """
        records = await self.search(title, author)
        if not records:
            logger.info(f"No Open Library match for '{title}' by {author}")
            return None
        return records[0]

    async def close(self):
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenLibraryClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
