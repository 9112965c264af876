"""
Look up a single book on Open Library.

Usage:
    python scripts/lookup_book.py "Daisy Jones & The Six"
    python scripts/lookup_book.py "Sapiens" --author "Yuval Noah Harari"
"""

import argparse
import asyncio

from bookscope.errors import LookupFailed
from bookscope.identification import OpenLibraryClient, UNKNOWN_AUTHOR


async def main(title: str, author: str):
    async with OpenLibraryClient() as client:
        try:
            records = await client.search(title, author)
        except LookupFailed as e:
            print(f"Lookup failed: {e}")
            return

    if not records:
        print(f"No match found for '{title}' by {author}")
        return

    for record in records:
        print(record)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Search Open Library by title and author")
    parser.add_argument("title")
    parser.add_argument("--author", default=UNKNOWN_AUTHOR)
    args = parser.parse_args()

    asyncio.run(main(args.title, args.author))
