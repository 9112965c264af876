"""
Detect books in a local image file or an image URL.

Usage:
    python scripts/detect_books.py myBooks.jpg
    python scripts/detect_books.py https://example.com/shelf.jpg --variant simple
"""

import argparse
import asyncio
import os
from pathlib import Path

from dotenv import load_dotenv

# Load env vars
load_dotenv()

from bookscope.detection import DetectorVariant, create_detector
from bookscope.identification import OpenLibraryClient
from bookscope.llm import LLMProvider, create_gateway


async def main(args):
    gateway = create_gateway(
        provider=LLMProvider(args.provider),
        model=args.model,
    )

    async with OpenLibraryClient() as lookup_client:
        detector = create_detector(args.variant, gateway, lookup_client)

        if args.image.startswith(("http://", "https://", "data:")):
            image = args.image
        else:
            image = Path(args.image).read_bytes()

        if args.describe:
            print(await detector.describe(image))
            return

        result = await detector.detect(image)

    if not result.records:
        print(result.message)
        return

    for book in result.records:
        authors = ", ".join(book.authors) if book.authors else "Unknown"
        print(f"Title: {book.title}, Author: {authors}, Rating: {book.average_rating}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Detect books in an image")
    parser.add_argument("image", help="Path to an image file, or an image URL")
    parser.add_argument(
        "--variant",
        choices=[v.value for v in DetectorVariant],
        default=DetectorVariant.TOOL_ORCHESTRATED.value,
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in LLMProvider],
        default=os.getenv("LLM_PROVIDER", LLMProvider.OPENAI.value),
    )
    parser.add_argument("--model", default=os.getenv("LLM_MODEL"))
    parser.add_argument("--describe", action="store_true", help="Describe the image instead")

    asyncio.run(main(parser.parse_args()))
