"""
Command-line runner for the extraction pipeline.

Runs one source (URL, PDF file or text file) through acquire -> extract,
prints the document as JSON, and optionally saves it to a product:

    python main.py https://www.example.com/camera
    python main.py spec-sheet.pdf --save gid://shopify/Product/123
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

import orjson

from config import Settings
from errors import Err, Ok
from models import UploadedFile
from pipeline import Pipeline

logger = logging.getLogger(__name__)


def looks_like_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


async def run_source(pipeline: Pipeline, source: str) -> Ok | Err:
    """Dispatch `source` to the matching extraction intent."""
    if looks_like_url(source):
        return await pipeline.extract_url(source)

    path = Path(source)
    if path.suffix.lower() == ".pdf":
        upload = UploadedFile(filename=path.name, data=path.read_bytes(), content_type="application/pdf")
        return await pipeline.extract_pdf(upload)
    return await pipeline.extract_text(path.read_text(encoding="utf-8"))


def print_error(result: Err) -> None:
    error = result.error
    print(f"\n✗ {error.code}: {error.message}", file=sys.stderr)
    if error.suggestion:
        print(f"  → {error.suggestion}", file=sys.stderr)
    if error.details:
        print(f"  ({error.details})", file=sys.stderr)


def print_summary(response, wall_clock: float) -> None:
    content = response.extracted
    print(f"\n{'='*60}", file=sys.stderr)
    print(f"Source:      {response.source.type}", file=sys.stderr)
    for name, value in response.source.model_dump(exclude={"type"}).items():
        print(f"  {name:<11}{value}", file=sys.stderr)
    print(f"Spec groups: {len(content.specs)} ({sum(len(g.lines) for g in content.specs)} lines)", file=sys.stderr)
    print(f"Highlights:  {len(content.highlights)}", file=sys.stderr)
    print(f"Included:    {len(content.included)}", file=sys.stderr)
    print(f"Featured:    {len(content.featured)}", file=sys.stderr)
    print(f"Wall clock:  {wall_clock:.2f}s", file=sys.stderr)
    print(f"{'='*60}", file=sys.stderr)


async def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract structured product content from a manufacturer source.")
    parser.add_argument("source", help="product page URL, .pdf file, or text file")
    parser.add_argument("--save", metavar="PRODUCT_ID", help="write the result to this Shopify product")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.validate()

    pipeline = Pipeline.from_settings(settings)
    try:
        t0 = time.monotonic()
        result = await run_source(pipeline, args.source)
        if not result.ok:
            print_error(result)
            return 1

        print(orjson.dumps(result.value.extracted.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode())
        print_summary(result.value, time.monotonic() - t0)

        if args.save:
            saved = await pipeline.save(args.save, result.value.extracted.model_dump(mode="json"))
            if not saved.ok:
                print_error(saved)
                return 1
            logger.info(f"Saved {len(saved.value.saved)} metafields to {args.save}")
        return 0
    finally:
        await pipeline.aclose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
