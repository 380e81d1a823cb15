"""
Diagnostic: run validation + acquisition only (no LLM, no Shopify).
Reports how much text each source yields and what the model would receive.
"""

import asyncio
import sys
from pathlib import Path

import httpx

from errors import Err, Ok
from main import looks_like_url
from models import UploadedFile
from pdf_parser import parse_pdf
from scraper import scrape_product_page
from validation import validate_pdf_file, validate_text_input, validate_url_input


async def acquire(source: str, client: httpx.AsyncClient) -> tuple[str, Ok | Err]:
    """Return (strategy, result) where result wraps the text the model would see."""
    if looks_like_url(source):
        validated = validate_url_input(source)
        if not validated.ok:
            return "url", validated
        scraped = await scrape_product_page(validated.value, client)
        return "url", Ok(scraped.value.text) if scraped.ok else scraped

    path = Path(source)
    if path.suffix.lower() == ".pdf":
        upload = UploadedFile(filename=path.name, data=path.read_bytes(), content_type="application/pdf")
        validated = validate_pdf_file(upload)
        if not validated.ok:
            return "pdf", validated
        parsed = parse_pdf(upload.data)
        return "pdf", Ok(parsed.value.text) if parsed.ok else parsed

    return "text", validate_text_input(path.read_text(encoding="utf-8"))


async def main(sources: list[str]) -> None:
    print(f"Diagnosing {len(sources)} source(s) (acquisition only, NO LLM)\n")

    async with httpx.AsyncClient() as client:
        for source in sources:
            strategy, result = await acquire(source, client)

            print(f"{'=' * 70}")
            print(f"  {source}  [{strategy}]")
            print(f"{'=' * 70}")

            if not result.ok:
                print(f"  FAILED: {result.error.code} - {result.error.message}\n")
                continue

            text = result.value
            lines = [line for line in text.splitlines() if line.strip()]
            label_lines = sum(1 for line in lines if ": " in line)
            print(f"  Chars: {len(text)} | Lines: {len(lines)} | 'label: value' lines: {label_lines}")
            print("  Preview:")
            for line in lines[:10]:
                print(f"    {line[:100]}")
            if len(lines) > 10:
                print(f"    ... and {len(lines) - 10} more lines")
            print()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python diagnostics.py SOURCE [SOURCE ...]")
        sys.exit(2)
    asyncio.run(main(sys.argv[1:]))
