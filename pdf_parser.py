"""PDF text extraction for uploaded spec sheets and brochures."""

import logging

import fitz  # PyMuPDF

from errors import Err, ErrorKind, Ok, fail
from models import PdfParseResult

logger = logging.getLogger(__name__)

MIN_TEXT_CHARS = 50


def parse_pdf(data: bytes) -> Ok[PdfParseResult] | Err:
    """Extract per-page text from a PDF.

    Image-only and encrypted documents yield (almost) no text; those are
    reported as pdf.no_text instead of being forwarded to the model.
    """
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [] if doc.needs_pass else [doc.load_page(i).get_text("text") or "" for i in range(doc.page_count)]
            page_count = doc.page_count
            metadata = doc.metadata or {}
    except Exception:
        logger.error("PDF parsing failed", exc_info=True)
        return fail(
            "pdf.parsing_failed",
            "Failed to parse PDF file.",
            "The file may be corrupted or in an unsupported format. "
            "Try re-exporting or downloading the PDF again.",
        )

    text = "\n\n".join(p.strip() for p in pages if p.strip())
    if len(text) < MIN_TEXT_CHARS:
        return fail(
            "pdf.no_text",
            "Could not extract text from PDF.",
            "The file may be image-based or encrypted. Try an OCR-processed PDF or paste specs directly.",
            kind=ErrorKind.PAYLOAD,
        )

    logger.info(f"Parsed PDF: {page_count} pages, {len(text)} chars")
    return Ok(
        PdfParseResult(
            text=text,
            pages=pages,
            page_count=page_count,
            title=metadata.get("title") or None,
            author=metadata.get("author") or None,
            subject=metadata.get("subject") or None,
        )
    )
