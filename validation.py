"""
Input guards that run before any network call is made.

Each validator returns Ok(value) or Err(UserError) with kind INPUT.
"""

import ipaddress
import re
import socket
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from errors import Err, ErrorKind, Ok, fail
from models import CONTENT_FIELDS, ProductContent, UploadedFile

MIN_TEXT_CHARS = 50
MAX_TEXT_CHARS = 60_000
MAX_PDF_BYTES = 20_000_000
PDF_SIGNATURE = b"%PDF"

_BLOCKED_HOSTS = {"localhost", "localhost.localdomain", "0.0.0.0", "::1", "ip6-localhost"}
_BLOCKED_SUFFIXES = (".localhost", ".local", ".internal")

# Shorthand, integer, hex and octal IPv4 forms that resolvers accept (127.1, 2130706433, 0x7f000001)
_NUMERIC_HOST_RE = re.compile(r"^(0x[0-9a-f]*|\d+)(\.(0x[0-9a-f]*|\d+)){0,3}$")


def _invalid(code: str, message: str, suggestion: str) -> Err:
    return fail(code, message, suggestion, kind=ErrorKind.INPUT)


# ---------------------------------------------------------------------------
# URL
# ---------------------------------------------------------------------------


def _is_internal_host(host: str) -> bool:
    """True for loopback, private, link-local and otherwise non-public hosts."""
    host = host.rstrip(".")
    if host in _BLOCKED_HOSTS or host.endswith(_BLOCKED_SUFFIXES):
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        if not _NUMERIC_HOST_RE.match(host):
            return False  # a regular DNS name
        try:
            ip = ipaddress.ip_address(socket.inet_aton(host))
        except OSError:
            return True  # numeric but not parseable as an address
    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_reserved
        or ip.is_multicast
    )


def validate_url_input(raw: str | None) -> Ok[str] | Err:
    value = (raw or "").strip()
    if not value:
        return _invalid("url.empty", "URL is required.", "Paste a full https:// product page URL.")

    try:
        parts = urlsplit(value)
        host = (parts.hostname or "").lower()
        _ = parts.port  # raises ValueError on a malformed port
    except ValueError:
        return _invalid("url.invalid", "That URL doesn't look valid.", "Include https:// at the beginning.")

    if not parts.scheme:
        return _invalid("url.invalid", "That URL doesn't look valid.", "Include https:// at the beginning.")
    if parts.scheme.lower() not in ("http", "https"):
        return _invalid("url.protocol", "Only HTTP/HTTPS URLs are supported.", "Use an https:// product page.")
    if not host:
        return _invalid("url.invalid", "That URL doesn't look valid.", "Include https:// at the beginning.")

    if _is_internal_host(host.strip("[]")):
        return _invalid(
            "url.blocked",
            "Local or internal URLs are not allowed.",
            "Use a public manufacturer product page.",
        )

    normalized = urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))
    return Ok(normalized)


# ---------------------------------------------------------------------------
# PDF upload
# ---------------------------------------------------------------------------


def validate_pdf_file(upload: UploadedFile | None) -> Ok[UploadedFile] | Err:
    if upload is None or upload.size == 0:
        return _invalid("pdf.missing", "No PDF file provided.", "Upload a PDF spec sheet or brochure.")
    if upload.size > MAX_PDF_BYTES:
        return _invalid("pdf.too_large", "PDF is larger than 20MB.", "Export a smaller PDF or split it into parts.")
    if upload.content_type and upload.content_type != "application/pdf":
        return _invalid("pdf.type", "Only PDF files are supported.", "Upload a .pdf file.")

    # MIME types are client-supplied; always check the magic bytes
    if upload.data[:4] != PDF_SIGNATURE:
        return _invalid(
            "pdf.invalid",
            "This file doesn't look like a valid PDF.",
            "Re-export or download the PDF again.",
        )
    return Ok(upload)


# ---------------------------------------------------------------------------
# Pasted text
# ---------------------------------------------------------------------------


def validate_text_input(text: str | None) -> Ok[str] | Err:
    value = (text or "").strip()
    if len(value) < MIN_TEXT_CHARS:
        return _invalid(
            "text.short",
            "Text is too short to extract reliable specs.",
            "Paste the full spec sheet or at least a few paragraphs.",
        )
    if len(value) > MAX_TEXT_CHARS:
        return _invalid(
            "text.long",
            "Text is too long to process in one pass.",
            "Trim to the spec section only or split into parts.",
        )
    return Ok(value)


# ---------------------------------------------------------------------------
# Content payload (before saving)
# ---------------------------------------------------------------------------


def validate_content_payload(raw: Any) -> Ok[ProductContent] | Err:
    """Check the four top-level lists exist. Element shapes are not inspected.

    The returned ProductContent is built without element validation, so it
    carries the client's lists exactly as received.
    """
    if not isinstance(raw, Mapping):
        return _invalid("content.invalid", "Content payload is invalid.", "Re-extract content before saving.")

    if not all(isinstance(raw.get(name), list) for name in CONTENT_FIELDS):
        return _invalid(
            "content.shape",
            "Extracted content is incomplete.",
            "Re-extract content and try saving again.",
        )
    return Ok(ProductContent.model_construct(**{name: list(raw[name]) for name in CONTENT_FIELDS}))
