"""
AI product-content extractor.

Turns raw manufacturer text into a ProductContent document:
  A) Call the model (JSON mode) through the AI retry policy
  B) Parse the response body as JSON
  C) Normalize: strict on top-level types, lenient per element
  D) Reject a document with nothing in it

The OpenAI client is passed in by the caller; this module holds no client state.
"""

import json
import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from errors import Err, ErrorKind, Ok, fail
from models import FeaturedSpec, IncludedItem, ProductContent, SpecGroup, SpecLine
from retry import RetryPolicy, retry_with_policy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
TEMPERATURE = 0.2

SYSTEM_PROMPT = """You are an expert at extracting structured product information from manufacturer spec sheets.
You specialize in camera equipment: cameras, lenses, flashes, tripods, etc.

Given raw manufacturer text, extract and return JSON with:
1. specs: Array of spec groups, each with a heading and lines of title/text pairs
   - Group by category: Camera, Image Sensor, Autofocus, Video, Monitor, Connectivity, etc.
2. highlights: Array of key marketing bullet points (5-8 items)
3. included: Array of what's in the box (title and optional link)
4. featured: Array of 5 key specs for quick reference (title and value)

For camera specs, use these standard headings:
- Camera (Format, Mount, Crop Factor)
- Image Sensor (Type, Size, Megapixels, ISO, Stabilization)
- Autofocus (Methods, Modes, Coverage, Points)
- Shutter (Speed Range, Continuous Shooting)
- Video (Resolution, Frame Rates, Formats)
- Monitor and Viewfinder (Type, Size, Resolution)
- Connectivity (Ports, Wireless)
- Physical (Dimensions, Weight)

Keep values clean and consistent. Use common abbreviations (MP, fps, mm).
Return only valid JSON of the form:
{"specs": [{"heading": str, "lines": [{"title": str, "text": str}]}],
 "highlights": [str],
 "included": [{"title": str, "link": str}],
 "featured": [{"title": str, "value": str}]}"""

USER_PROMPT = "Extract structured product content from this manufacturer text:\n\n{text}"


class ChatClient(Protocol):
    """The slice of openai.AsyncOpenAI this module uses (client.chat.completions.create)."""

    chat: Any


# =====================================================================
# Main Entry Point
# =====================================================================


async def extract_product_content(
    raw_text: str,
    client: ChatClient,
    model: str = DEFAULT_MODEL,
    **retry_overrides: Any,
) -> Ok[ProductContent] | Err:
    """Full extraction: model call -> JSON parse -> normalize -> emptiness check."""
    if not raw_text or not raw_text.strip():
        return fail(
            "text.empty",
            "No text provided for extraction.",
            "Paste the product specifications or upload a PDF.",
            kind=ErrorKind.INPUT,
        )

    try:
        return await _extract(raw_text, client, model, retry_overrides)
    except Exception:
        logger.error("Content extraction failed", exc_info=True)
        return fail(
            "ai.extraction_failed",
            "Content extraction failed.",
            "Check your internet connection and try again. "
            "If the problem persists, try different source content.",
        )


async def _extract(raw_text: str, client: ChatClient, model: str, retry_overrides: dict) -> Ok[ProductContent] | Err:
    # Stage A: model call
    t0 = time.monotonic()
    result = await retry_with_policy(
        RetryPolicy.AI,
        lambda: client.chat.completions.create(
            model=model,
            temperature=TEMPERATURE,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(text=raw_text)},
            ],
        ),
        **retry_overrides,
    )
    if not result.success:
        logger.warning(f"Model call failed after {result.attempts} attempt(s): {result.error}")
        return fail(
            "ai.retry_failed",
            str(result.error) or "AI extraction failed after retries.",
            "Check your internet connection and try again. "
            "If the problem persists, try different source content.",
            kind=ErrorKind.TRANSIENT,
        )
    logger.info(f"Model call: {result.attempts} attempt(s), {time.monotonic() - t0:.2f}s")

    body = _response_body(result.value)
    if not body:
        return fail(
            "ai.no_response",
            "AI extraction returned no content.",
            "Try again with different text or contact support.",
            kind=ErrorKind.PAYLOAD,
        )

    # Stage B: parse
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        parsed = None
    if not isinstance(parsed, dict):
        return fail(
            "ai.invalid_json",
            "AI returned invalid data format.",
            "The extraction failed due to format issues. Try again or use different source text.",
            kind=ErrorKind.PAYLOAD,
        )

    # Stage C: normalize
    content = normalize_content(parsed)

    # Stage D: an empty document is indistinguishable from a failed extraction
    if content.is_empty():
        return fail(
            "ai.no_content",
            "No product specifications could be extracted.",
            "Try using text with more detailed specs, or check if this is camera/photography equipment.",
            kind=ErrorKind.PAYLOAD,
        )

    logger.info(
        f"Extracted {len(content.specs)} spec groups, {len(content.highlights)} highlights, "
        f"{len(content.included)} included, {len(content.featured)} featured"
    )
    return Ok(content)


def _response_body(response: Any) -> str | None:
    """First choice's message content, or None if the response has none."""
    choices = getattr(response, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or None


# =====================================================================
# Normalization
# =====================================================================


def normalize_content(parsed: dict[str, Any]) -> ProductContent:
    """Build a ProductContent from parsed model output.

    A field is kept only if it is a list; within it, each element that fails
    its shape check is dropped rather than failing the whole document.
    """
    return ProductContent(
        specs=[g for g in map(_spec_group, _as_list(parsed, "specs")) if g is not None],
        highlights=[h for h in _as_list(parsed, "highlights") if isinstance(h, str) and h.strip()],
        included=_validate_each(IncludedItem, _as_list(parsed, "included")),
        featured=_validate_each(FeaturedSpec, _as_list(parsed, "featured")),
    )


def _as_list(parsed: dict[str, Any], key: str) -> list:
    value = parsed.get(key)
    return value if isinstance(value, list) else []


def _validate_each(model: type[BaseModel], items: list) -> list:
    kept = []
    for item in items:
        try:
            kept.append(model.model_validate(item))
        except ValidationError:
            logger.debug(f"Dropping malformed {model.__name__}: {item!r}")
    return kept


def _spec_group(item: Any) -> SpecGroup | None:
    if not isinstance(item, dict) or not isinstance(item.get("lines"), list):
        return None
    lines = _validate_each(SpecLine, item["lines"])
    try:
        return SpecGroup(heading=item.get("heading"), lines=lines)
    except ValidationError:
        logger.debug(f"Dropping malformed SpecGroup: {item!r}")
        return None
