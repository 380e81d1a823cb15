"""
Extraction pipeline: the four intents a caller can invoke.

  extract      pasted text  -> validate -> extract
  extract-pdf  upload       -> validate -> parse PDF -> extract
  extract-url  URL          -> validate -> scrape    -> extract
  save         product + content -> validate -> write metafields

Stages run strictly one after another. Each intent returns Ok or Err and
never raises: anything unexpected is normalized to a UserError here.
"""

import json
import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx
from openai import AsyncOpenAI

from config import Settings
from errors import Err, ErrorKind, Ok, UserError, as_user_error, fail
from extractor import DEFAULT_MODEL, ChatClient, extract_product_content
from models import (
    ExtractionResponse,
    PdfSource,
    SaveResponse,
    TextSource,
    UploadedFile,
    UrlSource,
)
from pdf_parser import parse_pdf
from scraper import scrape_product_page
from shopify import ShopifyAdminClient, save_product_content
from validation import validate_content_payload, validate_pdf_file, validate_text_input, validate_url_input

logger = logging.getLogger(__name__)


def acquire_text(text: str) -> str:
    """Pass-through acquirer for pasted text (already validated)."""
    return text


class Pipeline:
    """Owns the external clients; one instance serves many independent requests."""

    def __init__(
        self,
        llm: ChatClient,
        http: httpx.AsyncClient,
        shopify: ShopifyAdminClient | None = None,
        model: str = DEFAULT_MODEL,
    ):
        self.llm = llm
        self.http = http
        self.shopify = shopify
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pipeline":
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is required")

        shopify = None
        if settings.shopify_configured:
            shopify = ShopifyAdminClient(
                settings.shopify_shop_domain,
                settings.shopify_access_token,
                api_version=settings.shopify_api_version,
            )
        return cls(
            llm=AsyncOpenAI(api_key=settings.openai_api_key),
            http=httpx.AsyncClient(),
            shopify=shopify,
            model=settings.openai_model,
        )

    async def aclose(self) -> None:
        await self.http.aclose()
        if self.shopify is not None:
            await self.shopify.aclose()
        close = getattr(self.llm, "close", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def extract_text(self, text: str | None) -> Ok[ExtractionResponse] | Err:
        validated = validate_text_input(text)
        if not validated.ok:
            return validated
        try:
            extracted = await self._extract(acquire_text(validated.value))
            if not extracted.ok:
                return extracted
            return Ok(ExtractionResponse(extracted=extracted.value, source=TextSource()))
        except Exception as e:
            logger.error("Text extraction error", exc_info=True)
            return self._normalize(
                e, "text.processing_failed", "Failed to extract content from text",
                "Try different text or check your internet connection.",
            )

    async def extract_pdf(self, upload: UploadedFile | None) -> Ok[ExtractionResponse] | Err:
        validated = validate_pdf_file(upload)
        if not validated.ok:
            return validated
        try:
            parsed = parse_pdf(validated.value.data)
            if not parsed.ok:
                return parsed
            extracted = await self._extract(parsed.value.text)
            if not extracted.ok:
                return extracted
            source = PdfSource(filename=validated.value.filename, pages=parsed.value.page_count)
            return Ok(ExtractionResponse(extracted=extracted.value, source=source))
        except Exception as e:
            logger.error("PDF extraction error", exc_info=True)
            return self._normalize(
                e, "pdf.processing_failed", "Failed to process PDF",
                "Try a different PDF or paste specs directly.",
            )

    async def extract_url(self, url: str | None) -> Ok[ExtractionResponse] | Err:
        validated = validate_url_input(url)
        if not validated.ok:
            return validated
        try:
            scraped = await scrape_product_page(validated.value, self.http)
            if not scraped.ok:
                return scraped
            page = scraped.value
            logger.info(f"Scraped {page.url}: {len(page.text)} chars, manufacturer={page.manufacturer}")
            extracted = await self._extract(page.text)
            if not extracted.ok:
                return extracted
            source = UrlSource(url=page.url, title=page.title, manufacturer=page.manufacturer)
            return Ok(ExtractionResponse(extracted=extracted.value, source=source))
        except Exception as e:
            logger.error("URL scraping error", exc_info=True)
            return self._normalize(
                e, "url.processing_failed", "Failed to scrape URL",
                "Check the URL or try again later.",
            )

    async def save(self, product_id: str | None, content: str | Mapping[str, Any] | None) -> Ok[SaveResponse] | Err:
        if not product_id:
            return fail(
                "save.no_product", "No product selected.",
                "Select a product before saving.", kind=ErrorKind.INPUT,
            )
        if content is None or content == "":
            return fail(
                "save.no_content", "No content to save.",
                "Extract content first before saving.", kind=ErrorKind.INPUT,
            )
        if self.shopify is None:
            return fail(
                "save.not_configured", "Saving to Shopify is not configured.",
                "Set SHOPIFY_SHOP_DOMAIN and SHOPIFY_ACCESS_TOKEN.",
            )

        try:
            if isinstance(content, str):
                try:
                    content = json.loads(content)
                except json.JSONDecodeError:
                    return fail(
                        "save.invalid_json", "Content data is corrupted.",
                        "Re-extract content and try saving again.", kind=ErrorKind.INPUT,
                    )

            validated = validate_content_payload(content)
            if not validated.ok:
                return validated

            saved = await save_product_content(self.shopify, product_id, validated.value)
            if not saved.ok:
                return saved
            return Ok(SaveResponse(saved=saved.value))
        except Exception as e:
            logger.error("Save error", exc_info=True)
            return self._normalize(
                e, "save.failed", "Failed to save metafields",
                "Check your connection and try again.",
            )

    # ------------------------------------------------------------------

    async def _extract(self, text: str) -> Ok | Err:
        t0 = time.monotonic()
        result = await extract_product_content(text, self.llm, model=self.model)
        logger.info(f"Extraction {'succeeded' if result.ok else 'failed'} in {time.monotonic() - t0:.2f}s")
        return result

    @staticmethod
    def _normalize(error: Exception, code: str, message: str, suggestion: str) -> Err:
        fallback = UserError(code=code, message=message, suggestion=suggestion)
        return Err(as_user_error(error, fallback), kind=ErrorKind.FAILURE)
