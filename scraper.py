"""
Manufacturer product-page scraper.

Fetches a page through the FETCH retry policy and reduces it to the text
most likely to hold specifications: HTML tables first, then an ordered list
of CSS selectors from most to least specific. Output is plain text meant
for the AI extractor, not structured data.
"""

import logging
import re
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup

from errors import Err, ErrorKind, Ok, fail
from models import ScrapeResult
from retry import RedirectRefused, error_status, retry_fetch
from validation import validate_url_input

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

MAX_TEXT_CHARS = 30_000
TRUNCATION_MARKER = "\n\n[Content truncated...]"
MIN_ELEMENT_CHARS = 50  # ignore elements with less text than this
ENOUGH_SELECTOR_CHARS = 500  # stop walking selectors once this much is collected

# Ordered from most to least specific
SPEC_SELECTORS = [
    # Generic spec tables / containers
    'table[class*="spec"]',
    'table[class*="Spec"]',
    'div[class*="spec"]',
    'div[class*="Spec"]',
    'section[class*="spec"]',
    '[data-testid*="spec"]',
    # Product descriptions
    'div[class*="product-description"]',
    'div[class*="ProductDescription"]',
    'div[class*="description"]',
    '[itemprop="description"]',
    # Features
    'div[class*="feature"]',
    'div[class*="Feature"]',
    'ul[class*="feature"]',
    # Canon
    ".productSpec",
    ".product-spec",
    "#productSpec",
    ".specifications",
    # Sony
    ".ProductSpecification",
    ".spec-table",
    '[class*="SpecList"]',
    # Nikon
    ".productSpecs",
    ".specificationTable",
    # Whole-page fallbacks
    "article",
    "main",
    ".product-detail",
    ".product-info",
]

# Site chrome and non-content elements
SKIP_SELECTORS = [
    "nav",
    "header",
    "footer",
    ".nav",
    ".header",
    ".footer",
    ".menu",
    ".sidebar",
    ".cookie",
    ".newsletter",
    ".social",
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    "script",
    "style",
    "noscript",
    "svg",
    "iframe",
]

# Hostname substring -> display name
MANUFACTURERS = {
    "canon": "Canon",
    "sony": "Sony",
    "nikon": "Nikon",
    "fujifilm": "Fujifilm",
    "panasonic": "Panasonic",
    "olympus": "Olympus",
    "omsystem": "OM System",
    "leica": "Leica",
    "sigma": "Sigma",
    "tamron": "Tamron",
    "zeiss": "Zeiss",
    "hasselblad": "Hasselblad",
    "dji": "DJI",
    "gopro": "GoPro",
    "blackmagic": "Blackmagic",
    "rode": "Rode",
    "sennheiser": "Sennheiser",
    "manfrotto": "Manfrotto",
    "gitzo": "Gitzo",
    "profoto": "Profoto",
    "godox": "Godox",
    "peakdesign": "Peak Design",
    "benq": "BenQ",
}

# Fetch failures by HTTP status: code, message, suggestion
_STATUS_ERRORS = {
    403: ("url.blocked", "This site blocked automated access.", "Try another product page or paste specs directly."),
    404: ("url.not_found", "The product page was not found.", "Check the URL or try a different product page."),
    429: ("url.rate_limited", "Too many requests to this site.", "Wait a few minutes and try again."),
}


async def scrape_product_page(url: str, client: httpx.AsyncClient) -> Ok[ScrapeResult] | Err:
    """Fetch `url` (already validated) and reduce it to spec-bearing text."""
    try:
        fetched = await retry_fetch(client, url, headers=REQUEST_HEADERS, allow_url=_is_public_url)
        if not fetched.success:
            return _fetch_error(fetched.error)

        logger.info(f"Fetched {url} in {fetched.attempts} attempt(s), {fetched.elapsed:.2f}s")
        return _build_result(fetched.value.text, url)
    except Exception:
        logger.error(f"URL scraping failed for {url}", exc_info=True)
        return fail("url.scraping_failed", "Failed to scrape the URL.", "Check the URL or try again later.")


def _is_public_url(url: str) -> bool:
    return validate_url_input(url).ok


def _fetch_error(error: BaseException | None) -> Err:
    if isinstance(error, RedirectRefused):
        logger.warning(f"Refused redirect to {error.url}")
        return fail(
            "url.blocked",
            "The page redirected to a local or internal address.",
            "Use a public manufacturer product page.",
            kind=ErrorKind.INPUT,
        )
    status = error_status(error) if error is not None else None
    if status in _STATUS_ERRORS:
        code, message, suggestion = _STATUS_ERRORS[status]
        return fail(code, message, suggestion, kind=ErrorKind.TRANSIENT)
    if status is not None:
        return fail(
            "url.server_error",
            f"Manufacturer site error: {status}",
            "Try again later or use a different source.",
            kind=ErrorKind.TRANSIENT,
        )
    return fail(
        "url.fetch_failed",
        f"Failed to fetch page: {error}",
        "Check the URL or try again later.",
        kind=ErrorKind.TRANSIENT,
    )


def _build_result(html: str, url: str) -> Ok[ScrapeResult] | Err:
    soup = BeautifulSoup(html, "lxml")

    # Title first: the <h1> often lives inside <header>, which is stripped below
    title = _extract_title(soup)
    _strip_boilerplate(soup)

    table_text = _extract_tables(soup)
    spec_text = _extract_spec_text(soup, fallback_to_body=not table_text)
    combined = "\n\n---\n\n".join(t for t in (table_text, spec_text) if t)

    if not combined.strip():
        return fail(
            "url.no_content",
            "No content could be extracted from this page.",
            "Try a different product page or paste specs directly.",
            kind=ErrorKind.PAYLOAD,
        )

    return Ok(
        ScrapeResult(
            title=title,
            text=truncate(combined),
            url=url,
            manufacturer=detect_manufacturer(url),
        )
    )


# ---------------------------------------------------------------------------
# DOM extraction
# ---------------------------------------------------------------------------


def _extract_title(soup: BeautifulSoup) -> str:
    for tag_name in ("title", "h1"):
        tag = soup.find(tag_name)
        if tag:
            text = tag.get_text(" ", strip=True)
            if text:
                return text
    return "Unknown Product"


def _strip_boilerplate(soup: BeautifulSoup) -> None:
    for selector in SKIP_SELECTORS:
        for el in soup.select(selector):
            # Nested matches go away with their already-removed ancestor
            if not el.decomposed:
                el.decompose()


def _extract_tables(soup: BeautifulSoup) -> str:
    """Render every table as "cell: cell" lines, one line per row."""
    blocks: list[str] = []
    for table in soup.find_all("table"):
        rows: list[str] = []
        for tr in table.find_all("tr"):
            cells = [cell.get_text(" ", strip=True) for cell in tr.find_all(["th", "td"])]
            cells = [c for c in cells if c]
            if cells:
                rows.append(": ".join(cells))
        if rows:
            blocks.append("\n".join(rows))
    return clean_text("\n\n".join(blocks))


def _extract_spec_text(soup: BeautifulSoup, fallback_to_body: bool = True) -> str:
    """Walk SPEC_SELECTORS in order, collecting substantial, non-overlapping text."""
    parts: list[str] = []
    collected: set[int] = set()  # id() of every collected element
    seen_text: set[str] = set()
    total = 0

    for selector in SPEC_SELECTORS:
        for el in soup.select(selector):
            if id(el) in collected or any(id(parent) in collected for parent in el.parents):
                continue
            text = el.get_text("\n", strip=True)
            if len(text) <= MIN_ELEMENT_CHARS or text in seen_text:
                continue
            collected.add(id(el))
            seen_text.add(text)
            parts.append(text)
            total += len(text)

        if total > ENOUGH_SELECTOR_CHARS:
            logger.debug(f"Selector walk stopped at {selector!r} with {total} chars")
            break

    if not parts and fallback_to_body:
        body = soup.find("body") or soup
        body_text = body.get_text("\n", strip=True)
        if body_text:
            logger.debug("No spec selectors matched; using whole page body")
            parts.append(body_text)

    return clean_text("\n\n".join(parts))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_TABS_RE = re.compile(r"[\t\r]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_SPACES_RE = re.compile(r" {2,}")


def clean_text(text: str) -> str:
    """Normalize whitespace: collapse blank lines and spaces, trim every line."""
    text = _TABS_RE.sub(" ", text)
    text = _SPACES_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def truncate(text: str, limit: int = MAX_TEXT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def detect_manufacturer(url: str) -> str | None:
    """Guess the brand from the hostname (best effort)."""
    host = (urlsplit(url).hostname or "").lower().replace("-", "")
    for key, name in MANUFACTURERS.items():
        if key in host:
            return name
    return None
