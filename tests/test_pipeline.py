import json

import httpx
import pytest

import pipeline as pipeline_module
from conftest import GOOD_CONTENT, SPEC_TEXT, FakeLLM, html_response, make_pdf, mock_client
from errors import ErrorKind
from models import PdfSource, TextSource, UploadedFile, UrlSource
from pipeline import Pipeline
from shopify import ShopifyAdminClient

PRODUCT_PAGE = """
<html><head><title>Sony Alpha 7 IV</title></head><body>
<table class="spec-table">
  <tr><td>Sensor</td><td>33MP full-frame Exmor R</td></tr>
  <tr><td>Video</td><td>4K 60p 10-bit</td></tr>
</table>
</body></html>
"""


def page_handler(requests: list):
    def handler(request):
        requests.append(request)
        return html_response(PRODUCT_PAGE)

    return handler


def shopify_handler(requests: list, user_errors: list | None = None):
    def handler(request):
        requests.append(request)
        metafields = json.loads(request.content)["variables"]["metafields"]
        saved = [{"id": "gid://shopify/Metafield/1", **{k: m[k] for k in ("namespace", "key", "value")}} for m in metafields]
        return httpx.Response(200, json={"data": {"metafieldsSet": {"metafields": saved, "userErrors": user_errors or []}}})

    return handler


@pytest.fixture
def page_requests():
    return []


@pytest.fixture
def shopify_requests():
    return []


@pytest.fixture
def llm():
    return FakeLLM(GOOD_CONTENT)


@pytest.fixture
def make_pipeline(llm, page_requests, shopify_requests):
    def _make(user_errors=None, with_shopify=True):
        shopify = None
        if with_shopify:
            shopify = ShopifyAdminClient(
                "camera-shop.myshopify.com",
                "shpat_test",
                http=mock_client(shopify_handler(shopify_requests, user_errors)),
            )
        return Pipeline(llm=llm, http=mock_client(page_handler(page_requests)), shopify=shopify)

    return _make


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


async def test_extract_text(make_pipeline, llm):
    result = await make_pipeline().extract_text("  " + SPEC_TEXT + "  ")

    assert result.ok
    assert isinstance(result.value.source, TextSource)
    assert result.value.extracted.highlights == GOOD_CONTENT["highlights"]
    assert SPEC_TEXT in llm.calls[0]["messages"][1]["content"]


async def test_short_text_fails_fast(make_pipeline, llm):
    result = await make_pipeline().extract_text("too short")

    assert result.error.code == "text.short"
    assert result.kind is ErrorKind.INPUT
    assert llm.calls == []


async def test_model_failures_propagate_unchanged(make_pipeline):
    pipe = make_pipeline()
    pipe.llm = FakeLLM({"specs": [], "highlights": [], "included": [], "featured": []})
    result = await pipe.extract_text(SPEC_TEXT)

    assert result.error.code == "ai.no_content"


# ---------------------------------------------------------------------------
# URL
# ---------------------------------------------------------------------------


async def test_extract_url(make_pipeline, llm, page_requests):
    result = await make_pipeline().extract_url("https://electronics.sony.com/a7iv")

    assert result.ok
    source = result.value.source
    assert isinstance(source, UrlSource)
    assert source.title == "Sony Alpha 7 IV"
    assert source.manufacturer == "Sony"
    assert len(page_requests) == 1
    assert "Sensor: 33MP full-frame Exmor R" in llm.calls[0]["messages"][1]["content"]


async def test_internal_url_never_fetched(make_pipeline, llm, page_requests):
    result = await make_pipeline().extract_url("http://127.0.0.1:8000/admin")

    assert result.error.code == "url.blocked"
    assert page_requests == []
    assert llm.calls == []


async def test_unexpected_errors_are_normalized(make_pipeline, monkeypatch):
    async def explode(url, client):
        raise RuntimeError("parser crashed")

    monkeypatch.setattr(pipeline_module, "scrape_product_page", explode)
    result = await make_pipeline().extract_url("https://example.com/p")

    assert result.error.code == "url.processing_failed"
    assert result.kind is ErrorKind.FAILURE


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


async def test_extract_pdf(make_pipeline, llm):
    data = make_pdf("Canon EOS R5 Specifications\nSensor: 45MP full-frame CMOS\nVideo: 8K RAW", "Weight: 738 g")
    upload = UploadedFile(filename="eos-r5.pdf", data=data, content_type="application/pdf")
    result = await make_pipeline().extract_pdf(upload)

    assert result.ok
    assert result.value.source == PdfSource(filename="eos-r5.pdf", pages=2)
    assert "Sensor: 45MP full-frame CMOS" in llm.calls[0]["messages"][1]["content"]


async def test_fake_pdf_is_rejected(make_pipeline, llm):
    upload = UploadedFile(filename="notes.pdf", data=b"plain text pretending to be a pdf", content_type="application/pdf")
    result = await make_pipeline().extract_pdf(upload)

    assert result.error.code == "pdf.invalid"
    assert llm.calls == []


async def test_image_only_pdf(make_pipeline, llm):
    upload = UploadedFile(filename="scan.pdf", data=make_pdf(""), content_type="application/pdf")
    result = await make_pipeline().extract_pdf(upload)

    assert result.error.code == "pdf.no_text"
    assert llm.calls == []


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


async def test_save_from_json_string(make_pipeline, shopify_requests):
    result = await make_pipeline().save("gid://shopify/Product/1", json.dumps(GOOD_CONTENT))

    assert result.ok
    assert result.value.success is True
    assert {m.key for m in result.value.saved} == {"specs", "highlights", "included", "featured"}
    assert len(shopify_requests) == 1


async def test_save_from_mapping(make_pipeline):
    assert (await make_pipeline().save("gid://shopify/Product/1", GOOD_CONTENT)).ok


async def test_save_rejected_by_shopify(make_pipeline):
    result = await make_pipeline(user_errors=[{"field": ["value"], "message": "value too long"}]).save(
        "gid://shopify/Product/1", GOOD_CONTENT
    )

    assert result.error.code == "save.shopify_error"
    assert result.kind is ErrorKind.REJECTED


@pytest.mark.parametrize(
    "product_id,content,code",
    [
        (None, GOOD_CONTENT, "save.no_product"),
        ("gid://shopify/Product/1", None, "save.no_content"),
        ("gid://shopify/Product/1", "", "save.no_content"),
        ("gid://shopify/Product/1", "{corrupt", "save.invalid_json"),
        ("gid://shopify/Product/1", '"just a string"', "content.invalid"),
        ("gid://shopify/Product/1", {"specs": [], "highlights": "x"}, "content.shape"),
        ("gid://shopify/Product/1", {}, "content.shape"),
        ("gid://shopify/Product/1", "{}", "content.shape"),
    ],
)
async def test_save_input_errors(make_pipeline, shopify_requests, product_id, content, code):
    result = await make_pipeline().save(product_id, content)

    assert result.error.code == code
    assert result.kind is ErrorKind.INPUT
    assert shopify_requests == []


async def test_save_without_shopify_configured(make_pipeline):
    result = await make_pipeline(with_shopify=False).save("gid://shopify/Product/1", GOOD_CONTENT)

    assert result.error.code == "save.not_configured"
