import pytest

from conftest import GOOD_CONTENT, make_pdf
from errors import ErrorKind
from models import UploadedFile
from validation import (
    MAX_PDF_BYTES,
    validate_content_payload,
    validate_pdf_file,
    validate_text_input,
    validate_url_input,
)

# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def test_text_length_boundary():
    assert validate_text_input("x" * 49).error.code == "text.short"
    assert validate_text_input("x" * 50).value == "x" * 50


def test_text_is_trimmed_before_measuring():
    result = validate_text_input("   " + "x" * 49 + "\n\n")
    assert not result.ok
    assert result.kind is ErrorKind.INPUT

    result = validate_text_input("\n " + "y" * 60 + " \n")
    assert result.value == "y" * 60


def test_text_validation_is_idempotent():
    text = "A" * 120
    first = validate_text_input(text).value
    assert validate_text_input(first).value == first == text


def test_text_too_long():
    assert validate_text_input("x" * 60_000).ok
    assert validate_text_input("x" * 60_001).error.code == "text.long"


def test_text_none_is_short():
    assert validate_text_input(None).error.code == "text.short"


# ---------------------------------------------------------------------------
# URL
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost/x",
        "http://127.0.0.1/x",
        "http://10.0.0.5/x",
        "http://192.168.1.20/admin",
        "http://172.16.4.1/",
        "http://169.254.169.254/latest/meta-data/",
        "http://[::1]/x",
        "http://0.0.0.0:8080/",
        "https://printer.local/status",
        "https://metadata.google.internal/",
        "http://app.localhost/",
        "http://2130706433/",
        "http://127.1/",
        "http://0x7f000001/",
        "http://017700000001/",
        "http://0xa9.0xfe.0xa9.0xfe/latest/meta-data/",
        "http://127.0.0.1./",
    ],
)
def test_internal_urls_are_blocked(url):
    result = validate_url_input(url)
    assert not result.ok
    assert result.error.code == "url.blocked"


def test_public_url_is_accepted():
    assert validate_url_input("https://example.com/product").value == "https://example.com/product"


def test_url_is_normalized():
    assert validate_url_input("  HTTPS://Example.COM  ").value == "https://example.com/"


def test_public_hosts_that_look_private_are_accepted():
    # Substring matches like "10." or "172." must not block real domains
    assert validate_url_input("https://shop172.example.com/p/10.5-lens").ok


@pytest.mark.parametrize(
    "raw,code",
    [
        ("", "url.empty"),
        ("   ", "url.empty"),
        (None, "url.empty"),
        ("example.com/product", "url.invalid"),
        ("https://", "url.invalid"),
        ("http://example.com:notaport/", "url.invalid"),
        ("ftp://example.com/spec.pdf", "url.protocol"),
        ("javascript:alert(1)", "url.protocol"),
    ],
)
def test_malformed_urls(raw, code):
    assert validate_url_input(raw).error.code == code


# ---------------------------------------------------------------------------
# PDF upload
# ---------------------------------------------------------------------------


def test_real_pdf_is_accepted():
    upload = UploadedFile(filename="spec.pdf", data=make_pdf("hello"), content_type="application/pdf")
    assert validate_pdf_file(upload).value is upload


def test_renamed_text_file_is_rejected_despite_pdf_mime_type():
    upload = UploadedFile(filename="notes.pdf", data=b"Just some notes\n" * 10, content_type="application/pdf")
    assert validate_pdf_file(upload).error.code == "pdf.invalid"


def test_missing_and_empty_files():
    assert validate_pdf_file(None).error.code == "pdf.missing"
    assert validate_pdf_file(UploadedFile(filename="a.pdf", data=b"")).error.code == "pdf.missing"


def test_oversized_file():
    upload = UploadedFile(filename="big.pdf", data=b"%PDF" + b"0" * MAX_PDF_BYTES)
    assert validate_pdf_file(upload).error.code == "pdf.too_large"


def test_wrong_declared_type():
    upload = UploadedFile(filename="a.pdf", data=b"%PDF-1.7", content_type="image/png")
    assert validate_pdf_file(upload).error.code == "pdf.type"


def test_missing_declared_type_still_checks_signature():
    assert validate_pdf_file(UploadedFile(filename="a.pdf", data=b"%PDF-1.7")).ok
    assert validate_pdf_file(UploadedFile(filename="a.pdf", data=b"PK\x03\x04")).error.code == "pdf.invalid"


# ---------------------------------------------------------------------------
# Content payload
# ---------------------------------------------------------------------------


def test_content_payload_accepts_four_lists():
    result = validate_content_payload(GOOD_CONTENT)
    assert result.ok
    assert result.value.highlights == GOOD_CONTENT["highlights"]


def test_content_payload_tolerates_odd_elements():
    payload = {"specs": [{"unexpected": True}], "highlights": [1, 2], "included": [], "featured": []}
    result = validate_content_payload(payload)
    assert result.ok
    assert result.value.specs == [{"unexpected": True}]


@pytest.mark.parametrize("raw", [None, "text", 42, ["specs"]])
def test_content_payload_must_be_an_object(raw):
    assert validate_content_payload(raw).error.code == "content.invalid"


@pytest.mark.parametrize("missing", ["specs", "highlights", "included", "featured"])
def test_content_payload_needs_every_list(missing):
    payload = {**GOOD_CONTENT, missing: None}
    assert validate_content_payload(payload).error.code == "content.shape"


def test_content_payload_empty_object():
    assert validate_content_payload({}).error.code == "content.shape"
