import json
from collections.abc import Callable
from types import SimpleNamespace

import fitz  # PyMuPDF
import httpx
import openai
import pytest

import retry

SPEC_TEXT = (
    "The EOS R5 is a full-frame mirrorless camera with a 45MP CMOS sensor, "
    "8K RAW video recording, in-body image stabilization up to 8 stops, "
    "and Dual Pixel CMOS AF II covering 100% of the frame."
)

GOOD_CONTENT = {
    "specs": [
        {
            "heading": "Image Sensor",
            "lines": [
                {"title": "Type", "text": "Full-frame CMOS"},
                {"title": "Resolution", "text": "45 MP"},
            ],
        }
    ],
    "highlights": ["45MP full-frame sensor", "8K RAW video"],
    "included": [{"title": "Battery Pack LP-E6NH", "link": "https://example.com/lp-e6nh"}],
    "featured": [{"title": "Megapixels", "value": "45"}],
}


def completion(content: str | None) -> SimpleNamespace:
    """Shape of an openai ChatCompletion, as far as the extractor reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:
    def __init__(self, responses: list):
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, SimpleNamespace):
            return item
        if isinstance(item, dict):
            return completion(json.dumps(item))
        return completion(item)


class FakeLLM:
    """Stands in for openai.AsyncOpenAI. Responses are replayed in order; the last one repeats."""

    def __init__(self, *responses):
        self.completions = FakeCompletions(list(responses) or [GOOD_CONTENT])
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self) -> list[dict]:
        return self.completions.calls


def openai_status_error(cls: type, status: int, message: str = "error"):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls(message, response=httpx.Response(status, request=request), body=None)


def rate_limit_error():
    return openai_status_error(openai.RateLimitError, 429, "Rate limit reached")


def auth_error():
    return openai_status_error(openai.AuthenticationError, 401, "Incorrect API key provided")


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def html_response(html: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, text=html, headers={"Content-Type": "text/html; charset=utf-8"})


def make_pdf(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture(autouse=True)
def sleeps(monkeypatch) -> list[float]:
    """Skip backoff delays; record what they would have been."""
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(retry, "_sleep", fake_sleep)
    return delays
