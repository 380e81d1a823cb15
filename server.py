"""
FastAPI server exposing the extraction pipeline.

Endpoints:
- POST /api/extract      → extract content from pasted text
- POST /api/extract-pdf  → extract content from an uploaded PDF
- POST /api/extract-url  → extract content from a manufacturer product page
- POST /api/save         → write content to a product's metafields
- GET  /healthz          → liveness probe

Failures return {"error": UserError}: 400 when the input or payload was
refused, 500 otherwise.
"""

import logging
import os
from typing import Any

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

from config import Settings
from errors import Err, ErrorKind, Ok
from models import ErrorResponse, UploadedFile
from pipeline import Pipeline

logger = logging.getLogger("server")

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TextRequest(BaseModel):
    text: str | None = None


class UrlRequest(BaseModel):
    url: str | None = None


class SaveRequest(BaseModel):
    product_id: str | None = None
    # Either the extracted document itself or its JSON encoding
    content: dict[str, Any] | str | None = None


# ---------------------------------------------------------------------------
# Result -> HTTP response
# ---------------------------------------------------------------------------

_CLIENT_ERROR_KINDS = {ErrorKind.INPUT, ErrorKind.REJECTED}


def _respond(result: Ok | Err) -> ORJSONResponse:
    if result.ok:
        return ORJSONResponse(result.value.model_dump(mode="json"))
    status = 400 if result.kind in _CLIENT_ERROR_KINDS else 500
    logger.info("Request failed: %s (%s)", result.error.code, result.error.message)
    return ORJSONResponse(ErrorResponse(error=result.error).model_dump(mode="json"), status_code=status)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Product Bridge API",
    default_response_class=ORJSONResponse,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    max_age=86400,
)


@app.on_event("startup")
async def startup() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.validate()
    app.state.pipeline = Pipeline.from_settings(settings)


@app.on_event("shutdown")
async def shutdown() -> None:
    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is not None:
        await pipeline.aclose()


def get_pipeline(request: Request) -> Pipeline:
    return request.app.state.pipeline


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/api/extract")
async def extract_text(body: TextRequest, pipeline: Pipeline = Depends(get_pipeline)):
    """Extract structured content from pasted manufacturer text."""
    return _respond(await pipeline.extract_text(body.text))


@app.post("/api/extract-pdf")
async def extract_pdf(pdf: UploadFile | None = File(None), pipeline: Pipeline = Depends(get_pipeline)):
    """Extract structured content from an uploaded PDF spec sheet."""
    upload = None
    if pdf is not None:
        upload = UploadedFile(
            filename=pdf.filename or "upload.pdf",
            data=await pdf.read(),
            content_type=pdf.content_type,
        )
    return _respond(await pipeline.extract_pdf(upload))


@app.post("/api/extract-url")
async def extract_url(body: UrlRequest, pipeline: Pipeline = Depends(get_pipeline)):
    """Scrape a manufacturer product page and extract structured content."""
    return _respond(await pipeline.extract_url(body.url))


@app.post("/api/save")
async def save(body: SaveRequest, pipeline: Pipeline = Depends(get_pipeline)):
    """Write extracted content to the product's product_bridge metafields."""
    return _respond(await pipeline.save(body.product_id, body.content))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
