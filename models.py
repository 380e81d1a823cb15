from dataclasses import dataclass, field
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from errors import UserError

# Metafield namespace and keys written to each product
METAFIELD_NAMESPACE = "product_bridge"
CONTENT_FIELDS = ("specs", "highlights", "included", "featured")


class SpecLine(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    title: str
    text: str


class SpecGroup(BaseModel):
    """A heading ("Image Sensor", "Video") and its title/text lines."""

    model_config = ConfigDict(frozen=True)

    heading: str
    lines: list[SpecLine]

    @field_validator("heading")
    @classmethod
    def heading_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("heading must not be blank")
        return v


class IncludedItem(BaseModel):
    """Something that ships in the box."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v


class FeaturedSpec(BaseModel):
    """A quick-reference spec (e.g. "Megapixels": "45")."""

    # Models often return numeric values here ("value": 45)
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    title: str
    value: str

    @field_validator("title", "value")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


# This is the canonical document written to the product metafields.
class ProductContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    specs: list[SpecGroup] = []
    highlights: list[str] = []
    included: list[IncludedItem] = []
    featured: list[FeaturedSpec] = []

    def is_empty(self) -> bool:
        return not (self.specs or self.highlights or self.included or self.featured)


@dataclass(frozen=True)
class ScrapeResult:
    """Normalized output of the web-page acquirer."""

    title: str
    text: str  # cleaned, deduplicated, length-capped
    url: str
    manufacturer: str | None = None


@dataclass(frozen=True)
class PdfParseResult:
    text: str
    pages: list[str] = field(default_factory=list)
    page_count: int = 0
    title: str | None = None
    author: str | None = None
    subject: str | None = None


@dataclass(frozen=True)
class UploadedFile:
    """A file received from the client. content_type is whatever the client claimed."""

    filename: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


# ---------------------------------------------------------------------------
# Provenance (display only)
# ---------------------------------------------------------------------------


class TextSource(BaseModel):
    type: Literal["text"] = "text"


class PdfSource(BaseModel):
    type: Literal["pdf"] = "pdf"
    filename: str
    pages: int


class UrlSource(BaseModel):
    type: Literal["url"] = "url"
    url: str
    title: str
    manufacturer: str | None = None


SourceInfo = Annotated[TextSource | PdfSource | UrlSource, Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class ExtractionResponse(BaseModel):
    extracted: ProductContent
    source: SourceInfo


class SavedMetafield(BaseModel):
    id: str | None = None
    namespace: str
    key: str
    value: str


class SaveResponse(BaseModel):
    success: Literal[True] = True
    saved: list[SavedMetafield]


class ErrorResponse(BaseModel):
    error: UserError
