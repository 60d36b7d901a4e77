"""Pydantic data models and error types for the commentary enrichment pipeline."""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SCHEMA_TYPE_KEY = "@type"


class EnrichmentError(Exception):
    """Base exception for pipeline failures."""

    def __init__(
        self,
        message: str,
        record: str | None = None,
        driver: str | None = None,
        context: dict | None = None,
    ):
        super().__init__(message)
        self.record = record
        self.driver = driver
        self.context = context or {}


class ConfigurationError(EnrichmentError):
    """Raised at process start when credentials or directories are missing."""

    pass


class GenerationError(EnrichmentError):
    """Raised when the remote generation call fails and must not be retried."""

    pass


class TransientRemoteError(GenerationError):
    """Rate limits, timeouts and dropped connections."""

    pass


class ModelUnavailableError(GenerationError):
    """The requested model identifier is not served by the endpoint."""

    pass


class ExhaustedRetriesError(GenerationError):
    """Raised when transient failures outlast the retry policy."""

    pass


class MalformedResponseError(EnrichmentError):
    """Raised when model output cannot be turned into the expected update."""

    def __init__(self, message: str, raw_text: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_text = raw_text


class RecordIOError(EnrichmentError):
    """Raised when a record cannot be read or written."""

    pass


class ParseError(RecordIOError):
    """Raised when a record file is not valid JSON or violates the record schema."""

    pass


class ValidationRejection(BaseModel):
    """A model proposal that was refused. Not an error: the record is left as it was."""

    reason: str
    context: dict[str, Any] = Field(default_factory=dict)


def slugify_book(book_name: str) -> str:
    """Lowercase, drop punctuation, hyphenate whitespace ("1 John" -> "1-john")."""
    cleaned = re.sub(r"[^a-z0-9\s-]", "", book_name.lower()).strip()
    return re.sub(r"\s+", "-", cleaned)


def make_slug(book_name: str, chapter_number: str | int) -> str:
    """Record slug in the form ``<book-slug>-<NN>``."""
    return f"{slugify_book(book_name)}-{int(chapter_number):02d}"


class Entity(BaseModel):
    """A person, place or concept named in the commentary."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = Field(default="Thing", alias=SCHEMA_TYPE_KEY)
    name: str
    description: str = ""
    same_as: str | None = Field(default=None, alias="sameAs")


class FAQItem(BaseModel):
    """Question and answer drawn from the commentary text."""

    question: str
    answer: str


class ChapterRecord(BaseModel):
    """One chapter (or book introduction) as stored on disk."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    book_name: str
    chapter_number: str
    slug: str = ""
    title: str = ""
    original_title: str | None = None
    content: str = ""
    original_content: str | None = None
    meta_description: str = Field(default="", alias="metaDescription")
    keywords: list[str] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    faq: list[FAQItem] = Field(default_factory=list)
    structured_data: list[dict[str, Any]] = Field(default_factory=list, alias="structuredData")
    previous_chapter: str | None = None
    next_chapter: str | None = None

    @field_validator("chapter_number", mode="before")
    @classmethod
    def _pad_chapter_number(cls, value: Any) -> str:
        if isinstance(value, bool):
            raise ValueError("chapter_number must be a numeral")
        if isinstance(value, int):
            return f"{value:02d}"
        text = str(value).strip()
        if not text.isdigit():
            raise ValueError(f"chapter_number must be a numeral, got {value!r}")
        return text

    @field_validator("content", mode="before")
    @classmethod
    def _join_content(cls, value: Any) -> Any:
        # Some upstream exports store content as a list of HTML chunks
        if isinstance(value, list):
            return "".join(str(part) for part in value)
        return "" if value is None else value

    @field_validator("structured_data", mode="before")
    @classmethod
    def _normalize_structured_data(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, list):
            return value
        items: list = []
        positions: dict[str, int] = {}
        for item in value:
            schema_type = item.get(SCHEMA_TYPE_KEY) if isinstance(item, dict) else None
            if schema_type in positions:
                # Later entries replace earlier ones with the same discriminator
                items[positions[schema_type]] = item
                continue
            if schema_type:
                positions[schema_type] = len(items)
            items.append(item)
        return items

    @model_validator(mode="after")
    def _derive_slug(self) -> "ChapterRecord":
        if not self.slug:
            self.slug = make_slug(self.book_name, self.chapter_number)
        return self

    @property
    def chapter_index(self) -> int:
        """Numeric chapter used for navigation ordering."""
        return int(self.chapter_number)

    @property
    def is_introduction(self) -> bool:
        return self.chapter_index == 0

    def find_schema(self, schema_type: str) -> dict[str, Any] | None:
        """Return the structured-data entry for a discriminator, if present."""
        for item in self.structured_data:
            if item.get(SCHEMA_TYPE_KEY) == schema_type:
                return item
        return None

    def to_json_dict(self) -> dict[str, Any]:
        """Dump using on-disk key names."""
        return self.model_dump(by_alias=True, mode="json")


class FormattedChapter(BaseModel):
    """Output schema for the format-and-metadata chain."""

    title: str = Field(description="Thematic SEO title without book name or chapter number")
    meta_description: str = Field(alias="metaDescription", description="160-character summary")
    formatted_html: str = Field(description="Semantic HTML for the chapter commentary")
    entities: list[Entity] = Field(default_factory=list)
    faq: list[FAQItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class IntroductionDraft(BaseModel):
    """Output schema for the introduction ingestion chain."""

    title: str
    content: str
    meta_description: str = Field(alias="metaDescription")
    keywords: list[str] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    faq: list[FAQItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class RecordStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class RecordOutcome(BaseModel):
    """Result of one driver run over one record."""

    path: str
    status: RecordStatus
    reason: str | None = None
    error: str | None = None
    error_type: str | None = None


class BatchSummary(BaseModel):
    """Per-record outcomes and totals for one batch run."""

    driver: str
    outcomes: list[RecordOutcome] = Field(default_factory=list)
    runtime_sec: float = 0.0

    def _count(self, status: RecordStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(RecordStatus.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(RecordStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(RecordStatus.FAILED)

    @property
    def processed(self) -> int:
        return len(self.outcomes)
