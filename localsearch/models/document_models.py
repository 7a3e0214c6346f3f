"""Parsed content, indexed document and term posting models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentKind(str, Enum):
    """Kind of content a document holds."""

    WEBPAGE = "webpage"
    IMAGE = "image"
    VIDEO = "video"


class PostingField(str, Enum):
    """Document field a posting was taken from."""

    TITLE = "title"
    DESCRIPTION = "description"
    CONTENT = "content"


@dataclass
class ParsedContent:
    """Fields extracted from one fetched body."""

    content_kind: ContentKind
    mime_type: str
    title: str = ""
    description: str = ""
    content_text: str = ""
    language: str = ""
    file_size: int = 0
    links: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    quality_score: float = 0.0


class Document(BaseModel):
    """An indexed document."""

    id: int
    project_id: int
    site_id: int
    url: str
    url_hash: str
    content_type: ContentKind = ContentKind.WEBPAGE
    mime_type: str = ""
    title: str = ""
    description: str = ""
    content_text: str = ""
    language: str = ""
    file_size: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    pagerank_score: float = 1.0
    quality_score: float = 0.0
    indexed_at: datetime = Field(default_factory=_utcnow)


class DocumentCreate(BaseModel):
    """Parameters for persisting a crawled document."""

    project_id: int
    site_id: int
    url: str
    url_hash: str
    content_type: ContentKind
    mime_type: str = ""
    title: str = ""
    description: str = ""
    content_text: str = ""
    language: str = ""
    file_size: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    pagerank_score: float = 1.0
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)


class Posting(BaseModel):
    """A (term, document) record of the inverted index."""

    term: str
    term_hash: str
    document_id: int
    project_id: int
    frequency: int = Field(..., ge=1)
    weight: float
    field: PostingField
    position: int = 0
    context: str = ""


class DocumentFilter(BaseModel):
    """Conjunctive document constraints shared by search, facets and counts."""

    project_id: int | None = None
    site_id: int | None = None
    content_type: ContentKind | None = None
    language: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TermFrequency(BaseModel):
    """A term and its summed frequency across postings."""

    term: str
    frequency: int


class IndexStatistics(BaseModel):
    """Index-wide counters."""

    total_documents: int = 0
    unique_terms: int = 0
    total_postings: int = 0
    average_frequency: float = 0.0
    top_terms: list[TermFrequency] = Field(default_factory=list)
    by_language: dict[str, int] = Field(default_factory=dict)


class ReindexStats(BaseModel):
    """Outcome of reindexing a project."""

    processed: int = 0
    errors: int = 0
