"""Query analysis, search options and search response models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from localsearch.constants import DEFAULT_RESULTS_PER_PAGE, MAX_RESULTS_PER_PAGE
from localsearch.models.document_models import ContentKind, Document, DocumentFilter


class TermType(str, Enum):
    """Where an analyzed term came from."""

    TERM = "term"
    SYNONYM = "synonym"


class QueryIntent(str, Enum):
    """Coarse intent of a query."""

    QUESTION = "question"
    DEFINITION = "definition"
    SEARCH = "search"


class AnalyzedTerm(BaseModel):
    """A query term, original or synonym expansion."""

    term: str
    normalized: str
    weight: float
    type: TermType = TermType.TERM
    origin: str | None = Field(
        default=None, description="Original term a synonym was expanded from"
    )


class QueryAnalysis(BaseModel):
    """Cleaned, tokenized and expanded form of a query. Never persisted."""

    original_query: str
    cleaned_query: str
    terms: list[AnalyzedTerm] = Field(default_factory=list)
    phrases: list[str] = Field(default_factory=list)
    intent: QueryIntent = QueryIntent.SEARCH
    language: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.terms and not self.phrases


SortOrder = Literal["relevance", "date", "title", "pagerank"]


class SearchOptions(BaseModel):
    """Filters, sorting, paging and expansion flags for a search."""

    project_id: int | None = None
    content_type: ContentKind | None = None
    site_id: int | None = None
    language: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort: SortOrder = "relevance"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_RESULTS_PER_PAGE, ge=1)
    exact_phrase: bool = False
    include_synonyms: bool = True

    @field_validator("per_page")
    @classmethod
    def cap_per_page(cls, value: int) -> int:
        return min(value, MAX_RESULTS_PER_PAGE)

    def to_filter(self) -> DocumentFilter:
        return DocumentFilter(
            project_id=self.project_id,
            site_id=self.site_id,
            content_type=self.content_type,
            language=self.language,
            date_from=self.date_from,
            date_to=self.date_to,
        )


@dataclass
class ScoredDocument:
    """A matched document with its relevance before enrichment."""

    document: Document
    relevance: float
    matched_conditions: int = 0
    matched_terms: list[str] = field(default_factory=list)


class ScoreBreakdown(BaseModel):
    relevance: float
    pagerank: float
    quality: float


class ReadingTime(BaseModel):
    words: int
    minutes: int
    text: str


class ContentQuality(BaseModel):
    score: int
    max_score: int
    factors: list[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    """One enriched search hit."""

    document_id: int
    url: str
    title: str
    description: str = ""
    highlighted_title: str
    highlighted_description: str = ""
    snippet: str = ""
    domain: str = ""
    project_id: int
    project_name: str = ""
    site_id: int
    content_type: ContentKind
    language: str = ""
    indexed_at: datetime
    score: float
    score_breakdown: ScoreBreakdown
    reading_time: ReadingTime
    content_quality: ContentQuality


class FacetBucket(BaseModel):
    value: str
    label: str
    count: int


class SearchFacets(BaseModel):
    content_types: list[FacetBucket] = Field(default_factory=list)
    projects: list[FacetBucket] = Field(default_factory=list)
    sites: list[FacetBucket] = Field(default_factory=list)
    languages: list[FacetBucket] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Ranked page of results with facets and suggestions."""

    query: str
    total_results: int
    page: int
    per_page: int
    total_pages: int
    results: list[SearchResult] = Field(default_factory=list)
    facets: SearchFacets = Field(default_factory=SearchFacets)
    suggestions: list[str] = Field(default_factory=list)
    analysis: QueryAnalysis | None = None
    fallback: bool = False
    elapsed_time_ms: float = 0.0
