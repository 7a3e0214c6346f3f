"""Crawl frontier, run statistics and crawl history models."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from localsearch.constants import DEFAULT_MAX_PAGES, MAX_MAX_PAGES, MIN_MAX_PAGES
from localsearch.models.site_models import SiteStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueStatus(str, Enum):
    """State of a frontier entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_QUEUE_STATUSES = frozenset(
    (QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.SKIPPED)
)


class CrawlQueueEntry(BaseModel):
    """A URL in a project's crawl frontier."""

    id: int
    project_id: int
    site_id: int
    url: str
    url_hash: str
    depth: int = 0
    parent_url: str | None = None
    priority: int = 0
    status: QueueStatus = QueueStatus.PENDING
    last_error: str | None = None
    scheduled_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None


class QueueEntryCreate(BaseModel):
    """Parameters for inserting a frontier entry."""

    project_id: int
    site_id: int
    url: str
    url_hash: str
    depth: int = Field(default=0, ge=0)
    parent_url: str | None = None
    priority: int = 0


class CrawlRunStatus(str, Enum):
    """Outcome of one orchestrator run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CrawlStats(BaseModel):
    """Statistics aggregated over one orchestrator run."""

    site_id: int
    project_id: int | None = None
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    urls_discovered: int = 0
    urls_successful: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    pages_processed: int = 0
    status: CrawlRunStatus = CrawlRunStatus.RUNNING
    errors: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Whether the run finished without a run-level failure."""
        return self.status != CrawlRunStatus.FAILED


class CrawlHistory(BaseModel):
    """Persisted record of one orchestrator run."""

    id: int
    project_id: int | None = None
    site_id: int
    started_at: datetime
    completed_at: datetime | None = None
    urls_discovered: int = 0
    urls_successful: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    status: CrawlRunStatus = CrawlRunStatus.RUNNING
    errors: list[str] = Field(default_factory=list)


class CrawlRequest(BaseModel):
    """Crawl trigger input."""

    site_id: int = Field(..., description="Site to crawl")
    max_pages: int = Field(
        default=DEFAULT_MAX_PAGES,
        ge=MIN_MAX_PAGES,
        le=MAX_MAX_PAGES,
        description="Page budget for the run",
    )


class SiteCrawlStatus(BaseModel):
    """Crawl status of one site."""

    site_id: int
    project_id: int
    domain: str
    status: SiteStatus
    documents_count: int = 0
    queue_pending: int = 0
    queue_processing: int = 0
    queue_completed: int = 0
    queue_failed: int = 0
    queue_skipped: int = 0
    last_crawled: datetime | None = None
