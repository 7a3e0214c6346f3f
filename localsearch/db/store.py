"""Storage protocol consumed by the crawler and search services.

The store is constructed once per process and passed into every service
constructor. Implementations must provide:

- insert-ignore semantics for queue entries on (project_id, url_hash)
- an atomic pending -> processing claim for queue entries and sites
- a unique url_hash per document
- whole-document replacement of postings
"""

from datetime import datetime
from typing import Protocol

from localsearch.models.crawl_models import (
    CrawlHistory,
    CrawlQueueEntry,
    CrawlStats,
    QueueEntryCreate,
    QueueStatus,
)
from localsearch.models.document_models import (
    Document,
    DocumentCreate,
    DocumentFilter,
    Posting,
    TermFrequency,
)
from localsearch.models.site_models import (
    Project,
    ProjectCreate,
    Site,
    SiteCreate,
    SiteStatus,
)

# Document columns that facet counts may group by
FACET_FIELDS = ("content_type", "project_id", "site_id", "language")


class SearchStore(Protocol):
    """Persistence for projects, sites, frontier, documents, postings and history."""

    backend: str

    # Projects ---------------------------------------------------------------

    def create_project(self, project: ProjectCreate) -> Project: ...

    def get_project(self, project_id: int) -> Project | None: ...

    def update_project(self, project_id: int, project: ProjectCreate) -> Project | None:
        """Replace a project's editable fields. Returns None when it does not exist."""
        ...

    def list_projects(self) -> list[Project]: ...

    # Sites ------------------------------------------------------------------

    def create_site(self, site: SiteCreate) -> Site: ...

    def get_site(self, site_id: int) -> Site | None: ...

    def list_sites(self, project_id: int | None = None) -> list[Site]: ...

    def find_site_by_domain(self, project_id: int, domain: str) -> Site | None: ...

    def claim_site_for_crawl(self, site_id: int) -> bool:
        """Set the site to processing unless it already is. Returns False on conflict."""
        ...

    def update_site_status(
        self,
        site_id: int,
        status: SiteStatus,
        last_crawled: datetime | None = None,
    ) -> None: ...

    # Crawl queue ------------------------------------------------------------

    def insert_queue_entry(self, entry: QueueEntryCreate) -> bool:
        """Insert unless (project_id, url_hash) exists. Returns True when inserted."""
        ...

    def claim_next_queue_entry(
        self, project_id: int, site_id: int | None = None
    ) -> CrawlQueueEntry | None:
        """Claim the highest-priority, oldest pending entry as processing."""
        ...

    def finish_queue_entry(
        self, entry_id: int, status: QueueStatus, error: str | None = None
    ) -> None: ...

    def reopen_queue_entries(self, project_id: int, site_id: int) -> int: ...

    def count_queue_entries(
        self, site_id: int | None = None, project_id: int | None = None
    ) -> dict[QueueStatus, int]: ...

    def list_queue_entries(
        self, project_id: int | None = None, limit: int = 100
    ) -> list[CrawlQueueEntry]: ...

    # Documents --------------------------------------------------------------

    def insert_document(self, document: DocumentCreate) -> Document: ...

    def get_document(self, document_id: int) -> Document | None: ...

    def get_document_by_hash(self, url_hash: str) -> Document | None: ...

    def list_documents(self, filters: DocumentFilter | None = None) -> list[Document]: ...

    def find_documents(
        self, filters: DocumentFilter, needles: list[str]
    ) -> list[Document]:
        """Filtered documents whose title, description or content contains any needle."""
        ...

    def count_documents(self, filters: DocumentFilter | None = None) -> int: ...

    def count_documents_by(
        self, field: str, filters: DocumentFilter | None = None
    ) -> dict[str, int]: ...

    def find_titles(
        self, text: str, filters: DocumentFilter | None = None, limit: int = 3
    ) -> list[str]: ...

    # Postings ---------------------------------------------------------------

    def replace_postings(self, document_id: int, postings: list[Posting]) -> None: ...

    def list_postings(self, document_id: int) -> list[Posting]: ...

    def term_frequencies(
        self,
        project_id: int | None = None,
        prefix: str | None = None,
        limit: int | None = None,
    ) -> list[TermFrequency]:
        """Summed frequency per term, most frequent first."""
        ...

    def count_postings(self, project_id: int | None = None) -> int: ...

    def delete_orphan_postings(self) -> int: ...

    # Crawl history ----------------------------------------------------------

    def create_crawl_history(
        self, site_id: int, project_id: int | None, started_at: datetime
    ) -> CrawlHistory: ...

    def finalize_crawl_history(self, history_id: int, stats: CrawlStats) -> None: ...

    def list_crawl_history(
        self, project_id: int | None = None, limit: int = 50
    ) -> list[CrawlHistory]: ...


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
