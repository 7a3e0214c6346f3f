"""Thread-safe in-memory store.

Used for local runs without Supabase credentials and throughout the test
suite. All tables live in dicts guarded by one lock, which makes every
operation (including the queue and site claims) atomic.
"""

import itertools
from collections import Counter
from datetime import datetime, timezone
from threading import Lock

import logfire

from localsearch.db.store import FACET_FIELDS
from localsearch.exceptions import StoreError
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


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def matches_filter(document: Document, filters: DocumentFilter | None) -> bool:
    """Check a document against conjunctive filters."""
    if filters is None:
        return True
    if filters.project_id is not None and document.project_id != filters.project_id:
        return False
    if filters.site_id is not None and document.site_id != filters.site_id:
        return False
    if filters.content_type is not None and document.content_type != filters.content_type:
        return False
    if filters.language and document.language != filters.language:
        return False
    if filters.date_from is not None and document.indexed_at < filters.date_from:
        return False
    if filters.date_to is not None and document.indexed_at > filters.date_to:
        return False
    return True


def _contains_any(document: Document, needles: list[str]) -> bool:
    haystacks = (
        document.title.lower(),
        document.description.lower(),
        document.content_text.lower(),
    )
    return any(needle in haystack for needle in needles for haystack in haystacks)


class InMemoryStore:
    """SearchStore implementation backed by process memory."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = Lock()
        self._ids = {
            name: itertools.count(1)
            for name in ("projects", "sites", "queue", "documents", "history")
        }
        self._projects: dict[int, Project] = {}
        self._sites: dict[int, Site] = {}
        self._queue: dict[int, CrawlQueueEntry] = {}
        self._queue_keys: set[tuple[int, str]] = set()
        self._documents: dict[int, Document] = {}
        self._documents_by_hash: dict[str, int] = {}
        self._postings: dict[int, list[Posting]] = {}
        self._history: dict[int, CrawlHistory] = {}

    def _next_id(self, table: str) -> int:
        return next(self._ids[table])

    # Projects ---------------------------------------------------------------

    def create_project(self, project: ProjectCreate) -> Project:
        with self._lock:
            created = Project(id=self._next_id("projects"), **project.model_dump())
            self._projects[created.id] = created
            return created.model_copy(deep=True)

    def get_project(self, project_id: int) -> Project | None:
        with self._lock:
            project = self._projects.get(project_id)
            return project.model_copy(deep=True) if project else None

    def update_project(self, project_id: int, project: ProjectCreate) -> Project | None:
        with self._lock:
            existing = self._projects.get(project_id)
            if existing is None:
                return None
            updated = Project(
                id=project_id, created_at=existing.created_at, **project.model_dump()
            )
            self._projects[project_id] = updated
            return updated.model_copy(deep=True)

    def list_projects(self) -> list[Project]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._projects.values()]

    # Sites ------------------------------------------------------------------

    def create_site(self, site: SiteCreate) -> Site:
        with self._lock:
            created = Site(id=self._next_id("sites"), **site.model_dump())
            self._sites[created.id] = created
            return created.model_copy()

    def get_site(self, site_id: int) -> Site | None:
        with self._lock:
            site = self._sites.get(site_id)
            return site.model_copy() if site else None

    def list_sites(self, project_id: int | None = None) -> list[Site]:
        with self._lock:
            return [
                s.model_copy()
                for s in self._sites.values()
                if project_id is None or s.project_id == project_id
            ]

    def find_site_by_domain(self, project_id: int, domain: str) -> Site | None:
        with self._lock:
            for site in self._sites.values():
                if site.project_id == project_id and site.domain == domain:
                    return site.model_copy()
            return None

    def claim_site_for_crawl(self, site_id: int) -> bool:
        with self._lock:
            site = self._sites.get(site_id)
            if site is None or site.status == SiteStatus.PROCESSING:
                return False
            site.status = SiteStatus.PROCESSING
            return True

    def update_site_status(
        self,
        site_id: int,
        status: SiteStatus,
        last_crawled: datetime | None = None,
    ) -> None:
        with self._lock:
            site = self._sites.get(site_id)
            if site is None:
                return
            site.status = status
            if last_crawled is not None:
                site.last_crawled = last_crawled

    # Crawl queue ------------------------------------------------------------

    def insert_queue_entry(self, entry: QueueEntryCreate) -> bool:
        key = (entry.project_id, entry.url_hash)
        with self._lock:
            if key in self._queue_keys:
                return False
            created = CrawlQueueEntry(id=self._next_id("queue"), **entry.model_dump())
            self._queue[created.id] = created
            self._queue_keys.add(key)
            return True

    def claim_next_queue_entry(
        self, project_id: int, site_id: int | None = None
    ) -> CrawlQueueEntry | None:
        with self._lock:
            candidates = [
                e
                for e in self._queue.values()
                if e.project_id == project_id
                and e.status == QueueStatus.PENDING
                and (site_id is None or e.site_id == site_id)
            ]
            if not candidates:
                return None
            entry = min(candidates, key=lambda e: (-e.priority, e.id))
            entry.status = QueueStatus.PROCESSING
            return entry.model_copy()

    def finish_queue_entry(
        self, entry_id: int, status: QueueStatus, error: str | None = None
    ) -> None:
        with self._lock:
            entry = self._queue.get(entry_id)
            if entry is None:
                raise StoreError(f"Queue entry {entry_id} not found")
            entry.status = status
            entry.last_error = error
            entry.processed_at = _utcnow()

    def reopen_queue_entries(self, project_id: int, site_id: int) -> int:
        reopened = 0
        with self._lock:
            for entry in self._queue.values():
                if (
                    entry.project_id == project_id
                    and entry.site_id == site_id
                    and entry.status != QueueStatus.PENDING
                ):
                    entry.status = QueueStatus.PENDING
                    entry.last_error = None
                    entry.processed_at = None
                    reopened += 1
        return reopened

    def count_queue_entries(
        self, site_id: int | None = None, project_id: int | None = None
    ) -> dict[QueueStatus, int]:
        with self._lock:
            counts = Counter(
                e.status
                for e in self._queue.values()
                if (site_id is None or e.site_id == site_id)
                and (project_id is None or e.project_id == project_id)
            )
        return {status: counts.get(status, 0) for status in QueueStatus}

    def list_queue_entries(
        self, project_id: int | None = None, limit: int = 100
    ) -> list[CrawlQueueEntry]:
        with self._lock:
            entries = [
                e.model_copy()
                for e in self._queue.values()
                if project_id is None or e.project_id == project_id
            ]
        entries.sort(key=lambda e: (-e.priority, e.scheduled_at, e.id))
        return entries[:limit]

    # Documents --------------------------------------------------------------

    def insert_document(self, document: DocumentCreate) -> Document:
        with self._lock:
            if document.url_hash in self._documents_by_hash:
                raise StoreError(f"Document already exists for {document.url}")
            created = Document(id=self._next_id("documents"), **document.model_dump())
            self._documents[created.id] = created
            self._documents_by_hash[created.url_hash] = created.id
            return created.model_copy(deep=True)

    def get_document(self, document_id: int) -> Document | None:
        with self._lock:
            document = self._documents.get(document_id)
            return document.model_copy(deep=True) if document else None

    def get_document_by_hash(self, url_hash: str) -> Document | None:
        with self._lock:
            document_id = self._documents_by_hash.get(url_hash)
            if document_id is None:
                return None
            return self._documents[document_id].model_copy(deep=True)

    def list_documents(self, filters: DocumentFilter | None = None) -> list[Document]:
        with self._lock:
            return [
                d.model_copy(deep=True)
                for d in self._documents.values()
                if matches_filter(d, filters)
            ]

    def find_documents(
        self, filters: DocumentFilter, needles: list[str]
    ) -> list[Document]:
        lowered = [n.lower() for n in needles if n]
        with self._lock:
            return [
                d.model_copy(deep=True)
                for d in self._documents.values()
                if matches_filter(d, filters)
                and (not lowered or _contains_any(d, lowered))
            ]

    def count_documents(self, filters: DocumentFilter | None = None) -> int:
        with self._lock:
            return sum(1 for d in self._documents.values() if matches_filter(d, filters))

    def count_documents_by(
        self, field: str, filters: DocumentFilter | None = None
    ) -> dict[str, int]:
        if field not in FACET_FIELDS:
            raise ValueError(f"Cannot group documents by {field}")
        with self._lock:
            counts: Counter[str] = Counter()
            for document in self._documents.values():
                if matches_filter(document, filters):
                    value = getattr(document, field)
                    counts[str(getattr(value, "value", value))] += 1
        return dict(counts)

    def find_titles(
        self, text: str, filters: DocumentFilter | None = None, limit: int = 3
    ) -> list[str]:
        needle = text.lower()
        with self._lock:
            matches = [
                d
                for d in self._documents.values()
                if d.title and needle in d.title.lower() and matches_filter(d, filters)
            ]
        matches.sort(key=lambda d: d.pagerank_score, reverse=True)
        return [d.title for d in matches[:limit]]

    # Postings ---------------------------------------------------------------

    def replace_postings(self, document_id: int, postings: list[Posting]) -> None:
        with self._lock:
            self._postings[document_id] = [p.model_copy() for p in postings]

    def list_postings(self, document_id: int) -> list[Posting]:
        with self._lock:
            return [p.model_copy() for p in self._postings.get(document_id, [])]

    def _iter_postings(self, project_id: int | None):
        for postings in self._postings.values():
            for posting in postings:
                if project_id is None or posting.project_id == project_id:
                    yield posting

    def term_frequencies(
        self,
        project_id: int | None = None,
        prefix: str | None = None,
        limit: int | None = None,
    ) -> list[TermFrequency]:
        totals: Counter[str] = Counter()
        with self._lock:
            for posting in self._iter_postings(project_id):
                if prefix and not posting.term.startswith(prefix.lower()):
                    continue
                totals[posting.term] += posting.frequency
        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return [TermFrequency(term=term, frequency=freq) for term, freq in ranked]

    def count_postings(self, project_id: int | None = None) -> int:
        with self._lock:
            return sum(1 for _ in self._iter_postings(project_id))

    def delete_orphan_postings(self) -> int:
        removed = 0
        with self._lock:
            for document_id in list(self._postings):
                if document_id not in self._documents:
                    removed += len(self._postings.pop(document_id))
        if removed:
            logfire.info("Removed orphaned postings", removed=removed)
        return removed

    # Crawl history ----------------------------------------------------------

    def create_crawl_history(
        self, site_id: int, project_id: int | None, started_at: datetime
    ) -> CrawlHistory:
        with self._lock:
            history = CrawlHistory(
                id=self._next_id("history"),
                site_id=site_id,
                project_id=project_id,
                started_at=started_at,
            )
            self._history[history.id] = history
            return history.model_copy(deep=True)

    def finalize_crawl_history(self, history_id: int, stats: CrawlStats) -> None:
        with self._lock:
            history = self._history.get(history_id)
            if history is None:
                raise StoreError(f"Crawl history {history_id} not found")
            history.project_id = stats.project_id
            history.completed_at = stats.completed_at
            history.urls_discovered = stats.urls_discovered
            history.urls_successful = stats.urls_successful
            history.urls_failed = stats.urls_failed
            history.urls_skipped = stats.urls_skipped
            history.status = stats.status
            history.errors = list(stats.errors)

    def list_crawl_history(
        self, project_id: int | None = None, limit: int = 50
    ) -> list[CrawlHistory]:
        with self._lock:
            records = [
                h.model_copy(deep=True)
                for h in self._history.values()
                if project_id is None or h.project_id == project_id
            ]
        records.sort(key=lambda h: (h.started_at, h.id), reverse=True)
        return records[:limit]
