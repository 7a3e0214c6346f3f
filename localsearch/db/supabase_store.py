"""Supabase (PostgREST) store.

Every filter goes through the PostgREST query builder, so values are sent as
bound request parameters and never spliced into query text.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable

from supabase import Client

from localsearch.constants import QUEUE_CLAIM_ATTEMPTS
from localsearch.db.query_executor import timed_query
from localsearch.db.store import FACET_FIELDS, escape_like
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

PROJECTS_TABLE = "projects"
SITES_TABLE = "sites"
QUEUE_TABLE = "crawl_queue"
DOCUMENTS_TABLE = "documents"
TERMS_TABLE = "search_terms"
HISTORY_TABLE = "crawl_history"

# PostgREST caps rows per response; larger reads are paged
PAGE_SIZE = 1000
# Ids per `in` filter and rows per bulk insert
BATCH_SIZE = 200

_SEARCHABLE_COLUMNS = ("title", "description", "content_text")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_document_filter(query: Any, filters: DocumentFilter | None) -> Any:
    """Add conjunctive document filters to a PostgREST query."""
    if filters is None:
        return query
    if filters.project_id is not None:
        query = query.eq("project_id", filters.project_id)
    if filters.site_id is not None:
        query = query.eq("site_id", filters.site_id)
    if filters.content_type is not None:
        query = query.eq("content_type", filters.content_type.value)
    if filters.language:
        query = query.eq("language", filters.language)
    if filters.date_from is not None:
        query = query.gte("indexed_at", filters.date_from.isoformat())
    if filters.date_to is not None:
        query = query.lte("indexed_at", filters.date_to.isoformat())
    return query


class SupabaseStore:
    """SearchStore implementation on Supabase tables."""

    backend = "supabase"

    def __init__(self, client: Client):
        self._client = client

    def _table(self, name: str):
        return self._client.table(name)

    def _fetch_all(self, build_query: Callable[[], Any]) -> list[dict[str, Any]]:
        """Read every row of a query, one PostgREST page at a time."""
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            result = build_query().range(offset, offset + PAGE_SIZE - 1).execute()
            batch = result.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    # Projects ---------------------------------------------------------------

    def create_project(self, project: ProjectCreate) -> Project:
        data = project.model_dump(mode="json")
        with timed_query("create_project", name=project.name) as ctx:
            result = self._table(PROJECTS_TABLE).insert(data).execute()
            if not result.data:
                raise StoreError("Failed to create project")
            ctx["project_id"] = result.data[0]["id"]
        return Project(**result.data[0])

    def get_project(self, project_id: int) -> Project | None:
        with timed_query("get_project", project_id=project_id):
            result = (
                self._table(PROJECTS_TABLE)
                .select("*")
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
        return Project(**result.data[0]) if result.data else None

    def update_project(self, project_id: int, project: ProjectCreate) -> Project | None:
        data = project.model_dump(mode="json")
        with timed_query("update_project", project_id=project_id) as ctx:
            result = (
                self._table(PROJECTS_TABLE).update(data).eq("id", project_id).execute()
            )
            ctx["updated"] = bool(result.data)
        return Project(**result.data[0]) if result.data else None

    def list_projects(self) -> list[Project]:
        with timed_query("list_projects") as ctx:
            rows = self._fetch_all(
                lambda: self._table(PROJECTS_TABLE).select("*").order("id")
            )
            ctx["rows"] = len(rows)
        return [Project(**row) for row in rows]

    # Sites ------------------------------------------------------------------

    def create_site(self, site: SiteCreate) -> Site:
        data = site.model_dump(mode="json")
        data["status"] = SiteStatus.PENDING.value
        with timed_query("create_site", project_id=site.project_id, domain=site.domain):
            result = self._table(SITES_TABLE).insert(data).execute()
            if not result.data:
                raise StoreError("Failed to create site")
        return Site(**result.data[0])

    def get_site(self, site_id: int) -> Site | None:
        with timed_query("get_site", site_id=site_id):
            result = (
                self._table(SITES_TABLE).select("*").eq("id", site_id).limit(1).execute()
            )
        return Site(**result.data[0]) if result.data else None

    def list_sites(self, project_id: int | None = None) -> list[Site]:
        def build():
            query = self._table(SITES_TABLE).select("*")
            if project_id is not None:
                query = query.eq("project_id", project_id)
            return query.order("id")

        with timed_query("list_sites", project_id=project_id) as ctx:
            rows = self._fetch_all(build)
            ctx["rows"] = len(rows)
        return [Site(**row) for row in rows]

    def find_site_by_domain(self, project_id: int, domain: str) -> Site | None:
        with timed_query("find_site_by_domain", project_id=project_id, domain=domain):
            result = (
                self._table(SITES_TABLE)
                .select("*")
                .eq("project_id", project_id)
                .eq("domain", domain)
                .limit(1)
                .execute()
            )
        return Site(**result.data[0]) if result.data else None

    def claim_site_for_crawl(self, site_id: int) -> bool:
        with timed_query("claim_site_for_crawl", site_id=site_id) as ctx:
            result = (
                self._table(SITES_TABLE)
                .update({"status": SiteStatus.PROCESSING.value})
                .eq("id", site_id)
                .neq("status", SiteStatus.PROCESSING.value)
                .execute()
            )
            ctx["claimed"] = bool(result.data)
        return bool(result.data)

    def update_site_status(
        self,
        site_id: int,
        status: SiteStatus,
        last_crawled: datetime | None = None,
    ) -> None:
        data: dict[str, Any] = {"status": status.value}
        if last_crawled is not None:
            data["last_crawled"] = last_crawled.isoformat()
        with timed_query("update_site_status", site_id=site_id, status=status.value):
            self._table(SITES_TABLE).update(data).eq("id", site_id).execute()

    # Crawl queue ------------------------------------------------------------

    def insert_queue_entry(self, entry: QueueEntryCreate) -> bool:
        data = entry.model_dump(mode="json")
        data["status"] = QueueStatus.PENDING.value
        with timed_query(
            "insert_queue_entry", project_id=entry.project_id, url=entry.url
        ) as ctx:
            result = (
                self._table(QUEUE_TABLE)
                .upsert(data, on_conflict="project_id,url_hash", ignore_duplicates=True)
                .execute()
            )
            ctx["inserted"] = bool(result.data)
        return bool(result.data)

    def claim_next_queue_entry(
        self, project_id: int, site_id: int | None = None
    ) -> CrawlQueueEntry | None:
        with timed_query(
            "claim_next_queue_entry", project_id=project_id, site_id=site_id
        ) as ctx:
            for attempt in range(1, QUEUE_CLAIM_ATTEMPTS + 1):
                query = (
                    self._table(QUEUE_TABLE)
                    .select("id")
                    .eq("project_id", project_id)
                    .eq("status", QueueStatus.PENDING.value)
                )
                if site_id is not None:
                    query = query.eq("site_id", site_id)
                candidate = (
                    query.order("priority", desc=True).order("id").limit(1).execute()
                )
                if not candidate.data:
                    ctx["claimed"] = False
                    return None

                # Conditional update: only one claimer can move it off pending
                claimed = (
                    self._table(QUEUE_TABLE)
                    .update({"status": QueueStatus.PROCESSING.value})
                    .eq("id", candidate.data[0]["id"])
                    .eq("status", QueueStatus.PENDING.value)
                    .execute()
                )
                if claimed.data:
                    ctx["claimed"] = True
                    ctx["attempts"] = attempt
                    return CrawlQueueEntry(**claimed.data[0])
            ctx["claimed"] = False
        return None

    def finish_queue_entry(
        self, entry_id: int, status: QueueStatus, error: str | None = None
    ) -> None:
        data = {
            "status": status.value,
            "last_error": error,
            "processed_at": _utcnow().isoformat(),
        }
        with timed_query("finish_queue_entry", entry_id=entry_id, status=status.value):
            result = self._table(QUEUE_TABLE).update(data).eq("id", entry_id).execute()
            if not result.data:
                raise StoreError(f"Queue entry {entry_id} not found")

    def reopen_queue_entries(self, project_id: int, site_id: int) -> int:
        finished = [s.value for s in QueueStatus if s != QueueStatus.PENDING]
        with timed_query(
            "reopen_queue_entries", project_id=project_id, site_id=site_id
        ) as ctx:
            result = (
                self._table(QUEUE_TABLE)
                .update(
                    {
                        "status": QueueStatus.PENDING.value,
                        "last_error": None,
                        "processed_at": None,
                    }
                )
                .eq("project_id", project_id)
                .eq("site_id", site_id)
                .in_("status", finished)
                .execute()
            )
            ctx["reopened"] = len(result.data or [])
        return len(result.data or [])

    def count_queue_entries(
        self, site_id: int | None = None, project_id: int | None = None
    ) -> dict[QueueStatus, int]:
        counts: dict[QueueStatus, int] = {}
        with timed_query("count_queue_entries", site_id=site_id, project_id=project_id):
            for status in QueueStatus:
                query = (
                    self._table(QUEUE_TABLE)
                    .select("id", count="exact")
                    .eq("status", status.value)
                )
                if site_id is not None:
                    query = query.eq("site_id", site_id)
                if project_id is not None:
                    query = query.eq("project_id", project_id)
                result = query.limit(1).execute()
                counts[status] = result.count or 0
        return counts

    def list_queue_entries(
        self, project_id: int | None = None, limit: int = 100
    ) -> list[CrawlQueueEntry]:
        query = self._table(QUEUE_TABLE).select("*")
        if project_id is not None:
            query = query.eq("project_id", project_id)
        with timed_query("list_queue_entries", project_id=project_id) as ctx:
            result = (
                query.order("priority", desc=True)
                .order("scheduled_at")
                .limit(limit)
                .execute()
            )
            ctx["rows"] = len(result.data or [])
        return [CrawlQueueEntry(**row) for row in result.data or []]

    # Documents --------------------------------------------------------------

    def insert_document(self, document: DocumentCreate) -> Document:
        data = document.model_dump(mode="json")
        data["indexed_at"] = _utcnow().isoformat()
        with timed_query("insert_document", url=document.url) as ctx:
            result = self._table(DOCUMENTS_TABLE).insert(data).execute()
            if not result.data:
                raise StoreError(f"Failed to create document for {document.url}")
            ctx["document_id"] = result.data[0]["id"]
        return Document(**result.data[0])

    def get_document(self, document_id: int) -> Document | None:
        with timed_query("get_document", document_id=document_id):
            result = (
                self._table(DOCUMENTS_TABLE)
                .select("*")
                .eq("id", document_id)
                .limit(1)
                .execute()
            )
        return Document(**result.data[0]) if result.data else None

    def get_document_by_hash(self, url_hash: str) -> Document | None:
        with timed_query("get_document_by_hash", url_hash=url_hash):
            result = (
                self._table(DOCUMENTS_TABLE)
                .select("*")
                .eq("url_hash", url_hash)
                .limit(1)
                .execute()
            )
        return Document(**result.data[0]) if result.data else None

    def list_documents(self, filters: DocumentFilter | None = None) -> list[Document]:
        with timed_query("list_documents") as ctx:
            rows = self._fetch_all(
                lambda: apply_document_filter(
                    self._table(DOCUMENTS_TABLE).select("*"), filters
                ).order("id")
            )
            ctx["rows"] = len(rows)
        return [Document(**row) for row in rows]

    def find_documents(
        self, filters: DocumentFilter, needles: list[str]
    ) -> list[Document]:
        needles = [n for n in needles if n]
        if not needles:
            return self.list_documents(filters)

        with timed_query("find_documents", needles=len(needles)) as ctx:
            ids: set[int] = set()
            for needle in needles:
                pattern = f"%{escape_like(needle)}%"
                for column in _SEARCHABLE_COLUMNS:
                    rows = self._fetch_all(
                        lambda column=column: apply_document_filter(
                            self._table(DOCUMENTS_TABLE).select("id"), filters
                        )
                        .ilike(column, pattern)
                        .order("id")
                    )
                    ids.update(row["id"] for row in rows)

            documents: list[Document] = []
            ordered = sorted(ids)
            for start in range(0, len(ordered), BATCH_SIZE):
                batch = ordered[start : start + BATCH_SIZE]
                result = (
                    self._table(DOCUMENTS_TABLE).select("*").in_("id", batch).execute()
                )
                documents.extend(Document(**row) for row in result.data or [])
            ctx["rows"] = len(documents)
        return documents

    def count_documents(self, filters: DocumentFilter | None = None) -> int:
        with timed_query("count_documents"):
            result = (
                apply_document_filter(
                    self._table(DOCUMENTS_TABLE).select("id", count="exact"), filters
                )
                .limit(1)
                .execute()
            )
        return result.count or 0

    def count_documents_by(
        self, field: str, filters: DocumentFilter | None = None
    ) -> dict[str, int]:
        if field not in FACET_FIELDS:
            raise ValueError(f"Cannot group documents by {field}")
        with timed_query("count_documents_by", field=field) as ctx:
            rows = self._fetch_all(
                lambda: apply_document_filter(
                    self._table(DOCUMENTS_TABLE).select(field), filters
                ).order("id")
            )
            ctx["rows"] = len(rows)
        return dict(
            Counter("" if row[field] is None else str(row[field]) for row in rows)
        )

    def find_titles(
        self, text: str, filters: DocumentFilter | None = None, limit: int = 3
    ) -> list[str]:
        with timed_query("find_titles", limit=limit):
            result = (
                apply_document_filter(
                    self._table(DOCUMENTS_TABLE).select("title"), filters
                )
                .ilike("title", f"%{escape_like(text)}%")
                .order("pagerank_score", desc=True)
                .limit(limit)
                .execute()
            )
        return [row["title"] for row in result.data or [] if row.get("title")]

    # Postings ---------------------------------------------------------------

    def replace_postings(self, document_id: int, postings: list[Posting]) -> None:
        rows = [p.model_dump(mode="json") for p in postings]
        with timed_query(
            "replace_postings", document_id=document_id, postings=len(rows)
        ):
            self._table(TERMS_TABLE).delete().eq("document_id", document_id).execute()
            for start in range(0, len(rows), BATCH_SIZE):
                self._table(TERMS_TABLE).insert(rows[start : start + BATCH_SIZE]).execute()

    def list_postings(self, document_id: int) -> list[Posting]:
        with timed_query("list_postings", document_id=document_id):
            rows = self._fetch_all(
                lambda: self._table(TERMS_TABLE)
                .select("*")
                .eq("document_id", document_id)
                .order("id")
            )
        return [Posting(**row) for row in rows]

    def term_frequencies(
        self,
        project_id: int | None = None,
        prefix: str | None = None,
        limit: int | None = None,
    ) -> list[TermFrequency]:
        def build():
            query = self._table(TERMS_TABLE).select("term,frequency")
            if project_id is not None:
                query = query.eq("project_id", project_id)
            if prefix:
                query = query.ilike("term", f"{escape_like(prefix.lower())}%")
            return query.order("id")

        with timed_query("term_frequencies", project_id=project_id, prefix=prefix):
            totals: Counter[str] = Counter()
            for row in self._fetch_all(build):
                totals[row["term"]] += row["frequency"]
        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return [TermFrequency(term=term, frequency=freq) for term, freq in ranked]

    def count_postings(self, project_id: int | None = None) -> int:
        query = self._table(TERMS_TABLE).select("id", count="exact")
        if project_id is not None:
            query = query.eq("project_id", project_id)
        with timed_query("count_postings", project_id=project_id):
            result = query.limit(1).execute()
        return result.count or 0

    def delete_orphan_postings(self) -> int:
        with timed_query("delete_orphan_postings") as ctx:
            document_ids = {
                row["id"]
                for row in self._fetch_all(
                    lambda: self._table(DOCUMENTS_TABLE).select("id").order("id")
                )
            }
            posted_ids = {
                row["document_id"]
                for row in self._fetch_all(
                    lambda: self._table(TERMS_TABLE).select("document_id").order("id")
                )
            }
            orphans = sorted(posted_ids - document_ids)
            removed = 0
            for start in range(0, len(orphans), BATCH_SIZE):
                result = (
                    self._table(TERMS_TABLE)
                    .delete()
                    .in_("document_id", orphans[start : start + BATCH_SIZE])
                    .execute()
                )
                removed += len(result.data or [])
            ctx["removed"] = removed
        return removed

    # Crawl history ----------------------------------------------------------

    def create_crawl_history(
        self, site_id: int, project_id: int | None, started_at: datetime
    ) -> CrawlHistory:
        data = {
            "site_id": site_id,
            "project_id": project_id,
            "started_at": started_at.isoformat(),
            "status": "running",
            "errors": [],
        }
        with timed_query("create_crawl_history", site_id=site_id):
            result = self._table(HISTORY_TABLE).insert(data).execute()
            if not result.data:
                raise StoreError("Failed to create crawl history")
        return CrawlHistory(**result.data[0])

    def finalize_crawl_history(self, history_id: int, stats: CrawlStats) -> None:
        data = stats.model_dump(
            mode="json",
            include={
                "project_id",
                "completed_at",
                "urls_discovered",
                "urls_successful",
                "urls_failed",
                "urls_skipped",
                "status",
                "errors",
            },
        )
        with timed_query("finalize_crawl_history", history_id=history_id):
            self._table(HISTORY_TABLE).update(data).eq("id", history_id).execute()

    def list_crawl_history(
        self, project_id: int | None = None, limit: int = 50
    ) -> list[CrawlHistory]:
        query = self._table(HISTORY_TABLE).select("*")
        if project_id is not None:
            query = query.eq("project_id", project_id)
        with timed_query("list_crawl_history", project_id=project_id) as ctx:
            result = query.order("started_at", desc=True).limit(limit).execute()
            ctx["rows"] = len(result.data or [])
        return [CrawlHistory(**row) for row in result.data or []]
