"""Crawl orchestrator.

One run crawls one site sequentially:

    Idle -> Initializing -> Draining -> Finalizing -> Done

Initializing claims the site (status ``processing`` doubles as the per-site
lock), opens a crawl history row and seeds the frontier with the base URL.
Draining pops entries until the page budget is spent, the frontier is empty
or the cancel event is set; per-URL failures are recorded on the entry and
never end the run. Finalizing always runs: the site becomes ``active`` (or
``error`` after a run-level failure) and the history row is completed.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import logfire

from localsearch.constants import (
    CRAWL_HISTORY_LIMIT,
    CRAWL_QUEUE_LIMIT,
    DEFAULT_MAX_PAGES,
    DISCOVERED_LINK_PRIORITY,
    MAX_MAX_PAGES,
    MIN_MAX_PAGES,
    SEED_URL_PRIORITY,
)
from localsearch.db.store import SearchStore
from localsearch.exceptions import (
    CrawlConflictError,
    ProjectNotFoundError,
    SiteNotFoundError,
)
from localsearch.models.crawl_models import (
    CrawlHistory,
    CrawlQueueEntry,
    CrawlRunStatus,
    CrawlStats,
    QueueStatus,
    SiteCrawlStatus,
)
from localsearch.models.document_models import DocumentCreate, DocumentFilter
from localsearch.models.fetch_models import FetchError
from localsearch.models.site_models import Project, Site, SiteStatus
from localsearch.services.content_parser import ContentParser
from localsearch.services.fetcher import HttpxFetchClient, PageFetcher
from localsearch.services.frontier import CrawlFrontier
from localsearch.services.indexer import TermIndexer
from localsearch.services.robots import RobotsChecker
from localsearch.services.url_policy import UrlPolicy


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrawlOrchestrator:
    """Drive the frontier for one site at a time.

    Components can be injected for testing; the store is required.
    """

    def __init__(
        self,
        store: SearchStore,
        fetcher: PageFetcher | None = None,
        parser: ContentParser | None = None,
        policy: UrlPolicy | None = None,
        frontier: CrawlFrontier | None = None,
        indexer: TermIndexer | None = None,
        robots: RobotsChecker | None = None,
    ):
        self._store = store
        self._fetcher = fetcher or HttpxFetchClient()
        self._parser = parser or ContentParser()
        self._policy = policy or UrlPolicy()
        self._frontier = frontier or CrawlFrontier(store)
        self._indexer = indexer or TermIndexer(store)
        self._robots = robots

    async def crawl_site(
        self,
        site_id: int,
        max_pages: int = DEFAULT_MAX_PAGES,
        cancel_event: asyncio.Event | None = None,
    ) -> CrawlStats:
        """Run one crawl of a site.

        Args:
            site_id: Site to crawl
            max_pages: Maximum queue entries processed in this run (1-1000)
            cancel_event: Polled once per iteration; when set the run stops early

        Returns:
            Run statistics. Run-level failures are reported through
            ``status == failed`` and ``errors`` rather than raised.

        Raises:
            ValueError: If max_pages is out of bounds
            SiteNotFoundError: If the site does not exist
            CrawlConflictError: If the site is already being crawled
        """
        if not MIN_MAX_PAGES <= max_pages <= MAX_MAX_PAGES:
            raise ValueError(
                f"max_pages must be between {MIN_MAX_PAGES} and {MAX_MAX_PAGES}"
            )

        site = self._store.get_site(site_id)
        if site is None:
            raise SiteNotFoundError(f"Site {site_id} not found")
        if not self._store.claim_site_for_crawl(site_id):
            raise CrawlConflictError(f"Site {site_id} is already being crawled")

        stats = CrawlStats(site_id=site.id, project_id=site.project_id)
        history: CrawlHistory | None = None
        final_status = SiteStatus.ERROR

        logfire.info(
            "Crawl started",
            site_id=site.id,
            project_id=site.project_id,
            base_url=site.base_url,
            max_pages=max_pages,
        )

        try:
            history = self._store.create_crawl_history(
                site.id, site.project_id, stats.started_at
            )
            project = self._store.get_project(site.project_id)
            if project is None:
                raise ProjectNotFoundError(f"Project {site.project_id} not found")

            self._frontier.reopen_site(project.id, site.id)
            self._frontier.enqueue(
                project.id,
                site.base_url,
                depth=0,
                parent_url=None,
                priority=SEED_URL_PRIORITY,
                site_id=site.id,
            )

            await self._drain(site, project, max_pages, stats, cancel_event)

            if stats.status == CrawlRunStatus.RUNNING:
                stats.status = CrawlRunStatus.COMPLETED
            final_status = SiteStatus.ACTIVE
        except asyncio.CancelledError:
            stats.status = CrawlRunStatus.CANCELLED
            stats.errors.append("Crawl task cancelled")
            final_status = SiteStatus.ACTIVE
            raise
        except Exception as e:
            stats.status = CrawlRunStatus.FAILED
            stats.errors.append(f"Crawl error: {e}")
            logfire.error(
                "Crawl failed",
                site_id=site.id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._finalize(site, stats, history, final_status)

        return stats

    async def _drain(
        self,
        site: Site,
        project: Project,
        max_pages: int,
        stats: CrawlStats,
        cancel_event: asyncio.Event | None,
    ) -> None:
        crawl_delay = project.crawl_config.crawl_delay

        while stats.pages_processed < max_pages:
            if cancel_event is not None and cancel_event.is_set():
                stats.status = CrawlRunStatus.CANCELLED
                logfire.info(
                    "Crawl cancelled", site_id=site.id, processed=stats.pages_processed
                )
                break

            entry = self._frontier.dequeue_next(project.id, site.id)
            if entry is None:
                break

            await self._process_entry(entry, site, project, stats)
            stats.pages_processed += 1

            if crawl_delay > 0 and stats.pages_processed < max_pages:
                await asyncio.sleep(crawl_delay)

    async def _process_entry(
        self,
        entry: CrawlQueueEntry,
        site: Site,
        project: Project,
        stats: CrawlStats,
    ) -> None:
        if self._store.get_document_by_hash(entry.url_hash) is not None:
            self._frontier.mark_result(entry.id, QueueStatus.SKIPPED)
            stats.urls_skipped += 1
            return

        try:
            if (
                project.crawl_config.respect_robots
                and self._robots is not None
                and not await self._robots.allowed(entry.url)
            ):
                self._frontier.mark_result(
                    entry.id, QueueStatus.SKIPPED, "Disallowed by robots.txt"
                )
                stats.urls_skipped += 1
                return
            result = await self._fetcher.fetch(entry.url)
        except Exception as e:
            self._record_failure(entry, stats, str(e) or type(e).__name__)
            return

        if isinstance(result, FetchError):
            self._record_failure(entry, stats, result.message)
            return

        try:
            parsed = self._parser.parse(result.body, result.content_type, result.url)
            document = self._store.insert_document(
                DocumentCreate(
                    project_id=project.id,
                    site_id=entry.site_id,
                    url=entry.url,
                    url_hash=entry.url_hash,
                    content_type=parsed.content_kind,
                    mime_type=parsed.mime_type,
                    title=parsed.title,
                    description=parsed.description,
                    content_text=parsed.content_text,
                    language=parsed.language,
                    file_size=parsed.file_size,
                    metadata=parsed.metadata,
                    quality_score=parsed.quality_score,
                )
            )
            self._indexer.index_document(document.id, project.id, parsed)
            if entry.depth < project.crawl_config.max_depth:
                stats.urls_discovered += self._enqueue_links(
                    entry, parsed.links, site, project
                )
        except Exception as e:
            self._record_failure(entry, stats, str(e))
            return

        self._frontier.mark_result(entry.id, QueueStatus.COMPLETED)
        stats.urls_successful += 1
        logfire.info(
            "URL crawled",
            url=entry.url,
            depth=entry.depth,
            document_id=document.id,
            links=len(parsed.links),
        )

    def _enqueue_links(
        self,
        entry: CrawlQueueEntry,
        links: list[str],
        site: Site,
        project: Project,
    ) -> int:
        """Enqueue in-scope links one level deeper. Returns how many were new."""
        added = 0
        for link in links:
            if not self._policy.in_scope(link, site, project):
                continue
            if self._frontier.enqueue(
                project.id,
                link,
                depth=entry.depth + 1,
                parent_url=entry.url,
                priority=DISCOVERED_LINK_PRIORITY,
                site_id=site.id,
            ):
                added += 1
        return added

    def _record_failure(
        self, entry: CrawlQueueEntry, stats: CrawlStats, message: str
    ) -> None:
        self._frontier.mark_result(entry.id, QueueStatus.FAILED, message)
        stats.urls_failed += 1
        stats.errors.append(f"{entry.url}: {message}")
        logfire.warning("URL failed", url=entry.url, depth=entry.depth, error=message)

    def _finalize(
        self,
        site: Site,
        stats: CrawlStats,
        history: CrawlHistory | None,
        final_status: SiteStatus,
    ) -> None:
        stats.completed_at = _utcnow()
        self._store.update_site_status(
            site.id,
            final_status,
            last_crawled=stats.completed_at if final_status == SiteStatus.ACTIVE else None,
        )
        if history is not None:
            self._store.finalize_crawl_history(history.id, stats)

        logfire.info(
            "Crawl finished",
            site_id=site.id,
            status=stats.status.value,
            urls_discovered=stats.urls_discovered,
            urls_successful=stats.urls_successful,
            urls_failed=stats.urls_failed,
            urls_skipped=stats.urls_skipped,
            total_time_ms=(stats.completed_at - stats.started_at).total_seconds() * 1000,
        )

    # Status queries -----------------------------------------------------------

    def get_crawl_status(self, site_id: int | None = None) -> list[SiteCrawlStatus]:
        """Per-site crawl status, for one site or for all of them.

        Raises:
            SiteNotFoundError: If site_id is given and unknown
        """
        if site_id is not None:
            site = self._store.get_site(site_id)
            if site is None:
                raise SiteNotFoundError(f"Site {site_id} not found")
            sites = [site]
        else:
            sites = self._store.list_sites()

        statuses = []
        for site in sites:
            counts = self._frontier.counts(site.id)
            statuses.append(
                SiteCrawlStatus(
                    site_id=site.id,
                    project_id=site.project_id,
                    domain=site.domain,
                    status=site.status,
                    documents_count=self._store.count_documents(
                        DocumentFilter(site_id=site.id)
                    ),
                    queue_pending=counts.get(QueueStatus.PENDING, 0),
                    queue_processing=counts.get(QueueStatus.PROCESSING, 0),
                    queue_completed=counts.get(QueueStatus.COMPLETED, 0),
                    queue_failed=counts.get(QueueStatus.FAILED, 0),
                    queue_skipped=counts.get(QueueStatus.SKIPPED, 0),
                    last_crawled=site.last_crawled,
                )
            )
        return statuses

    def get_crawl_history(
        self, project_id: int | None = None, limit: int = CRAWL_HISTORY_LIMIT
    ) -> list[CrawlHistory]:
        return self._store.list_crawl_history(project_id, min(limit, CRAWL_HISTORY_LIMIT))

    def get_queue(
        self, project_id: int | None = None, limit: int = CRAWL_QUEUE_LIMIT
    ) -> list[CrawlQueueEntry]:
        return self._store.list_queue_entries(project_id, min(limit, CRAWL_QUEUE_LIMIT))

    def sites_due_for_crawl(self, now: datetime | None = None) -> list[Site]:
        """Pending or active sites whose last crawl is older than their frequency."""
        now = now or _utcnow()
        due = []
        for site in self._store.list_sites():
            if site.status not in (SiteStatus.PENDING, SiteStatus.ACTIVE):
                continue
            if site.last_crawled is None or (
                site.last_crawled < now - timedelta(hours=site.crawl_frequency)
            ):
                due.append(site)
        return due

    async def crawl_due_sites(
        self,
        max_pages: int = DEFAULT_MAX_PAGES,
        cancel_event: asyncio.Event | None = None,
    ) -> list[CrawlStats]:
        """Crawl every due site, one after another."""
        results = []
        for site in self.sites_due_for_crawl():
            if cancel_event is not None and cancel_event.is_set():
                break
            try:
                results.append(await self.crawl_site(site.id, max_pages, cancel_event))
            except CrawlConflictError:
                logfire.info("Skipping site already being crawled", site_id=site.id)
        return results
