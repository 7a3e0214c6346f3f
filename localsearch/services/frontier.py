"""Crawl frontier: a per-project priority queue of URLs.

Entries are unique per (project_id, url_hash); re-enqueueing a URL is a
silent no-op and the first insertion's depth and priority stand. Dequeue
order is priority descending, then insertion order.
"""

import logfire

from localsearch.db.store import SearchStore
from localsearch.models.crawl_models import (
    TERMINAL_QUEUE_STATUSES,
    CrawlQueueEntry,
    QueueEntryCreate,
    QueueStatus,
)
from localsearch.services.url_policy import hash_url


class CrawlFrontier:
    """Queue operations for the crawl orchestrator."""

    def __init__(self, store: SearchStore):
        self._store = store

    def enqueue(
        self,
        project_id: int,
        url: str,
        depth: int,
        parent_url: str | None,
        priority: int,
        site_id: int,
    ) -> bool:
        """Add a URL unless the project already has it.

        Returns:
            True when a new entry was created
        """
        inserted = self._store.insert_queue_entry(
            QueueEntryCreate(
                project_id=project_id,
                site_id=site_id,
                url=url,
                url_hash=hash_url(url),
                depth=depth,
                parent_url=parent_url,
                priority=priority,
            )
        )
        if inserted:
            logfire.debug(
                "URL enqueued",
                project_id=project_id,
                url=url,
                depth=depth,
                priority=priority,
            )
        return inserted

    def dequeue_next(
        self, project_id: int, site_id: int | None = None
    ) -> CrawlQueueEntry | None:
        """Claim the next pending entry, marking it processing."""
        return self._store.claim_next_queue_entry(project_id, site_id)

    def mark_result(
        self, entry_id: int, status: QueueStatus, error: str | None = None
    ) -> None:
        """Record the terminal outcome of a visit.

        Raises:
            ValueError: If status is not terminal
        """
        if status not in TERMINAL_QUEUE_STATUSES:
            raise ValueError(f"{status.value} is not a terminal queue status")
        if status == QueueStatus.FAILED and not error:
            error = "Unknown error"
        self._store.finish_queue_entry(entry_id, status, error)

    def reopen_site(self, project_id: int, site_id: int) -> int:
        """Put a site's visited entries back to pending for a new run."""
        reopened = self._store.reopen_queue_entries(project_id, site_id)
        if reopened:
            logfire.info(
                "Reopened crawl queue for new run",
                project_id=project_id,
                site_id=site_id,
                reopened=reopened,
            )
        return reopened

    def counts(self, site_id: int) -> dict[QueueStatus, int]:
        return self._store.count_queue_entries(site_id=site_id)
