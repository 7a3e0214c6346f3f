"""Tests for the Supabase store against a mocked query builder."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from localsearch.db.supabase_store import PAGE_SIZE, SupabaseStore, apply_document_filter
from localsearch.exceptions import StoreError
from localsearch.models.crawl_models import QueueEntryCreate, QueueStatus
from localsearch.models.document_models import (
    ContentKind,
    DocumentFilter,
    Posting,
    PostingField,
)
from localsearch.models.site_models import ProjectCreate, SiteStatus


def result(data=None, count=None):
    r = MagicMock()
    r.data = data if data is not None else []
    r.count = count
    return r


def queue_row(entry_id):
    return {
        "id": entry_id,
        "project_id": 1,
        "site_id": 1,
        "url": f"https://example.com/{entry_id}",
        "url_hash": f"h{entry_id}",
        "status": "processing",
    }


@pytest.fixture
def supabase_store(mock_supabase_client):
    return SupabaseStore(mock_supabase_client)


class TestProjects:
    """Project reads and writes."""

    def test_create_project(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        query.execute.return_value = result([{"id": 3, "name": "Docs", "base_domains": ["example.com"]}])

        project = supabase_store.create_project(ProjectCreate(name="Docs", base_domains=["example.com"]))

        assert project.id == 3
        mock_supabase_client.table.assert_called_with("projects")
        inserted = query.insert.call_args[0][0]
        assert inserted["name"] == "Docs"
        assert inserted["crawl_config"]["max_depth"] == 3

    def test_create_project_failure(self, supabase_store):
        with pytest.raises(StoreError, match="Failed to create project"):
            supabase_store.create_project(ProjectCreate(name="Docs", base_domains=["example.com"]))

    def test_get_missing_project(self, supabase_store, mock_supabase_client):
        assert supabase_store.get_project(9) is None
        mock_supabase_client.query.eq.assert_called_with("id", 9)

    def test_update_project(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        query.execute.return_value = result([{"id": 3, "name": "Renamed", "base_domains": ["example.org"]}])

        project = supabase_store.update_project(3, ProjectCreate(name="Renamed", base_domains=["example.org"]))

        assert project.name == "Renamed"
        assert query.update.call_args[0][0]["base_domains"] == ["example.org"]
        query.eq.assert_called_with("id", 3)

    def test_update_missing_project(self, supabase_store):
        assert supabase_store.update_project(9, ProjectCreate(name="Docs", base_domains=["example.com"])) is None

    def test_list_reads_every_page(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        first = [{"id": i, "name": f"p{i}"} for i in range(PAGE_SIZE)]
        query.execute.side_effect = [result(first), result([{"id": PAGE_SIZE, "name": "last"}])]

        projects = supabase_store.list_projects()

        assert len(projects) == PAGE_SIZE + 1
        assert [c.args for c in query.range.call_args_list] == [
            (0, PAGE_SIZE - 1),
            (PAGE_SIZE, 2 * PAGE_SIZE - 1),
        ]


class TestSites:
    def test_claim_uses_conditional_update(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        query.execute.return_value = result([{"id": 1}])

        assert supabase_store.claim_site_for_crawl(1)
        query.update.assert_called_with({"status": "processing"})
        query.neq.assert_called_with("status", "processing")

    def test_claim_conflict(self, supabase_store):
        assert not supabase_store.claim_site_for_crawl(1)

    def test_update_status_with_last_crawled(self, supabase_store, mock_supabase_client):
        crawled = datetime(2024, 5, 1, tzinfo=timezone.utc)
        supabase_store.update_site_status(1, SiteStatus.ACTIVE, crawled)

        mock_supabase_client.query.update.assert_called_with(
            {"status": "active", "last_crawled": crawled.isoformat()}
        )


class TestQueue:
    def test_insert_ignores_duplicates(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query

        inserted = supabase_store.insert_queue_entry(
            QueueEntryCreate(project_id=1, site_id=1, url="https://example.com/", url_hash="h")
        )

        assert not inserted
        kwargs = query.upsert.call_args.kwargs
        assert kwargs == {"on_conflict": "project_id,url_hash", "ignore_duplicates": True}
        assert query.upsert.call_args.args[0]["status"] == "pending"

    def test_claim_retries_after_lost_race(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        query.execute.side_effect = [
            result([{"id": 5}]),
            result([]),
            result([{"id": 6}]),
            result([queue_row(6)]),
        ]

        entry = supabase_store.claim_next_queue_entry(1, site_id=1)

        assert entry.id == 6
        assert entry.status == QueueStatus.PROCESSING
        query.order.assert_any_call("priority", desc=True)

    def test_claim_empty_queue(self, supabase_store):
        assert supabase_store.claim_next_queue_entry(1) is None

    def test_claim_gives_up_after_repeated_contention(self, supabase_store, mock_supabase_client):
        mock_supabase_client.query.execute.side_effect = [result([{"id": 5}]), result([])] * 5

        assert supabase_store.claim_next_queue_entry(1) is None

    def test_finish_missing_entry_raises(self, supabase_store):
        with pytest.raises(StoreError):
            supabase_store.finish_queue_entry(1, QueueStatus.FAILED, "boom")

    def test_count_queue_entries(self, supabase_store, mock_supabase_client):
        mock_supabase_client.query.execute.return_value = result(count=3)

        counts = supabase_store.count_queue_entries(site_id=1)

        assert counts == {status: 3 for status in QueueStatus}


class TestDocuments:
    def test_find_documents_escapes_wildcards(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query

        supabase_store.find_documents(DocumentFilter(), ["50%_off"])

        patterns = {c.args[1] for c in query.ilike.call_args_list}
        assert patterns == {"%50\\%\\_off%"}
        assert {c.args[0] for c in query.ilike.call_args_list} == {
            "title",
            "description",
            "content_text",
        }

    def test_find_documents_fetches_matched_ids(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        row = {"id": 2, "project_id": 1, "site_id": 1, "url": "https://example.com/", "url_hash": "h"}
        query.execute.side_effect = [
            result([{"id": 2}]),
            result([]),
            result([{"id": 2}]),
            result([row]),
        ]

        documents = supabase_store.find_documents(DocumentFilter(), ["python"])

        assert [d.id for d in documents] == [2]
        query.in_.assert_called_with("id", [2])

    def test_count_documents_by(self, supabase_store, mock_supabase_client):
        mock_supabase_client.query.execute.return_value = result(
            [{"content_type": "webpage"}, {"content_type": "webpage"}, {"content_type": "image"}]
        )

        assert supabase_store.count_documents_by("content_type") == {"webpage": 2, "image": 1}

    def test_count_documents_by_language_keeps_missing_as_empty(self, supabase_store, mock_supabase_client):
        mock_supabase_client.query.execute.return_value = result(
            [{"language": "en"}, {"language": None}, {"language": "fr"}, {"language": "en"}]
        )

        assert supabase_store.count_documents_by("language") == {"en": 2, "fr": 1, "": 1}

    def test_count_documents_by_rejects_unknown_field(self, supabase_store):
        with pytest.raises(ValueError):
            supabase_store.count_documents_by("content_text")

    def test_apply_document_filter(self):
        query = MagicMock()
        query.eq.return_value = query
        query.gte.return_value = query

        apply_document_filter(
            query, DocumentFilter(project_id=1, content_type=ContentKind.IMAGE, language="en")
        )

        assert [c.args for c in query.eq.call_args_list] == [
            ("project_id", 1),
            ("content_type", "image"),
            ("language", "en"),
        ]
        query.gte.assert_not_called()


class TestPostings:
    def test_replace_postings_deletes_then_batches(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        postings = [
            Posting(
                term=f"t{i}",
                term_hash=f"h{i}",
                document_id=1,
                project_id=1,
                frequency=1,
                weight=1.0,
                field=PostingField.CONTENT,
            )
            for i in range(450)
        ]

        supabase_store.replace_postings(1, postings)

        query.delete.assert_called_once()
        query.eq.assert_any_call("document_id", 1)
        assert [len(c.args[0]) for c in query.insert.call_args_list] == [200, 200, 50]

    def test_term_frequencies_sums_rows(self, supabase_store, mock_supabase_client):
        mock_supabase_client.query.execute.return_value = result(
            [
                {"term": "search", "frequency": 2},
                {"term": "seal", "frequency": 1},
                {"term": "search", "frequency": 3},
            ]
        )

        frequencies = supabase_store.term_frequencies(prefix="Sea", limit=1)

        assert [(tf.term, tf.frequency) for tf in frequencies] == [("search", 5)]
        mock_supabase_client.query.ilike.assert_called_with("term", "sea%")

    def test_delete_orphan_postings(self, supabase_store, mock_supabase_client):
        query = mock_supabase_client.query
        query.execute.side_effect = [
            result([{"id": 1}]),
            result([{"document_id": 1}, {"document_id": 2}]),
            result([{"id": 10}, {"id": 11}]),
        ]

        assert supabase_store.delete_orphan_postings() == 2
        query.in_.assert_called_with("document_id", [2])
