"""End-to-end tests for the HTTP API."""

import pytest

from localsearch.main import APP_VERSION, app
from localsearch.services.crawler import CrawlOrchestrator

ROOT = "https://example.com/"


@pytest.fixture
def crawlable(test_client, store, site, fake_fetcher_factory, make_html):
    """Swap the crawler's fetcher for canned pages and return the site."""
    pages = {
        ROOT: make_html("Home", "Welcome to the python crawler", ["/guide", "https://other.org/"]),
        f"{ROOT}guide": make_html("Python guide", "Learn python crawling step by step"),
    }
    services = app.state.services
    services.crawler = CrawlOrchestrator(
        store, fetcher=fake_fetcher_factory(pages), indexer=services.indexer
    )
    return site


class TestApplication:
    """Test FastAPI application wiring."""

    def test_app_initialization(self):
        assert app.title == "LocalSearch"
        assert app.version == APP_VERSION

    def test_root_endpoint(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "LocalSearch API"

    def test_health_reports_store_backend(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "ok", "store": "memory"}

    def test_correlation_id_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.headers["X-Response-Time"].endswith("ms")

    def test_correlation_id_generated(self, test_client):
        response = test_client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_cors_preflight(self, test_client):
        response = test_client.options(
            "/api/search",
            headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "GET"},
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


class TestAdminEndpoints:
    def test_create_and_list_project(self, test_client):
        response = test_client.post(
            "/api/projects",
            json={"name": "Docs search", "base_domains": ["example.com"], "crawl_config": {"max_depth": 2}},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["crawl_config"]["max_depth"] == 2

        listed = test_client.get("/api/projects").json()["data"]
        assert [p["name"] for p in listed] == ["Docs search"]

    def test_invalid_project(self, test_client):
        response = test_client.post("/api/projects", json={"name": "Docs", "base_domains": []})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"].startswith("base_domains")

    def test_update_project(self, test_client, project):
        response = test_client.put(
            f"/api/projects/{project.id}",
            json={"name": "Renamed", "base_domains": ["example.org"], "crawl_config": {"max_depth": 1}},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Renamed"
        assert data["base_domains"] == ["example.org"]
        assert data["crawl_config"]["max_depth"] == 1

    def test_update_project_errors(self, test_client, project):
        missing = test_client.put("/api/projects/99", json={"name": "Docs", "base_domains": ["example.com"]})
        invalid = test_client.put(f"/api/projects/{project.id}", json={"name": "ab", "base_domains": ["example.com"]})

        assert missing.status_code == 404
        assert missing.json() == {"success": False, "error": "Project 99 not found"}
        assert invalid.status_code == 400
        assert invalid.json()["error"].startswith("name")

    def test_add_site_conflicts_and_missing_project(self, test_client, project):
        created = test_client.post("/api/sites", json={"project_id": project.id, "url": "https://example.com/"})
        duplicate = test_client.post("/api/sites", json={"project_id": project.id, "url": "https://example.com/b"})
        missing = test_client.post("/api/sites", json={"project_id": 99, "url": "https://example.com/"})

        assert created.status_code == 201
        assert duplicate.status_code == 409
        assert missing.status_code == 404
        assert test_client.get("/api/sites", params={"project_id": project.id}).json()["data"][0]["domain"] == (
            "example.com"
        )

    def test_malformed_body(self, test_client):
        response = test_client.post("/api/sites", json={"url": "https://example.com/"})

        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"][0]["loc"] == ["body", "project_id"]


class TestCrawlEndpoints:
    def test_start_crawl(self, test_client, crawlable):
        response = test_client.post("/api/crawl/start", json={"site_id": crawlable.id, "max_pages": 10})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "completed"
        assert body["data"]["urls_successful"] == 2
        assert body["data"]["urls_discovered"] == 1

    def test_unknown_site(self, test_client):
        response = test_client.post("/api/crawl/start", json={"site_id": 99})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Site 99 not found"}

    def test_conflict_when_site_processing(self, test_client, store, crawlable):
        store.claim_site_for_crawl(crawlable.id)

        response = test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        assert response.status_code == 409

    @pytest.mark.parametrize("max_pages", [0, 1001])
    def test_page_budget_bounds(self, test_client, crawlable, max_pages):
        response = test_client.post("/api/crawl/start", json={"site_id": crawlable.id, "max_pages": max_pages})
        assert response.status_code == 422

    def test_shutdown_cancels_crawl(self, test_client, crawlable):
        app.state.shutdown_event.set()

        response = test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["pages_processed"] == 0

    def test_status_history_and_queue(self, test_client, crawlable):
        test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        [status] = test_client.get("/api/crawl/status", params={"site_id": crawlable.id}).json()["data"]
        assert status["status"] == "active"
        assert status["documents_count"] == 2
        assert status["queue_completed"] == 2

        history = test_client.get("/api/crawl/history").json()["data"]
        assert history[0]["urls_successful"] == 2

        queue = test_client.get("/api/crawl/queue", params={"project_id": crawlable.project_id}).json()["data"]
        assert {e["url"] for e in queue} == {ROOT, f"{ROOT}guide"}

    def test_listing_limits(self, test_client):
        assert test_client.get("/api/crawl/history", params={"limit": 51}).status_code == 422
        assert test_client.get("/api/crawl/queue", params={"limit": 101}).status_code == 422

    def test_status_unknown_site(self, test_client):
        assert test_client.get("/api/crawl/status", params={"site_id": 99}).status_code == 404


class TestSearchEndpoints:
    def test_search_after_crawl(self, test_client, crawlable):
        test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        response = test_client.get("/api/search", params={"q": "python guide", "include_synonyms": False})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_results"] == 2
        assert data["results"][0]["url"] == f"{ROOT}guide"
        assert "<mark>" in data["results"][0]["highlighted_title"]
        assert data["facets"]["content_types"] == [{"value": "webpage", "label": "webpage", "count": 2}]
        assert data["facets"]["languages"] == [{"value": "en", "label": "en", "count": 2}]

    def test_missing_query(self, test_client):
        response = test_client.get("/api/search")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "search query required"}

    def test_per_page_capped(self, test_client):
        data = test_client.get("/api/search", params={"q": "python", "per_page": 500}).json()["data"]
        assert data["per_page"] == 100

    def test_default_per_page_from_settings(self, test_client):
        data = test_client.get("/api/search", params={"q": "python"}).json()["data"]
        assert data["per_page"] == 20

    def test_invalid_sort(self, test_client):
        assert test_client.get("/api/search", params={"q": "python", "sort": "size"}).status_code == 422

    def test_suggestions(self, test_client, crawlable):
        test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        data = test_client.get("/api/search/suggestions", params={"q": "craw"}).json()["data"]

        assert data[0] == "crawler"


class TestIndexEndpoints:
    def test_reindex_and_stats(self, test_client, crawlable):
        test_client.post("/api/crawl/start", json={"site_id": crawlable.id})

        reindexed = test_client.post(f"/api/index/reindex/{crawlable.project_id}").json()["data"]
        stats = test_client.get("/api/index/stats", params={"project_id": crawlable.project_id}).json()["data"]

        assert reindexed == {"processed": 2, "errors": 0}
        assert stats["total_documents"] == 2
        assert stats["unique_terms"] > 0
        assert stats["by_language"] == {"en": 2}

    def test_reindex_unknown_project(self, test_client):
        assert test_client.post("/api/index/reindex/99").status_code == 404

    def test_cleanup(self, test_client):
        response = test_client.post("/api/index/cleanup")
        assert response.json() == {"success": True, "data": {"removed": 0}}
