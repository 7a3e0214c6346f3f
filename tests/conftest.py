"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Store: store (InMemoryStore), project, site
2. HTTP: respx_mock for httpx-based fetches
3. Fakes: fake_fetcher serving canned pages, html_page builder
4. Infrastructure: mock_supabase_client, test_settings, test_client
5. Logging: logfire_capture
"""

import asyncio
import os

# Suppress logfire warnings when it isn't configured in tests
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

import logfire
import pytest
import respx
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch

from localsearch.config import Settings
from localsearch.db.memory_store import InMemoryStore
from localsearch.dependencies import build_services
from localsearch.main import app
from localsearch.models.fetch_models import FetchError, FetchErrorKind, FetchedPage
from localsearch.models.site_models import (
    CrawlConfig,
    ProjectCreate,
    SiteCreate,
)


@pytest.fixture
def respx_mock():
    """Respx mock fixture for HTTP mocking."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    return InMemoryStore()


@pytest.fixture
def project(store):
    """Project allowing example.com with no politeness delay."""
    return store.create_project(
        ProjectCreate(
            name="Example Project",
            description="Test project",
            base_domains=["example.com"],
            crawl_config=CrawlConfig(max_depth=3, crawl_delay=0),
        )
    )


@pytest.fixture
def site(store, project):
    """Site for https://example.com/ under the example project."""
    return store.create_site(
        SiteCreate(
            project_id=project.id,
            domain="example.com",
            base_url="https://example.com/",
        )
    )


# =============================================================================
# Fetch Fakes
# =============================================================================


def html_page(title: str, body: str = "", links: list[str] | None = None, description: str = "") -> bytes:
    """Build a small HTML document."""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links or [])
    meta = f'<meta name="description" content="{description}">' if description else ""
    return (
        f"<html lang=\"en\"><head><title>{title}</title>{meta}</head>"
        f"<body><p>{body}</p>{anchors}</body></html>"
    ).encode("utf-8")


class FakeFetcher:
    """PageFetcher serving canned bodies; unknown URLs fail with HTTP 404."""

    def __init__(self, pages: dict[str, bytes | FetchError], content_type: str = "text/html; charset=utf-8"):
        self.pages = pages
        self.content_type = content_type
        self.fetched: list[str] = []

    async def fetch(self, url: str):
        self.fetched.append(url)
        page = self.pages.get(url)
        if page is None:
            return FetchError(FetchErrorKind.HTTP_ERROR, "HTTP 404", status_code=404)
        if isinstance(page, FetchError):
            return page
        return FetchedPage(
            url=url,
            status_code=200,
            content_type=self.content_type,
            body=page,
            size=len(page),
        )


@pytest.fixture
def make_html():
    """HTML document builder."""
    return html_page


@pytest.fixture
def fake_fetcher_factory():
    """Build a FakeFetcher from a url -> body mapping."""
    return FakeFetcher


# =============================================================================
# Infrastructure Mocks
# =============================================================================


@pytest.fixture
def test_settings():
    """Settings without Supabase so the in-memory store is used."""
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_service_key=None,
        env="local",
        logfire_token=None,
        sentry_dsn=None,
    )


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client whose query builder chains back to itself.

    Every builder method returns the same query mock, so any chain of
    select/eq/order/limit/... ends in ``query.execute()``. Configure
    ``client.query.execute.return_value`` (or ``side_effect``) per test.
    """
    client = MagicMock()
    query = MagicMock()
    for method in (
        "select",
        "insert",
        "upsert",
        "update",
        "delete",
        "eq",
        "neq",
        "gte",
        "lte",
        "ilike",
        "in_",
        "order",
        "limit",
        "range",
        "like",
        "is_",
    ):
        getattr(query, method).return_value = query
    result = MagicMock()
    result.data = []
    result.count = 0
    query.execute.return_value = result
    client.table.return_value = query
    client.query = query
    return client


@pytest.fixture
def test_client(store, test_settings):
    """TestClient wired to the in-memory store.

    The lifespan is not entered; services and the shutdown event are set on
    app.state directly so each test gets a fresh store.
    """
    app.state.services = build_services(test_settings, store)
    app.state.shutdown_event = asyncio.Event()
    yield TestClient(app)
    del app.state.services
    del app.state.shutdown_event


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def logfire_capture():
    """
    Capture Logfire logs for testing.

    This fixture patches Logfire to capture log calls for assertion while
    still forwarding them to the real functions.
    """
    captured_logs = []

    original_info = logfire.info
    original_warning = logfire.warning
    original_error = logfire.error

    def capture_info(*args, **kwargs):
        captured_logs.append(("info", args, kwargs))
        return original_info(*args, **kwargs)

    def capture_warning(*args, **kwargs):
        captured_logs.append(("warning", args, kwargs))
        return original_warning(*args, **kwargs)

    def capture_error(*args, **kwargs):
        captured_logs.append(("error", args, kwargs))
        return original_error(*args, **kwargs)

    with (
        patch("logfire.info", side_effect=capture_info),
        patch("logfire.warning", side_effect=capture_warning),
        patch("logfire.error", side_effect=capture_error),
    ):
        yield captured_logs
