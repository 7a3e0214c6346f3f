"""Service container shared by the API and the CLI.

The store is created once per process (app lifespan or CLI invocation) and
passed into every service constructor.
"""

from dataclasses import dataclass

from fastapi import Request

from localsearch.config import Settings
from localsearch.db.store import SearchStore
from localsearch.services.admin_service import AdminService
from localsearch.services.content_parser import ContentParser
from localsearch.services.crawler import CrawlOrchestrator
from localsearch.services.fetcher import HttpxFetchClient
from localsearch.services.frontier import CrawlFrontier
from localsearch.services.indexer import TermIndexer
from localsearch.services.query_analyzer import QueryAnalyzer
from localsearch.services.robots import HttpxRobotsChecker
from localsearch.services.search_engine import SearchEngine
from localsearch.services.url_policy import UrlPolicy


@dataclass
class Services:
    """Wired services for one process."""

    settings: Settings
    store: SearchStore
    crawler: CrawlOrchestrator
    indexer: TermIndexer
    search: SearchEngine
    admin: AdminService


def build_services(settings: Settings, store: SearchStore) -> Services:
    """Wire every service around a single store."""
    fetcher = HttpxFetchClient(
        timeout=settings.fetch_timeout_seconds,
        max_redirects=settings.fetch_max_redirects,
        user_agent=settings.user_agent,
        max_content_length=settings.max_content_length,
        max_file_size=settings.max_file_size,
    )
    indexer = TermIndexer(store)
    crawler = CrawlOrchestrator(
        store,
        fetcher=fetcher,
        parser=ContentParser(default_language=settings.default_language),
        policy=UrlPolicy(),
        frontier=CrawlFrontier(store),
        indexer=indexer,
        robots=HttpxRobotsChecker(
            user_agent=settings.user_agent, timeout=settings.fetch_timeout_seconds
        ),
    )
    search = SearchEngine(
        store, analyzer=QueryAnalyzer(default_language=settings.default_language)
    )
    admin = AdminService(
        store,
        default_max_depth=settings.max_crawl_depth,
        default_crawl_delay=settings.crawl_delay_seconds,
    )
    return Services(
        settings=settings,
        store=store,
        crawler=crawler,
        indexer=indexer,
        search=search,
        admin=admin,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services built in the lifespan."""
    return request.app.state.services
