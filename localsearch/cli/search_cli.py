"""Typer-based command line for crawling, searching and administration."""

import os

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent.parent
from dotenv import load_dotenv

load_dotenv(_project_root / ".env")
load_dotenv(_project_root / ".env.local")

import asyncio

import typer

from localsearch.config import get_settings
from localsearch.constants import (
    CRAWL_HISTORY_LIMIT,
    DEFAULT_CRAWL_FREQUENCY_HOURS,
    DEFAULT_MAX_PAGES,
)
from localsearch.db.client import create_store
from localsearch.db.migrate import run_migrations
from localsearch.dependencies import Services, build_services
from localsearch.exceptions import LocalSearchError
from localsearch.logging_config import configure_logging
from localsearch.models.crawl_models import CrawlStats
from localsearch.models.document_models import ContentKind
from localsearch.models.search_models import SearchOptions

app = typer.Typer(help="Domain-scoped crawler and full-text search.")


def _services() -> Services:
    settings = get_settings()
    configure_logging(settings)
    return build_services(settings, create_store(settings))


def _fail(message: str) -> None:
    typer.echo(f"✗ {message}", err=True)
    raise typer.Exit(1)


def _echo_stats(stats: CrawlStats) -> None:
    typer.echo(f"Status:      {stats.status.value}")
    typer.echo(f"Processed:   {stats.pages_processed}")
    typer.echo(f"Discovered:  {stats.urls_discovered}")
    typer.echo(f"Successful:  {stats.urls_successful}")
    typer.echo(f"Failed:      {stats.urls_failed}")
    typer.echo(f"Skipped:     {stats.urls_skipped}")
    for error in stats.errors:
        typer.echo(f"  - {error}")


@app.command()
def crawl(
    site_id: int = typer.Argument(..., help="Site to crawl"),
    max_pages: int = typer.Option(DEFAULT_MAX_PAGES, "--max-pages", min=1, max=1000),
):
    """Crawl one site."""
    services = _services()
    typer.echo(f"Crawling site {site_id} (max {max_pages} pages)...")
    try:
        stats = asyncio.run(services.crawler.crawl_site(site_id, max_pages=max_pages))
    except LocalSearchError as e:
        _fail(str(e))
    _echo_stats(stats)
    if not stats.succeeded:
        raise typer.Exit(1)


@app.command("crawl-due")
def crawl_due(
    max_pages: int = typer.Option(DEFAULT_MAX_PAGES, "--max-pages", min=1, max=1000),
):
    """Crawl every site whose crawl frequency has elapsed."""
    services = _services()
    results = asyncio.run(services.crawler.crawl_due_sites(max_pages=max_pages))
    if not results:
        typer.echo("No sites due for crawling.")
    for stats in results:
        typer.echo(f"\nSite {stats.site_id}:")
        _echo_stats(stats)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    project_id: int | None = typer.Option(None, "--project-id"),
    content_type: ContentKind | None = typer.Option(None, "--content-type"),
    sort: str = typer.Option("relevance", "--sort", help="relevance, date, title or pagerank"),
    page: int = typer.Option(1, "--page", min=1),
    per_page: int = typer.Option(10, "--per-page", min=1),
    exact_phrase: bool = typer.Option(False, "--exact-phrase"),
    no_synonyms: bool = typer.Option(False, "--no-synonyms"),
):
    """Search indexed documents."""
    if sort not in ("relevance", "date", "title", "pagerank"):
        _fail(f"Unknown sort order: {sort}")
    services = _services()
    options = SearchOptions(
        project_id=project_id,
        content_type=content_type,
        sort=sort,
        page=page,
        per_page=per_page,
        exact_phrase=exact_phrase,
        include_synonyms=not no_synonyms,
    )
    try:
        response = services.search.search(query, options)
    except LocalSearchError as e:
        _fail(str(e))

    typer.echo(
        f"{response.total_results} results "
        f"(page {response.page}/{max(response.total_pages, 1)}, "
        f"{response.elapsed_time_ms:.1f} ms)"
    )
    if response.fallback:
        typer.echo("(substring fallback)")
    for position, result in enumerate(response.results, start=1 + (page - 1) * response.per_page):
        typer.echo(f"\n{position}. {result.title or result.url}  [{result.score:.2f}]")
        typer.echo(f"   {result.url}")
        if result.snippet:
            typer.echo(f"   {result.snippet}")
    if response.suggestions:
        typer.echo(f"\nSuggestions: {', '.join(response.suggestions)}")


@app.command()
def status(site_id: int | None = typer.Option(None, "--site-id")):
    """Show crawl status per site."""
    services = _services()
    try:
        statuses = services.crawler.get_crawl_status(site_id)
    except LocalSearchError as e:
        _fail(str(e))
    if not statuses:
        typer.echo("No sites registered.")
    for s in statuses:
        last = s.last_crawled.isoformat() if s.last_crawled else "never"
        typer.echo(
            f"[{s.site_id}] {s.domain}  {s.status.value}  docs={s.documents_count}  "
            f"pending={s.queue_pending} completed={s.queue_completed} "
            f"failed={s.queue_failed} skipped={s.queue_skipped}  last={last}"
        )


@app.command()
def history(
    project_id: int | None = typer.Option(None, "--project-id"),
    limit: int = typer.Option(CRAWL_HISTORY_LIMIT, "--limit", min=1),
):
    """Show recent crawl runs, newest first."""
    services = _services()
    runs = services.crawler.get_crawl_history(project_id, limit)
    if not runs:
        typer.echo("No crawl history.")
    for run in runs:
        typer.echo(
            f"{run.started_at.isoformat()}  site={run.site_id}  {run.status.value}  "
            f"ok={run.urls_successful} failed={run.urls_failed} "
            f"skipped={run.urls_skipped} discovered={run.urls_discovered}"
        )


@app.command()
def reindex(project_id: int = typer.Argument(...)):
    """Rebuild postings for a project."""
    services = _services()
    if services.store.get_project(project_id) is None:
        _fail(f"Project {project_id} not found")
    stats = services.indexer.reindex_project(project_id)
    typer.echo(f"✓ Reindexed {stats.processed} documents ({stats.errors} errors)")


@app.command()
def cleanup():
    """Remove postings whose document no longer exists."""
    services = _services()
    removed = services.indexer.cleanup_orphaned_terms()
    typer.echo(f"✓ Removed {removed} orphaned postings")


@app.command("add-project")
def add_project(
    name: str = typer.Argument(...),
    domains: list[str] = typer.Option(..., "--domain", help="Allowed domain (repeatable)"),
    description: str = typer.Option("", "--description"),
    max_depth: int | None = typer.Option(None, "--max-depth"),
    crawl_delay: float | None = typer.Option(None, "--crawl-delay"),
    no_robots: bool = typer.Option(False, "--no-robots"),
):
    """Create a project."""
    services = _services()
    settings = services.settings
    crawl_config = {
        "max_depth": max_depth if max_depth is not None else settings.max_crawl_depth,
        "crawl_delay": crawl_delay if crawl_delay is not None else settings.crawl_delay_seconds,
        "respect_robots": not no_robots,
    }
    try:
        project = services.admin.create_project(
            name=name,
            base_domains=domains,
            description=description,
            crawl_config=crawl_config,
        )
    except LocalSearchError as e:
        _fail(str(e))
    typer.echo(f"✓ Project {project.id} created: {project.name}")


@app.command("update-project")
def update_project(
    project_id: int = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    domains: list[str] | None = typer.Option(None, "--domain", help="Replace allowed domains (repeatable)"),
    description: str | None = typer.Option(None, "--description"),
    max_depth: int | None = typer.Option(None, "--max-depth"),
    crawl_delay: float | None = typer.Option(None, "--crawl-delay"),
    respect_robots: bool | None = typer.Option(None, "--robots/--no-robots"),
):
    """Edit a project; options left out keep their current value."""
    services = _services()
    current = services.store.get_project(project_id)
    if current is None:
        _fail(f"Project {project_id} not found")
    crawl_config = current.crawl_config.model_dump()
    if max_depth is not None:
        crawl_config["max_depth"] = max_depth
    if crawl_delay is not None:
        crawl_config["crawl_delay"] = crawl_delay
    if respect_robots is not None:
        crawl_config["respect_robots"] = respect_robots
    try:
        project = services.admin.update_project(
            project_id,
            name=name if name is not None else current.name,
            base_domains=domains or current.base_domains,
            description=description if description is not None else current.description,
            crawl_config=crawl_config,
        )
    except LocalSearchError as e:
        _fail(str(e))
    typer.echo(f"✓ Project {project.id} updated: {project.name}")


@app.command("add-site")
def add_site(
    project_id: int = typer.Argument(...),
    url: str = typer.Argument(...),
    frequency: int = typer.Option(DEFAULT_CRAWL_FREQUENCY_HOURS, "--frequency", min=1),
):
    """Register a site under a project."""
    services = _services()
    try:
        site = services.admin.add_site(project_id, url, crawl_frequency=frequency)
    except LocalSearchError as e:
        _fail(str(e))
    typer.echo(f"✓ Site {site.id} added: {site.base_url}")


@app.command()
def migrate(
    database_url: str | None = typer.Option(None, "--database-url", envvar="DATABASE_URL"),
):
    """Apply the SQL schema to Postgres."""
    applied = run_migrations(database_url)
    typer.echo(f"✓ Applied {len(applied)} migration(s)")


if __name__ == "__main__":
    app()
