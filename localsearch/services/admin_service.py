"""Project and site administration."""

from typing import Any

import logfire
from pydantic import ValidationError

from localsearch.constants import (
    DEFAULT_CRAWL_DELAY_SECONDS,
    DEFAULT_CRAWL_FREQUENCY_HOURS,
    DEFAULT_MAX_CRAWL_DEPTH,
)
from localsearch.db.store import SearchStore
from localsearch.exceptions import (
    DuplicateSiteError,
    ProjectNotFoundError,
    ProjectValidationError,
)
from localsearch.models.site_models import (
    CrawlConfig,
    Project,
    ProjectCreate,
    Site,
    SiteCreate,
)
from localsearch.services.url_policy import clean_url, extract_domain, is_valid_url


def _validation_message(error: ValidationError) -> str:
    """First validation error as ``field: message``."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


class AdminService:
    """Create, update and list projects and sites."""

    def __init__(
        self,
        store: SearchStore,
        default_max_depth: int = DEFAULT_MAX_CRAWL_DEPTH,
        default_crawl_delay: float = DEFAULT_CRAWL_DELAY_SECONDS,
    ):
        self._store = store
        self._default_max_depth = default_max_depth
        self._default_crawl_delay = default_crawl_delay

    def create_project(
        self,
        name: str,
        base_domains: list[str],
        description: str = "",
        crawl_config: dict[str, Any] | CrawlConfig | None = None,
    ) -> Project:
        """Validate and create a project.

        Raises:
            ProjectValidationError: If any field is out of bounds
        """
        if crawl_config is None:
            crawl_config = {
                "max_depth": self._default_max_depth,
                "crawl_delay": self._default_crawl_delay,
            }
        payload = self._project_payload(name, base_domains, description, crawl_config)

        project = self._store.create_project(payload)
        logfire.info(
            "Project created",
            project_id=project.id,
            name=project.name,
            base_domains=project.base_domains,
        )
        return project

    def update_project(
        self,
        project_id: int,
        name: str,
        base_domains: list[str],
        description: str = "",
        crawl_config: dict[str, Any] | CrawlConfig | None = None,
    ) -> Project:
        """Replace a project's name, description, domains and crawl settings.

        The next crawl of any of the project's sites uses the new settings.
        When crawl_config is omitted the current one is kept.

        Raises:
            ProjectNotFoundError: If the project does not exist
            ProjectValidationError: If any field is out of bounds
        """
        existing = self._store.get_project(project_id)
        if existing is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        payload = self._project_payload(
            name,
            base_domains,
            description,
            existing.crawl_config if crawl_config is None else crawl_config,
        )

        project = self._store.update_project(project_id, payload)
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        logfire.info(
            "Project updated",
            project_id=project.id,
            name=project.name,
            base_domains=project.base_domains,
            crawl_config=project.crawl_config.model_dump(),
        )
        return project

    @staticmethod
    def _project_payload(
        name: str,
        base_domains: list[str],
        description: str,
        crawl_config: dict[str, Any] | CrawlConfig,
    ) -> ProjectCreate:
        try:
            return ProjectCreate(
                name=name,
                description=description,
                base_domains=base_domains,
                crawl_config=crawl_config,
            )
        except ValidationError as e:
            raise ProjectValidationError(_validation_message(e)) from e

    def add_site(
        self,
        project_id: int,
        url: str,
        crawl_frequency: int = DEFAULT_CRAWL_FREQUENCY_HOURS,
    ) -> Site:
        """Register a site under a project, keyed by the URL's host.

        Raises:
            ProjectValidationError: If the URL or frequency is invalid
            ProjectNotFoundError: If the project does not exist
            DuplicateSiteError: If the domain is already registered in the project
        """
        base_url = clean_url(url)
        if not is_valid_url(base_url):
            raise ProjectValidationError(f"Invalid site URL: {url}")
        domain = extract_domain(base_url)

        if self._store.get_project(project_id) is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        if self._store.find_site_by_domain(project_id, domain) is not None:
            raise DuplicateSiteError(
                f"Site {domain} already exists in project {project_id}"
            )

        try:
            payload = SiteCreate(
                project_id=project_id,
                domain=domain,
                base_url=base_url,
                crawl_frequency=crawl_frequency,
            )
        except ValidationError as e:
            raise ProjectValidationError(_validation_message(e)) from e

        site = self._store.create_site(payload)
        logfire.info(
            "Site added", site_id=site.id, project_id=project_id, domain=domain
        )
        return site

    def list_projects(self) -> list[Project]:
        return self._store.list_projects()

    def list_sites(self, project_id: int | None = None) -> list[Site]:
        return self._store.list_sites(project_id)
