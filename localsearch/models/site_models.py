"""Project, crawl configuration and site models."""

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from localsearch.constants import (
    DEFAULT_CRAWL_DELAY_SECONDS,
    DEFAULT_CRAWL_FREQUENCY_HOURS,
    DEFAULT_MAX_CRAWL_DEPTH,
    DOMAIN_PATTERN,
    MAX_CRAWL_DELAY_SECONDS,
    MAX_CRAWL_DEPTH,
    MIN_CRAWL_DEPTH,
    PROJECT_DESCRIPTION_MAX_CHARS,
    PROJECT_NAME_MAX_CHARS,
    PROJECT_NAME_MIN_CHARS,
)

_DOMAIN_RE = re.compile(DOMAIN_PATTERN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiteStatus(str, Enum):
    """Lifecycle of a crawled site."""

    PENDING = "pending"
    ACTIVE = "active"
    PROCESSING = "processing"
    ERROR = "error"
    BLOCKED = "blocked"


class CrawlConfig(BaseModel):
    """Per-project crawl settings, validated once when the project is configured."""

    max_depth: int = Field(
        default=DEFAULT_MAX_CRAWL_DEPTH,
        ge=MIN_CRAWL_DEPTH,
        le=MAX_CRAWL_DEPTH,
        description="Maximum link depth followed from the base URL",
    )
    crawl_delay: float = Field(
        default=DEFAULT_CRAWL_DELAY_SECONDS,
        ge=0,
        le=MAX_CRAWL_DELAY_SECONDS,
        description="Politeness delay between requests (seconds)",
    )
    respect_robots: bool = Field(
        default=True, description="Consult robots.txt when a checker is configured"
    )


class Project(BaseModel):
    """A search project grouping sites that share an index."""

    id: int
    name: str
    description: str = ""
    base_domains: list[str] = Field(default_factory=list)
    crawl_config: CrawlConfig = Field(default_factory=CrawlConfig)
    created_at: datetime = Field(default_factory=_utcnow)


class ProjectCreate(BaseModel):
    """Parameters for creating a project."""

    name: str = Field(
        ...,
        min_length=PROJECT_NAME_MIN_CHARS,
        max_length=PROJECT_NAME_MAX_CHARS,
        description="Project name",
    )
    description: str = Field(
        default="",
        max_length=PROJECT_DESCRIPTION_MAX_CHARS,
        description="Free-form project description",
    )
    base_domains: list[str] = Field(
        ..., min_length=1, description="Domains the project's crawls may visit"
    )
    crawl_config: CrawlConfig = Field(default_factory=CrawlConfig)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < PROJECT_NAME_MIN_CHARS:
            raise ValueError(
                f"Project name must be at least {PROJECT_NAME_MIN_CHARS} characters"
            )
        return value

    @field_validator("base_domains")
    @classmethod
    def validate_domains(cls, value: list[str]) -> list[str]:
        domains: list[str] = []
        for raw in value:
            domain = raw.strip().lower().rstrip(".")
            if not domain:
                continue
            if not _DOMAIN_RE.match(domain):
                raise ValueError(f"Invalid domain: {raw}")
            if domain not in domains:
                domains.append(domain)
        if not domains:
            raise ValueError("At least one domain is required")
        return domains


class Site(BaseModel):
    """A crawlable site belonging to a project."""

    id: int
    project_id: int
    domain: str
    base_url: str
    status: SiteStatus = SiteStatus.PENDING
    last_crawled: datetime | None = None
    crawl_frequency: int = DEFAULT_CRAWL_FREQUENCY_HOURS
    created_at: datetime = Field(default_factory=_utcnow)


class SiteCreate(BaseModel):
    """Parameters for registering a site."""

    project_id: int = Field(..., description="Owning project id")
    domain: str = Field(..., description="Host name of the site")
    base_url: str = Field(..., description="Seed URL the crawl starts from")
    crawl_frequency: int = Field(
        default=DEFAULT_CRAWL_FREQUENCY_HOURS,
        ge=1,
        description="Hours between scheduled crawls",
    )
