"""Project and site administration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from localsearch.constants import DEFAULT_CRAWL_FREQUENCY_HOURS
from localsearch.dependencies import Services, get_services

router = APIRouter()


class ProjectRequest(BaseModel):
    """Project create and update payload. Bounds are enforced by the admin service."""

    name: str
    description: str = ""
    base_domains: list[str] = Field(default_factory=list)
    crawl_config: dict[str, Any] | None = None


class SiteRequest(BaseModel):
    """Site registration payload."""

    project_id: int
    url: str
    crawl_frequency: int = DEFAULT_CRAWL_FREQUENCY_HOURS


@router.get("/projects")
def list_projects(services: Services = Depends(get_services)):
    projects = services.admin.list_projects()
    return {"success": True, "data": [p.model_dump(mode="json") for p in projects]}


@router.post("/projects", status_code=201)
def create_project(body: ProjectRequest, services: Services = Depends(get_services)):
    project = services.admin.create_project(
        name=body.name,
        base_domains=body.base_domains,
        description=body.description,
        crawl_config=body.crawl_config,
    )
    return {"success": True, "data": project.model_dump(mode="json")}


@router.put("/projects/{project_id}")
def update_project(
    project_id: int, body: ProjectRequest, services: Services = Depends(get_services)
):
    project = services.admin.update_project(
        project_id,
        name=body.name,
        base_domains=body.base_domains,
        description=body.description,
        crawl_config=body.crawl_config,
    )
    return {"success": True, "data": project.model_dump(mode="json")}


@router.get("/sites")
def list_sites(
    project_id: int | None = None,
    services: Services = Depends(get_services),
):
    sites = services.admin.list_sites(project_id)
    return {"success": True, "data": [s.model_dump(mode="json") for s in sites]}


@router.post("/sites", status_code=201)
def add_site(body: SiteRequest, services: Services = Depends(get_services)):
    site = services.admin.add_site(
        body.project_id, body.url, crawl_frequency=body.crawl_frequency
    )
    return {"success": True, "data": site.model_dump(mode="json")}
