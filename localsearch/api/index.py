"""Index maintenance endpoints."""

from fastapi import APIRouter, Depends

from localsearch.dependencies import Services, get_services
from localsearch.exceptions import ProjectNotFoundError

router = APIRouter()


@router.post("/reindex/{project_id}")
def reindex_project(project_id: int, services: Services = Depends(get_services)):
    """Rebuild postings for every document of a project."""
    if services.store.get_project(project_id) is None:
        raise ProjectNotFoundError(f"Project {project_id} not found")
    stats = services.indexer.reindex_project(project_id)
    return {"success": True, "data": stats.model_dump(mode="json")}


@router.post("/cleanup")
def cleanup_orphaned_terms(services: Services = Depends(get_services)):
    removed = services.indexer.cleanup_orphaned_terms()
    return {"success": True, "data": {"removed": removed}}


@router.get("/stats")
def index_statistics(
    project_id: int | None = None,
    services: Services = Depends(get_services),
):
    stats = services.indexer.get_statistics(project_id)
    return {"success": True, "data": stats.model_dump(mode="json")}
