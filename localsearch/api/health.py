"""Health check endpoint."""

from fastapi import APIRouter, Depends

from localsearch.dependencies import Services, get_services

router = APIRouter()


@router.get("/health")
def health(services: Services = Depends(get_services)):
    """Liveness probe reporting which store backs the process."""
    return {"success": True, "status": "ok", "store": services.store.backend}
