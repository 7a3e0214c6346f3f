"""Crawl endpoints: start a run, inspect status, history and the frontier."""

from fastapi import APIRouter, Depends, Query, Request

from localsearch.constants import CRAWL_HISTORY_LIMIT, CRAWL_QUEUE_LIMIT
from localsearch.dependencies import Services, get_services
from localsearch.models.crawl_models import CrawlRequest

router = APIRouter()


@router.post("/start")
async def start_crawl(
    body: CrawlRequest,
    request: Request,
    services: Services = Depends(get_services),
):
    """Crawl one site and return the run statistics.

    The run stops early when the application starts shutting down.
    """
    cancel_event = getattr(request.app.state, "shutdown_event", None)
    stats = await services.crawler.crawl_site(
        body.site_id, max_pages=body.max_pages, cancel_event=cancel_event
    )
    return {"success": stats.succeeded, "data": stats.model_dump(mode="json")}


@router.get("/status")
def crawl_status(
    site_id: int | None = None,
    services: Services = Depends(get_services),
):
    statuses = services.crawler.get_crawl_status(site_id)
    return {"success": True, "data": [s.model_dump(mode="json") for s in statuses]}


@router.get("/history")
def crawl_history(
    project_id: int | None = None,
    limit: int = Query(default=CRAWL_HISTORY_LIMIT, ge=1, le=CRAWL_HISTORY_LIMIT),
    services: Services = Depends(get_services),
):
    history = services.crawler.get_crawl_history(project_id, limit)
    return {"success": True, "data": [h.model_dump(mode="json") for h in history]}


@router.get("/queue")
def crawl_queue(
    project_id: int | None = None,
    limit: int = Query(default=CRAWL_QUEUE_LIMIT, ge=1, le=CRAWL_QUEUE_LIMIT),
    services: Services = Depends(get_services),
):
    entries = services.crawler.get_queue(project_id, limit)
    return {"success": True, "data": [e.model_dump(mode="json") for e in entries]}
