"""Search endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from localsearch.constants import MAX_RESULTS_PER_PAGE
from localsearch.dependencies import Services, get_services
from localsearch.models.document_models import ContentKind
from localsearch.models.search_models import SearchOptions, SortOrder

router = APIRouter()


@router.get("")
def search(
    q: str = "",
    project_id: int | None = None,
    site_id: int | None = None,
    content_type: ContentKind | None = None,
    language: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort: SortOrder = "relevance",
    page: int = Query(default=1, ge=1),
    per_page: int | None = Query(default=None, ge=1),
    exact_phrase: bool = False,
    include_synonyms: bool = True,
    services: Services = Depends(get_services),
):
    """Full-text search over indexed documents.

    per_page above the maximum is capped rather than rejected.
    """
    options = SearchOptions(
        project_id=project_id,
        site_id=site_id,
        content_type=content_type,
        language=language,
        date_from=date_from,
        date_to=date_to,
        sort=sort,
        page=page,
        per_page=min(
            per_page or services.settings.results_per_page, MAX_RESULTS_PER_PAGE
        ),
        exact_phrase=exact_phrase,
        include_synonyms=include_synonyms,
    )
    response = services.search.search(q, options)
    return {"success": True, "data": response.model_dump(mode="json")}


@router.get("/suggestions")
def suggestions(
    q: str = "",
    project_id: int | None = None,
    services: Services = Depends(get_services),
):
    return {"success": True, "data": services.search.suggestions(q, project_id)}
