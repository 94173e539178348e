"""
FolioScan Backend — Search Route Handler
=========================================

What:  GET /api/v1/search?q=... over the caller's folder and note names.
How:   Delegates to SearchService. The response is always 200: a lookup that
       fails only shrinks the result list.
"""

from fastapi import APIRouter, Depends, Query

from folioscan.auth import Principal, get_current_principal
from folioscan.schemas.common import ErrorResponse
from folioscan.schemas.search import SearchHit, SearchResponse
from folioscan.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/v1", tags=["Search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={401: {"description": "Missing or invalid bearer token", "model": ErrorResponse}},
    summary="Search folders and notes by name",
)
async def search(
    q: str = Query(default="", description="Case-insensitive substring; empty returns nothing"),
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> SearchResponse:
    results = await services.search_service.search(principal.owner_id, q)
    return SearchResponse(query=q, results=[SearchHit.from_result(r) for r in results])
