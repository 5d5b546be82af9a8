from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SearchRequest
from server.models.responses import SearchResponse
from services.retrieval.RetrievalService import SEARCH_TOP_K

router = APIRouter(prefix="/search", tags=["search"])


@router.post("")
async def search_chunks(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Execute a semantic search over the uploaded chunks.

    Args:
        request (Request): FastAPI request (provides app.state.retrieval_service).
        body (SearchRequest): JSON body with the query string.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: The closest chunks as references, best match first.
    """
    retrieval_service = request.app.state.retrieval_service
    results = await retrieval_service.do_retrieve(body.query, top_k=SEARCH_TOP_K)
    return SearchResponse(query=body.query, results=results, total=len(results))
