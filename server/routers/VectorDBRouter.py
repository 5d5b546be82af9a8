from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import RehydrateResponse, UploadResponse

router = APIRouter(prefix="/vectordb", tags=["vectordb"], dependencies=[Depends(verify_api_key)])


@router.post("/upload")
async def upload_new(request: Request) -> UploadResponse:
    """Upload every embedded chunk that is not in the vector index yet."""
    result = await request.app.state.corpus_service.do_upload_new()
    return UploadResponse(
        uploaded_count=result.uploaded_count,
        start_index=result.start_index,
        end_index=result.end_index,
    )


@router.post("/rehydrate")
async def rehydrate(request: Request) -> RehydrateResponse:
    """Replace the local corpus with the chunks stored in the vector index."""
    chunks = await request.app.state.corpus_service.do_rehydrate()
    counters = request.app.state.chunk_store.counters()
    return RehydrateResponse(chunk_count=len(chunks), next_global_index=counters["next_global_index"])
