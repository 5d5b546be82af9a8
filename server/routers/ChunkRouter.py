from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import AddChunkRequest, EditChunkRequest
from server.models.responses import ChunkListResponse, DeleteChunkResponse, EmbedAllResponse
from services.chunk_store.ChunkStore import OrderBy
from shared.models.chunk import ChunkView

router = APIRouter(prefix="/chunks", tags=["chunks"], dependencies=[Depends(verify_api_key)])


@router.post("", status_code=201)
async def add_chunk(request: Request, body: AddChunkRequest) -> ChunkView:
    """Create a draft chunk. Content above the word limit needs ``confirmLong``."""
    corpus_service = request.app.state.corpus_service
    chunk = corpus_service.do_add_chunk(body.content, body.category, confirm_long=body.confirm_long)
    return ChunkView.from_record(chunk)


@router.get("")
async def list_chunks(request: Request, order_by: OrderBy = "global_index") -> ChunkListResponse:
    """List all chunks, by ingestion order or most recent first (``order_by=display_order``)."""
    corpus_service = request.app.state.corpus_service
    chunks = [ChunkView.from_record(chunk) for chunk in corpus_service.do_list_chunks(order_by=order_by)]
    return ChunkListResponse(chunks=chunks, total=len(chunks))


@router.post("/embeddings")
async def embed_all(request: Request) -> EmbedAllResponse:
    """Embed every chunk that has no embedding yet."""
    result = await request.app.state.corpus_service.do_embed_all()
    return EmbedAllResponse(embedded_count=result.embedded_count, batch_count=result.batch_count)


@router.get("/{local_index}")
async def get_chunk(request: Request, local_index: str) -> ChunkView:
    return ChunkView.from_record(request.app.state.corpus_service.get_chunk(local_index))


@router.put("/{local_index}")
async def edit_chunk(request: Request, local_index: str, body: EditChunkRequest) -> ChunkView:
    """Replace a chunk's content. An uploaded chunk loses its remote vector first."""
    corpus_service = request.app.state.corpus_service
    chunk = await corpus_service.do_edit_chunk(
        local_index,
        body.content,
        category=body.category,
        confirm_long=body.confirm_long,
    )
    return ChunkView.from_record(chunk)


@router.delete("/{local_index}")
async def delete_chunk(request: Request, local_index: str) -> DeleteChunkResponse:
    """Delete a chunk, including its remote vector if it was uploaded."""
    chunk = await request.app.state.corpus_service.do_delete_chunk(local_index)
    return DeleteChunkResponse(
        local_index=chunk.local_index,
        global_index=chunk.global_index,
        remote_deleted=chunk.uploaded_to_pinecone,
    )


@router.post("/{local_index}/embedding")
async def embed_chunk(request: Request, local_index: str) -> ChunkView:
    chunk = await request.app.state.corpus_service.do_embed_chunk(local_index)
    return ChunkView.from_record(chunk)
