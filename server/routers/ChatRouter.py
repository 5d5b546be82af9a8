from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import ChatRequest
from shared.models.chat import ChatResult

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> ChatResult:
    """Answer a chat turn grounded on the closest chunks; the references are returned with the reply."""
    chat_service = request.app.state.chat_service
    return await chat_service.do_answer(body.message, body.history)
