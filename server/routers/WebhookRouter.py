import json

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from server.dependencies.auth import verify_messaging_signature

router = APIRouter(prefix="/slack", tags=["webhook"])


@router.post("/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    raw_body: bytes = Depends(verify_messaging_signature),
) -> dict:
    """Accept a Slack Events API callback.

    URL verification challenges are echoed. Message events are answered in a
    background task; the callback itself is always acknowledged so Slack does
    not retry it.

    Args:
        request (Request): FastAPI request (provides app.state.messaging_event_service).
        background_tasks (BackgroundTasks): FastAPI background task queue.
        raw_body (bytes): The verified request body.

    Returns:
        dict: ``{"challenge": ...}`` for URL verification, ``{"ok": True}`` otherwise.
    """
    logging = request.app.state.logging
    try:
        payload = json.loads(raw_body)
    except ValueError:
        logging.warning("Received undecodable Slack event body.")
        return {"ok": True}
    if not isinstance(payload, dict):
        return {"ok": True}

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge")}

    event_service = request.app.state.messaging_event_service
    event = payload.get("event") or {}
    if event_service.is_answerable(event):
        background_tasks.add_task(event_service.do_handle_event, event)
    else:
        logging.debug("Ignoring Slack event of type %s.", event.get("type"))
    return {"ok": True}
