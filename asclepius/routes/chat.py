# asclepius/routes/chat.py
import asyncio
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, WebSocket, WebSocketDisconnect, status
from fastapi.responses import RedirectResponse

from asclepius.context import SessionContext
from asclepius.db import get_db
from asclepius.deps import get_session, get_ws_session
from asclepius.errors import AsclepiusError, AuthenticationError, ValidationError
from asclepius.schemas.chat import ChatMessage
from asclepius.services.chat import ChatSession
from asclepius.storage import backend
from asclepius.storage.files import MediaUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _session(app, ctx: SessionContext, peer_id: str) -> ChatSession:
    return ChatSession(get_db(), backend.get_blob_store(), app.state.chat_feed, ctx, peer_id)


@router.get("/{peer_id}/messages", response_model=List[ChatMessage])
async def messages(peer_id: str, request: Request, ctx: SessionContext = Depends(get_session)):
    return await _session(request.app, ctx, peer_id).snapshot()


@router.post("/{peer_id}/messages", response_model=ChatMessage, status_code=201)
async def send_text(
    peer_id: str,
    request: Request,
    text: str = Form(""),
    ctx: SessionContext = Depends(get_session),
):
    return await _session(request.app, ctx, peer_id).send_text(text)


@router.post("/{peer_id}/files", response_model=ChatMessage, status_code=201)
async def send_file(
    peer_id: str,
    request: Request,
    file: Optional[UploadFile] = File(None),
    ctx: SessionContext = Depends(get_session),
):
    upload = await MediaUpload.from_upload_file(file)
    return await _session(request.app, ctx, peer_id).send_file(upload)


@router.get("/{peer_id}/messages/{message_id}/media")
async def media(peer_id: str, message_id: str, request: Request, ctx: SessionContext = Depends(get_session)):
    url = await _session(request.app, ctx, peer_id).media_url(message_id)
    return RedirectResponse(url, status_code=307)


# ---------- Live session ----------
async def _handle_text_frame(session: ChatSession, raw: str) -> Optional[ChatMessage]:
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError("Frames must be JSON objects.")
    if not isinstance(payload, dict):
        raise ValidationError("Frames must be JSON objects.")

    action = payload.get("action")
    if action == "text":
        return await session.send_text(payload.get("text"))
    if action == "voice_start":
        session.start_voice_capture()
        return None
    if action == "voice_stop":
        return await session.stop_voice_capture()
    raise ValidationError(f"Unknown action: {action!r}")


def _error_frame(exc: AsclepiusError) -> dict:
    return {"type": "error", "error": type(exc).__name__, "detail": exc.message}


@router.websocket("/{peer_id}/ws")
async def chat_ws(websocket: WebSocket, peer_id: str):
    try:
        ctx = await get_ws_session(websocket)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = _session(websocket.app, ctx, peer_id)
    # the subscription task and the receive loop both write to the socket
    send_lock = asyncio.Lock()

    async def send(payload: dict) -> None:
        async with send_lock:
            await websocket.send_json(payload)

    async def push(snapshot: List[ChatMessage]) -> None:
        await send({
            "type": "snapshot",
            "messages": [m.model_dump(mode="json") for m in snapshot],
        })

    async def feed_failed(exc: AsclepiusError) -> None:
        # live updates have stopped; the client should reconnect
        await send(dict(_error_frame(exc), live=False))

    try:
        await session.subscribe(push, on_error=feed_failed)
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            try:
                if frame.get("bytes") is not None:
                    session.append_voice_chunk(frame["bytes"])
                elif frame.get("text") is not None:
                    await _handle_text_frame(session, frame["text"])
            except AsclepiusError as exc:
                await send(_error_frame(exc))
    except WebSocketDisconnect:
        pass
    finally:
        await session.close()
        logger.debug("Chat session %s closed for %s", session.room_id, ctx.uid)
