import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from flownote.database.connection import mongo_db_dependency
from flownote.schemas.user import UserPublic
from flownote.services.chat_service import ChatService
from flownote.services.event_service import EventService
from flownote.services.print_service import PrintService
from flownote.utils.dates import utcnow
from flownote.utils.dependencies import get_chat_service, get_event_service, get_print_service, user_from_token
from flownote.utils.exceptions import ForbiddenError, NotFoundError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["live"])

# application close codes, mirroring HTTP statuses
CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_NOT_FOUND = 4404


async def _authenticate(websocket: WebSocket, db) -> Optional[UserPublic]:
    # JWT comes in as ?token=...
    user = await user_from_token(db, websocket.query_params.get("token"))
    if user is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
    return user


def _sender(websocket: WebSocket, kind: str):
    async def push(items: Any) -> None:
        await websocket.send_text(json.dumps({"type": kind, "items": jsonable_encoder(items)}))
    return push


async def _drain(websocket: WebSocket, on_frame=None) -> None:
    while True:
        data = await websocket.receive_text()
        if on_frame is None:
            continue
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid frame"}))
            continue
        await on_frame(frame)


@router.websocket("/conversations")
async def conversations_socket(websocket: WebSocket, db=Depends(mongo_db_dependency), service: ChatService = Depends(get_chat_service)):
    user = await _authenticate(websocket, db)
    if user is None:
        return
    await websocket.accept()
    try:
        async with service.watch_conversations(user.id, _sender(websocket, "conversations")):
            await _drain(websocket)
    except WebSocketDisconnect:
        logger.debug("Conversation list socket closed for %s", user.id)


@router.websocket("/conversations/{conversation_id}/messages")
async def messages_socket(websocket: WebSocket, conversation_id: str, db=Depends(mongo_db_dependency), service: ChatService = Depends(get_chat_service)):
    user = await _authenticate(websocket, db)
    if user is None:
        return
    try:
        await service.get_conversation_for(conversation_id, user.id)
    except NotFoundError:
        await websocket.close(code=CLOSE_NOT_FOUND)
        return
    except ForbiddenError:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    await websocket.accept()

    async def on_frame(frame: dict) -> None:
        # {"type": "read"} marks everything in the conversation as seen
        if frame.get("type") == "read":
            await service.mark_as_read(conversation_id, user.id)

    try:
        async with service.watch_messages(conversation_id, user.id, _sender(websocket, "messages")):
            # opening the thread counts as reading it
            await service.mark_as_read(conversation_id, user.id)
            await _drain(websocket, on_frame)
    except WebSocketDisconnect:
        logger.debug("Message socket for %s closed by %s", conversation_id, user.id)


@router.websocket("/prints")
async def prints_socket(websocket: WebSocket, db=Depends(mongo_db_dependency), service: PrintService = Depends(get_print_service)):
    user = await _authenticate(websocket, db)
    if user is None:
        return
    if not user.school_id:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    await websocket.accept()
    category = websocket.query_params.get("category")
    try:
        async with service.watch_prints(user.school_id, _sender(websocket, "prints"), category=category):
            await _drain(websocket)
    except WebSocketDisconnect:
        logger.debug("Print board socket closed for %s", user.id)


@router.websocket("/events")
async def events_socket(websocket: WebSocket, db=Depends(mongo_db_dependency), service: EventService = Depends(get_event_service)):
    user = await _authenticate(websocket, db)
    if user is None:
        return
    if not user.school_id:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    month = websocket.query_params.get("month")
    try:
        anchor = datetime.fromisoformat(month) if month else utcnow()
    except ValueError:
        await websocket.close(code=1003)
        return
    await websocket.accept()
    try:
        async with service.watch_month(user.school_id, anchor, _sender(websocket, "events")):
            await _drain(websocket)
    except WebSocketDisconnect:
        logger.debug("Calendar socket closed for %s", user.id)
