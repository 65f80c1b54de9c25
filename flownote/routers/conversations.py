from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from flownote.schemas.chat import ConversationSummary, Message, StartConversationRequest
from flownote.schemas.user import UserPublic
from flownote.services.chat_service import ChatService
from flownote.services.user_service import UserService
from flownote.utils.blob_store import FileUpload
from flownote.utils.dependencies import get_chat_service, get_current_user, get_user_service


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(current_user: UserPublic = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.list_conversations(current_user.id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_conversation(payload: StartConversationRequest, current_user: UserPublic = Depends(get_current_user), service: ChatService = Depends(get_chat_service), users: UserService = Depends(get_user_service)):
    if payload.participant_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot start a conversation with yourself.")
    await users.get_user(payload.participant_id)
    conversation_id = await service.get_or_create_conversation([current_user.id, payload.participant_id])
    return {"conversation_id": conversation_id}


@router.get("/{conversation_id}/messages", response_model=List[Message])
async def list_messages(conversation_id: str, current_user: UserPublic = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.list_messages(conversation_id, current_user.id)


@router.post("/{conversation_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    content: str = Form(""),
    files: List[UploadFile] = File(default=[]),
    current_user: UserPublic = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    uploads = [
        FileUpload(name=f.filename or "file", content_type=f.content_type or "application/octet-stream", data=await f.read())
        for f in files
    ]
    return await service.send_message(conversation_id, current_user.id, current_user.name, content, uploads)


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, current_user: UserPublic = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_as_read(conversation_id, current_user.id)
    return {"updated": updated}


@router.get("/{conversation_id}/unread")
async def unread_count(conversation_id: str, current_user: UserPublic = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.get_conversation_for(conversation_id, current_user.id)
    return {"conversation_id": conversation_id, "unread": await service.unread_count(conversation_id, current_user.id)}
