from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from flownote.database.connection import mongo_db_dependency
from flownote.repositories.conversation_repository import ConversationRepository
from flownote.repositories.event_repository import EventRepository
from flownote.repositories.message_repository import MessageRepository
from flownote.repositories.print_repository import PrintRepository
from flownote.repositories.user_repository import UserRepository
from flownote.schemas.user import UserPublic
from flownote.services.chat_service import ChatService
from flownote.services.event_service import EventService
from flownote.services.print_service import PrintService
from flownote.services.user_service import UserService
from flownote.utils.blob_store import GridFSBlobStore
from flownote.utils.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


async def user_from_token(db: AsyncIOMotorDatabase, token: Optional[str]) -> Optional[UserPublic]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    user = await UserRepository(db).get_user_by_id(user_id)
    if user is None:
        return None
    return UserPublic.model_validate(user.model_dump())


async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(mongo_db_dependency)) -> UserPublic:
    user = await user_from_token(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def school_of(user: UserPublic) -> str:
    if not user.school_id:
        raise HTTPException(status_code=400, detail="Your account is not attached to a school yet.")
    return user.school_id


def get_blob_store(db=Depends(mongo_db_dependency)) -> GridFSBlobStore:
    return GridFSBlobStore(db)


def get_user_service(db=Depends(mongo_db_dependency)) -> UserService:
    return UserService(UserRepository(db))


def get_chat_service(db=Depends(mongo_db_dependency), blob_store=Depends(get_blob_store)) -> ChatService:
    return ChatService(MessageRepository(db), ConversationRepository(db), UserRepository(db), blob_store)


def get_print_service(db=Depends(mongo_db_dependency), blob_store=Depends(get_blob_store)) -> PrintService:
    return PrintService(PrintRepository(db), blob_store)


def get_event_service(db=Depends(mongo_db_dependency)) -> EventService:
    return EventService(EventRepository(db))
