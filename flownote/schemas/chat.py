from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from flownote.schemas.user import UserPublic


class Attachment(BaseModel):
    id: str
    url: str
    name: str
    type: str
    size: int = Field(ge=0)


class Message(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_name: str
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    is_read: bool = False
    read_by: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class LastMessage(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: datetime


class Conversation(BaseModel):
    id: str
    participants: List[str] = Field(min_length=2)
    last_message: Optional[LastMessage] = None
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime


class ConversationSummary(Conversation):
    participant_details: List[UserPublic] = Field(default_factory=list)
    unread_count: int = 0


class StartConversationRequest(BaseModel):
    participant_id: str = Field(min_length=1)
