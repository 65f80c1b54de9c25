from datetime import datetime
from typing import List, Optional, TypedDict

from flownote.models.message import AttachmentDocument


class LastMessageDocument(TypedDict):
    id: str
    sender_id: str
    sender_name: str
    content: str
    attachments: List[AttachmentDocument]
    created_at: datetime


class ConversationDocument(TypedDict, total=False):
    # sorted participant ids joined with "_"
    _id: str
    participants: List[str]
    last_message: Optional[LastMessageDocument]
    last_message_at: datetime
    created_at: datetime
    updated_at: datetime
