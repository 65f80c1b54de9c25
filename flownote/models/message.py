from datetime import datetime
from typing import List, TypedDict


class AttachmentDocument(TypedDict):
    id: str
    url: str
    name: str
    type: str
    size: int


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    sender_name: str
    content: str
    attachments: List[AttachmentDocument]
    # legacy flag, superseded by read_by
    is_read: bool
    read_by: List[str]
    created_at: datetime
    updated_at: datetime
