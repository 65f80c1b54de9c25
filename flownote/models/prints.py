from datetime import datetime
from typing import Optional, TypedDict


class PrintDocument(TypedDict, total=False):
    _id: str
    title: str
    description: Optional[str]
    file_id: str
    file_url: str
    file_name: str
    category: str
    school_id: str
    uploaded_by: str
    created_at: datetime
    updated_at: datetime
