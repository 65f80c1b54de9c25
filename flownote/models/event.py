from datetime import datetime
from typing import List, Optional, TypedDict


class EventDocument(TypedDict, total=False):
    _id: str
    title: str
    description: str
    date: datetime
    location: Optional[str]
    # things to bring
    items: List[str]
    school_id: str
    created_by: str
    created_at: datetime
    updated_at: datetime
