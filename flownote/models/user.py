from datetime import datetime
from typing import List, Literal, Optional, TypedDict


UserRole = Literal["teacher", "parent", "admin"]


class UserDocument(TypedDict, total=False):

    _id: str
    email: str
    hashed_password: str
    name: str
    role: UserRole
    school_id: Optional[str]
    # push tokens registered by the user's devices
    fcm_tokens: List[str]
    created_at: datetime
    updated_at: datetime
