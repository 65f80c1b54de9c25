from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class UserBase(BaseModel):

    email: EmailStr


class UserCreate(UserBase):

    password: str = Field(min_length=6)
    confirm_password: str
    name: str = Field(min_length=1, max_length=100)
    # admins are provisioned, never self-registered
    role: Literal["teacher", "parent"] = "parent"
    school_id: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self) -> "UserCreate":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserPublic(UserBase):

    id: str
    name: str
    role: Literal["teacher", "parent", "admin"]
    school_id: Optional[str] = None


class UserInDB(UserPublic):

    hashed_password: str
    fcm_tokens: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoginRequest(BaseModel):

    email: EmailStr
    password: str


class Token(BaseModel):

    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):

    sub: str
    exp: int


class PushTokenRequest(BaseModel):

    token: str = Field(min_length=1)
