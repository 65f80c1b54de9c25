from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Event(BaseModel):
    id: str
    title: str
    description: str = ""
    date: datetime
    location: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    school_id: str
    created_by: str
    created_at: datetime
    updated_at: datetime


class EventCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    date: datetime
    location: Optional[str] = None
    items: List[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = None
    items: Optional[List[str]] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value
