from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Print(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    file_id: str
    file_url: str
    file_name: str
    category: str
    school_id: str
    uploaded_by: str
    created_at: datetime
    updated_at: datetime


class PrintUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1)

    @field_validator("title", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value
