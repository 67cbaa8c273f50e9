from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from jointventure.schemas.user.user import ProfileOut


class MessageCreate(BaseModel):
    content: str = Field(max_length=4000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value):
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value


class MessageOut(BaseModel):
    id: int
    trip_id: int
    user_id: int
    content: str
    created_at: Optional[datetime] = None
    user: Optional[ProfileOut] = None

    model_config = {"from_attributes": True}
