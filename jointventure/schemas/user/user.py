from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime
from jointventure.core.config import settings


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH)
    full_name: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    email: EmailStr

    model_config = {"from_attributes": True}


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileOut(BaseModel):
    id: int
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    personality_tags: List[str] = []
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("personality_tags", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return value or []


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    personality_tags: Optional[List[str]] = None
    avatar_url: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def name_not_blank(cls, value):
        # may be left out, but not cleared
        if value is None or not value.strip():
            raise ValueError("Please enter your name.")
        return value.strip()

    @field_validator("personality_tags")
    @classmethod
    def unique_tags(cls, value):
        # tags behave as a set but keep the order they were picked in
        if value is None:
            return []
        seen = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen
