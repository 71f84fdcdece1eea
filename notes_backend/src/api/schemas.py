from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, EmailStr, field_validator


# Users

class UserCreateRequest(BaseModel):
    """Request model to register a new user"""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: EmailStr = Field(..., description="User email, case-insensitive")
    password: str = Field(..., min_length=6, max_length=72, description="Plaintext password (6-72 chars)")

    class Config:
        extra = "forbid"

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class LoginRequest(BaseModel):
    """Login request; email lookup is case-insensitive"""
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)

    class Config:
        extra = "forbid"


class UserResponse(BaseModel):
    """User response without sensitive fields"""
    id: str
    name: str
    email: EmailStr
    created_at: datetime

    class Config:
        from_attributes = True


class UserEnvelope(BaseModel):
    user: UserResponse


class UserMessageEnvelope(BaseModel):
    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


# Notes

class NoteWriteRequest(BaseModel):
    """Create or replace a note body"""
    body: str = Field(..., description="Note text; surrounding whitespace is trimmed")

    class Config:
        extra = "forbid"


class NoteResponse(BaseModel):
    """Note response model"""
    id: str
    body: str
    owner_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NoteMessageEnvelope(BaseModel):
    message: str
    note: NoteResponse


class NotesListResponse(BaseModel):
    message: str
    notes: List[NoteResponse]
