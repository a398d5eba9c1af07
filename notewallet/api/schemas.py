from __future__ import annotations
import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models import Note


class MessageOut(BaseModel):
    message: str


# ---------- auth ----------
class RegisterOtpIn(BaseModel):
    name: str = Field(min_length=1)
    dob: date
    email: EmailStr


class LoginOtpIn(BaseModel):
    email: EmailStr


class VerifyOtpIn(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1)

    @field_validator("otp", mode="before")
    @classmethod
    def otp_as_text(cls, v: Any):
        # clients sometimes post the code as a number
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class TokenOut(BaseModel):
    success: bool = True
    message: str
    token: str


class MeOut(BaseModel):
    name: str
    email: EmailStr


# ---------- notes ----------
class NoteIn(BaseModel):
    content: str


class NoteOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: uuid.UUID
    user_email: str
    content: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, n: Note) -> "NoteOut":
        return cls(
            id=n.id,
            user_email=n.user_email,
            content=n.content,
            created_at=n.created_at,
            updated_at=n.updated_at,
        )
