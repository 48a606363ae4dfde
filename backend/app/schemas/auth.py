"""Request and response bodies for /auth endpoints (camelCase on the wire)."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

_PASSWORD_CLASSES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterBody(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=2, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not _PASSWORD_CLASSES.match(v):
            raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginBody(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=1024)


class RefreshBody(CamelModel):
    refresh_token: str | None = None


class UserOut(CamelModel):
    id: int
    email: str
    name: str | None = None
    created_at: datetime | None = None


class RegisterResponse(CamelModel):
    user: UserOut


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserOut | None = None


class SessionOut(CamelModel):
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime


class LogoutResponse(CamelModel):
    success: bool = True
    revoked: int | None = None
