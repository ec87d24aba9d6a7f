"""Request and response schemas for authentication."""
from typing import Optional

from pydantic import Field

from app.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)
    name: Optional[str] = Field(None, max_length=255)


class LoginRequest(CamelModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


class UserResponse(CamelModel):
    user: UserOut


class LogoutResponse(CamelModel):
    ok: bool = True
