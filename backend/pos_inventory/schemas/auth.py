"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserInfo(BaseModel):
    """Public part of the logged-in user."""

    id: int
    email: str
    name: Optional[str] = None
    role: str

    model_config = {"from_attributes": True}


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    user: Optional[UserInfo] = None
