"""Authentication schemas."""

from pydantic import BaseModel, EmailStr, Field

from app.schemas.users import UserResponse


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class LoginRequest(BaseModel):
    """Email and password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(Token):
    """Login response with tokens and user info."""

    user: UserResponse
