"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import AliasChoices, Field, field_validator

from .common import CamelModel


class RegisterRequest(CamelModel):
    """Schema for account registration."""

    username: str = Field(..., min_length=1, max_length=64, description="Unique login name")
    email: str = Field(..., min_length=3, max_length=255, description="Contact address")
    password: str = Field(..., min_length=1, description="Plain-text password, hashed before storage")
    display_name: str | None = Field(
        None,
        max_length=100,
        description="Optional label shown to other users (defaults to username)",
    )

    @field_validator("username", "email", "password")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject values that are empty once surrounding whitespace is removed."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("username", "email")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        """Store identifiers without surrounding whitespace."""
        return v.strip()


class LoginRequest(CamelModel):
    """Schema for login submissions."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """Sanitized user view; never carries the password hash, email or contacts."""

    id: str
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    online: bool = Field(False, validation_alias=AliasChoices("is_online", "online"))
    last_seen: datetime | None = None
    created_at: datetime | None = None


class AuthResponse(CamelModel):
    """Token plus the sanitized user returned by register and login."""

    token: str = Field(..., description="Signed bearer token")
    user: UserResponse
