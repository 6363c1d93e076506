import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from app.core.config import settings
from app.models.organization import Role

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")

# bcrypt rejects longer input
BCRYPT_MAX_BYTES = 72


def validate_password_policy(password: str) -> str:
    """The single password policy: length bounds, at least one letter and one digit."""
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    if len(password) > settings.PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {settings.PASSWORD_MAX_LENGTH} characters")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
    if not _LETTER.search(password) or not _DIGIT.search(password):
        raise ValueError("Password must include letters and numbers")
    return password


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; both accepted on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    display_name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_policy(value)


class LoginRequest(CamelModel):
    # No policy check here: a policy error would answer differently from a
    # wrong password.
    email: EmailStr
    password: str = Field(..., min_length=1)


class TenantMembershipSummary(CamelModel):
    tenant_id: str
    tenant_name: str
    role: Role


class UserPublic(CamelModel):
    """Fields of a user that may leave the server."""
    id: UUID
    email: str
    display_name: str
    is_active: bool
    created_at: datetime


class RegisterResponse(UserPublic):
    # Only populated when AUTO_LOGIN_ON_REGISTER is on
    access_token: Optional[str] = None
    tenant_memberships: Optional[List[TenantMembershipSummary]] = None


class SessionResponse(CamelModel):
    """Body of login and refresh. The refresh token travels in a cookie only."""
    access_token: str
    token_type: str = "bearer"
    user: UserPublic
    tenant_memberships: List[TenantMembershipSummary]


class MessageResponse(CamelModel):
    message: str
