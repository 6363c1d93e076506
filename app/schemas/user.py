from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
from pydantic import Field
from app.models.organization import Role
from app.schemas.auth import CamelModel, UserPublic


class ProfileResponse(CamelModel):
    avatar_url: str
    bio: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="profile_metadata")


class UserResponse(UserPublic):
    updated_at: datetime
    deactivated_at: Optional[datetime] = None
    profile: Optional[ProfileResponse] = None


class UserUpdate(CamelModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class MembershipResponse(CamelModel):
    organization_id: UUID
    organization_name: str
    role: Role
    is_active: bool
    created_at: datetime


class JoinOrganizationRequest(CamelModel):
    organization_id: UUID
