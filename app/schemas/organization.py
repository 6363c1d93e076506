from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator
from app.models.organization import Role
from app.schemas.auth import CamelModel, TenantMembershipSummary
from app.schemas.common import PageMeta


class OrganizationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None


class OrganizationCreate(OrganizationBase):
    pass


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> str:
        # Omit the field to keep the name; null would clear a required column
        if value is None:
            raise ValueError("Organization name cannot be null")
        return value


class OrganizationResponse(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime


class OrganizationCreatedResponse(CamelModel):
    """New organization plus a fresh session whose claims include it."""
    organization: OrganizationResponse
    access_token: str
    tenant_memberships: List[TenantMembershipSummary]


class PublicOrganization(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None


class PublicOrganizationPage(CamelModel):
    data: List[PublicOrganization]
    meta: PageMeta


class MemberResponse(CamelModel):
    user_id: UUID
    email: str
    display_name: str
    role: Role
    is_active: bool
    joined_at: datetime


class AddMemberRequest(CamelModel):
    """Identify the user by ``userId`` or ``email``; ``userId`` wins when both are sent."""
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    role: Role = Role.editor


class UpdateMemberRoleRequest(CamelModel):
    role: Role
