from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.core.logging_config import logger
from app.core.permissions import ADMIN_ROLES, ANY_ROLE, require_roles
from app.core.tenant_context import Identity
from app.dependencies import authenticate, get_current_identity, public
from app.models.organization import OrganizationUser
from app.routers.auth import membership_summaries
from app.core.cookies import set_refresh_cookie
from app.schemas.organization import (
    AddMemberRequest,
    MemberResponse,
    OrganizationCreate,
    OrganizationCreatedResponse,
    OrganizationResponse,
    OrganizationUpdate,
    PublicOrganization,
    PublicOrganizationPage,
    UpdateMemberRoleRequest,
)
from app.services.organization import organization_service

router = APIRouter(dependencies=[Depends(authenticate)])

ADMIN_ONLY = "Requires one of the roles: admin, superadmin"

require_member = require_roles(*ANY_ROLE)
require_admin = require_roles(*ADMIN_ROLES, message=ADMIN_ONLY)


def member_response(membership: OrganizationUser) -> MemberResponse:
    return MemberResponse(
        user_id=membership.user_id,
        email=membership.user.email,
        display_name=membership.user.display_name,
        role=membership.role,
        is_active=membership.is_active,
        joined_at=membership.created_at,
    )


@router.get("/public", response_model=PublicOrganizationPage)
@public
def list_public_organizations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """List organizations for the public directory. No authentication."""
    rows, meta = organization_service.list_public(db, page=page, limit=limit)
    return PublicOrganizationPage(
        data=[PublicOrganization.model_validate(o) for o in rows],
        meta=meta,
    )


@router.post("", response_model=OrganizationCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_organization(
    data: OrganizationCreate,
    response: Response,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """
    Create an organization with the caller as its admin.

    A new access token and refresh cookie are issued so the caller's
    claims include the new membership.

    Raises:
        409 conflict: Name already taken
    """
    organization, session = organization_service.create_organization(db, identity, data)
    set_refresh_cookie(response, session.refresh_token)
    return OrganizationCreatedResponse(
        organization=OrganizationResponse.model_validate(organization),
        access_token=session.access_token,
        tenant_memberships=membership_summaries(session.memberships),
    )


@router.get("/{organization_id}", response_model=OrganizationResponse)
def get_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_member)
):
    """Organization details. Any member."""
    return organization_service.get_organization(db, organization_id)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
def update_organization(
    organization_id: UUID,
    data: OrganizationUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin)
):
    """Rename or describe the organization. Admins only."""
    logger.info(f"Updating organization_id={organization_id} by user_id={identity.id}")
    return organization_service.update_organization(db, organization_id, data)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_admin)
):
    """Delete the organization and all memberships. Admins only."""
    organization_service.delete_organization(db, organization_id)
    return None


@router.get("/{organization_id}/members", response_model=List[MemberResponse])
def list_members(
    organization_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_member)
):
    """Active members. Any member."""
    return [member_response(m) for m in organization_service.list_members(db, organization_id)]


@router.get("/{organization_id}/members/pending", response_model=List[MemberResponse])
def list_pending_members(
    organization_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_admin)
):
    """Pending join requests. Admins only."""
    members = organization_service.list_members(db, organization_id, pending=True)
    return [member_response(m) for m in members]


@router.get("/{organization_id}/members/{user_id}", response_model=MemberResponse)
def get_member(
    organization_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_admin)
):
    """Member details, pending members included. Admins only."""
    return member_response(organization_service.get_member(db, organization_id, user_id))


@router.post("/{organization_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    organization_id: UUID,
    data: AddMemberRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin)
):
    """
    Add a registered user by userId or email.

    Raises:
        400 bad_request: Neither userId nor email given
        404 not_found: Unknown user
        409 conflict: Already a member
        403 forbidden: Granting superadmin without being one
    """
    membership = organization_service.add_member(
        db, identity, organization_id, data.role, user_id=data.user_id, email=data.email
    )
    return member_response(membership)


@router.patch("/{organization_id}/members/{user_id}/role", response_model=MemberResponse)
def update_member_role(
    organization_id: UUID,
    user_id: UUID,
    data: UpdateMemberRoleRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin)
):
    """
    Change a member's role. Takes effect in the member's claims at their
    next login or refresh.
    """
    membership = organization_service.update_member_role(db, identity, organization_id, user_id, data.role)
    return member_response(membership)


@router.patch("/{organization_id}/members/{user_id}/approve", response_model=MemberResponse)
def approve_join_request(
    organization_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_admin)
):
    membership = organization_service.approve_join_request(db, organization_id, user_id)
    return member_response(membership)


@router.delete("/{organization_id}/members/{user_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_join_request(
    organization_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_admin)
):
    organization_service.reject_join_request(db, organization_id, user_id)
    return None


@router.delete("/{organization_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    organization_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin)
):
    """
    Remove a member.

    Raises:
        400 bad_request: Removing the last admin
    """
    organization_service.remove_member(db, identity, organization_id, user_id)
    return None
