from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.core.tenant_context import Identity
from app.dependencies import get_current_identity
from app.models.organization import OrganizationUser
from app.schemas.user import JoinOrganizationRequest, MembershipResponse, UserResponse, UserUpdate
from app.services.user import user_service

router = APIRouter(dependencies=[Depends(get_current_identity)])


def membership_response(membership: OrganizationUser) -> MembershipResponse:
    return MembershipResponse(
        organization_id=membership.organization_id,
        organization_name=membership.organization.name,
        role=membership.role,
        is_active=membership.is_active,
        created_at=membership.created_at,
    )


@router.get("/me", response_model=UserResponse)
def get_me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Return the authenticated user with their profile."""
    return user_service.get_me(db, identity)


@router.patch("/me", response_model=UserResponse)
def update_me(
    data: UserUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Update display name and profile fields (avatar, bio, metadata)."""
    return user_service.update_me(db, identity, data)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """
    Delete the account. All refresh tokens are revoked and removed, so
    every session ends; outstanding access tokens expire on their own.
    """
    user_service.delete_me(db, identity)
    return None


@router.get("/me/organizations", response_model=List[MembershipResponse])
def get_my_organizations(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """List the caller's memberships, pending join requests included."""
    return [membership_response(m) for m in user_service.get_my_organizations(db, identity)]


@router.post("/me/organizations/join", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
def join_organization(
    data: JoinOrganizationRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """
    Ask to join an organization. The request stays pending until an admin
    approves it.

    Raises:
        404 not_found: Unknown organization
        409 conflict: Already a member or already requested
    """
    membership = user_service.join_organization(db, identity, data.organization_id)
    return membership_response(membership)


@router.delete("/me/organizations/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
def leave_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """
    Leave an organization.

    Raises:
        404 not_found: Not a member
        400 bad_request: Caller is the last admin
    """
    user_service.leave_organization(db, identity, organization_id)
    return None
