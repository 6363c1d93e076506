import math
import uuid
from typing import List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.logging_config import logger
from app.core.tenant_context import Identity
from app.crud.membership import ADMIN_ROLES, membership as membership_crud
from app.crud.organization import organization as organization_crud
from app.crud.user import user as user_crud
from app.models.organization import Organization, OrganizationUser, Role
from app.schemas.common import PageMeta
from app.schemas.organization import OrganizationCreate, OrganizationUpdate
from app.services.auth import IssuedSession, auth_service


class OrganizationService:
    """
    Organizations (tenants) and their memberships.

    Role checks for the caller happen in the router via require_roles; this
    layer only enforces rules that depend on the data, such as keeping at
    least one admin and reserving the superadmin role.
    """

    def list_public(self, db: Session, page: int = 1, limit: int = 20) -> Tuple[List[Organization], PageMeta]:
        rows, total = organization_crud.get_multi(db, skip=(page - 1) * limit, limit=limit)
        meta = PageMeta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit) if total else 0)
        return rows, meta

    def create_organization(
        self, db: Session, identity: Identity, data: OrganizationCreate
    ) -> Tuple[Organization, IssuedSession]:
        """
        Create an organization with the caller as admin, and re-issue the
        caller's session so the new membership is in the token claims.

        Raises:
            ConflictError: If the name is taken
            NotFoundError: If the caller's user no longer exists
        """
        user = user_crud.get(db, uuid.UUID(identity.id))
        if not user:
            raise NotFoundError("User not found")
        if organization_crud.get_by_name(db, data.name):
            raise ConflictError("An organization with this name already exists")

        organization, _ = organization_crud.create_with_admin(db, obj_in=data, user_id=user.id, commit=False)
        session = auth_service.issue_session(db, user, revoke_existing=settings.SINGLE_SESSION_PER_USER)
        db.refresh(organization)
        logger.info(f"Organization created: organization_id={organization.id} admin user_id={user.id}")
        return organization, session

    def get_organization(self, db: Session, organization_id: uuid.UUID) -> Organization:
        organization = organization_crud.get(db, organization_id)
        if not organization:
            raise NotFoundError("Organization not found")
        return organization

    def update_organization(self, db: Session, organization_id: uuid.UUID, data: OrganizationUpdate) -> Organization:
        organization = self.get_organization(db, organization_id)
        if data.name and data.name != organization.name and organization_crud.get_by_name(db, data.name):
            raise ConflictError("An organization with this name already exists")
        try:
            return organization_crud.update(db, db_obj=organization, obj_in=data)
        except IntegrityError as e:
            # Lost a race on the unique name
            db.rollback()
            raise ConflictError("An organization with this name already exists") from e

    def delete_organization(self, db: Session, organization_id: uuid.UUID) -> None:
        if not organization_crud.delete(db, id=organization_id):
            raise NotFoundError("Organization not found")
        logger.info(f"Organization deleted: organization_id={organization_id}")

    def list_members(self, db: Session, organization_id: uuid.UUID, *, pending: bool = False) -> List[OrganizationUser]:
        self.get_organization(db, organization_id)
        return membership_crud.get_members(db, organization_id, is_active=not pending)

    def add_member(
        self,
        db: Session,
        identity: Identity,
        organization_id: uuid.UUID,
        role: Role,
        *,
        user_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None
    ) -> OrganizationUser:
        """
        Add an existing user, by id or by email, as an active member.

        Raises:
            BadRequestError: Neither user_id nor email given
            NotFoundError: Unknown organization or user
            ConflictError: Already a member
            ForbiddenError: Granting superadmin without being one
        """
        if user_id is None and not email:
            raise BadRequestError("Either userId or email is required")
        self.get_organization(db, organization_id)
        self._check_can_grant(identity, organization_id, role)
        if user_id is not None:
            user = user_crud.get(db, user_id)
        else:
            user = user_crud.get_by_email(db, email=email)
        if not user:
            raise NotFoundError("User not found")
        membership = membership_crud.create(db, user_id=user.id, organization_id=organization_id, role=role)
        logger.info(f"Member added: organization_id={organization_id} user_id={user.id} role={role.value}")
        return membership

    def get_member(self, db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationUser:
        """Any membership of the user in the organization, pending included."""
        self.get_organization(db, organization_id)
        return self._get_membership(db, organization_id, user_id)

    def update_member_role(
        self, db: Session, identity: Identity, organization_id: uuid.UUID, user_id: uuid.UUID, role: Role
    ) -> OrganizationUser:
        membership = self._get_membership(db, organization_id, user_id)
        self._check_can_grant(identity, organization_id, role)
        if membership.role == Role.superadmin and not self._is_superadmin(identity, organization_id):
            raise ForbiddenError("Only a superadmin can change a superadmin's role")
        if role not in ADMIN_ROLES:
            self._ensure_not_last_admin(db, membership)
        logger.info(
            f"Role change: organization_id={organization_id} user_id={user_id} "
            f"{membership.role.value} -> {role.value}"
        )
        return membership_crud.update(db, db_obj=membership, role=role)

    def remove_member(self, db: Session, identity: Identity, organization_id: uuid.UUID, user_id: uuid.UUID) -> None:
        membership = self._get_membership(db, organization_id, user_id)
        if membership.role == Role.superadmin and not self._is_superadmin(identity, organization_id):
            raise ForbiddenError("Only a superadmin can remove a superadmin")
        self._ensure_not_last_admin(db, membership)
        membership_crud.delete(db, db_obj=membership)
        logger.info(f"Member removed: organization_id={organization_id} user_id={user_id}")

    def approve_join_request(self, db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationUser:
        membership = self._get_pending(db, organization_id, user_id)
        return membership_crud.update(db, db_obj=membership, is_active=True)

    def reject_join_request(self, db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> None:
        membership = self._get_pending(db, organization_id, user_id)
        membership_crud.delete(db, db_obj=membership)

    def _get_membership(self, db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationUser:
        membership = membership_crud.get_by_user_and_tenant(db, user_id, organization_id)
        if not membership:
            raise NotFoundError("Member not found in this organization")
        return membership

    def _get_pending(self, db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> OrganizationUser:
        membership = membership_crud.get_by_user_and_tenant(db, user_id, organization_id)
        if not membership or membership.is_active:
            raise NotFoundError("Pending join request not found")
        return membership

    def _ensure_not_last_admin(self, db: Session, membership: OrganizationUser) -> None:
        if (
            membership.is_active
            and membership.role in ADMIN_ROLES
            and membership_crud.count_active_admins(db, membership.organization_id) <= 1
        ):
            raise BadRequestError("An organization must keep at least one admin")

    def _is_superadmin(self, identity: Identity, organization_id: uuid.UUID) -> bool:
        claim = identity.membership_for(str(organization_id))
        return claim is not None and claim.role == Role.superadmin

    def _check_can_grant(self, identity: Identity, organization_id: uuid.UUID, role: Role) -> None:
        if role == Role.superadmin and not self._is_superadmin(identity, organization_id):
            raise ForbiddenError("Only a superadmin can grant the superadmin role")


# Create a singleton instance
organization_service = OrganizationService()
