import uuid
from typing import List
from sqlalchemy.orm import Session
from app.core.exceptions import BadRequestError, NotFoundError
from app.core.logging_config import logger
from app.core.tenant_context import Identity
from app.crud.membership import membership as membership_crud
from app.crud.organization import organization as organization_crud
from app.crud.refresh_token import refresh_token as refresh_token_crud
from app.crud.user import user as user_crud
from app.models.organization import OrganizationUser, Role
from app.models.user import User
from app.schemas.user import UserUpdate


class UserService:
    """Self-service operations on the authenticated user's own account."""

    def get_me(self, db: Session, identity: Identity) -> User:
        """
        Raises:
            NotFoundError: If the user was deleted after the token was issued
        """
        user = user_crud.get(db, uuid.UUID(identity.id))
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_me(self, db: Session, identity: Identity, data: UserUpdate) -> User:
        user = self.get_me(db, identity)
        update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "metadata" in update_data:
            update_data["profile_metadata"] = update_data.pop("metadata")
        logger.info(f"Updating user_id={user.id} fields={sorted(update_data)}")
        return user_crud.update(db, db_obj=user, obj_in=update_data)

    def delete_me(self, db: Session, identity: Identity) -> None:
        """
        Delete the account. Refresh tokens are revoked first, then the user
        row goes and takes profile, memberships and token records with it.
        """
        user = self.get_me(db, identity)
        refresh_token_crud.revoke_all_active(db, user_id=user.id)
        user_crud.delete(db, db_obj=user)
        logger.info(f"User deleted: user_id={identity.id}")

    def get_my_organizations(self, db: Session, identity: Identity) -> List[OrganizationUser]:
        """All memberships including pending join requests."""
        return membership_crud.get_by_user(db, uuid.UUID(identity.id))

    def join_organization(self, db: Session, identity: Identity, organization_id: uuid.UUID) -> OrganizationUser:
        """
        Request to join an organization.

        Creates an inactive visitor membership that an admin approves or
        rejects.

        Raises:
            NotFoundError: If the organization does not exist
            ConflictError: If the user already has a membership or request
        """
        if not organization_crud.get(db, organization_id):
            raise NotFoundError("Organization not found")
        membership = membership_crud.create(
            db,
            user_id=uuid.UUID(identity.id),
            organization_id=organization_id,
            role=Role.visitor,
            is_active=False,
        )
        logger.info(f"Join request: user_id={identity.id} organization_id={organization_id}")
        return membership

    def leave_organization(self, db: Session, identity: Identity, organization_id: uuid.UUID) -> None:
        """
        Raises:
            NotFoundError: If the user is not a member
            BadRequestError: If the user is the organization's last admin
        """
        membership = membership_crud.get_by_user_and_tenant(db, uuid.UUID(identity.id), organization_id)
        if not membership:
            raise NotFoundError("Membership not found")
        if (
            membership.is_active
            and membership.role in (Role.admin, Role.superadmin)
            and membership_crud.count_active_admins(db, organization_id) <= 1
        ):
            raise BadRequestError("The last admin cannot leave the organization")
        membership_crud.delete(db, db_obj=membership)
        logger.info(f"User left organization: user_id={identity.id} organization_id={organization_id}")


# Create a singleton instance
user_service = UserService()
