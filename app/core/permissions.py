import uuid
from typing import Iterable, Optional
from fastapi import Depends, Request
from app.core.exceptions import ForbiddenError
from app.core.logging_config import logger
from app.core.tenant_context import Identity
from app.dependencies import authenticate
from app.models.organization import Role

TENANT_PATH_PARAM = "organization_id"

ANY_ROLE = (Role.visitor, Role.editor, Role.admin, Role.superadmin)
ADMIN_ROLES = (Role.admin, Role.superadmin)


def normalize_tenant_id(raw: Optional[str]) -> Optional[str]:
    """Canonical string form of a tenant UUID, or None if it is not one."""
    if raw is None:
        return None
    try:
        return str(uuid.UUID(str(raw)))
    except ValueError:
        return None


def authorize(identity: Optional[Identity], required_roles: Iterable[Role], tenant_id: Optional[str]) -> bool:
    """
    Decide whether an identity may act on a tenant-scoped operation.

    No required roles means allow. Otherwise the identity must be present,
    hold a membership for exactly this tenant, and that membership's role
    must be one of the required roles.
    """
    required = set(required_roles)
    if not required:
        return True
    if identity is None:
        return False
    tenant_id = normalize_tenant_id(tenant_id)
    if tenant_id is None:
        return False
    membership = identity.membership_for(tenant_id)
    if membership is None:
        return False
    return membership.role in required


def require_roles(*roles: Role, message: Optional[str] = None):
    """
    Build a dependency that enforces ``authorize`` for the tenant in the
    ``organization_id`` path parameter.

    Args:
        roles: Roles allowed to call the endpoint
        message: Descriptive Forbidden message. Leave unset on public-facing
            endpoints so denials stay generic.

    Returns:
        Dependency returning the authorized Identity
    """
    required = tuple(roles)

    async def dependency(request: Request, identity: Optional[Identity] = Depends(authenticate)) -> Identity:
        tenant_id = request.path_params.get(TENANT_PATH_PARAM)
        if not authorize(identity, required, tenant_id):
            logger.warning(
                f"Forbidden: user_id={identity.id if identity else None} tenant_id={tenant_id} "
                f"required={[r.value for r in required]}"
            )
            raise ForbiddenError(message)
        return identity

    return dependency
