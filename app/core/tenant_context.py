from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from app.models.organization import Role


@dataclass(frozen=True)
class TenantMembershipClaim:
    """One organization the user belongs to, as carried in token claims."""
    tenant_id: str
    tenant_name: str
    role: Role

    def to_claim(self) -> Dict[str, str]:
        return {"id": self.tenant_id, "name": self.tenant_name, "role": self.role.value}


@dataclass(frozen=True)
class Identity:
    """
    The authenticated caller, built once by the request authenticator and
    passed explicitly to authorization checks and services.

    ``refresh_token_id`` is only set by the refresh-token authenticator and
    names the ledger row the presented refresh token is bound to.
    """
    id: str
    email: str
    memberships: Tuple[TenantMembershipClaim, ...] = field(default_factory=tuple)
    refresh_token_id: Optional[str] = None

    def membership_for(self, tenant_id: str) -> Optional[TenantMembershipClaim]:
        for membership in self.memberships:
            if membership.tenant_id == tenant_id:
                return membership
        return None


def memberships_to_claims(memberships: List[TenantMembershipClaim]) -> List[Dict[str, str]]:
    return [m.to_claim() for m in memberships]


def identity_from_claims(claims: Dict[str, Any], refresh_token_id: Optional[str] = None) -> Identity:
    """
    Build an Identity from verified token claims.

    Raises:
        ValueError: If required claims are missing or malformed
    """
    try:
        user_id = str(claims["sub"])
        email = str(claims["email"])
        memberships = tuple(
            TenantMembershipClaim(
                tenant_id=str(org["id"]),
                tenant_name=str(org.get("name", "")),
                role=Role(org["role"]),
            )
            for org in claims.get("organizations", [])
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError("Token claims are missing identity context") from e

    return Identity(
        id=user_id,
        email=email,
        memberships=memberships,
        refresh_token_id=refresh_token_id,
    )
