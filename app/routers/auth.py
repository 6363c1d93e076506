from typing import List
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.core.cookies import clear_refresh_cookie, set_refresh_cookie
from app.core.tenant_context import Identity, TenantMembershipClaim
from app.dependencies import get_current_identity, get_refresh_identity
from app.schemas.auth import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    SessionResponse,
    TenantMembershipSummary,
    UserPublic,
)
from app.services.auth import IssuedSession, auth_service

router = APIRouter()


def membership_summaries(memberships: List[TenantMembershipClaim]) -> List[TenantMembershipSummary]:
    return [
        TenantMembershipSummary(tenant_id=m.tenant_id, tenant_name=m.tenant_name, role=m.role)
        for m in memberships
    ]


def session_response(response: Response, session: IssuedSession) -> SessionResponse:
    """
    Put the refresh token in its cookie and build the JSON body without it.
    """
    set_refresh_cookie(response, session.refresh_token)
    return SessionResponse(
        access_token=session.access_token,
        user=UserPublic.model_validate(session.user),
        tenant_memberships=membership_summaries(session.memberships),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(data: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    """
    Register a new user.

    Returns the user's public fields. Tokens are only included (and the
    refresh cookie set) when AUTO_LOGIN_ON_REGISTER is enabled.

    Raises:
        409 duplicate_email: If the email is already registered
    """
    user, session = auth_service.register(db, data)
    body = RegisterResponse.model_validate(user)
    if session is not None:
        set_refresh_cookie(response, session.refresh_token)
        body.access_token = session.access_token
        body.tenant_memberships = membership_summaries(session.memberships)
    return body


@router.post("/login", response_model=SessionResponse)
def login(credentials: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """
    Log in with email and password.

    The access token is returned in the body; the refresh token is set as
    an HTTP-only cookie. Any previous session of the user is revoked.

    Raises:
        401 invalid_credentials: Unknown email or wrong password
    """
    session = auth_service.login(db, email=credentials.email, password=credentials.password)
    return session_response(response, session)


@router.post("/refresh", response_model=SessionResponse)
def refresh(
    response: Response,
    identity: Identity = Depends(get_refresh_identity),
    db: Session = Depends(get_db)
):
    """
    Exchange the refresh-token cookie for a new access token and a rotated
    refresh cookie. The presented refresh token stops working.

    Raises:
        401 unauthorized: Missing, expired, revoked or already used refresh token
    """
    session = auth_service.refresh(db, identity)
    return session_response(response, session)


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Revoke all refresh tokens of the caller and clear the refresh cookie.
    """
    auth_service.logout(db, identity)
    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out")
