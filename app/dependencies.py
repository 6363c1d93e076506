import uuid
from typing import Callable, Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from app.database import get_db
from app.core.cookies import get_refresh_cookie
from app.core.exceptions import InvalidRefreshTokenError, TokenError, UnauthorizedError
from app.core.logging_config import logger
from app.core.security import verify_access_token, verify_refresh_token, verify_refresh_token_hash
from app.core.tenant_context import Identity, identity_from_claims
from app.crud.refresh_token import refresh_token as refresh_token_crud

PUBLIC_ATTR = "__public_endpoint__"


def public(endpoint: Callable) -> Callable:
    """
    Mark an endpoint as not requiring authentication.

    ``authenticate`` skips verification for marked endpoints even when it is
    declared as a router-wide dependency. Apply it below the route decorator.
    """
    setattr(endpoint, PUBLIC_ATTR, True)
    return endpoint


def _is_public(request: Request) -> bool:
    endpoint = request.scope.get("endpoint")
    return bool(getattr(endpoint, PUBLIC_ATTR, False))


def _bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


async def authenticate(request: Request) -> Optional[Identity]:
    """
    Verify the access token from the Authorization Bearer header.

    The identity is rebuilt from the signed claims alone; no database
    round-trip happens per request.

    Args:
        request: FastAPI Request to extract Authorization header

    Returns:
        The caller's Identity, or None for endpoints marked with @public

    Raises:
        UnauthorizedError: If the token is missing, malformed, tampered
            with or expired
    """
    if _is_public(request):
        request.state.identity = None
        return None

    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError()

    try:
        claims = verify_access_token(token)
        identity = identity_from_claims(claims)
    except (TokenError, ValueError) as e:
        logger.info(f"Access token rejected for {request.method} {request.url.path}: {e}")
        raise UnauthorizedError() from e

    request.state.identity = identity
    return identity


async def get_current_identity(identity: Optional[Identity] = Depends(authenticate)) -> Identity:
    """Like ``authenticate`` but never returns None."""
    if identity is None:
        raise UnauthorizedError()
    return identity


def get_refresh_identity(request: Request, db: Session = Depends(get_db)) -> Identity:
    """
    Authenticate a refresh request from the refresh-token cookie.

    Verifies the signature with the refresh secret, loads the ledger record
    named by the signed ``tokenId`` claim, requires it to be active and owned
    by the token subject, and compares the raw token against the stored
    hash. Every failure raises the same InvalidRefreshTokenError; the
    specific reason is only logged.

    Returns:
        Identity bound to the refresh token record via ``refresh_token_id``
    """
    token = get_refresh_cookie(request)
    if token is None:
        logger.warning("Refresh rejected: cookie missing")
        raise InvalidRefreshTokenError()

    try:
        claims = verify_refresh_token(token)
        token_id = uuid.UUID(str(claims["tokenId"]))
        user_id = uuid.UUID(str(claims["sub"]))
        identity = identity_from_claims(claims, refresh_token_id=str(token_id))
    except TokenError as e:
        logger.warning(f"Refresh rejected: {e}")
        raise InvalidRefreshTokenError() from e
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Refresh rejected: malformed claims")
        raise InvalidRefreshTokenError() from e

    record = refresh_token_crud.get_active(db, token_id=token_id, user_id=user_id)
    if record is None:
        logger.warning(f"Refresh rejected: record {token_id} revoked, expired or missing (user_id={user_id})")
        raise InvalidRefreshTokenError()

    if not verify_refresh_token_hash(token, record.token_hash):
        logger.warning(f"Refresh rejected: hash mismatch for record {token_id} (user_id={user_id})")
        raise InvalidRefreshTokenError()

    return identity
