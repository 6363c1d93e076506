import hashlib
import uuid
from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
import bcrypt
from app.core.config import settings
from app.core.exceptions import InvalidSignatureError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        # Malformed stored hash (e.g. the empty placeholder)
        return False


def _refresh_token_digest(token: str) -> bytes:
    # bcrypt only reads the first 72 bytes; JWTs of one user share a much
    # longer prefix, so the whole token is reduced to a fixed-size digest first.
    return hashlib.sha256(token.encode('utf-8')).hexdigest().encode('ascii')


def hash_refresh_token(token: str) -> str:
    """One-way salted hash of a raw refresh token, suitable for storage."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_refresh_token_digest(token), salt).decode('utf-8')


def verify_refresh_token_hash(token: str, token_hash: str) -> bool:
    """Constant-time compare of a raw refresh token against its stored hash."""
    if not token_hash:
        return False
    try:
        return bcrypt.checkpw(_refresh_token_digest(token), token_hash.encode('utf-8'))
    except ValueError:
        return False


def _encode(data: Dict[str, Any], secret: str, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires_delta,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token signed with the access secret.

    Args:
        data: Claims (sub, email, organizations)
        expires_delta: Optional custom lifetime. Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, settings.SECRET_KEY, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT refresh token signed with the separate refresh secret.

    The claims must include ``tokenId``, the id of the refresh token record
    the token is bound to.
    """
    if "tokenId" not in data:
        raise ValueError("Refresh token claims require a tokenId")
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(data, settings.REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE, expires_delta)


def verify_token(token: str, secret: str, token_type: Optional[str] = None) -> dict:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string
        secret: Secret the token is expected to be signed with
        token_type: Expected ``type`` claim, if any

    Returns:
        Dictionary containing token claims

    Raises:
        TokenExpiredError: If the token is past its exp claim
        InvalidSignatureError: If the token is malformed, tampered with,
            signed with another secret, or of the wrong type
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except JWTError as e:
        raise InvalidSignatureError("Invalid token") from e

    if token_type is not None and payload.get("type") != token_type:
        raise InvalidSignatureError("Unexpected token type")
    return payload


def verify_access_token(token: str) -> dict:
    return verify_token(token, settings.SECRET_KEY, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> dict:
    return verify_token(token, settings.REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE)
