"""Unit tests for password hashing, refresh-token hashing and JWT handling."""

import uuid
from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import settings
from app.core.exceptions import InvalidSignatureError, TokenExpiredError
from app.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    hash_refresh_token,
    verify_access_token,
    verify_password,
    verify_refresh_token,
    verify_refresh_token_hash,
)


def _claims(**extra):
    claims = {"sub": str(uuid.uuid4()), "email": "alice@example.com", "organizations": []}
    claims.update(extra)
    return claims


class TestPasswordHashing:

    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = get_password_hash("Passw0rd")
        assert hashed != "Passw0rd"
        assert verify_password("Passw0rd", hashed)
        assert not verify_password("Passw0rd1", hashed)

    def test_same_password_hashes_differently(self):
        assert get_password_hash("Passw0rd") != get_password_hash("Passw0rd")

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("Passw0rd", "") is False
        assert verify_password("Passw0rd", "not-a-bcrypt-hash") is False


class TestRefreshTokenHash:

    def test_stored_hash_never_contains_token(self):
        token = create_refresh_token(_claims(tokenId=str(uuid.uuid4())))
        stored = hash_refresh_token(token)
        assert token not in stored
        assert stored.startswith("$2")

    def test_hash_matches_only_the_exact_token(self):
        """Tokens of one user share a long common prefix; only the exact string matches."""
        claims = _claims(tokenId=str(uuid.uuid4()))
        token = create_refresh_token(claims)
        other = create_refresh_token(claims)
        stored = hash_refresh_token(token)

        assert token[:72] == other[:72]
        assert verify_refresh_token_hash(token, stored)
        assert not verify_refresh_token_hash(other, stored)
        assert not verify_refresh_token_hash(token[:-1], stored)

    def test_empty_placeholder_never_matches(self):
        token = create_refresh_token(_claims(tokenId=str(uuid.uuid4())))
        assert verify_refresh_token_hash(token, "") is False


class TestTokens:

    def test_access_token_roundtrip_carries_claims(self):
        claims = _claims(organizations=[{"id": str(uuid.uuid4()), "name": "Acme", "role": "admin"}])
        payload = verify_access_token(create_access_token(claims))

        assert payload["sub"] == claims["sub"]
        assert payload["email"] == "alice@example.com"
        assert payload["organizations"] == claims["organizations"]
        assert payload["type"] == "access"
        assert "exp" in payload and "iat" in payload

    def test_two_tokens_for_same_claims_differ(self):
        claims = _claims()
        assert create_access_token(claims) != create_access_token(claims)

    def test_refresh_token_requires_token_id(self):
        with pytest.raises(ValueError):
            create_refresh_token(_claims())

    def test_refresh_token_is_bound_to_record_id(self):
        token_id = str(uuid.uuid4())
        payload = verify_refresh_token(create_refresh_token(_claims(tokenId=token_id)))
        assert payload["tokenId"] == token_id
        assert payload["type"] == "refresh"

    def test_access_token_is_not_a_refresh_token(self):
        with pytest.raises(InvalidSignatureError):
            verify_refresh_token(create_access_token(_claims()))

    def test_refresh_token_is_not_an_access_token(self):
        with pytest.raises(InvalidSignatureError):
            verify_access_token(create_refresh_token(_claims(tokenId=str(uuid.uuid4()))))

    def test_token_signed_with_other_secret_is_rejected(self):
        forged = jwt.encode({**_claims(), "type": "access"}, "some-other-secret", algorithm=settings.ALGORITHM)
        with pytest.raises(InvalidSignatureError):
            verify_access_token(forged)

    def test_tampered_token_is_rejected(self):
        token = create_access_token(_claims())
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload[:-2] + ("A" if payload[-2] != "A" else "B") + payload[-1], signature])
        with pytest.raises(InvalidSignatureError):
            verify_access_token(tampered)

    def test_garbage_is_rejected(self):
        with pytest.raises(InvalidSignatureError):
            verify_access_token("not.a.jwt")

    def test_expired_token_raises_expired(self):
        token = create_access_token(_claims(), expires_delta=timedelta(seconds=-1))
        with pytest.raises(TokenExpiredError):
            verify_access_token(token)
