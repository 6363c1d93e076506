"""Tests for AuthService: registration, login, rotation and the refresh token ledger."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.core.exceptions import DuplicateEmailError, InvalidCredentialsError, InvalidRefreshTokenError
from app.core.security import verify_refresh_token, verify_refresh_token_hash
from app.core.tenant_context import identity_from_claims
from app.crud.membership import membership as membership_crud
from app.crud.refresh_token import refresh_token as refresh_token_crud
from app.models.organization import Role
from app.models.refresh_token import RefreshToken
from app.models.user import User
from app.schemas.auth import RegisterRequest
from app.services.auth import auth_service


def _refresh_identity(session):
    claims = verify_refresh_token(session.refresh_token)
    return identity_from_claims(claims, refresh_token_id=claims["tokenId"])


def _active_tokens(db, user_id):
    stmt = select(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
    return list(db.execute(stmt).scalars().all())


class TestRegister:

    def test_register_creates_user_with_default_profile(self, db):
        user, session = auth_service.register(db, RegisterRequest(email="alice@example.com", password="Passw0rd"))

        assert session is None
        assert user.is_active
        assert user.display_name == "alice"
        assert user.hashed_password != "Passw0rd"
        assert user.profile.avatar_url == settings.DEFAULT_AVATAR_URL
        assert user.profile.bio == ""
        assert user.profile.profile_metadata == {}

    def test_duplicate_email_fails_without_second_row(self, db):
        auth_service.register(db, RegisterRequest(email="alice@example.com", password="Passw0rd"))

        with pytest.raises(DuplicateEmailError):
            auth_service.register(db, RegisterRequest(email="alice@example.com", password="Other1234"))

        count = db.execute(select(func.count()).select_from(User).where(User.email == "alice@example.com")).scalar_one()
        assert count == 1

    def test_auto_login_on_register_issues_session(self, db, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_LOGIN_ON_REGISTER", True)
        user, session = auth_service.register(db, RegisterRequest(email="alice@example.com", password="Passw0rd"))

        assert session is not None
        assert session.user.id == user.id
        assert len(_active_tokens(db, user.id)) == 1


class TestLogin:

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, db, make_user):
        make_user()

        with pytest.raises(InvalidCredentialsError) as unknown:
            auth_service.login(db, "nobody@example.com", "any")
        with pytest.raises(InvalidCredentialsError) as wrong:
            auth_service.login(db, "alice@example.com", "wrongpass1")

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.code == wrong.value.code
        assert unknown.value.message == wrong.value.message

    def test_inactive_user_cannot_log_in(self, db, make_user):
        make_user(is_active=False)
        with pytest.raises(InvalidCredentialsError):
            auth_service.login(db, "alice@example.com", "Passw0rd")

    def test_login_issues_two_distinct_tokens(self, db, make_user):
        user = make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")

        assert session.access_token != session.refresh_token
        assert session.user.id == user.id
        assert session.memberships == []

    def test_refresh_record_is_two_phase_and_hash_only(self, db, make_user):
        user = make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")

        claims = verify_refresh_token(session.refresh_token)
        record = db.get(RefreshToken, uuid.UUID(claims["tokenId"]))
        assert record is not None
        assert record.user_id == user.id
        assert record.token_hash
        assert session.refresh_token not in record.token_hash
        assert verify_refresh_token_hash(session.refresh_token, record.token_hash)
        assert not record.revoked

    def test_login_revokes_previous_sessions(self, db, make_user):
        user = make_user()
        first = auth_service.login(db, "alice@example.com", "Passw0rd")
        second = auth_service.login(db, "alice@example.com", "Passw0rd")

        active = _active_tokens(db, user.id)
        assert len(active) == 1
        assert str(active[0].id) == verify_refresh_token(second.refresh_token)["tokenId"]

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, _refresh_identity(first))

    def test_multiple_sessions_when_single_session_disabled(self, db, make_user, monkeypatch):
        monkeypatch.setattr(settings, "SINGLE_SESSION_PER_USER", False)
        user = make_user()
        auth_service.login(db, "alice@example.com", "Passw0rd")
        auth_service.login(db, "alice@example.com", "Passw0rd")

        assert len(_active_tokens(db, user.id)) == 2

    def test_login_purges_expired_records(self, db, make_user):
        user = make_user()
        stale = refresh_token_crud.create(
            db, user_id=user.id, expires_at=datetime.now(timezone.utc) - timedelta(days=1)
        )
        db.commit()
        stale_id = stale.id

        auth_service.login(db, "alice@example.com", "Passw0rd")

        remaining = db.execute(select(RefreshToken.id).where(RefreshToken.id == stale_id)).scalar_one_or_none()
        assert remaining is None

    def test_claims_carry_only_active_memberships(self, db, make_user, make_org):
        alice = make_user()
        bob = make_user(email="bob@example.com")
        acme = make_org("Acme", admin=bob, members=[(alice, Role.editor)])
        other = make_org("Other", admin=bob)
        membership_crud.create(db, user_id=alice.id, organization_id=other.id, role=Role.visitor, is_active=False)

        session = auth_service.login(db, "alice@example.com", "Passw0rd")

        assert [(m.tenant_id, m.tenant_name, m.role) for m in session.memberships] == [
            (str(acme.id), "Acme", Role.editor)
        ]
        claims = verify_refresh_token(session.refresh_token)
        assert claims["organizations"] == [{"id": str(acme.id), "name": "Acme", "role": "editor"}]


class TestRefresh:

    def test_rotation_is_single_use(self, db, make_user):
        make_user()
        first = auth_service.login(db, "alice@example.com", "Passw0rd")

        second = auth_service.refresh(db, _refresh_identity(first))
        assert second.access_token != first.access_token
        assert second.refresh_token != first.refresh_token

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, _refresh_identity(first))

        third = auth_service.refresh(db, _refresh_identity(second))
        assert third.refresh_token != second.refresh_token

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, _refresh_identity(second))

    def test_refresh_without_bound_record_is_rejected(self, db, make_user):
        make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")
        identity = identity_from_claims(verify_refresh_token(session.refresh_token))

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, identity)

    def test_refresh_for_deactivated_user_is_rejected(self, db, make_user):
        user = make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")
        user.is_active = False
        db.commit()

        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, _refresh_identity(session))

    def test_refresh_picks_up_new_membership(self, db, make_user, make_org):
        alice = make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")
        acme = make_org("Acme", admin=alice)

        rotated = auth_service.refresh(db, _refresh_identity(session))

        assert [m.tenant_id for m in rotated.memberships] == [str(acme.id)]
        assert rotated.memberships[0].role == Role.admin


class TestLogout:

    def test_logout_revokes_everything(self, db, make_user, monkeypatch):
        monkeypatch.setattr(settings, "SINGLE_SESSION_PER_USER", False)
        user = make_user()
        first = auth_service.login(db, "alice@example.com", "Passw0rd")
        auth_service.login(db, "alice@example.com", "Passw0rd")

        revoked = auth_service.logout(db, _refresh_identity(first))

        assert revoked == 2
        assert _active_tokens(db, user.id) == []
        with pytest.raises(InvalidRefreshTokenError):
            auth_service.refresh(db, _refresh_identity(first))

    def test_logout_is_idempotent(self, db, make_user):
        make_user()
        session = auth_service.login(db, "alice@example.com", "Passw0rd")
        identity = _refresh_identity(session)

        assert auth_service.logout(db, identity) == 1
        assert auth_service.logout(db, identity) == 0
