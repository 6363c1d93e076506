"""HTTP tests for /api/auth: register, login, refresh, logout and the refresh cookie."""

from conftest import DEFAULT_PASSWORD, auth_headers, login, use_refresh_cookie

from app.core.config import settings

COOKIE = settings.REFRESH_COOKIE_NAME


def _set_cookie_header(response):
    return response.headers.get("set-cookie", "").lower()


class TestRegister:

    def test_register_returns_user_without_tokens(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "alice@example.com", "password": "Passw0rd", "displayName": "Alice"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"]
        assert body["email"] == "alice@example.com"
        assert body["displayName"] == "Alice"
        assert body["isActive"] is True
        assert "accessToken" not in body
        assert "hashedPassword" not in body
        assert COOKIE not in response.cookies

    def test_register_with_auto_login(self, client, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_LOGIN_ON_REGISTER", True)
        response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "Passw0rd"})

        assert response.status_code == 201
        body = response.json()
        assert body["accessToken"]
        assert body["tenantMemberships"] == []
        assert response.cookies.get(COOKIE)

    def test_duplicate_email_is_conflict(self, client, make_user):
        make_user()
        response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "Passw0rd"})

        assert response.status_code == 409
        assert response.json() == {"code": "duplicate_email", "detail": "Email is already registered"}

    def test_weak_passwords_are_rejected(self, client):
        for password in ("Pw0", "password", "12345678", "Passw0rd" * 3):
            response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": password})
            assert response.status_code == 422, password

    def test_password_over_bcrypt_byte_limit_is_rejected(self, client):
        # 20 characters, 74 bytes in UTF-8
        password = "a1" + "\U0001F600" * 18
        response = client.post("/api/auth/register", json={"email": "emoji@example.com", "password": password})

        assert response.status_code == 422
        assert "bytes" in response.text

    def test_invalid_email_is_rejected(self, client):
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "Passw0rd"})
        assert response.status_code == 422


class TestLogin:

    def test_login_sets_cookie_and_returns_access_token(self, client, make_user):
        make_user()
        response = login(client)

        body = response.json()
        assert body["accessToken"]
        assert body["tokenType"] == "bearer"
        assert body["tenantMemberships"] == []
        assert body["user"]["email"] == "alice@example.com"
        assert "refreshToken" not in body
        assert response.cookies.get(COOKIE)
        assert response.cookies.get(COOKIE) != body["accessToken"]

    def test_refresh_cookie_attributes(self, client, make_user):
        make_user()
        header = _set_cookie_header(login(client))

        assert header.startswith(f"{COOKIE}=")
        assert "httponly" in header
        assert "path=/" in header
        assert "samesite=lax" in header
        assert "; secure" not in header
        assert f"max-age={settings.cookie_max_age}" in header

    def test_refresh_cookie_is_secure_in_production(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        make_user()
        header = _set_cookie_header(login(client))

        assert "; secure" in header
        assert "samesite=lax" in header

    def test_cross_site_cookie(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "COOKIE_CROSS_SITE", True)
        make_user()
        header = _set_cookie_header(login(client))

        assert "samesite=none" in header
        assert "; secure" in header

    def test_failures_are_byte_identical(self, client, make_user):
        make_user()
        unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "any"})
        wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrongpass"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.content == wrong.content
        assert unknown.json()["code"] == "invalid_credentials"
        assert unknown.headers["www-authenticate"] == "Bearer"

    def test_inactive_user_gets_same_error(self, client, make_user):
        make_user()
        make_user(email="bob@example.com", is_active=False)
        wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrongpass"})
        inactive = client.post("/api/auth/login", json={"email": "bob@example.com", "password": DEFAULT_PASSWORD})

        assert inactive.status_code == 401
        assert inactive.content == wrong.content

    def test_second_login_invalidates_first_session(self, client, make_user):
        make_user()
        first_cookie = login(client).cookies.get(COOKIE)
        login(client)

        use_refresh_cookie(client, first_cookie)
        response = client.post("/api/auth/refresh")

        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"


class TestRefresh:

    def test_refresh_rotates_and_old_cookie_stops_working(self, client, make_user):
        make_user()
        first = login(client)
        old_cookie = first.cookies.get(COOKIE)

        refreshed = client.post("/api/auth/refresh")
        assert refreshed.status_code == 200
        new_cookie = refreshed.cookies.get(COOKIE)
        assert new_cookie and new_cookie != old_cookie
        assert refreshed.json()["accessToken"] != first.json()["accessToken"]

        use_refresh_cookie(client, old_cookie)
        replay = client.post("/api/auth/refresh")
        assert replay.status_code == 401

        use_refresh_cookie(client, new_cookie)
        assert client.post("/api/auth/refresh").status_code == 200

    def test_refresh_errors_do_not_reveal_reason(self, client, make_user):
        make_user()
        access_token = login(client).json()["accessToken"]

        client.cookies.clear()
        missing = client.post("/api/auth/refresh")

        use_refresh_cookie(client, "garbage")
        malformed = client.post("/api/auth/refresh")

        use_refresh_cookie(client, access_token)
        wrong_kind = client.post("/api/auth/refresh")

        assert missing.status_code == malformed.status_code == wrong_kind.status_code == 401
        assert missing.content == malformed.content == wrong_kind.content

    def test_access_token_works_as_bearer_but_not_refresh_token(self, client, make_user):
        make_user()
        response = login(client)
        refresh_cookie = response.cookies.get(COOKIE)

        assert client.get("/api/users/me", headers=auth_headers(response)).status_code == 200
        as_bearer = client.get("/api/users/me", headers={"Authorization": f"Bearer {refresh_cookie}"})
        assert as_bearer.status_code == 401


class TestLogout:

    def test_logout_clears_cookie_and_revokes(self, client, make_user):
        make_user()
        response = login(client)
        refresh_cookie = response.cookies.get(COOKIE)

        logout = client.post("/api/auth/logout", headers=auth_headers(response))
        assert logout.status_code == 200
        assert logout.json() == {"message": "Logged out"}
        header = _set_cookie_header(logout)
        assert header.startswith(f"{COOKIE}=")
        assert "max-age=0" in header

        use_refresh_cookie(client, refresh_cookie)
        assert client.post("/api/auth/refresh").status_code == 401

    def test_logout_requires_access_token(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"


def test_full_session_lifecycle(client):
    registered = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "Passw0rd"})
    assert registered.status_code == 201
    assert "accessToken" not in registered.json()

    logged_in = login(client)
    assert logged_in.json()["tenantMemberships"] == []
    first_refresh = logged_in.cookies.get(COOKIE)
    assert first_refresh

    refreshed = client.post("/api/auth/refresh")
    assert refreshed.status_code == 200
    assert refreshed.json()["accessToken"] != logged_in.json()["accessToken"]
    latest_refresh = refreshed.cookies.get(COOKIE)

    use_refresh_cookie(client, first_refresh)
    assert client.post("/api/auth/refresh").status_code == 401

    use_refresh_cookie(client, latest_refresh)
    assert client.post("/api/auth/logout", headers=auth_headers(refreshed)).status_code == 200
    assert client.post("/api/auth/refresh").status_code == 401

    use_refresh_cookie(client, latest_refresh)
    assert client.post("/api/auth/refresh").status_code == 401
