"""
Integration tests for signup, login and cookie sessions.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import signup


class TestSignup:
    """Tests for POST /api/auth/signup."""

    def test_signup(self, client):
        """Should create an account with the user role."""
        response = client.post("/api/auth/signup", json={
            "name": "  New User ",
            "email": "New@Example.com",
            "password": "password123",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Account created successfully"
        assert data["user"]["name"] == "New User"
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["role"] == "user"
        assert data["user"]["isActive"] is True
        assert "password" not in data["user"]
        assert "passwordHash" not in data["user"]

    def test_signup_duplicate_email(self, client):
        """Should reject an email that is already registered, in any case."""
        signup(client, email="dup@example.com")
        response = client.post("/api/auth/signup", json={
            "name": "Again",
            "email": "DUP@example.com",
            "password": "password123",
        })
        assert response.status_code == 409
        assert response.json()["detail"] == "Email is already registered"

    def test_signup_short_password(self, client):
        """Should reject passwords under 8 characters."""
        response = client.post("/api/auth/signup", json={
            "name": "Short",
            "email": "short@example.com",
            "password": "short",
        })
        assert response.status_code == 422

    def test_signup_invalid_email(self, client):
        """Should reject malformed emails."""
        response = client.post("/api/auth/signup", json={
            "name": "Bad",
            "email": "not-an-email",
            "password": "password123",
        })
        assert response.status_code == 422


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login_sets_cookies(self, client):
        """Should set both session cookies."""
        signup(client)
        response = client.post("/api/auth/login", json={
            "email": "user@example.com",
            "password": "password123",
        })
        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"
        assert client.cookies.get("access_token")
        assert client.cookies.get("refresh_token")

        set_cookie = response.headers.get_list("set-cookie")
        assert all("httponly" in header.lower() for header in set_cookie)

    def test_login_wrong_password(self, client):
        """Should reject a wrong password."""
        signup(client)
        response = client.post("/api/auth/login", json={
            "email": "user@example.com",
            "password": "wrong-password",
        })
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_unknown_email(self, client):
        """Should answer unknown emails like wrong passwords."""
        response = client.post("/api/auth/login", json={
            "email": "nobody@example.com",
            "password": "password123",
        })
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_inactive_account(self, client, test_db):
        """Should refuse deactivated accounts."""
        from linkfolio.models import User

        signup(client)
        account = test_db.query(User).filter(User.email == "user@example.com").one()
        account.is_active = False
        test_db.commit()

        response = client.post("/api/auth/login", json={
            "email": "user@example.com",
            "password": "password123",
        })
        assert response.status_code == 403

    def test_login_rate_limit(self, client):
        """Should throttle repeated login attempts from one address."""
        payload = {"email": "nobody@example.com", "password": "password123"}
        for _ in range(20):
            assert client.post("/api/auth/login", json=payload).status_code == 401

        response = client.post("/api/auth/login", json=payload)
        assert response.status_code == 429
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestSession:
    """Tests for /me, logout and refresh."""

    def test_me(self, client, user):
        """Should return the signed-in user."""
        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["email"] == "user@example.com"

    def test_me_requires_session(self, client):
        """Should reject requests without a session."""
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_me_with_invalid_token(self, client):
        """Should reject a tampered access cookie."""
        client.cookies.set("access_token", "garbage")
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_bearer_header(self, client, user):
        """Should accept the access token as a Bearer header."""
        token = client.cookies.get("access_token")
        client.cookies.clear()
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    def test_deactivated_user_loses_access(self, client, user, test_db):
        """Should apply deactivation to existing sessions."""
        from linkfolio.models import User

        account = test_db.query(User).filter(User.email == "user@example.com").one()
        account.is_active = False
        test_db.commit()

        response = client.get("/api/auth/me")
        assert response.status_code == 403

    def test_logout(self, client, user):
        """Should clear the session cookies."""
        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert client.cookies.get("access_token") is None
        assert client.get("/api/auth/me").status_code == 401

    def test_refresh(self, client, user):
        """Should issue a new access cookie from the refresh cookie."""
        refresh_token = client.cookies.get("refresh_token")
        client.cookies.delete("access_token")

        response = client.post("/api/auth/refresh")
        assert response.status_code == 200
        assert response.json()["message"] == "Access token refreshed successfully"
        assert client.cookies.get("access_token")
        assert client.cookies.get("refresh_token") == refresh_token
        assert client.get("/api/auth/me").status_code == 200

    def test_refresh_without_cookie(self, client):
        """Should reject refresh without a refresh cookie."""
        response = client.post("/api/auth/refresh")
        assert response.status_code == 401

    def test_refresh_with_invalid_token(self, client):
        """Should reject a bad refresh cookie and clear the session."""
        client.cookies.set("refresh_token", "garbage")
        response = client.post("/api/auth/refresh")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired refresh token"
        cleared = [h.lower() for h in response.headers.get_list("set-cookie")]
        assert any(h.startswith("refresh_token=") and "max-age=0" in h for h in cleared)
        assert any(h.startswith("access_token=") and "max-age=0" in h for h in cleared)

    def test_access_token_cannot_refresh(self, client, user):
        """Should not accept an access token as refresh credential."""
        access_token = client.cookies.get("access_token")
        client.cookies.clear()
        client.cookies.set("refresh_token", access_token)
        assert client.post("/api/auth/refresh").status_code == 401


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        """Should report database and Redis status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] is True
        assert data["redis"] is True

    def test_request_id_header(self, client):
        """Should echo a supplied request id."""
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
