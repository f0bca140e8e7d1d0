"""Unit and route tests for admin authentication."""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException, status

from viticult.core.auth import (
    create_access_token,
    decode_token,
    hash_password,
    password_changed_after,
    verify_password,
)
from viticult.core.config import settings
from viticult.domain.admin import AdminPrincipal

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


class TestPasswordHashing:
    """Test bcrypt hashing helpers."""

    def test_hash_and_verify(self, admin_password_hash):
        assert admin_password_hash.startswith("$2")
        assert verify_password(ADMIN_PASSWORD, admin_password_hash)

    def test_wrong_password_rejected(self, admin_password_hash):
        assert not verify_password("not-the-password", admin_password_hash)

    def test_missing_or_malformed_hash(self):
        assert not verify_password("anything", None)
        assert not verify_password("anything", "plain-text-not-bcrypt")

    def test_hashes_are_salted(self):
        assert hash_password("same-password") != hash_password("same-password")


class TestJWTTokens:
    """Test JWT token creation and validation."""

    def test_decode_valid_token(self):
        token = create_access_token(AdminPrincipal(email=ADMIN_EMAIL))
        token_data = decode_token(token)

        assert token_data.sub == ADMIN_EMAIL
        assert token_data.email == ADMIN_EMAIL
        assert token_data.role == "admin"
        assert isinstance(token_data.iat, int)

    def test_token_contains_required_claims(self):
        token = create_access_token(AdminPrincipal(email=ADMIN_EMAIL))
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

        for claim in ("sub", "email", "role", "exp", "iat"):
            assert claim in payload

    def test_decode_expired_token(self):
        expired_token = create_access_token(
            AdminPrincipal(email=ADMIN_EMAIL),
            expires_delta=timedelta(hours=-1)
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_token(expired_token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_decode_invalid_token(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_token("not.a.valid.jwt.token")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token"

    def test_password_changed_after(self):
        issued = int(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc).timestamp())

        assert password_changed_after(datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc), issued)
        assert not password_changed_after(datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc), issued)
        assert not password_changed_after(None, issued)


class TestAdminGuard:
    """Test the admin dependency through a protected route."""

    def test_missing_token(self, test_client):
        response = test_client.get("/api/auth/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "message": "No token provided"}

    def test_valid_bearer_token(self, authenticated_client):
        response = authenticated_client.get("/api/auth/me")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["user"]["email"] == ADMIN_EMAIL

    def test_cookie_token_accepted(self, test_client, admin_token):
        response = test_client.get(
            "/api/auth/me",
            headers={"Cookie": f"{settings.auth_cookie_name}={admin_token}"}
        )

        assert response.status_code == status.HTTP_200_OK

    def test_non_admin_role_forbidden(self, test_client):
        token = create_access_token(AdminPrincipal(email=ADMIN_EMAIL, role="editor"))
        response = test_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "Access denied"

    def test_inactive_admin_rejected(self, authenticated_client, admin_document):
        admin_document["isActive"] = False
        response = authenticated_client.get("/api/auth/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "Admin account not found or inactive"

    def test_token_older_than_password_change(self, authenticated_client, admin_document):
        admin_document["passwordChangedAt"] = datetime.now(timezone.utc) + timedelta(minutes=5)
        response = authenticated_client.get("/api/auth/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "Password recently changed. Please log in again."


class TestLoginRoutes:
    """Test login, logout and lockout."""

    @pytest.mark.parametrize("path", ["/api/admin/login", "/api/auth/admin/login"])
    def test_login_with_valid_credentials(self, test_client, collections, path):
        response = test_client.post(path, json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["data"]["user"] == {"email": ADMIN_EMAIL, "role": "admin"}
        assert decode_token(data["token"]).email == ADMIN_EMAIL
        assert settings.auth_cookie_name in response.cookies
        collections["admins"].update_one.assert_called_once()

    def test_login_with_wrong_password(self, test_client):
        response = test_client.post(
            "/api/admin/login",
            json={"email": ADMIN_EMAIL, "password": "wrong-password"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "message": "Invalid email or password"}

    def test_login_with_unknown_email(self, test_client, collections):
        collections["admins"].find_one.return_value = None
        response = test_client.post(
            "/api/admin/login",
            json={"email": "someone@viticult.co.uk", "password": "whatever"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_validation_error(self, test_client):
        response = test_client.post("/api/admin/login", json={"email": "not-an-email"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["message"] == "Validation failed"
        fields = {error["field"] for error in body["errors"]}
        assert {"email", "password"} <= fields

    def test_repeated_failures_lock_account(self, test_client):
        for _ in range(settings.login_max_attempts):
            response = test_client.post(
                "/api/admin/login",
                json={"email": ADMIN_EMAIL, "password": "wrong-password"}
            )
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

        response = test_client.post(
            "/api/admin/login",
            json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        body = response.json()
        assert body["lockout"] is True
        assert body["remainingMinutes"] == settings.login_max_attempts

    def test_logout_clears_cookie(self, test_client):
        response = test_client.post("/api/auth/logout")

        assert response.status_code == status.HTTP_200_OK
        assert settings.auth_cookie_name in response.headers.get("set-cookie", "")


class TestChangePassword:
    """Test password changes from the dashboard."""

    def test_change_password_requires_csrf(self, authenticated_client):
        response = authenticated_client.post(
            "/api/admin/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "An0ther-Strong-One"}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "CSRF token missing"

    def test_change_password_with_csrf(self, authenticated_client, csrf_headers, collections):
        response = authenticated_client.post(
            "/api/admin/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "An0ther-Strong-One"},
            headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["token"]
        changes = collections["admins"].update_one.call_args[0][1]["$set"]
        assert verify_password("An0ther-Strong-One", changes["passwordHash"])
        assert "passwordChangedAt" in changes

    def test_wrong_current_password(self, authenticated_client):
        response = authenticated_client.post(
            "/api/auth/admin/change-password",
            json={"currentPassword": "wrong-password", "newPassword": "An0ther-Strong-One"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "Current password is incorrect"

    def test_same_password_rejected(self, authenticated_client):
        response = authenticated_client.post(
            "/api/auth/admin/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": ADMIN_PASSWORD}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_short_password_rejected(self, authenticated_client):
        response = authenticated_client.post(
            "/api/auth/admin/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "short"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["field"] == "newPassword"


class TestPasswordRecovery:
    """Test the forgot/reset password flow."""

    def test_unknown_email_gets_same_response(self, test_client, collections, mock_notifications):
        collections["admins"].find_one.return_value = None
        response = test_client.post("/api/auth/forgot-password", json={"email": "nobody@viticult.co.uk"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
        assert "devToken" not in response.json()
        mock_notifications.password_reset.assert_not_called()

    def test_reset_flow(self, test_client, token_store, mock_notifications, collections):
        mock_notifications.password_reset.return_value = True
        response = test_client.post("/api/auth/forgot-password", json={"email": ADMIN_EMAIL})

        assert response.status_code == status.HTTP_200_OK
        email, link = mock_notifications.password_reset.call_args[0]
        assert email == ADMIN_EMAIL
        token = link.rsplit("/", 1)[-1]
        assert "/admin/reset-password/" in link

        verify = test_client.get(f"/api/auth/reset-password/{token}")
        assert verify.status_code == status.HTTP_200_OK
        assert verify.json()["email"] == ADMIN_EMAIL

        reset = test_client.post(f"/api/auth/reset-password/{token}", json={"newPassword": "Fresh-Password-1"})
        assert reset.status_code == status.HTTP_200_OK
        changes = collections["admins"].update_one.call_args[0][1]["$set"]
        assert verify_password("Fresh-Password-1", changes["passwordHash"])

        reused = test_client.post(f"/api/auth/reset-password/{token}", json={"newPassword": "Fresh-Password-2"})
        assert reused.status_code == status.HTTP_400_BAD_REQUEST
        assert reused.json()["message"] == "Reset token has already been used"

    def test_unknown_token(self, test_client):
        response = test_client.get("/api/auth/reset-password/deadbeef")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid or expired reset token"
