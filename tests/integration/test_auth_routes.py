"""Integration tests for the auth and admin routes."""

from datetime import timedelta

import pytest

from config import LOCKOUT_MINUTES, MAX_LOGIN_ATTEMPTS
from helpers import PASSWORD
from utils.token_service import FederatedClaims, IdentityTokenService

pytestmark = pytest.mark.integration

EMAIL = "route.user@example.com"


def _kind(response):
    return response.json()["detail"]["kind"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRegisterAndLogin:
    """Test registration and password login over HTTP."""

    def test_register(self, client, mail):
        response = client.post(
            "/api/auth/register",
            json={"email": EMAIL, "password": "s3cret-pass", "username": "route_user"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["verification_sent"] is True
        assert body["user"]["is_email_verified"] is False
        assert body["user"]["role"] == "user"
        assert "password_hash" not in body["user"]
        assert mail.last_code(EMAIL) is not None

    def test_register_duplicate(self, client, make_account):
        make_account(email=EMAIL)
        response = client.post("/api/auth/register", json={"email": EMAIL, "password": "s3cret-pass"})
        assert response.status_code == 409
        assert _kind(response) == "email_already_exists"

    def test_register_invalid(self, client):
        response = client.post("/api/auth/register", json={"email": "nope", "password": "s3cret-pass"})
        assert response.status_code == 400
        assert _kind(response) == "invalid_input"

    def test_register_admin(self, client, monkeypatch):
        monkeypatch.setattr("utils.user_manager.ADMIN_TOKEN", "route-admin-token")
        bad = client.post(
            "/api/auth/register",
            json={"email": EMAIL, "password": "s3cret-pass", "admin_token": "guess"},
        )
        assert bad.status_code == 403
        assert _kind(bad) == "invalid_admin_token"

        good = client.post(
            "/api/auth/register",
            json={"email": EMAIL, "password": "s3cret-pass", "admin_token": "route-admin-token"},
        )
        assert good.status_code == 201
        assert good.json()["user"]["role"] == "admin"

    def test_login_and_me(self, client, make_account):
        account = make_account(email=EMAIL)
        response = client.post("/api/auth/login", json={"login": EMAIL, "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["user"]["user_id"] == account.user_id
        assert me.json()["user"]["last_login_at"] is not None

    def test_wrong_password(self, client, make_account):
        make_account(email=EMAIL)
        response = client.post("/api/auth/login", json={"login": EMAIL, "password": "wrong-password"})
        assert response.status_code == 401
        assert _kind(response) == "invalid_credentials"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_lockout(self, client, make_account, clock):
        make_account(email=EMAIL, login_attempts=MAX_LOGIN_ATTEMPTS - 1)
        client.post("/api/auth/login", json={"login": EMAIL, "password": "wrong-password"})

        locked = client.post("/api/auth/login", json={"login": EMAIL, "password": PASSWORD})
        assert locked.status_code == 429
        assert _kind(locked) == "account_locked"
        assert int(locked.headers["Retry-After"]) == LOCKOUT_MINUTES * 60

        clock.advance(minutes=LOCKOUT_MINUTES + 1)
        response = client.post("/api/auth/login", json={"login": EMAIL, "password": PASSWORD})
        assert response.status_code == 200

    def test_logout_requires_token(self, client, make_account, auth_headers):
        assert client.post("/api/auth/logout").status_code == 401
        response = client.post("/api/auth/logout", headers=auth_headers(make_account()))
        assert response.status_code == 200


class TestTokens:
    """Test bearer resolution and the verify-token exchange."""

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert _kind(response) == "missing_token"

    def test_expired_token(self, client, db, make_account, clock):
        stale = IdentityTokenService(db, clock=lambda: clock() - timedelta(days=8))
        token = stale.mint(make_account())
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert _kind(response) == "token_expired"

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert _kind(response) == "invalid_token"

    def test_banned_account(self, client, make_account, auth_headers):
        account = make_account(is_banned=True, banned_reason="spam")
        response = client.get("/api/auth/me", headers=auth_headers(account))
        assert response.status_code == 403
        assert _kind(response) == "account_banned"

    def test_federated_exchange(self, client, federated):
        federated.tokens["provider-token"] = FederatedClaims(
            subject="g-900", email="fed.user@example.com", email_verified=True, name="Fed"
        )
        response = client.post("/api/auth/verify-token", json={"token": "provider-token"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "federated"
        assert body["user"]["provider"] == "federated"
        assert body["user"]["is_email_verified"] is True

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["user_id"] == body["user"]["user_id"]

    def test_local_exchange(self, client, make_account, auth_headers):
        headers = auth_headers(make_account())
        token = headers["Authorization"].split(" ", 1)[1]
        response = client.post("/api/auth/verify-token", json={"token": token})
        assert response.status_code == 200
        assert response.json()["token_type"] == "local"

    def test_untrusted_issuer(self, client, federated):
        federated.untrusted.add("foreign-token")
        response = client.post("/api/auth/verify-token", json={"token": "foreign-token"})
        assert response.status_code == 401
        assert _kind(response) == "invalid_issuer"

    def test_federated_email_conflict(self, client, federated, make_account):
        make_account(email="fed.user@example.com")
        federated.tokens["provider-token"] = FederatedClaims(subject="g-901", email="fed.user@example.com")
        response = client.post("/api/auth/verify-token", json={"token": "provider-token"})
        assert response.status_code == 409
        assert _kind(response) == "email_already_exists"


class TestCodes:
    """Test email verification and password reset over HTTP."""

    def test_email_verification(self, client, mail):
        client.post("/api/auth/register", json={"email": EMAIL, "password": "s3cret-pass"})

        status = client.get("/api/auth/codes/status", params={"email": EMAIL})
        assert status.json()["has_active_code"] is True
        assert status.json()["attempts_remaining"] == 5

        resend = client.post("/api/auth/email/send-code", json={"email": EMAIL})
        assert resend.status_code == 429
        assert _kind(resend) == "code_already_sent"
        assert int(resend.headers["Retry-After"]) > 0

        wrong = client.post("/api/auth/email/verify", json={"email": EMAIL, "code": "abc"})
        assert wrong.status_code == 400
        assert _kind(wrong) == "code_invalid"

        response = client.post(
            "/api/auth/email/verify", json={"email": EMAIL, "code": mail.last_code(EMAIL)}
        )
        assert response.status_code == 200
        assert response.json()["user"]["is_email_verified"] is True

    def test_send_code_unknown_email_looks_the_same(self, client, make_account, mail):
        make_account(email=EMAIL, is_email_verified=False)
        known = client.post("/api/auth/email/send-code", json={"email": EMAIL})
        unknown = client.post("/api/auth/email/send-code", json={"email": "ghost@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert len(mail.sent) == 1

    def test_password_reset(self, client, make_account, mail):
        make_account(email=EMAIL)
        forgot = client.post("/api/auth/password/forgot", json={"email": EMAIL})
        assert forgot.status_code == 200
        code = mail.last_code(EMAIL, "password_reset")

        verified = client.post("/api/auth/password/verify-code", json={"email": EMAIL, "code": code})
        assert verified.status_code == 200

        reset = client.post(
            "/api/auth/password/reset",
            json={"email": EMAIL, "code": code, "new_password": "brand-new-pass"},
        )
        assert reset.status_code == 200

        login = client.post("/api/auth/login", json={"login": EMAIL, "password": "brand-new-pass"})
        assert login.status_code == 200

    def test_password_reset_without_verification(self, client, make_account, mail):
        make_account(email=EMAIL)
        client.post("/api/auth/password/forgot", json={"email": EMAIL})
        response = client.post(
            "/api/auth/password/reset",
            json={"email": EMAIL, "code": mail.last_code(EMAIL), "new_password": "brand-new-pass"},
        )
        assert response.status_code == 400
        assert _kind(response) == "code_invalid"


class TestAdminRoutes:
    """Test administrator-only account management."""

    def test_requires_admin(self, client, make_account, auth_headers):
        target = make_account()
        response = client.post(
            f"/api/admin/users/{target.user_id}/ban",
            json={"reason": "spam"},
            headers=auth_headers(make_account("expert")),
        )
        assert response.status_code == 403
        assert _kind(response) == "insufficient_role"

    def test_ban_and_unban(self, client, make_account, auth_headers):
        admin_headers = auth_headers(make_account("admin"))
        target = make_account()

        banned = client.post(
            f"/api/admin/users/{target.user_id}/ban",
            json={"reason": "spam", "until": "2099-01-01T12:00:00+02:00"},
            headers=admin_headers,
        )
        assert banned.status_code == 200
        assert banned.json()["user"]["banned_until"].startswith("2099-01-01T10:00:00")

        blocked = client.get("/api/auth/me", headers=auth_headers(target))
        assert blocked.status_code == 403

        client.post(f"/api/admin/users/{target.user_id}/unban", headers=admin_headers)
        assert client.get("/api/auth/me", headers=auth_headers(target)).status_code == 200

    def test_change_role(self, client, make_account, auth_headers):
        admin_headers = auth_headers(make_account("admin"))
        target = make_account()
        response = client.post(
            f"/api/admin/users/{target.user_id}/role",
            json={"role": "expert"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "expert"

        missing = client.post(
            "/api/admin/users/missing/role", json={"role": "expert"}, headers=admin_headers
        )
        assert missing.status_code == 404
        assert _kind(missing) == "user_not_found"

    def test_deactivate(self, client, make_account, auth_headers):
        admin_headers = auth_headers(make_account("admin"))
        target = make_account()
        client.post(
            f"/api/admin/users/{target.user_id}/active", json={"active": False}, headers=admin_headers
        )
        response = client.get("/api/auth/me", headers=auth_headers(target))
        assert response.status_code == 403
        assert _kind(response) == "account_inactive"
