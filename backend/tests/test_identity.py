"""
Identity resolver and login tests.

resolve_identity maps a session token to (user_id, role) or an AuthFailure
with reason invalid_credential / expired / revoked, and writes nothing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pharmapos.models import SessionToken, UserRole
from pharmapos.permissions import Role
from pharmapos.services import auth_service, session_service
from pharmapos.services.session_service import AuthFailure
from pharmapos.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


class TestResolveIdentity:

    def test_valid_session(self, db_session, pharmacist_user):
        session, token = session_service.create_session(pharmacist_user.id)

        identity = session_service.resolve_identity(token)

        assert identity.user_id == pharmacist_user.id
        assert identity.role is Role.FARMACEUTICO
        assert identity.session_id == session.id

    @pytest.mark.parametrize("token", [None, "", "deadbeef", 123])
    def test_unknown_credential(self, db_session, token):
        with pytest.raises(AuthFailure) as exc:
            session_service.resolve_identity(token)
        assert exc.value.reason == AuthFailure.INVALID_CREDENTIAL

    def test_expired(self, db_session, cashier_user):
        session, token = session_service.create_session(cashier_user.id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(AuthFailure) as exc:
            session_service.resolve_identity(token)
        assert exc.value.reason == AuthFailure.EXPIRED

    def test_timezone_aware_expiry(self, db_session, cashier_user):
        # Not committed: the identity-mapped row keeps the aware value, as a
        # backend returning aware datetimes would hand it back
        luanda = timezone(timedelta(hours=1))
        session, token = session_service.create_session(cashier_user.id)

        session.expires_at = datetime.now(luanda) + timedelta(hours=1)
        assert session_service.resolve_identity(token).user_id == cashier_user.id

        session.expires_at = datetime.now(luanda) - timedelta(minutes=1)
        with pytest.raises(AuthFailure) as exc:
            session_service.resolve_identity(token)
        assert exc.value.reason == AuthFailure.EXPIRED

    def test_revoked(self, db_session, cashier_user):
        _, token = session_service.create_session(cashier_user.id)
        assert session_service.revoke_session(token) is True

        with pytest.raises(AuthFailure) as exc:
            session_service.resolve_identity(token)
        assert exc.value.reason == AuthFailure.REVOKED

    def test_deactivated_user_is_revoked(self, db_session, cashier_user):
        _, token = session_service.create_session(cashier_user.id)
        cashier_user.is_active = False
        db_session.commit()

        with pytest.raises(AuthFailure) as exc:
            session_service.resolve_identity(token)
        assert exc.value.reason == AuthFailure.REVOKED

    def test_user_without_role_resolves_with_none(self, db_session, roleless_user):
        _, token = session_service.create_session(roleless_user.id)
        assert session_service.resolve_identity(token).role is None

    def test_unknown_stored_role_resolves_with_none(self, db_session, cashier_user):
        _, token = session_service.create_session(cashier_user.id)
        record = db_session.query(UserRole).filter_by(user_id=cashier_user.id).one()
        record.role = "gerente"
        db_session.commit()

        assert session_service.resolve_identity(token).role is None

    def test_resolution_does_not_write(self, db_session, cashier_user):
        session, token = session_service.create_session(cashier_user.id)
        before = (session.expires_at, session.is_revoked)

        session_service.resolve_identity(token)
        session_service.resolve_identity(token)

        db_session.expire_all()
        reloaded = db_session.get(SessionToken, session.id)
        assert (reloaded.expires_at, reloaded.is_revoked) == before
        assert not db_session.dirty and not db_session.new


class TestCredentialAddress:

    def test_handle_maps_to_login_domain(self, app):
        assert auth_service.credential_address("ana.silva") == "ana.silva@marjoc.local"

    def test_domain_is_configurable(self, app):
        original = app.config["LOGIN_DOMAIN"]
        app.config["LOGIN_DOMAIN"] = "farmacia.test"
        try:
            assert auth_service.credential_address("rui") == "rui@farmacia.test"
        finally:
            app.config["LOGIN_DOMAIN"] = original


class TestLoginRoutes:

    def test_login_returns_role_and_navigation(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "caixa", "password": TEST_PASSWORD})

        assert resp.status_code == 200
        body = resp.json
        assert body["token"]
        assert body["role"] == "operador_caixa"
        assert body["user"]["username"] == "caixa"
        assert [item["resource"] for item in body["navigation"]] == ["dashboard", "customers"]

    def test_wrong_password(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "caixa", "password": "wrong-pass"})
        assert resp.status_code == 401
        assert resp.json["reason"] == "invalid_credential"

    def test_login_with_full_address_is_rejected(self, client, cashier_user):
        resp = client.post(
            "/api/auth/login", json={"username": "caixa@marjoc.local", "password": TEST_PASSWORD}
        )
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "caixa"})
        assert resp.status_code == 400

    def test_validate_and_logout(self, client, admin_user):
        token = get_auth_token(client, "admin")

        resp = client.post("/api/auth/validate", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["role"] == "administrator"
        assert len(resp.json["navigation"]) == 5

        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200

        resp = client.post("/api/auth/validate", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json["reason"] == "revoked"

        resp = client.get("/api/dashboard", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json["reason"] == "revoked"

    def test_inactive_user_cannot_login(self, client, cashier_user, db_session):
        cashier_user.is_active = False
        db_session.commit()
        assert get_auth_token(client, "caixa") is None


class TestSessionCleanup:

    def test_removes_old_expired_and_revoked_sessions(self, db_session, cashier_user):
        old = utcnow() - timedelta(days=40)
        _, live_token = session_service.create_session(cashier_user.id)
        expired, _ = session_service.create_session(cashier_user.id)
        expired.created_at = old
        expired.expires_at = old + timedelta(hours=24)
        db_session.commit()

        assert session_service.cleanup_expired_sessions(older_than_days=30) == 1
        assert session_service.resolve_identity(live_token).user_id == cashier_user.id
