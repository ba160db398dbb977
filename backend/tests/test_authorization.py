"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Operators are denied admin operations (403) before any data changes
- Admins reach admin operations
- Access gate functions in isolation
"""

import pytest
from flask import session

from kpi_portal.services import access_gate
from kpi_portal.services.access_gate import ForbiddenError, UnauthenticatedError

ADMIN_ENDPOINTS = [
    ("GET", "/api/admin/users"),
    ("POST", "/api/admin/users"),
    ("PATCH", "/api/admin/users/some-id"),
    ("DELETE", "/api/admin/users/some-id"),
    ("GET", "/api/admin/submissions?periodType=weekly&periodStart=2025-01-06"),
    ("GET", "/api/admin/generations"),
    ("POST", "/api/admin/generate-deck"),
    ("POST", "/api/admin/generations/some-id/cancel"),
    ("GET", "/api/admin/financials"),
    ("GET", "/api/admin/financials/2026-01"),
    ("POST", "/api/admin/financials"),
]

AUTH_ENDPOINTS = [
    ("GET", "/api/auth/me"),
    ("GET", "/api/periods/current"),
    ("GET", "/api/submissions?productId=sams&periodType=weekly&periodStart=2025-01-06"),
    ("POST", "/api/submissions"),
]


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize("method,path", ADMIN_ENDPOINTS + AUTH_ENDPOINTS)
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path, json={})
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_deleted_user_session_is_unauthenticated(self, operator_client, operator_user, stores):
        stores.identities.delete(operator_user.id)

        resp = operator_client.get("/api/auth/me")

        assert resp.status_code == 401


# =============================================================================
# OPERATOR DENIED ADMIN OPERATIONS — 403
# =============================================================================


class TestOperatorDenied:
    @pytest.mark.parametrize("method,path", ADMIN_ENDPOINTS)
    def test_forbidden(self, operator_client, method, path):
        resp = getattr(operator_client, method.lower())(path, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_forbidden_create_touches_nothing(self, operator_client, stores):
        resp = operator_client.post("/api/admin/users", json={
            "email": "new@x.com", "password": "secret1", "name": "New", "role": "admin",
        })

        assert resp.status_code == 403
        assert stores.identities.get_by_email("new@x.com") is None

    def test_forbidden_generate_creates_no_generation(self, operator_client, stores):
        resp = operator_client.post("/api/admin/generate-deck", json={
            "periodType": "weekly", "periodStart": "2025-01-06",
        })

        assert resp.status_code == 403
        assert stores.generations.list_recent() == []

    def test_demoted_admin_loses_access(self, admin_client, admin_user, stores):
        stores.identities.update(admin_user.id, {"role": "operator"})

        resp = admin_client.get("/api/admin/users")

        assert resp.status_code == 403


class TestAdminAllowed:
    def test_admin_lists_users(self, admin_client):
        resp = admin_client.get("/api/admin/users")
        assert resp.status_code == 200

    def test_operator_reaches_authenticated_routes(self, operator_client):
        resp = operator_client.get("/api/periods/current")
        assert resp.status_code == 200


# =============================================================================
# ACCESS GATE IN ISOLATION
# =============================================================================


class TestAccessGate:
    def test_no_identity_is_unauthenticated(self, app, stores):
        with app.test_request_context():
            with pytest.raises(UnauthenticatedError):
                access_gate.require_authenticated(stores.identities)
            with pytest.raises(UnauthenticatedError):
                access_gate.require_admin(stores.identities)

    def test_operator_is_forbidden(self, app, stores, operator_user):
        with app.test_request_context():
            access_gate.bind_identity(operator_user)

            assert access_gate.require_authenticated(stores.identities).id == operator_user.id
            with pytest.raises(ForbiddenError):
                access_gate.require_admin(stores.identities)

    def test_admin_passes(self, app, stores, admin_user):
        with app.test_request_context():
            access_gate.bind_identity(admin_user)

            assert access_gate.require_admin(stores.identities).id == admin_user.id

    def test_clear_unbinds(self, app, stores, admin_user):
        with app.test_request_context():
            access_gate.bind_identity(admin_user)
            access_gate.clear()

            assert access_gate.current_user_id() is None
            assert access_gate.SESSION_USER_KEY not in session
