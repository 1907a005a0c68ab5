"""
End-to-end tests: real requests through middleware, interceptors and the
redirect handler.
"""

import asyncio

import pytest
from fastapi import Depends, Request
from fastapi.testclient import TestClient

from hospital_authz.api.app import create_app, lifespan
from hospital_authz.auth import CURRENT_USER_ID, CURRENT_USER_ROLE, Principal, claims, session
from hospital_authz.auth.permissions import ConfigurationDefect

LOGIN = "/Account/Login"
DENIED = "/Account/AccessDenied"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client():
    app = create_app()

    # Stands in for the login flow, which writes these session values
    @app.post("/test/session")
    async def set_session(request: Request):
        request.session.update(await request.json())
        return {"ok": True}

    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def login_session(client):
    def _login(role, user_id="u1"):
        response = client.post("/test/session", json={"UserRole": role, "UserId": user_id})
        assert response.status_code == 200
    return _login


@pytest.fixture
def handler_calls():
    return {"count": 0}


@pytest.fixture
def counting_client(handler_calls):
    """App with guarded routes that record whether their body ran."""
    app = create_app()

    @app.post("/test/session")
    async def set_session(request: Request):
        request.session.update(await request.json())
        return {"ok": True}

    @app.get("/test/session/doctors")
    async def session_doctors(principal: Principal = Depends(session.doctor_or_admin)):
        handler_calls["count"] += 1
        return {"ok": True}

    @app.get("/test/claims/doctors")
    async def claims_doctors(principal: Principal = Depends(claims.doctor_or_admin)):
        handler_calls["count"] += 1
        return {"ok": True}

    @app.get("/test/session/whoami")
    async def session_whoami(
        request: Request,
        principal: Principal = Depends(session.nurse_only),
    ):
        return {
            "role": getattr(request.state, CURRENT_USER_ROLE),
            "user_id": getattr(request.state, CURRENT_USER_ID),
        }

    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def assert_redirect(response, location):
    assert response.status_code == 302
    assert response.headers["location"] == location


# =============================================================================
# Public routes
# =============================================================================


class TestPublicRoutes:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_destinations_are_reachable(self, client):
        assert client.get(LOGIN).status_code == 200
        assert client.get(DENIED).status_code == 200


# =============================================================================
# Session mode
# =============================================================================


class TestSessionRoutes:
    def test_no_session_redirects_to_login(self, client):
        for path in ("/Dashboard", "/Patient", "/Treatment", "/User", "/Database"):
            assert_redirect(client.get(path), LOGIN)

    def test_nurse_denied_by_doctor_or_admin(self, client, login_session):
        login_session("Nurse")
        assert_redirect(client.get("/Treatment"), DENIED)

    def test_nurse_allowed_by_nurse_or_doctor_or_admin(self, client, login_session):
        login_session("Nurse", "n1")
        response = client.get("/NurseTask")
        assert response.status_code == 200
        assert response.json() == {"user_id": "n1", "role": "Nurse"}

    def test_role_without_user_id_redirects_to_login(self, client, login_session):
        login_session("Doctor", "")
        assert_redirect(client.get("/Treatment"), LOGIN)

    def test_permission_routes(self, client, login_session):
        login_session("Staff")
        assert client.post("/Patient/Create").status_code == 200
        assert_redirect(client.post("/Patient/Delete/p1"), DENIED)
        assert_redirect(client.get("/Prescription/Create"), DENIED)

    def test_admin_reaches_everything(self, client, login_session):
        login_session("Admin", "a1")
        for path in ("/Dashboard/Admin", "/Patient", "/Prescription/Create", "/Database", "/User"):
            assert client.get(path).status_code == 200, path
        assert client.post("/Patient/Delete/p1").json()["record_id"] == "p1"

    def test_ad_hoc_role_set(self, client, login_session):
        login_session("Staff")
        assert client.get("/User").status_code == 200
        login_session("Doctor")
        assert_redirect(client.get("/User"), DENIED)

    def test_current_role_is_exposed_to_handler(self, client, login_session):
        login_session("Staff", "s1")
        body = client.get("/User/Patients").json()
        assert body["current_user_role"] == "Staff"

    def test_unrecognized_role_is_denied(self, client, login_session):
        login_session("Patient")
        assert_redirect(client.get("/User/Patients"), DENIED)
        assert client.get("/Dashboard").status_code == 200

    def test_same_request_same_outcome(self, client, login_session):
        login_session("Nurse")
        first = client.get("/Treatment")
        second = client.get("/Treatment")
        assert (first.status_code, first.headers["location"]) == (second.status_code, second.headers["location"])

    def test_bearer_token_does_not_satisfy_session_routes(self, client, make_token):
        response = client.get("/Dashboard", headers=bearer(make_token(role="Admin")))
        assert_redirect(response, LOGIN)


# =============================================================================
# Claims mode
# =============================================================================


class TestClaimsRoutes:
    def test_no_token_redirects_to_login(self, client):
        for path in ("/api/me", "/api/appointments", "/api/medicines"):
            assert_redirect(client.get(path), LOGIN)

    def test_invalid_or_expired_token_redirects_to_login(self, client, make_token):
        assert_redirect(client.get("/api/me", headers=bearer("garbage")), LOGIN)
        assert_redirect(client.get("/api/me", headers=bearer(make_token(expires_in=-60))), LOGIN)

    def test_token_without_role_redirects_to_login(self, client, make_token):
        assert_redirect(client.get("/api/me", headers=bearer(make_token(role=None))), LOGIN)

    def test_staff_appointments(self, client, make_token):
        headers = bearer(make_token(role="Staff", user_id="s1"))
        assert client.get("/api/appointments", headers=headers).json() == {"user_id": "s1", "role": "Staff"}
        assert client.post("/api/appointments", headers=headers).status_code == 200
        assert_redirect(client.delete("/api/appointments/a1", headers=headers), DENIED)

    def test_role_sets(self, client, make_token):
        nurse = bearer(make_token(role="Nurse"))
        doctor = bearer(make_token(role="Doctor"))
        staff = bearer(make_token(role="Staff"))

        assert client.get("/api/medicines", headers=nurse).status_code == 200
        assert_redirect(client.get("/api/medicines", headers=staff), DENIED)
        assert client.get("/api/prescriptions/new", headers=doctor).status_code == 200
        assert_redirect(client.get("/api/prescriptions/new", headers=nurse), DENIED)

    def test_session_does_not_satisfy_claims_routes(self, client, login_session):
        login_session("Admin")
        assert_redirect(client.get("/api/me"), LOGIN)


# =============================================================================
# Startup
# =============================================================================


class TestStartup:
    def test_broken_matrix_aborts_startup(self, monkeypatch, tmp_path):
        path = tmp_path / "matrix.yaml"
        path.write_text("Admin: []\nDoctor: []\nNurse: []\nStaff: []\n")
        monkeypatch.setenv("HMS_PERMISSION_MATRIX_FILE", str(path))

        async def start():
            async with lifespan(create_app()):
                pass

        with pytest.raises(ConfigurationDefect):
            asyncio.run(start())


# =============================================================================
# Handler isolation
# =============================================================================


class TestHandlerIsolation:
    def test_session_redirects_never_run_the_handler(self, counting_client, handler_calls):
        assert_redirect(counting_client.get("/test/session/doctors"), LOGIN)

        counting_client.post("/test/session", json={"UserRole": "Nurse", "UserId": "n1"})
        assert_redirect(counting_client.get("/test/session/doctors"), DENIED)

        assert handler_calls["count"] == 0

    def test_claims_redirects_never_run_the_handler(self, counting_client, handler_calls, make_token):
        assert_redirect(counting_client.get("/test/claims/doctors"), LOGIN)

        nurse = bearer(make_token(role="Nurse"))
        assert_redirect(counting_client.get("/test/claims/doctors", headers=nurse), DENIED)

        assert handler_calls["count"] == 0

    def test_allowed_request_runs_the_handler_once(self, counting_client, handler_calls, make_token):
        doctor = bearer(make_token(role="Doctor"))
        assert counting_client.get("/test/claims/doctors", headers=doctor).status_code == 200
        assert handler_calls["count"] == 1

    def test_handler_sees_role_and_user_id(self, counting_client):
        counting_client.post("/test/session", json={"UserRole": "Nurse", "UserId": "n7"})
        response = counting_client.get("/test/session/whoami")
        assert response.json() == {"role": "Nurse", "user_id": "n7"}

    def test_non_string_user_id_is_unresolved(self, counting_client):
        counting_client.post("/test/session", json={"UserRole": "Nurse", "UserId": 7})
        assert_redirect(counting_client.get("/test/session/whoami"), LOGIN)
