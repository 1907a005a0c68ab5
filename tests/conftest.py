"""
Shared fixtures for the authorization tests.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from hospital_authz.auth import ClaimsIdentity, CredentialContext
from hospital_authz.auth.permissions import reset_permission_matrix
from hospital_authz.config import get_settings


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Every test starts from default settings and the built-in matrix."""
    monkeypatch.delenv("HMS_PERMISSION_MATRIX_FILE", raising=False)
    get_settings.cache_clear()
    reset_permission_matrix()
    yield
    get_settings.cache_clear()
    reset_permission_matrix()


@pytest.fixture
def session_credentials():
    """Build a CredentialContext carrying session values."""
    def _make(role="Nurse", user_id="u1"):
        values = {}
        if role is not None:
            values["UserRole"] = role
        if user_id is not None:
            values["UserId"] = user_id
        return CredentialContext(session=values)
    return _make


@pytest.fixture
def claims_credentials():
    """Build a CredentialContext carrying a bearer identity."""
    def _make(role="Nurse", user_id="u1"):
        claims = {}
        if role is not None:
            claims["role"] = role
        if user_id is not None:
            claims["sub"] = user_id
        return CredentialContext(identity=ClaimsIdentity(claims=claims))
    return _make


@pytest.fixture
def make_token():
    """Mint a signed bearer token the way the login flow would."""
    def _make(role="Nurse", user_id="u1", expires_in=300, secret=None, **extra):
        settings = get_settings()
        now = datetime.now(timezone.utc)
        payload = {"iat": now, "exp": now + timedelta(seconds=expires_in), **extra}
        if role is not None:
            payload["role"] = role
        if user_id is not None:
            payload["sub"] = user_id
        return jwt.encode(
            payload,
            secret or settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
    return _make
