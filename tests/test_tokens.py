"""
Tests for bearer-token verification (the claims-mode credential source).
"""

import pytest

from hospital_authz.auth.tokens import (
    TokenExpiredError,
    TokenInvalidError,
    decode_token,
    extract_bearer_token,
    identity_from_token,
)
from hospital_authz.config import Settings


class TestExtractBearerToken:
    def test_bearer_header(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self):
        assert extract_bearer_token("bearer abc") == "abc"

    def test_missing_or_malformed(self):
        assert extract_bearer_token(None) is None
        assert extract_bearer_token("") is None
        assert extract_bearer_token("Bearer") is None
        assert extract_bearer_token("Bearer   ") is None
        assert extract_bearer_token("Basic dXNlcjpwYXNz") is None


class TestDecodeToken:
    def test_valid_token(self, make_token):
        claims = decode_token(make_token(role="Doctor", user_id="d1"))
        assert claims["role"] == "Doctor"
        assert claims["sub"] == "d1"

    def test_expired(self, make_token):
        with pytest.raises(TokenExpiredError):
            decode_token(make_token(expires_in=-60))

    def test_wrong_signature(self, make_token):
        with pytest.raises(TokenInvalidError):
            decode_token(make_token(secret="someone-elses-secret-key-0123456789"))

    def test_garbage(self):
        with pytest.raises(TokenInvalidError):
            decode_token("not-a-jwt")

    def test_audience_ignored_unless_configured(self, make_token):
        token = make_token(aud="other-app")
        assert decode_token(token)["aud"] == "other-app"

    def test_audience_enforced_when_configured(self, make_token):
        settings = Settings(jwt_audience="hms")
        assert decode_token(make_token(aud="hms"), settings)["sub"] == "u1"
        with pytest.raises(TokenInvalidError):
            decode_token(make_token(aud="other-app"), settings)

    def test_issuer_enforced_when_configured(self, make_token):
        settings = Settings(jwt_issuer="hms-auth")
        assert decode_token(make_token(iss="hms-auth"), settings)["iss"] == "hms-auth"
        with pytest.raises(TokenInvalidError):
            decode_token(make_token(iss="elsewhere"), settings)


class TestIdentityFromToken:
    def test_valid_token_gives_authenticated_identity(self, make_token):
        identity = identity_from_token(make_token(role="Nurse", user_id="n1"))
        assert identity.is_authenticated
        assert identity.find_first("role") == "Nurse"
        assert identity.find_first("sub") == "n1"

    def test_invalid_token_gives_none(self, make_token):
        assert identity_from_token(None) is None
        assert identity_from_token(make_token(expires_in=-60)) is None
        assert identity_from_token("not-a-jwt") is None

    def test_claims_are_read_only(self, make_token):
        identity = identity_from_token(make_token())
        with pytest.raises(TypeError):
            identity.claims["role"] = "Admin"
