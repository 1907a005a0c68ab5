# =============================================================================
# Bearer Token Verification
# =============================================================================
#
# Upstream half of claims mode:
#   - decode_token() validates a JWT with the configured key
#   - BearerTokenMiddleware attaches the verified identity to request.state
#
# Tokens are minted by the login flow, not here.
#
# =============================================================================

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any

import jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from hospital_authz.auth.principal import ClaimsIdentity
from hospital_authz.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Token Validation
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


def decode_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """
    Decode and validate a JWT.

    Signature and expiry are always checked. Issuer and audience are
    checked only when configured.

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = settings or get_settings()

    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer or None,
            audience=settings.jwt_audience or None,
            leeway=settings.jwt_leeway_seconds,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")


def extract_bearer_token(authorization: str | None) -> str | None:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


def identity_from_token(token: str | None, settings: Settings | None = None) -> ClaimsIdentity | None:
    """Verified identity for a token, or None if there is no usable token."""
    if not token:
        return None
    try:
        claims = decode_token(token, settings)
    except TokenError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None
    return ClaimsIdentity(claims=MappingProxyType(claims), authentication_type="Bearer")


# =============================================================================
# Middleware
# =============================================================================

class BearerTokenMiddleware(BaseHTTPMiddleware):
    """
    Attach `request.state.identity` for every request.

    The identity is a ClaimsIdentity when the request carries a valid
    bearer token and None otherwise. Rejection is left to the
    interceptors, so public routes keep working without a token.
    """

    def __init__(self, app, settings: Settings | None = None):
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        token = extract_bearer_token(request.headers.get("Authorization"))
        request.state.identity = identity_from_token(token, self.settings)
        return await call_next(request)
