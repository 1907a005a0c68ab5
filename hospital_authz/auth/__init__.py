"""
Authorization layer.

Design principles:
1. One interceptor type, parameterized by where the principal comes from
   (bearer-token claims or the server-side session)
2. Roles for coarse checks, a static permission matrix for fine ones
3. Denials redirect (login or access-denied), they never raise to callers
4. Zero boilerplate in route handlers: `Depends(session.can_view_patients)`
"""

from hospital_authz.auth.roles import Role
from hospital_authz.auth.permissions import (
    ConfigurationDefect,
    Permission,
    PermissionMatrix,
    get_permission_matrix,
    get_permissions,
    has_permission,
)
from hospital_authz.auth.principal import (
    AuthMode,
    ClaimsIdentity,
    ClaimsPrincipalResolver,
    CredentialContext,
    Principal,
    PrincipalResolver,
    SessionPrincipalResolver,
)
from hospital_authz.auth.policies import (
    CURRENT_USER_ID,
    CURRENT_USER_ROLE,
    AuthorizationDecision,
    AuthorizationInterceptor,
    AuthorizationOutcome,
    AuthorizationRedirect,
    Destination,
    install_authorization,
)
from hospital_authz.auth.variants import InterceptorFamily, claims, session
from hospital_authz.auth.validation import validate_configuration
from hospital_authz.auth.tokens import BearerTokenMiddleware, decode_token

__all__ = [
    # Main interface
    "claims",
    "session",
    "InterceptorFamily",
    "install_authorization",
    "validate_configuration",
    # Types
    "Role",
    "Permission",
    "PermissionMatrix",
    "Principal",
    "AuthMode",
    "ClaimsIdentity",
    "CredentialContext",
    "PrincipalResolver",
    "ClaimsPrincipalResolver",
    "SessionPrincipalResolver",
    "AuthorizationInterceptor",
    "AuthorizationDecision",
    "AuthorizationOutcome",
    "AuthorizationRedirect",
    "Destination",
    "ConfigurationDefect",
    "CURRENT_USER_ROLE",
    "CURRENT_USER_ID",
    # Matrix
    "get_permission_matrix",
    "has_permission",
    "get_permissions",
    # Tokens
    "BearerTokenMiddleware",
    "decode_token",
]
