"""
Authorization interceptor - the per-request gate in front of protected routes.

Usage:
    from hospital_authz.auth import variants

    @app.get("/patients")
    async def list_patients(
        principal: Principal = Depends(variants.session.can_view_patients),
    ):
        ...

Design:
- One interceptor type, parameterized by a resolver (claims or session)
  and one requirement (role set, permission, or just "authenticated")
- It runs as a FastAPI dependency, so the handler body never starts
  before the decision is made
- Denials are redirects, not errors: the interceptor raises
  AuthorizationRedirect and the handler installed by
  install_authorization() turns it into a redirect response
- On success the resolved role and user id are left on request.state
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from hospital_authz.auth.permissions import (
    Permission,
    PermissionMatrix,
    get_permission_matrix,
)
from hospital_authz.auth.principal import (
    CredentialContext,
    Principal,
    PrincipalResolver,
)
from hospital_authz.auth.roles import Role
from hospital_authz.config import Settings, get_settings

logger = logging.getLogger(__name__)


# Names of the request.state attributes set on Allow
CURRENT_USER_ROLE = "current_user_role"
CURRENT_USER_ID = "current_user_id"


# =============================================================================
# Outcomes and destinations
# =============================================================================


class AuthorizationOutcome(str, Enum):
    """The terminal decision of an authorization check."""

    ALLOW = "allow"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_ACCESS_DENIED = "redirect_to_access_denied"


class Destination(Enum):
    """Named redirect destinations, as (controller, action)."""

    LOGIN = ("Account", "Login")
    ACCESS_DENIED = ("Account", "AccessDenied")

    def __init__(self, controller: str, action: str):
        self.controller = controller
        self.action = action

    def path(self, settings: Optional[Settings] = None) -> str:
        settings = settings or get_settings()
        if self is Destination.LOGIN:
            return settings.login_path
        return settings.access_denied_path


_OUTCOME_DESTINATIONS = {
    AuthorizationOutcome.REDIRECT_TO_LOGIN: Destination.LOGIN,
    AuthorizationOutcome.REDIRECT_TO_ACCESS_DENIED: Destination.ACCESS_DENIED,
}


@dataclass(frozen=True)
class AuthorizationDecision:
    outcome: AuthorizationOutcome
    principal: Optional[Principal] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AuthorizationOutcome.ALLOW

    @property
    def destination(self) -> Optional[Destination]:
        return _OUTCOME_DESTINATIONS.get(self.outcome)


class AuthorizationRedirect(Exception):
    """
    Raised by an interceptor to short-circuit a request.

    Only the handler registered by install_authorization() catches this;
    it is control flow, not an error.
    """

    def __init__(self, destination: Destination):
        super().__init__(f"{destination.controller}/{destination.action}")
        self.destination = destination


# =============================================================================
# Requirements
# =============================================================================


@dataclass(frozen=True)
class RoleRequirement:
    """Principal's role must be one of `allowed_roles` (exact match)."""

    allowed_roles: frozenset[Role]

    def is_satisfied(self, principal: Principal, matrix: PermissionMatrix) -> bool:
        return principal.known_role in self.allowed_roles

    def describe(self) -> str:
        return "roles " + ", ".join(sorted(r.value for r in self.allowed_roles))


@dataclass(frozen=True)
class PermissionRequirement:
    """Principal's role must hold `permission` in the matrix."""

    permission: Permission

    def is_satisfied(self, principal: Principal, matrix: PermissionMatrix) -> bool:
        return matrix.has_permission(principal.role, self.permission)

    def describe(self) -> str:
        return f"permission {self.permission.value}"


@dataclass(frozen=True)
class AuthenticatedRequirement:
    """Any resolved principal will do."""

    def is_satisfied(self, principal: Principal, matrix: PermissionMatrix) -> bool:
        return True

    def describe(self) -> str:
        return "authentication"


Requirement = Union[RoleRequirement, PermissionRequirement, AuthenticatedRequirement]


# =============================================================================
# AuthorizationInterceptor
# =============================================================================


@dataclass(frozen=True)
class AuthorizationInterceptor:
    """
    A configured gate: one resolver, one requirement.

    Instances are immutable and shared by every request that passes
    through them. `evaluate()` is the pure decision; calling the instance
    (as FastAPI does with Depends) applies it to a live request.
    """

    name: str
    resolver: PrincipalResolver
    requirement: Requirement

    def evaluate(
        self,
        credentials: CredentialContext,
        matrix: Optional[PermissionMatrix] = None,
    ) -> AuthorizationDecision:
        """
        Decide Allow / login / access-denied for the given credentials.

        Same credentials in, same decision out.
        """
        principal = self.resolver.resolve(credentials)
        if principal is None:
            logger.debug("%s: no %s principal, redirecting to login", self.name, self.resolver.mode.value)
            return AuthorizationDecision(AuthorizationOutcome.REDIRECT_TO_LOGIN)

        if matrix is None:
            matrix = get_permission_matrix()
        if not self.requirement.is_satisfied(principal, matrix):
            logger.info(
                "%s: user %s with role %r denied (requires %s)",
                self.name,
                principal.user_id,
                principal.role,
                self.requirement.describe(),
            )
            return AuthorizationDecision(AuthorizationOutcome.REDIRECT_TO_ACCESS_DENIED, principal)

        return AuthorizationDecision(AuthorizationOutcome.ALLOW, principal)

    async def __call__(self, request: Request) -> Principal:
        decision = self.evaluate(CredentialContext.from_request(request))
        if not decision.allowed:
            raise AuthorizationRedirect(decision.destination)

        principal = decision.principal
        setattr(request.state, CURRENT_USER_ROLE, principal.role)
        setattr(request.state, CURRENT_USER_ID, principal.user_id)
        return principal


# =============================================================================
# App wiring
# =============================================================================


async def authorization_redirect_handler(
    request: Request,
    exc: AuthorizationRedirect,
) -> RedirectResponse:
    """Turn an AuthorizationRedirect into the configured redirect response."""
    settings = get_settings()
    return RedirectResponse(
        url=exc.destination.path(settings),
        status_code=settings.redirect_status_code,
    )


def install_authorization(app: FastAPI) -> None:
    """Register the redirect handler for authorization denials."""
    app.add_exception_handler(AuthorizationRedirect, authorization_redirect_handler)
