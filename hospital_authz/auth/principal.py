"""
Principal resolution - "who is making this request".

Upstream middleware leaves credentials on the request (a verified bearer
identity on request.state, session values in request.session). The
interceptor snapshots them into a read-only CredentialContext and hands it
to exactly one resolver, chosen when the interceptor was registered.

A resolver returns a Principal, or None when no usable principal exists.
"Not logged in" is never an exception.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from starlette.requests import Request

from hospital_authz.auth.roles import Role

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class AuthMode(str, Enum):
    """Which credential source a resolver reads."""

    CLAIMS = "claims"
    SESSION = "session"


# =============================================================================
# Credentials
# =============================================================================


@dataclass(frozen=True)
class ClaimsIdentity:
    """
    A bearer-token identity, as attached by BearerTokenMiddleware.

    `claims` is the decoded token payload.
    """

    claims: Mapping[str, Any] = field(default_factory=dict)
    authentication_type: str | None = "Bearer"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.authentication_type)

    def find_first(self, claim_type: str) -> Any:
        return self.claims.get(claim_type)


@dataclass(frozen=True)
class CredentialContext:
    """
    Read-only snapshot of the credentials attached to one request.

    Either part may be None: no identity means no (valid) bearer token,
    no session means session middleware is not installed.
    """

    identity: ClaimsIdentity | None = None
    session: Mapping[str, Any] | None = None

    @classmethod
    def from_request(cls, request: Request) -> CredentialContext:
        identity = getattr(request.state, "identity", None)
        session = None
        if "session" in request.scope:
            session = MappingProxyType(dict(request.session))
        return cls(identity=identity, session=session)

    @classmethod
    def empty(cls) -> CredentialContext:
        return cls()


# =============================================================================
# Principal
# =============================================================================


@dataclass(frozen=True)
class Principal:
    """
    The resolved identity for the current request.

    `role` is kept exactly as the credential carried it, so that an
    unrecognized value can be denied rather than rejected.
    """

    user_id: str
    role: str
    mode: AuthMode

    @property
    def known_role(self) -> Role | None:
        """The role as a Role member, or None when it is not recognized."""
        return Role.parse(self.role)


# =============================================================================
# Resolvers
# =============================================================================


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


class PrincipalResolver(ABC):
    """Extracts a Principal from one credential source."""

    mode: AuthMode

    @abstractmethod
    def resolve(self, credentials: CredentialContext) -> Principal | None:
        """Return the principal, or None when it cannot be resolved."""
        pass


class ClaimsPrincipalResolver(PrincipalResolver):
    """
    Reads role and user id from the bearer-token identity.

    Unresolved when the identity is absent or unauthenticated, or when
    either claim is missing or empty.
    """

    mode = AuthMode.CLAIMS

    def __init__(self, role_claim: str = "role", user_id_claim: str = "sub"):
        self.role_claim = role_claim
        self.user_id_claim = user_id_claim

    def resolve(self, credentials: CredentialContext) -> Principal | None:
        identity = credentials.identity
        if identity is None or not identity.is_authenticated:
            return None

        role = _non_empty_str(identity.find_first(self.role_claim))
        user_id = _non_empty_str(identity.find_first(self.user_id_claim))
        if role is None or user_id is None:
            logger.debug(
                "Bearer identity lacks '%s' or '%s' claim",
                self.role_claim,
                self.user_id_claim,
            )
            return None

        return Principal(user_id=user_id, role=role, mode=self.mode)

    def __repr__(self) -> str:
        return f"ClaimsPrincipalResolver(role_claim={self.role_claim!r}, user_id_claim={self.user_id_claim!r})"


class SessionPrincipalResolver(PrincipalResolver):
    """
    Reads role and user id from server-side session values.

    Unresolved when there is no session or either value is missing or empty.
    Both values are read as strings only: a login flow that stores the user
    id as an int (say `7`) gets an unresolved principal and a login
    redirect, so store `str(user.id)`.
    """

    mode = AuthMode.SESSION

    def __init__(self, role_key: str = "UserRole", user_id_key: str = "UserId"):
        self.role_key = role_key
        self.user_id_key = user_id_key

    def resolve(self, credentials: CredentialContext) -> Principal | None:
        session = credentials.session if credentials.session is not None else _EMPTY

        role = _non_empty_str(session.get(self.role_key))
        user_id = _non_empty_str(session.get(self.user_id_key))
        if role is None or user_id is None:
            return None

        return Principal(user_id=user_id, role=role, mode=self.mode)

    def __repr__(self) -> str:
        return f"SessionPrincipalResolver(role_key={self.role_key!r}, user_id_key={self.user_id_key!r})"
