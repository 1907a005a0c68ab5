"""
Named interceptor variants.

Each family binds every variant to one principal resolver, so a route
protected by `session.doctor_or_admin` only ever looks at the session and
one protected by `claims.doctor_or_admin` only ever looks at the bearer
token. Both families share the same role groups and the same permission
matrix.

    @router.get("/prescriptions/new")
    async def new_prescription(
        principal: Principal = Depends(session.can_create_prescriptions),
    ):
        ...
"""

from __future__ import annotations

from hospital_authz.auth.permissions import ConfigurationDefect, Permission
from hospital_authz.auth.policies import (
    AuthenticatedRequirement,
    AuthorizationInterceptor,
    PermissionRequirement,
    Requirement,
    RoleRequirement,
)
from hospital_authz.auth.principal import (
    ClaimsPrincipalResolver,
    PrincipalResolver,
    SessionPrincipalResolver,
)
from hospital_authz.auth import roles
from hospital_authz.auth.roles import Role


class InterceptorFamily:
    """
    The standard set of interceptors for one credential source.

    Every interceptor created through a family is remembered so startup
    validation can check it against the permission matrix.
    """

    # Set in __init__ from roles.ROLE_GROUPS
    admin_only: AuthorizationInterceptor
    doctor_only: AuthorizationInterceptor
    nurse_only: AuthorizationInterceptor
    staff_only: AuthorizationInterceptor
    doctor_or_admin: AuthorizationInterceptor
    nurse_or_doctor_or_admin: AuthorizationInterceptor
    staff_or_admin: AuthorizationInterceptor
    healthcare: AuthorizationInterceptor

    def __init__(self, name: str, resolver: PrincipalResolver):
        self.name = name
        self.resolver = resolver
        self._registered: dict[str, AuthorizationInterceptor] = {}

        # Role-set variants, one per named group
        for label, allowed in roles.ROLE_GROUPS.items():
            setattr(self, label, self._roles(label, allowed))
        self.authenticated = self._register("authenticated", AuthenticatedRequirement())

        # Permission variants
        self.can_view_patients = self._permission(Permission.VIEW_PATIENTS)
        self.can_create_patients = self._permission(Permission.CREATE_PATIENTS)
        self.can_update_patients = self._permission(Permission.UPDATE_PATIENTS)
        self.can_delete_patients = self._permission(Permission.DELETE_PATIENTS)
        self.can_view_appointments = self._permission(Permission.VIEW_APPOINTMENTS)
        self.can_create_appointments = self._permission(Permission.CREATE_APPOINTMENTS)
        self.can_update_appointments = self._permission(Permission.UPDATE_APPOINTMENTS)
        self.can_delete_appointments = self._permission(Permission.DELETE_APPOINTMENTS)
        self.can_create_prescriptions = self._permission(Permission.CREATE_PRESCRIPTIONS)
        self.can_track_medication_usage = self._permission(Permission.TRACK_MEDICATION_USAGE)
        self.can_manage_system = self._permission(Permission.MANAGE_SYSTEM)

    # =========================================================================
    # Ad hoc variants
    # =========================================================================

    def require_roles(self, *allowed: Role | str) -> AuthorizationInterceptor:
        """
        Interceptor for an arbitrary role set.

        Role names must match exactly; an unknown name is a configuration
        defect and fails at registration.
        """
        if not allowed:
            raise ConfigurationDefect(f"{self.name}: require_roles() needs at least one role")

        parsed: set[Role] = set()
        for value in allowed:
            role = Role.parse(value)
            if role is None:
                raise ConfigurationDefect(f"{self.name}: unknown role {value!r}")
            parsed.add(role)

        label = "_or_".join(sorted(r.value.lower() for r in parsed))
        return self._roles(label, frozenset(parsed))

    def require_permission(self, permission: Permission | str) -> AuthorizationInterceptor:
        """Interceptor for a single permission."""
        parsed = Permission.parse(permission)
        if parsed is None:
            raise ConfigurationDefect(f"{self.name}: unknown permission {permission!r}")
        return self._permission(parsed)

    def interceptors(self) -> list[AuthorizationInterceptor]:
        """Every interceptor registered on this family."""
        return list(self._registered.values())

    # =========================================================================
    # Internal
    # =========================================================================

    def _roles(self, label: str, allowed: frozenset[Role]) -> AuthorizationInterceptor:
        return self._register(label, RoleRequirement(allowed))

    def _permission(self, permission: Permission) -> AuthorizationInterceptor:
        return self._register(f"can:{permission.value}", PermissionRequirement(permission))

    def _register(self, label: str, requirement: Requirement) -> AuthorizationInterceptor:
        # Same label, same requirement: hand back the one already registered
        if label in self._registered:
            return self._registered[label]

        interceptor = AuthorizationInterceptor(
            name=f"{self.name}.{label}",
            resolver=self.resolver,
            requirement=requirement,
        )
        self._registered[label] = interceptor
        return interceptor

    def __repr__(self) -> str:
        return f"InterceptorFamily({self.name!r}, {self.resolver!r}, {len(self._registered)} interceptors)"


# Bearer-token identity
claims = InterceptorFamily("claims", ClaimsPrincipalResolver())

# Server-side session
session = InterceptorFamily("session", SessionPrincipalResolver())


def all_families() -> list[InterceptorFamily]:
    return [claims, session]
