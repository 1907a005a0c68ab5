"""
Permissions and the role → permission matrix.

This defines WHAT each role may do. The checking happens in policies.py.

The matrix is built once per process and never mutated afterwards. By
default it comes from DEFAULT_ROLE_PERMISSIONS below; a deployment can
point HMS_PERMISSION_MATRIX_FILE at a YAML file instead (see
hospital_authz.config_loader).
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping

from hospital_authz.auth.roles import Role

logger = logging.getLogger(__name__)


class ConfigurationDefect(Exception):
    """
    The static authorization configuration is inconsistent.

    Raised at startup (matrix loading, variant registration, validation),
    never while handling a request.
    """
    pass


class Permission(str, Enum):
    """
    Fine-grained capabilities.

    Values are stable identifiers and may appear in configuration files.
    """

    # General
    VIEW_DASHBOARD = "dashboard:view"

    # Patients
    VIEW_PATIENTS = "patients:view"
    CREATE_PATIENTS = "patients:create"
    UPDATE_PATIENTS = "patients:update"
    DELETE_PATIENTS = "patients:delete"

    # Appointments
    VIEW_APPOINTMENTS = "appointments:view"
    CREATE_APPOINTMENTS = "appointments:create"
    UPDATE_APPOINTMENTS = "appointments:update"
    DELETE_APPOINTMENTS = "appointments:delete"

    # Medical records
    VIEW_MEDICAL_RECORDS = "medical_records:view"
    CREATE_MEDICAL_RECORDS = "medical_records:create"
    UPDATE_MEDICAL_RECORDS = "medical_records:update"
    DELETE_MEDICAL_RECORDS = "medical_records:delete"

    # Prescriptions
    VIEW_PRESCRIPTIONS = "prescriptions:view"
    CREATE_PRESCRIPTIONS = "prescriptions:create"
    UPDATE_PRESCRIPTIONS = "prescriptions:update"
    DELETE_PRESCRIPTIONS = "prescriptions:delete"

    # Medication stock
    VIEW_MEDICATIONS = "medications:view"
    CREATE_MEDICATIONS = "medications:create"
    UPDATE_MEDICATIONS = "medications:update"
    DELETE_MEDICATIONS = "medications:delete"
    TRACK_MEDICATION_USAGE = "medications:track_usage"

    # Departments
    VIEW_DEPARTMENTS = "departments:view"
    CREATE_DEPARTMENTS = "departments:create"
    UPDATE_DEPARTMENTS = "departments:update"
    DELETE_DEPARTMENTS = "departments:delete"

    # Doctors
    VIEW_DOCTORS = "doctors:view"
    CREATE_DOCTORS = "doctors:create"
    UPDATE_DOCTORS = "doctors:update"
    DELETE_DOCTORS = "doctors:delete"

    # Nurses
    VIEW_NURSES = "nurses:view"
    CREATE_NURSES = "nurses:create"
    UPDATE_NURSES = "nurses:update"
    DELETE_NURSES = "nurses:delete"

    # Staff
    VIEW_STAFF = "staff:view"
    CREATE_STAFF = "staff:create"
    UPDATE_STAFF = "staff:update"
    DELETE_STAFF = "staff:delete"

    # Reports
    VIEW_REPORTS = "reports:view"
    CREATE_REPORTS = "reports:create"

    # Administration
    MANAGE_SYSTEM = "system:manage"
    VIEW_LOGS = "logs:view"
    MANAGE_ROLES = "roles:manage"

    @classmethod
    def parse(cls, value: Permission | str | None) -> Permission | None:
        """Exact lookup by value; None when the value is not a permission."""
        if isinstance(value, Permission):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# =============================================================================
# Default Matrix
# =============================================================================


DEFAULT_ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    # Registers patients and books appointments, never deletes
    Role.STAFF: {
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_PATIENTS,
        Permission.CREATE_PATIENTS,
        Permission.UPDATE_PATIENTS,
        Permission.VIEW_APPOINTMENTS,
        Permission.CREATE_APPOINTMENTS,
        Permission.UPDATE_APPOINTMENTS,
        Permission.VIEW_DEPARTMENTS,
        Permission.VIEW_DOCTORS,
    },
    # Mostly read-only, plus medication handling and record notes
    Role.NURSE: {
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_PATIENTS,
        Permission.VIEW_APPOINTMENTS,
        Permission.VIEW_MEDICAL_RECORDS,
        Permission.UPDATE_MEDICAL_RECORDS,
        Permission.VIEW_PRESCRIPTIONS,
        Permission.VIEW_MEDICATIONS,
        Permission.UPDATE_MEDICATIONS,
        Permission.TRACK_MEDICATION_USAGE,
        Permission.VIEW_DEPARTMENTS,
        Permission.VIEW_DOCTORS,
        Permission.VIEW_NURSES,
    },
    Role.DOCTOR: {
        Permission.VIEW_DASHBOARD,
        Permission.VIEW_PATIENTS,
        Permission.UPDATE_PATIENTS,
        Permission.VIEW_APPOINTMENTS,
        Permission.CREATE_APPOINTMENTS,
        Permission.UPDATE_APPOINTMENTS,
        Permission.DELETE_APPOINTMENTS,
        Permission.VIEW_MEDICAL_RECORDS,
        Permission.CREATE_MEDICAL_RECORDS,
        Permission.UPDATE_MEDICAL_RECORDS,
        Permission.DELETE_MEDICAL_RECORDS,
        Permission.VIEW_PRESCRIPTIONS,
        Permission.CREATE_PRESCRIPTIONS,
        Permission.UPDATE_PRESCRIPTIONS,
        Permission.DELETE_PRESCRIPTIONS,
        Permission.VIEW_MEDICATIONS,
        Permission.TRACK_MEDICATION_USAGE,
        Permission.VIEW_DEPARTMENTS,
        Permission.VIEW_DOCTORS,
        Permission.VIEW_NURSES,
        Permission.VIEW_REPORTS,
        Permission.CREATE_REPORTS,
    },
    Role.ADMIN: set(Permission),
}


# =============================================================================
# PermissionMatrix
# =============================================================================


class PermissionMatrix:
    """
    Read-only role → permission table.

    Safe to share between concurrent requests: the underlying mapping is a
    MappingProxyType over frozensets and nothing mutates it after
    construction.
    """

    def __init__(self, grants: Mapping[Role, Iterable[Permission]]):
        self._grants: Mapping[Role, frozenset[Permission]] = MappingProxyType(
            {Role(role): frozenset(perms) for role, perms in grants.items()}
        )

    @classmethod
    def default(cls) -> PermissionMatrix:
        return cls(DEFAULT_ROLE_PERMISSIONS)

    @property
    def roles(self) -> frozenset[Role]:
        """Roles that have an entry (possibly empty)."""
        return frozenset(self._grants)

    def has_permission(self, role: Role | str | None, permission: Permission | str | None) -> bool:
        """
        Does `role` hold `permission`?

        Total over its inputs: an unknown role or an unknown permission is
        simply False.
        """
        known_role = Role.parse(role)
        known_permission = Permission.parse(permission)
        if known_role is None or known_permission is None:
            return False
        return known_permission in self._grants.get(known_role, frozenset())

    def get_permissions(self, role: Role | str | None) -> frozenset[Permission]:
        """All permissions of a role; empty for unknown roles."""
        known_role = Role.parse(role)
        if known_role is None:
            return frozenset()
        return self._grants.get(known_role, frozenset())

    def roles_with(self, permission: Permission | str) -> frozenset[Role]:
        """Roles that hold `permission`."""
        known_permission = Permission.parse(permission)
        if known_permission is None:
            return frozenset()
        return frozenset(
            role for role, perms in self._grants.items() if known_permission in perms
        )

    def as_dict(self) -> dict[str, list[str]]:
        """Plain-data view (role value → sorted permission values)."""
        return {
            role.value: sorted(p.value for p in perms)
            for role, perms in self._grants.items()
        }

    def __repr__(self) -> str:
        sizes = ", ".join(f"{r.value}={len(p)}" for r, p in self._grants.items())
        return f"PermissionMatrix({sizes})"


# =============================================================================
# Process-wide matrix
# =============================================================================


@lru_cache
def get_permission_matrix() -> PermissionMatrix:
    """
    Get the process-wide permission matrix.

    Built on first use from the configured YAML file, or from
    DEFAULT_ROLE_PERMISSIONS when none is configured.
    """
    from hospital_authz.config import get_settings
    from hospital_authz.config_loader import load_permission_matrix

    settings = get_settings()
    if settings.permission_matrix_file:
        matrix = load_permission_matrix(settings.permission_matrix_file)
        logger.info("Loaded permission matrix from %s", settings.permission_matrix_file)
    else:
        matrix = PermissionMatrix.default()
    return matrix


def reset_permission_matrix() -> None:
    """Drop the cached matrix (useful for testing)."""
    get_permission_matrix.cache_clear()


def has_permission(role: Role | str | None, permission: Permission | str | None) -> bool:
    """Check a role against the process-wide matrix."""
    return get_permission_matrix().has_permission(role, permission)


def get_permissions(role: Role | str | None) -> frozenset[Permission]:
    """All permissions of a role in the process-wide matrix."""
    return get_permission_matrix().get_permissions(role)
