"""
Roles and the named role groupings used by coarse role checks.

Groupings are plain sets. There is no seniority ordering: a set that
names Nurse does not admit Doctor unless Doctor is listed too.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Coarse classification of a principal."""

    ADMIN = "Admin"
    DOCTOR = "Doctor"
    NURSE = "Nurse"
    STAFF = "Staff"

    @classmethod
    def parse(cls, value: Role | str | None) -> Role | None:
        """
        Exact lookup of a role value.

        Returns None for anything that is not one of the role values,
        including differently-cased spellings ("admin").
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# =============================================================================
# Role Groupings
# =============================================================================


ADMIN_ONLY: frozenset[Role] = frozenset({Role.ADMIN})
DOCTOR_ONLY: frozenset[Role] = frozenset({Role.DOCTOR})
NURSE_ONLY: frozenset[Role] = frozenset({Role.NURSE})

DOCTOR_OR_ADMIN: frozenset[Role] = frozenset({Role.DOCTOR, Role.ADMIN})
NURSE_OR_DOCTOR_OR_ADMIN: frozenset[Role] = frozenset(
    {Role.NURSE, Role.DOCTOR, Role.ADMIN}
)
STAFF_OR_ADMIN: frozenset[Role] = frozenset({Role.STAFF, Role.ADMIN})

# Doctor, Nurse and Admin
HEALTHCARE: frozenset[Role] = frozenset({Role.DOCTOR, Role.NURSE, Role.ADMIN})

# "Staff-only" admits every clinical role as well
STAFF_ONLY: frozenset[Role] = frozenset(
    {Role.STAFF, Role.DOCTOR, Role.NURSE, Role.ADMIN}
)

# Every family builds one role-set variant per entry
ROLE_GROUPS: dict[str, frozenset[Role]] = {
    "admin_only": ADMIN_ONLY,
    "doctor_only": DOCTOR_ONLY,
    "nurse_only": NURSE_ONLY,
    "staff_only": STAFF_ONLY,
    "doctor_or_admin": DOCTOR_OR_ADMIN,
    "nurse_or_doctor_or_admin": NURSE_OR_DOCTOR_OR_ADMIN,
    "staff_or_admin": STAFF_OR_ADMIN,
    "healthcare": HEALTHCARE,
}
