"""
Startup validation of the authorization configuration.

Checks that the permission matrix and the registered interceptors agree.
A failure here means the process must not start serving requests.
"""

from __future__ import annotations

import logging
from typing import Iterable

from hospital_authz.auth.permissions import (
    ConfigurationDefect,
    PermissionMatrix,
    get_permission_matrix,
)
from hospital_authz.auth.policies import PermissionRequirement, RoleRequirement
from hospital_authz.auth.roles import Role
from hospital_authz.auth.variants import InterceptorFamily, all_families

logger = logging.getLogger(__name__)


def find_configuration_errors(
    matrix: PermissionMatrix,
    families: Iterable[InterceptorFamily],
) -> list[str]:
    """
    List every inconsistency between the matrix and the interceptors.

    Returns an empty list when the configuration is sound.
    """
    errors: list[str] = []

    # Every role has an entry, even if it grants nothing
    for role in Role:
        if role not in matrix.roles:
            errors.append(f"Role '{role.value}' has no entry in the permission matrix")

    for family in families:
        for interceptor in family.interceptors():
            requirement = interceptor.requirement

            if isinstance(requirement, RoleRequirement):
                if not requirement.allowed_roles:
                    errors.append(f"{interceptor.name}: empty role set admits nobody")
                for role in requirement.allowed_roles:
                    if role not in matrix.roles:
                        errors.append(
                            f"{interceptor.name}: role '{role.value}' is not in the permission matrix"
                        )

            elif isinstance(requirement, PermissionRequirement):
                if not matrix.roles_with(requirement.permission):
                    errors.append(
                        f"{interceptor.name}: permission '{requirement.permission.value}' "
                        "is not granted to any role"
                    )

    return errors


def validate_configuration(
    matrix: PermissionMatrix | None = None,
    families: Iterable[InterceptorFamily] | None = None,
) -> None:
    """
    Raise ConfigurationDefect if the authorization configuration is inconsistent.

    Defaults to the process-wide matrix and the built-in families.
    """
    matrix = matrix if matrix is not None else get_permission_matrix()
    families = list(families) if families is not None else all_families()

    errors = find_configuration_errors(matrix, families)
    if errors:
        for error in errors:
            logger.error("Authorization configuration: %s", error)
        raise ConfigurationDefect(
            f"{len(errors)} authorization configuration error(s): " + "; ".join(errors)
        )

    count = sum(len(f.interceptors()) for f in families)
    logger.info("Authorization configuration valid: %d interceptors, %r", count, matrix)
