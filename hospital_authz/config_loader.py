"""
Permission matrix loader.

Reads a role → permission table from YAML. The file must name every
role, and every permission must be one of the known identifiers:

    Staff:
      - patients:view
      - appointments:view
    Nurse: []
    Doctor: [...]
    Admin: [...]

Anything else is a configuration defect and stops the process at startup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from hospital_authz.auth.permissions import (
    ConfigurationDefect,
    Permission,
    PermissionMatrix,
)
from hospital_authz.auth.roles import Role


def load_permission_matrix(path: Path | str) -> PermissionMatrix:
    """Load and validate a permission matrix from a YAML file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationDefect(f"Cannot read permission matrix {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationDefect(f"Invalid YAML in permission matrix {path}: {e}") from e

    return parse_permission_matrix(data, source=str(path))


def parse_permission_matrix(data: Any, source: str = "<data>") -> PermissionMatrix:
    """
    Build a PermissionMatrix from plain data.

    Collects every problem before raising so a broken file is reported
    in one go.
    """
    if not isinstance(data, dict):
        raise ConfigurationDefect(f"{source}: expected a mapping of role -> permissions")

    errors: list[str] = []
    grants: dict[Role, set[Permission]] = {}

    for raw_role, raw_perms in data.items():
        role = Role.parse(raw_role)
        if role is None:
            errors.append(f"unknown role '{raw_role}'")
            continue

        if raw_perms is None:
            raw_perms = []
        if not isinstance(raw_perms, list):
            errors.append(f"role '{role.value}': expected a list of permissions")
            continue

        perms: set[Permission] = set()
        for raw_perm in raw_perms:
            perm = Permission.parse(raw_perm)
            if perm is None:
                errors.append(f"role '{role.value}': unknown permission '{raw_perm}'")
            else:
                perms.add(perm)
        grants[role] = perms

    missing = [role.value for role in Role if role not in grants]
    if missing:
        errors.append(f"missing roles: {', '.join(missing)}")

    if errors:
        raise ConfigurationDefect(f"{source}: " + "; ".join(errors))

    return PermissionMatrix(grants)
