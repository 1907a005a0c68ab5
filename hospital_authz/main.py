"""
Hospital Authz - installation check.

Validates the authorization configuration and prints the permission
matrix and the decision every role gets from every standard interceptor.
Exits non-zero when the configuration is broken.
"""

from __future__ import annotations

import logging
import sys

from hospital_authz.auth import (
    AuthMode,
    ConfigurationDefect,
    CredentialContext,
    ClaimsIdentity,
    Role,
    claims,
    get_permission_matrix,
    session,
    validate_configuration,
)


def _credentials_for(mode: AuthMode, role: Role) -> CredentialContext:
    user_id = f"demo_{role.value.lower()}"
    if mode is AuthMode.SESSION:
        return CredentialContext(session={"UserRole": role.value, "UserId": user_id})
    return CredentialContext(identity=ClaimsIdentity(claims={"role": role.value, "sub": user_id}))


def report() -> None:
    matrix = get_permission_matrix()

    print("=" * 60)
    print("PERMISSION MATRIX")
    print("=" * 60)
    for role in Role:
        perms = sorted(p.value for p in matrix.get_permissions(role))
        print(f"{role.value} ({len(perms)}):")
        for perm in perms:
            print(f"  • {perm}")
    print()

    for family in (session, claims):
        print("=" * 60)
        print(f"{family.name.upper()} INTERCEPTORS")
        print("=" * 60)
        roles = list(Role)
        print(f"{'':40}" + "".join(f"{r.value:>8}" for r in roles))
        for interceptor in family.interceptors():
            cells = []
            for role in roles:
                decision = interceptor.evaluate(_credentials_for(family.resolver.mode, role), matrix)
                cells.append(f"{'allow' if decision.allowed else '-':>8}")
            print(f"{interceptor.name:40}" + "".join(cells))
        print()


def main():
    """Main entry point."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        validate_configuration()
    except ConfigurationDefect as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    report()
    print("✓ Authorization configuration is valid")


if __name__ == "__main__":
    main()
