from __future__ import annotations

from enum import Enum
from typing import Final, assert_never


class Role(str, Enum):
    """Role values as the POS API serializes them on the user payload."""

    ADMIN = "ADMIN"
    STORE_ADMIN = "STORE_ADMIN"
    INVENTORY_STAFF = "INVENTORY_STAFF"
    CASHIER = "CASHIER"
    VIEWER = "VIEWER"


class PrincipalKind(str, Enum):
    """Closed set of actor variants, derived from role + super-admin flag."""

    SYSTEM_ADMIN = "system_admin"
    TENANT_ADMIN = "tenant_admin"
    STORE_ADMIN = "store_admin"
    INVENTORY_STAFF = "inventory_staff"
    CASHIER = "cashier"
    VIEWER = "viewer"


ROLE_ALIASES: Final[dict[str, Role]] = {
    "system-admin": Role.ADMIN,
    "system_admin": Role.ADMIN,
    "tenant-admin": Role.ADMIN,
    "tenant_admin": Role.ADMIN,
    "partner-admin": Role.ADMIN,
    "store-admin": Role.STORE_ADMIN,
    "inventory-staff": Role.INVENTORY_STAFF,
}


def normalize_role(role: str | Role) -> Role:
    if isinstance(role, Role):
        return role
    raw = (role or "").strip()
    if raw in ROLE_ALIASES:
        return ROLE_ALIASES[raw]
    try:
        return Role(raw.upper().replace("-", "_"))
    except ValueError:
        raise ValueError(f"Unsupported role: {role}") from None


def principal_kind(role: str | Role, is_super_admin: bool) -> PrincipalKind:
    normalized = normalize_role(role)
    if is_super_admin:
        return PrincipalKind.SYSTEM_ADMIN
    match normalized:
        case Role.ADMIN:
            return PrincipalKind.TENANT_ADMIN
        case Role.STORE_ADMIN:
            return PrincipalKind.STORE_ADMIN
        case Role.INVENTORY_STAFF:
            return PrincipalKind.INVENTORY_STAFF
        case Role.CASHIER:
            return PrincipalKind.CASHIER
        case Role.VIEWER:
            return PrincipalKind.VIEWER
        case _:
            assert_never(normalized)


def is_store_level(kind: PrincipalKind) -> bool:
    match kind:
        case PrincipalKind.STORE_ADMIN | PrincipalKind.CASHIER:
            return True
        case (
            PrincipalKind.SYSTEM_ADMIN
            | PrincipalKind.TENANT_ADMIN
            | PrincipalKind.INVENTORY_STAFF
            | PrincipalKind.VIEWER
        ):
            return False
        case _:
            assert_never(kind)


def may_hold_partner_level(kind: PrincipalKind) -> bool:
    """Only system admins ever push a partner impersonation level."""
    match kind:
        case PrincipalKind.SYSTEM_ADMIN:
            return True
        case (
            PrincipalKind.TENANT_ADMIN
            | PrincipalKind.STORE_ADMIN
            | PrincipalKind.INVENTORY_STAFF
            | PrincipalKind.CASHIER
            | PrincipalKind.VIEWER
        ):
            return False
        case _:
            assert_never(kind)


def may_hold_store_level(kind: PrincipalKind) -> bool:
    """Store impersonation belongs to tenant contexts only."""
    match kind:
        case PrincipalKind.SYSTEM_ADMIN | PrincipalKind.TENANT_ADMIN:
            return True
        case (
            PrincipalKind.STORE_ADMIN
            | PrincipalKind.INVENTORY_STAFF
            | PrincipalKind.CASHIER
            | PrincipalKind.VIEWER
        ):
            return False
        case _:
            assert_never(kind)
