from pos_console.auth.context import (
    Capability,
    EffectiveContext,
    ImpersonationState,
    capabilities,
    has_capability,
    resolve_context,
)
from pos_console.auth.roles import PrincipalKind, Role, normalize_role, principal_kind

__all__ = [
    "Capability",
    "EffectiveContext",
    "ImpersonationState",
    "PrincipalKind",
    "Role",
    "capabilities",
    "has_capability",
    "normalize_role",
    "principal_kind",
    "resolve_context",
]
