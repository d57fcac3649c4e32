"""Services for RxGuard."""

from rxguard.services.permission_service import EffectivePermissions, MutationResult, PermissionService

__all__ = [
    "PermissionService",
    "EffectivePermissions",
    "MutationResult",
]
