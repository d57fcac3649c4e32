"""Authority rules: who may change whose stored permissions."""

from typing import Optional

from rxguard.core.errors import AuthorizationError
from .actor import Actor
from .permissions import PermissionKey
from .resolver import PermissionResolver
from .roles import SECOND_TIER_ROLE, TOP_ROLE, outranks


class AuthorityChecker:
    """Decides whether a manager may alter a target's permissions.

    Rules, first match wins:
    1. A top-role manager manages everyone, peers included.
    2. Nobody else manages a top-role target.
    3. A second-tier manager manages strictly lower roles.
    4. Any other manager needs MANAGE_PERMISSIONS in its resolved set, and
       still only over strictly lower roles.
    """

    def __init__(self, resolver: Optional[PermissionResolver] = None):
        self.resolver = resolver or PermissionResolver()

    def can_manage(self, manager: Actor, target: Actor) -> bool:
        if manager.role is TOP_ROLE:
            return True

        if target.role is TOP_ROLE:
            return False

        if not outranks(manager.role, target.role):
            return False

        if manager.role is SECOND_TIER_ROLE:
            return True

        return PermissionKey.MANAGE_PERMISSIONS in self.resolver.resolve(manager)

    def require_can_manage(self, manager: Actor, target: Actor) -> None:
        """Raise ``AuthorizationError`` unless ``manager`` may manage ``target``."""
        if not self.can_manage(manager, target):
            raise AuthorizationError(
                f"Actor {manager.id} ({manager.role.value}) cannot manage "
                f"permissions of actor {target.id} ({target.role.value})",
                code="INSUFFICIENT_AUTHORITY",
                details={"manager_id": manager.id, "target_id": target.id},
            )
