"""Actor snapshot used by every RBAC computation."""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Union

from .permissions import PermissionKey, sort_permissions, validate_permissions
from .roles import Role, parse_role


@dataclass(frozen=True)
class Actor:
    """An authenticated principal: identity, role and stored custom permissions.

    ``permissions`` is the stored custom list. ``None`` means the actor was
    never customized and simply follows its role defaults; once a management
    operation runs, the stored tuple is the materialized list. ``version``
    increments on every persisted change and is used for compare-and-set by
    actor stores.
    """

    id: str
    role: Role
    permissions: Optional[tuple[PermissionKey, ...]] = None
    version: int = 0
    name: Optional[str] = None
    email: Optional[str] = None
    pharmacy_id: Optional[str] = None
    is_active: bool = field(default=True, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "role", parse_role(self.role))
        if self.permissions is not None:
            object.__setattr__(
                self, "permissions", tuple(sort_permissions(validate_permissions(self.permissions)))
            )

    @property
    def is_customized(self) -> bool:
        return self.permissions is not None

    @property
    def stored_permissions(self) -> tuple[PermissionKey, ...]:
        return self.permissions or ()

    @property
    def permission_values(self) -> Optional[list[str]]:
        if self.permissions is None:
            return None
        return [key.value for key in self.permissions]

    def with_permissions(self, permissions: Optional[Iterable[Union[str, PermissionKey]]]) -> "Actor":
        """Copy of this actor holding a different stored list (same version)."""
        return replace(self, permissions=None if permissions is None else tuple(permissions))
