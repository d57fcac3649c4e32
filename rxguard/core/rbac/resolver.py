"""Permission resolution and stored-list management.

The resolver computes an actor's effective permission set from the role
policy and the actor's stored custom list, and computes the *new* stored list
for each management operation. It never persists anything; callers save the
returned list through an actor store.

Stored-list semantics are "merged": every mutator materializes a complete
list, ``add`` and ``remove`` starting from ``role defaults ∪ stored list``.
An actor that was never customized follows its role defaults; a customized
actor holds exactly its stored list. Revoking a role default for one actor
therefore works, and ``reset`` discards both additions and revocations.
"""

from typing import FrozenSet, Iterable, NamedTuple, Union

from rxguard.core.errors import ValidationError
from .actor import Actor
from .permissions import ALL_PERMISSIONS, PermissionKey, sort_permissions, validate_permissions
from .policy import DEFAULT_POLICY, RolePolicy
from .roles import TOP_ROLE

KeyInput = Iterable[Union[str, PermissionKey]]


class PermissionUpdate(NamedTuple):
    """Result of a mutator: the list to store and any keys the business rules removed."""
    permissions: tuple[PermissionKey, ...]
    stripped: FrozenSet[PermissionKey]


def permission_diff(
    before: Iterable[PermissionKey],
    after: Iterable[PermissionKey],
) -> tuple[list[PermissionKey], list[PermissionKey]]:
    """Return ``(added, removed)`` between two permission collections."""
    before, after = set(before), set(after)
    return sort_permissions(after - before), sort_permissions(before - after)


class PermissionResolver:
    """Computes effective permissions and stored-list updates for actors."""

    def __init__(self, policy: RolePolicy = DEFAULT_POLICY):
        self.policy = policy

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, actor: Actor) -> FrozenSet[PermissionKey]:
        """Effective permission set with forbidden keys removed.

        The top role always resolves to the full catalog.
        """
        if actor.role is TOP_ROLE:
            return ALL_PERMISSIONS

        if actor.is_customized:
            granted = frozenset(actor.permissions)
        else:
            granted = self.policy.defaults_for_role(actor.role)
        return granted - self.policy.forbidden_for_role(actor.role)

    def role_defaults(self, actor: Actor) -> FrozenSet[PermissionKey]:
        return self.policy.defaults_for_role(actor.role)

    def custom_beyond_defaults(self, actor: Actor) -> FrozenSet[PermissionKey]:
        """Stored permissions not already implied by the role defaults."""
        return frozenset(actor.stored_permissions) - self.policy.defaults_for_role(actor.role)

    def removed_from_defaults(self, actor: Actor) -> FrozenSet[PermissionKey]:
        """Role defaults this actor no longer holds."""
        if actor.role is TOP_ROLE or not actor.is_customized:
            return frozenset()
        return self.policy.defaults_for_role(actor.role) - frozenset(actor.permissions)

    def has_permission(self, actor: Actor, key: Union[str, PermissionKey]) -> bool:
        (permission,) = validate_permissions([key])
        return permission in self.resolve(actor)

    # ------------------------------------------------------------------
    # Mutators: each returns the new stored list, never saves it
    # ------------------------------------------------------------------

    def add(self, actor: Actor, keys: KeyInput) -> PermissionUpdate:
        requested = validate_permissions(keys)
        self._reject_top_role(actor, "add")
        return self._filtered(actor, self._merged(actor) | requested)

    def remove(self, actor: Actor, keys: KeyInput) -> PermissionUpdate:
        requested = validate_permissions(keys)
        self._reject_top_role(actor, "remove")
        return self._filtered(actor, self._merged(actor) - requested)

    def reset(self, actor: Actor) -> PermissionUpdate:
        return self._filtered(actor, self.policy.defaults_for_role(actor.role))

    def set_explicit(self, actor: Actor, keys: KeyInput) -> PermissionUpdate:
        requested = validate_permissions(keys)
        self._reject_top_role(actor, "set")
        return self._filtered(actor, requested)

    def _merged(self, actor: Actor) -> FrozenSet[PermissionKey]:
        return self.policy.defaults_for_role(actor.role) | frozenset(actor.stored_permissions)

    def _filtered(self, actor: Actor, keys: FrozenSet[PermissionKey]) -> PermissionUpdate:
        forbidden = self.policy.forbidden_for_role(actor.role)
        return PermissionUpdate(
            permissions=tuple(sort_permissions(keys - forbidden)),
            stripped=keys & forbidden,
        )

    @staticmethod
    def _reject_top_role(actor: Actor, operation: str) -> None:
        if actor.role is TOP_ROLE:
            raise ValidationError(
                f"Cannot {operation} permissions for role {TOP_ROLE.value}; "
                "it always holds the full catalog",
                code="IMMUTABLE_ROLE",
                details={"actor_id": actor.id, "role": actor.role.value},
            )
