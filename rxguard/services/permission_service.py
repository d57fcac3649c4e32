"""Permission service: the in-process API consumed by the rest of the system.

Provides catalog lookups, effective-permission reports, inline checks and the
four management operations (add, remove, reset, set_explicit). Every
management operation re-reads the target, recomputes its stored list and
saves it with compare-and-set, retrying on version conflicts, so concurrent
changes to the same actor are never lost.

The service does not write audit records. Each management operation returns
a ``MutationResult`` with before/after effective sets that callers can hand to
their audit pipeline.
"""

import logging
from typing import Callable, FrozenSet, Iterable, List, NamedTuple, Optional, Union

from rxguard.core.config import get_settings
from rxguard.core.errors import AuthenticationError, ConcurrentModificationError, NotFoundError
from rxguard.core.rbac.actor import Actor
from rxguard.core.rbac.authority import AuthorityChecker
from rxguard.core.rbac.gate import EnforcementGate, Requirement, RequirementMode
from rxguard.core.rbac.permissions import (
    PermissionKey,
    describe,
    list_categories,
    sort_permissions,
    validate_permissions,
)
from rxguard.core.rbac.policy import RolePolicy, get_policy
from rxguard.core.rbac.resolver import PermissionResolver, PermissionUpdate, permission_diff
from rxguard.core.rbac.roles import Role, parse_role
from rxguard.core.store import ActorStore

logger = logging.getLogger(__name__)

KeyInput = Iterable[Union[str, PermissionKey]]


def _values(keys: Iterable[PermissionKey]) -> List[str]:
    return [key.value for key in sort_permissions(keys)]


class EffectivePermissions(NamedTuple):
    """Effective permissions of one actor, split by origin."""
    actor: Actor
    all: FrozenSet[PermissionKey]
    role_defaults: FrozenSet[PermissionKey]
    custom: FrozenSet[PermissionKey]
    removed: FrozenSet[PermissionKey]

    def to_dict(self) -> dict:
        return {
            "user": {
                "id": self.actor.id,
                "name": self.actor.name,
                "email": self.actor.email,
                "role": self.actor.role.value,
            },
            "permissions": {
                "all": [
                    {
                        "key": key.value,
                        "name": key.value,
                        "description": describe(key),
                        "source": "role" if key in self.role_defaults else "custom",
                    }
                    for key in sort_permissions(self.all)
                ],
                "role_defaults": _values(self.role_defaults),
                "custom": _values(self.custom),
                "removed": _values(self.removed),
            },
        }


class MutationResult(NamedTuple):
    """Outcome of a management operation, shaped for audit snapshots."""
    actor: Actor
    operation: str
    before: FrozenSet[PermissionKey]
    after: FrozenSet[PermissionKey]
    added: List[PermissionKey]
    removed: List[PermissionKey]
    stripped: FrozenSet[PermissionKey]

    def to_audit_dict(self) -> dict:
        return {
            "actor_id": self.actor.id,
            "operation": self.operation,
            "version": self.actor.version,
            "before": _values(self.before),
            "after": _values(self.after),
            "added": [key.value for key in self.added],
            "removed": [key.value for key in self.removed],
            "stripped": _values(self.stripped),
        }


class PermissionService:
    """
    High-level service for permission queries and management.

    Handles:
    - Catalog and role-default lookups
    - Effective permission reports
    - Inline capability checks through the enforcement gate
    - Management operations with compare-and-set persistence
    """

    def __init__(
        self,
        store: ActorStore,
        policy: Optional[RolePolicy] = None,
        *,
        max_retries: Optional[int] = None,
    ):
        """
        Initialize the permission service.

        Args:
            store: Actor persistence collaborator
            policy: Role policy; defaults to the configured policy file or built-ins
            max_retries: Compare-and-set retries per management operation
        """
        settings = get_settings()
        self.store = store
        self.policy = policy or get_policy()
        self.resolver = PermissionResolver(self.policy)
        self.authority = AuthorityChecker(self.resolver)
        self.gate = EnforcementGate(self.resolver)
        self.max_retries = settings.max_update_retries if max_retries is None else max_retries

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_catalog(self) -> List[dict]:
        """All permissions grouped by category."""
        return [
            {
                "category_key": category.key,
                "name": category.name,
                "description": category.description,
                "icon": category.icon,
                "permissions": [
                    {"key": key.value, "name": key.value, "description": describe(key)}
                    for key in category.permissions
                ],
            }
            for category in list_categories()
        ]

    def describe(self, key: Union[str, PermissionKey]) -> str:
        return describe(key)

    def get_role_defaults(self, role: Union[str, Role]) -> List[str]:
        return _values(self.policy.defaults_for_role(parse_role(role)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_effective(self, actor_id: str, *, viewer: Optional[Actor] = None) -> EffectivePermissions:
        """Permission report for one actor.

        When ``viewer`` is given and is not the actor itself, the viewer must
        be allowed to manage the actor; otherwise ``AuthorizationError``.
        """
        actor = self.store.get_by_id(actor_id)
        if viewer is not None and viewer.id != actor.id:
            self.authority.require_can_manage(viewer, actor)
        return EffectivePermissions(
            actor=actor,
            all=self.resolver.resolve(actor),
            role_defaults=self.resolver.role_defaults(actor),
            custom=self.resolver.custom_beyond_defaults(actor),
            removed=self.resolver.removed_from_defaults(actor),
        )

    def check(
        self,
        actor_id: str,
        keys: Union[str, PermissionKey, KeyInput],
        mode: Union[str, RequirementMode] = RequirementMode.SINGLE,
    ) -> bool:
        """Inline capability check for the calling actor.

        Raises:
            ValidationError: If the requirement is empty or names unknown keys
            AuthenticationError: If the calling actor cannot be resolved
        """
        requirement = Requirement.build(keys, mode)
        try:
            actor = self.store.get_by_id(actor_id)
        except NotFoundError:
            raise AuthenticationError(details={"actor_id": actor_id}) from None
        return bool(self.gate.check(actor, requirement))

    def can_manage(self, manager_id: str, target_id: str) -> bool:
        manager = self.store.get_by_id(manager_id)
        target = self.store.get_by_id(target_id)
        return self.authority.can_manage(manager, target)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_actor(self, actor: Actor) -> Actor:
        """Register an actor; its stored permission list starts empty."""
        created = self.store.create(actor)
        logger.info(f"Created actor {created.id} with role {created.role.value}")
        return created

    def delete_actor(self, actor_id: str) -> None:
        self.store.delete(actor_id)
        logger.info(f"Deleted actor {actor_id}")

    # ------------------------------------------------------------------
    # Management operations
    # ------------------------------------------------------------------

    def add(self, actor_id: str, keys: KeyInput, *, manager: Optional[Actor] = None) -> MutationResult:
        requested = validate_permissions(keys)
        return self._mutate(actor_id, "add", lambda actor: self.resolver.add(actor, requested), manager)

    def remove(self, actor_id: str, keys: KeyInput, *, manager: Optional[Actor] = None) -> MutationResult:
        requested = validate_permissions(keys)
        return self._mutate(actor_id, "remove", lambda actor: self.resolver.remove(actor, requested), manager)

    def reset(self, actor_id: str, *, manager: Optional[Actor] = None) -> MutationResult:
        return self._mutate(actor_id, "reset", self.resolver.reset, manager)

    def set_explicit(self, actor_id: str, keys: KeyInput, *, manager: Optional[Actor] = None) -> MutationResult:
        requested = validate_permissions(keys)
        return self._mutate(
            actor_id, "set_explicit", lambda actor: self.resolver.set_explicit(actor, requested), manager
        )

    def _mutate(
        self,
        actor_id: str,
        operation: str,
        compute: Callable[[Actor], PermissionUpdate],
        manager: Optional[Actor],
    ) -> MutationResult:
        """Fresh read, recompute, compare-and-set save; retry on conflict.

        When ``manager`` is given its authority over the target is enforced
        against every fresh read.
        """
        for attempt in range(self.max_retries + 1):
            actor = self.store.get_by_id(actor_id)
            if manager is not None:
                self.authority.require_can_manage(manager, actor)

            update = compute(actor)
            before = self.resolver.resolve(actor)

            try:
                saved = self.store.save(actor.with_permissions(update.permissions), actor.version)
            except ConcurrentModificationError:
                logger.warning(
                    f"Concurrent update on actor {actor_id} during {operation} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                continue

            after = self.resolver.resolve(saved)
            added, removed = permission_diff(before, after)

            if update.stripped:
                logger.info(
                    f"Stripped forbidden permissions {_values(update.stripped)} "
                    f"from actor {actor_id} ({saved.role.value})"
                )
            logger.info(
                f"{operation} on actor {actor_id}: +{len(added)} -{len(removed)} "
                f"(version {saved.version})"
            )

            return MutationResult(
                actor=saved,
                operation=operation,
                before=before,
                after=after,
                added=added,
                removed=removed,
                stripped=update.stripped,
            )

        raise ConcurrentModificationError(
            f"Actor {actor_id} kept changing during {operation}; gave up after {self.max_retries + 1} attempts",
            details={"actor_id": actor_id, "operation": operation},
        )
