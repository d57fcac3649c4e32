"""Enforcement gate: the single boundary check before a guarded operation.

Each call is an independent, synchronous decision over the actor snapshot it
is given. The gate does not log, mutate or notify; callers own any audit
trail. Requirements are validated when built, so an unknown key fails closed
before anything is evaluated.
"""

import collections.abc
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from rxguard.core.errors import AuthenticationError, AuthorizationError, RBACError, ValidationError
from .actor import Actor
from .permissions import PermissionKey, parse_permission, sort_permissions, validate_permissions
from .resolver import PermissionResolver


class RequirementMode(str, Enum):
    """How the keys of a requirement combine."""

    SINGLE = "single"
    ANY = "any"
    ALL = "all"


@dataclass(frozen=True)
class Requirement:
    """A permission predicate: one key, any of several, or all of several."""

    mode: RequirementMode
    keys: tuple[PermissionKey, ...]

    def __post_init__(self):
        try:
            mode = RequirementMode(self.mode)
        except ValueError:
            raise ValidationError(
                f"Unknown requirement mode: {self.mode!r}",
                code="INVALID_REQUIREMENT",
            ) from None

        if isinstance(self.keys, (str, PermissionKey)) or not isinstance(self.keys, collections.abc.Iterable):
            raise ValidationError("Requirement keys must be a sequence", code="INVALID_REQUIREMENT")
        keys = tuple(sort_permissions(validate_permissions(self.keys)))
        if not keys:
            raise ValidationError("Requirement must name at least one permission", code="INVALID_REQUIREMENT")
        if mode is RequirementMode.SINGLE and len(keys) != 1:
            raise ValidationError(
                "A single requirement names exactly one permission",
                code="INVALID_REQUIREMENT",
            )

        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "keys", keys)

    @classmethod
    def single(cls, key: Union[str, PermissionKey]) -> "Requirement":
        return cls(RequirementMode.SINGLE, (parse_permission(key),))

    @classmethod
    def any_of(cls, *keys: Union[str, PermissionKey]) -> "Requirement":
        return cls(RequirementMode.ANY, keys)

    @classmethod
    def all_of(cls, *keys: Union[str, PermissionKey]) -> "Requirement":
        return cls(RequirementMode.ALL, keys)

    @classmethod
    def build(
        cls,
        keys: Union[str, PermissionKey, Iterable[Union[str, PermissionKey]]],
        mode: Union[str, RequirementMode] = RequirementMode.SINGLE,
    ) -> "Requirement":
        """Build from loose caller input such as ``("VIEW_SALES", "single")``."""
        if isinstance(keys, (str, PermissionKey)):
            keys = (keys,)
        elif not isinstance(keys, collections.abc.Iterable):
            raise ValidationError(
                f"Requirement keys must be a key or a sequence of keys, got {type(keys).__name__}",
                code="INVALID_REQUIREMENT",
            )
        return cls(mode, tuple(keys))

    def unmet(self, granted: FrozenSet[PermissionKey]) -> FrozenSet[PermissionKey]:
        """Keys that keep this requirement from being satisfied by ``granted``."""
        if self.mode is RequirementMode.ANY:
            return frozenset() if granted.intersection(self.keys) else frozenset(self.keys)
        return frozenset(self.keys) - granted

    def __str__(self) -> str:
        names = ", ".join(key.value for key in self.keys)
        if self.mode is RequirementMode.SINGLE:
            return names
        return f"{self.mode.value} of [{names}]"


@dataclass(frozen=True)
class Decision:
    """Outcome of a gate check. Truthy only when allowed."""

    allowed: bool
    requirement: Requirement
    missing: FrozenSet[PermissionKey] = field(default_factory=frozenset)
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls, requirement: Requirement) -> "Decision":
        return cls(True, requirement)

    @classmethod
    def deny(
        cls,
        requirement: Requirement,
        missing: Iterable[PermissionKey],
        reason: str,
    ) -> "Decision":
        return cls(False, requirement, frozenset(missing), reason)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "requirement": str(self.requirement),
            "missing": [key.value for key in sort_permissions(self.missing)],
            "reason": self.reason,
        }


class EnforcementGate:
    """Evaluates requirements against an actor's resolved permissions."""

    def __init__(self, resolver: Optional[PermissionResolver] = None):
        self.resolver = resolver or PermissionResolver()

    def check(self, actor: Optional[Actor], requirement: Requirement) -> Decision:
        """Return Allow or Deny for ``actor`` against ``requirement``.

        Raises:
            AuthenticationError: If there is no actor
            ValidationError: If ``requirement`` is not a ``Requirement``
        """
        if not isinstance(requirement, Requirement):
            raise ValidationError("Invalid requirement expression", code="INVALID_REQUIREMENT")
        if actor is None:
            raise AuthenticationError()

        if not actor.is_active:
            return Decision.deny(requirement, requirement.keys, "Actor is inactive")

        try:
            granted = self.resolver.resolve(actor)
        except RBACError as exc:
            return Decision.deny(requirement, requirement.keys, exc.message)

        missing = requirement.unmet(granted)
        if missing:
            return Decision.deny(requirement, missing, f"Missing permission: {requirement}")
        return Decision.allow(requirement)

    def enforce(self, actor: Optional[Actor], requirement: Requirement) -> Decision:
        """Like ``check`` but raises ``AuthorizationError`` on Deny."""
        decision = self.check(actor, requirement)
        if not decision:
            raise AuthorizationError(
                decision.reason,
                details={
                    "actor_id": actor.id,
                    "requirement": str(requirement),
                    "missing": [key.value for key in sort_permissions(decision.missing)],
                },
            )
        return decision
