"""Role policy: role defaults plus forbidden (role, permission) pairs.

The built-in tables in ``roles`` form ``DEFAULT_POLICY``. A deployment may
override them from a YAML file::

    roles:
      cashier:
        permissions: [CREATE_SALE, VIEW_SALES, VIEW_CUSTOMERS]
    forbidden:
      admin: [FINALIZE_SALE]

Roles missing from ``roles`` keep their built-in defaults. A ``forbidden``
section, when present, replaces the built-in forbidden table. The top role's
defaults are always the full catalog and cannot be overridden.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

import yaml

from rxguard.core.config import get_settings
from rxguard.core.errors import ValidationError
from .permissions import ALL_PERMISSIONS, PermissionKey, parse_permission, validate_permissions
from .roles import DEFAULT_ROLES, FORBIDDEN_PERMISSIONS, Role, TOP_ROLE, parse_role


@dataclass(frozen=True, eq=False)
class RolePolicy:
    """Immutable role configuration shared by the resolver, checker and gate."""

    defaults: Mapping[Role, FrozenSet[PermissionKey]]
    forbidden: Mapping[Role, FrozenSet[PermissionKey]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        defaults = {role: frozenset(self.defaults.get(role, frozenset())) for role in Role}
        defaults[TOP_ROLE] = ALL_PERMISSIONS
        forbidden = {
            parse_role(role): frozenset(keys)
            for role, keys in self.forbidden.items()
            if keys
        }

        if forbidden.get(TOP_ROLE):
            raise ValidationError(
                f"Role {TOP_ROLE.value} always holds the full catalog and cannot have forbidden permissions",
                code="INVALID_POLICY",
            )

        for role, keys in forbidden.items():
            clash = defaults[role] & keys
            if clash:
                raise ValidationError(
                    f"Role {role.value} defaults include forbidden permissions: "
                    f"{', '.join(sorted(k.value for k in clash))}",
                    code="INVALID_POLICY",
                    details={"role": role.value, "permissions": sorted(k.value for k in clash)},
                )

        object.__setattr__(self, "defaults", MappingProxyType(defaults))
        object.__setattr__(self, "forbidden", MappingProxyType(forbidden))

    def defaults_for_role(self, role: Union[str, Role]) -> FrozenSet[PermissionKey]:
        """Default permission set for a role.

        Raises:
            ValidationError: If the role is not recognized
        """
        return self.defaults[parse_role(role)]

    def forbidden_for_role(self, role: Union[str, Role]) -> FrozenSet[PermissionKey]:
        return self.forbidden.get(parse_role(role), frozenset())

    def is_forbidden(self, role: Union[str, Role], key: Union[str, PermissionKey]) -> bool:
        return parse_permission(key) in self.forbidden_for_role(role)

    def is_default_for_role(self, role: Union[str, Role], key: Union[str, PermissionKey]) -> bool:
        return parse_permission(key) in self.defaults_for_role(role)


DEFAULT_POLICY = RolePolicy(
    defaults={role: definition["permissions"] for role, definition in DEFAULT_ROLES.items()},
    forbidden=FORBIDDEN_PERMISSIONS,
)


def _role_table(section: Any, label: str, nested: bool) -> Dict[Role, FrozenSet[PermissionKey]]:
    if not isinstance(section, dict):
        raise ValidationError(f"Policy section '{label}' must be a mapping", code="INVALID_POLICY")

    table = {}
    for role_name, value in section.items():
        role = parse_role(role_name)
        if nested:
            if not isinstance(value, dict) or "permissions" not in value:
                raise ValidationError(
                    f"Role '{role_name}' must define a 'permissions' list",
                    code="INVALID_POLICY",
                )
            value = value["permissions"]
        if not isinstance(value, list):
            raise ValidationError(
                f"Permissions for role '{role_name}' must be a list",
                code="INVALID_POLICY",
            )
        table[role] = validate_permissions(value)
    return table


def parse_policy(policy_dict: Dict[str, Any]) -> RolePolicy:
    """Build a ``RolePolicy`` from a configuration dictionary.

    Raises:
        ValidationError: On unknown roles or permissions, or a malformed layout
    """
    defaults = dict(DEFAULT_POLICY.defaults)
    forbidden = dict(DEFAULT_POLICY.forbidden)

    if policy_dict.get("roles") is not None:
        overrides = _role_table(policy_dict["roles"], "roles", nested=True)
        if TOP_ROLE in overrides:
            raise ValidationError(
                f"Defaults for role {TOP_ROLE.value} cannot be overridden",
                code="INVALID_POLICY",
            )
        defaults.update(overrides)

    if "forbidden" in policy_dict:
        forbidden = _role_table(policy_dict["forbidden"] or {}, "forbidden", nested=False)

    return RolePolicy(defaults=defaults, forbidden=forbidden)


def _expand_env_vars(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_policy(policy_path: Optional[str] = None) -> RolePolicy:
    """Load a role policy from YAML, or return the built-in one.

    Args:
        policy_path: Path to the policy file; ``None`` uses the built-in tables

    Returns:
        RolePolicy instance

    Raises:
        FileNotFoundError: If the policy file doesn't exist
        yaml.YAMLError: If the policy file is invalid YAML
        ValidationError: If the policy references unknown roles or permissions
    """
    if policy_path is None:
        return DEFAULT_POLICY

    policy_file = Path(policy_path)
    if not policy_file.exists():
        raise FileNotFoundError(f"Policy file not found: {policy_path}")

    with policy_file.open("r") as f:
        policy = yaml.safe_load(f)

    if policy is None:
        policy = {}

    if not isinstance(policy, dict):
        raise ValidationError(
            f"Policy root must be a mapping, got {type(policy).__name__}",
            code="INVALID_POLICY",
        )

    return parse_policy(_expand_env_vars(policy))


@lru_cache
def get_policy() -> RolePolicy:
    """The deployment's policy: ``Settings.policy_file`` or the built-ins.

    Shared by the permission service and the route dependencies so both
    decide from the same tables.
    """
    return load_policy(get_settings().policy_file)
