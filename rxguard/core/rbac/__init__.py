"""RBAC (Role-Based Access Control) module for RxGuard.

This module defines the permission catalog, role policy, resolver, authority
rules and the enforcement gate.
"""

from .permissions import PermissionKey, PermissionCategory, ALL_PERMISSIONS, describe, list_categories
from .roles import Role, TOP_ROLE, SECOND_TIER_ROLE, compare_roles
from .policy import RolePolicy, DEFAULT_POLICY, load_policy
from .actor import Actor
from .resolver import PermissionResolver, PermissionUpdate, permission_diff
from .authority import AuthorityChecker
from .gate import EnforcementGate, Requirement, RequirementMode, Decision

__all__ = [
    "PermissionKey",
    "PermissionCategory",
    "ALL_PERMISSIONS",
    "describe",
    "list_categories",
    "Role",
    "TOP_ROLE",
    "SECOND_TIER_ROLE",
    "compare_roles",
    "RolePolicy",
    "DEFAULT_POLICY",
    "load_policy",
    "Actor",
    "PermissionResolver",
    "PermissionUpdate",
    "permission_diff",
    "AuthorityChecker",
    "EnforcementGate",
    "Requirement",
    "RequirementMode",
    "Decision",
]
