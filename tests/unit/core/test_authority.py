"""Tests for management authority rules."""

import itertools

import pytest

from rxguard.core.errors import AuthorizationError
from rxguard.core.rbac.authority import AuthorityChecker
from rxguard.core.rbac.permissions import PermissionKey as K
from rxguard.core.rbac.policy import parse_policy
from rxguard.core.rbac.resolver import PermissionResolver
from rxguard.core.rbac.roles import TOP_ROLE, Role, compare_roles


class TestCanManage:
    """Test can_manage across role pairs."""

    @pytest.mark.parametrize("target_role", list(Role))
    def test_top_role_manages_everyone(self, authority, make_actor, target_role):
        assert authority.can_manage(make_actor(Role.SUPER_ADMIN), make_actor(target_role))

    @pytest.mark.parametrize("manager_role", [Role.ADMIN, Role.PHARMACIST, Role.CASHIER])
    def test_nobody_else_manages_top_role(self, authority, make_actor, manager_role):
        manager = make_actor(manager_role, permissions=[K.MANAGE_PERMISSIONS])
        assert not authority.can_manage(manager, make_actor(Role.SUPER_ADMIN))

    def test_admin_manages_lower_roles(self, authority, make_actor):
        admin = make_actor(Role.ADMIN)
        assert authority.can_manage(admin, make_actor(Role.PHARMACIST))
        assert authority.can_manage(admin, make_actor(Role.CASHIER))

    def test_admin_cannot_manage_peer(self, authority, make_actor):
        assert not authority.can_manage(make_actor(Role.ADMIN), make_actor(Role.ADMIN))

    def test_admin_authority_does_not_depend_on_capability(self, authority, make_actor):
        admin = make_actor(Role.ADMIN, permissions=[K.VIEW_USERS])
        assert authority.can_manage(admin, make_actor(Role.CASHIER))

    def test_pharmacist_needs_manage_permissions(self, authority, make_actor):
        cashier = make_actor(Role.CASHIER)
        assert not authority.can_manage(make_actor(Role.PHARMACIST), cashier)

        granted = make_actor(Role.PHARMACIST, permissions=[K.VIEW_DRUGS, K.MANAGE_PERMISSIONS])
        assert authority.can_manage(granted, cashier)

    def test_capability_never_reaches_peers(self, authority, make_actor):
        manager = make_actor(Role.PHARMACIST, permissions=[K.MANAGE_PERMISSIONS])
        assert not authority.can_manage(manager, make_actor(Role.PHARMACIST))
        assert not authority.can_manage(manager, make_actor(Role.ADMIN))

    def test_capability_from_role_defaults(self, make_actor):
        policy = parse_policy({"roles": {"pharmacist": {"permissions": ["MANAGE_PERMISSIONS"]}}})
        authority = AuthorityChecker(PermissionResolver(policy))
        assert authority.can_manage(make_actor(Role.PHARMACIST), make_actor(Role.CASHIER))

    def test_inactive_top_role_still_evaluated_by_rank(self, authority, make_actor):
        manager = make_actor(Role.SUPER_ADMIN, is_active=False)
        assert authority.can_manage(manager, make_actor(Role.CASHIER))

    def test_never_peer_or_higher_unless_top(self, authority, make_actor):
        for manager_role, target_role in itertools.product(Role, Role):
            if manager_role is TOP_ROLE or compare_roles(manager_role, target_role) > 0:
                continue
            manager = make_actor(manager_role, permissions=[K.MANAGE_PERMISSIONS])
            assert not authority.can_manage(manager, make_actor(target_role)), (manager_role, target_role)


class TestRequireCanManage:
    """Test the raising variant."""

    def test_allowed(self, authority, make_actor):
        authority.require_can_manage(make_actor(Role.ADMIN), make_actor(Role.CASHIER))

    def test_denied(self, authority, make_actor):
        manager = make_actor(Role.CASHIER, id="c1")
        target = make_actor(Role.PHARMACIST, id="p1")

        with pytest.raises(AuthorizationError) as exc_info:
            authority.require_can_manage(manager, target)

        error = exc_info.value
        assert error.code == "INSUFFICIENT_AUTHORITY"
        assert error.details == {"manager_id": "c1", "target_id": "p1"}
        assert error.public_message == "Permission denied"
