"""Tests for role policy construction and YAML loading."""

import pytest
import yaml

from rxguard.core.errors import ValidationError
from rxguard.core.rbac.permissions import ALL_PERMISSIONS, PermissionKey as K
from rxguard.core.rbac.policy import DEFAULT_POLICY, RolePolicy, load_policy, parse_policy
from rxguard.core.rbac.roles import CASHIER_PERMISSIONS, Role


class TestRolePolicy:
    """Test RolePolicy invariants."""

    def test_default_policy(self):
        assert DEFAULT_POLICY.defaults_for_role("cashier") == CASHIER_PERMISSIONS
        assert DEFAULT_POLICY.forbidden_for_role(Role.ADMIN) == {K.FINALIZE_SALE}
        assert DEFAULT_POLICY.forbidden_for_role(Role.CASHIER) == frozenset()

    def test_top_role_always_full_catalog(self):
        policy = RolePolicy(defaults={Role.SUPER_ADMIN: frozenset([K.VIEW_SALES])})
        assert policy.defaults_for_role(Role.SUPER_ADMIN) == ALL_PERMISSIONS

    def test_missing_roles_get_empty_defaults(self):
        policy = RolePolicy(defaults={})
        assert policy.defaults_for_role(Role.PHARMACIST) == frozenset()

    def test_top_role_cannot_have_forbidden(self):
        with pytest.raises(ValidationError) as exc_info:
            RolePolicy(defaults={}, forbidden={Role.SUPER_ADMIN: [K.FINALIZE_SALE]})
        assert exc_info.value.code == "INVALID_POLICY"

    def test_defaults_cannot_include_forbidden(self):
        with pytest.raises(ValidationError):
            RolePolicy(
                defaults={Role.ADMIN: frozenset([K.FINALIZE_SALE])},
                forbidden={Role.ADMIN: frozenset([K.FINALIZE_SALE])},
            )

    def test_is_forbidden_and_is_default(self):
        assert DEFAULT_POLICY.is_forbidden("admin", "FINALIZE_SALE")
        assert not DEFAULT_POLICY.is_forbidden("pharmacist", "FINALIZE_SALE")
        assert DEFAULT_POLICY.is_default_for_role("pharmacist", "FINALIZE_SALE")
        assert not DEFAULT_POLICY.is_default_for_role("cashier", "FINALIZE_SALE")

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_POLICY.defaults[Role.CASHIER] = frozenset()


class TestParsePolicy:
    """Test policy dictionaries."""

    def test_role_override(self):
        policy = parse_policy({"roles": {"cashier": {"permissions": ["CREATE_SALE", "VIEW_SALES"]}}})
        assert policy.defaults_for_role(Role.CASHIER) == {K.CREATE_SALE, K.VIEW_SALES}
        assert policy.defaults_for_role(Role.ADMIN) == DEFAULT_POLICY.defaults_for_role(Role.ADMIN)
        assert policy.forbidden_for_role(Role.ADMIN) == {K.FINALIZE_SALE}

    def test_forbidden_section_replaces_builtin(self):
        policy = parse_policy({"forbidden": {"pharmacist": ["DELETE_DRUG"]}})
        assert policy.forbidden_for_role(Role.PHARMACIST) == {K.DELETE_DRUG}
        assert policy.forbidden_for_role(Role.ADMIN) == frozenset()

    def test_empty_forbidden_section(self):
        policy = parse_policy({"forbidden": None})
        assert policy.forbidden_for_role(Role.ADMIN) == frozenset()

    def test_top_role_override_rejected(self):
        with pytest.raises(ValidationError):
            parse_policy({"roles": {"super_admin": {"permissions": ["VIEW_SALES"]}}})

    def test_unknown_permission_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_policy({"roles": {"cashier": {"permissions": ["TELEPORT"]}}})
        assert exc_info.value.code == "UNKNOWN_PERMISSION"

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            parse_policy({"roles": {"janitor": {"permissions": []}}})

    def test_malformed_role_entry(self):
        with pytest.raises(ValidationError):
            parse_policy({"roles": {"cashier": ["CREATE_SALE"]}})
        with pytest.raises(ValidationError):
            parse_policy({"roles": {"cashier": {"permissions": "CREATE_SALE"}}})

    def test_override_clashing_with_forbidden(self):
        with pytest.raises(ValidationError):
            parse_policy({"roles": {"admin": {"permissions": ["FINALIZE_SALE"]}}})


class TestLoadPolicy:
    """Test loading policies from YAML files."""

    def test_none_returns_default(self):
        assert load_policy(None) is DEFAULT_POLICY

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(yaml.safe_dump({
            "roles": {"pharmacist": {"permissions": ["VIEW_DRUGS", "FINALIZE_SALE"]}},
        }))

        policy = load_policy(str(path))
        assert policy.defaults_for_role(Role.PHARMACIST) == {K.VIEW_DRUGS, K.FINALIZE_SALE}

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CASHIER_EXTRA", "VOID_SALE")
        path = tmp_path / "policy.yaml"
        path.write_text(
            "roles:\n"
            "  cashier:\n"
            "    permissions:\n"
            "      - CREATE_SALE\n"
            "      - \"${CASHIER_EXTRA}\"\n"
        )

        policy = load_policy(str(path))
        assert policy.defaults_for_role(Role.CASHIER) == {K.CREATE_SALE, K.VOID_SALE}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("")
        policy = load_policy(str(path))
        assert policy.defaults_for_role(Role.CASHIER) == CASHIER_PERMISSIONS

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_policy(str(tmp_path / "nope.yaml"))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("- CREATE_SALE\n")
        with pytest.raises(ValidationError):
            load_policy(str(path))
