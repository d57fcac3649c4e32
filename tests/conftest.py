"""Pytest configuration and shared fixtures."""

from uuid import uuid4

import pytest

from rxguard.core.config import get_settings
from rxguard.core.rbac.policy import get_policy
from rxguard.core.rbac import (
    DEFAULT_POLICY,
    Actor,
    AuthorityChecker,
    EnforcementGate,
    PermissionResolver,
    Role,
)
from rxguard.core.store import InMemoryActorStore
from rxguard.services import PermissionService


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings and the configured policy are cached per process; isolate tests that patch the environment."""
    get_settings.cache_clear()
    get_policy.cache_clear()
    yield
    get_settings.cache_clear()
    get_policy.cache_clear()


@pytest.fixture
def make_actor():
    """Factory for actor snapshots with unique ids."""
    def _make(role=Role.CASHIER, **kwargs):
        kwargs.setdefault("id", f"{role}-{uuid4().hex[:8]}")
        return Actor(role=role, **kwargs)
    return _make


@pytest.fixture
def resolver():
    return PermissionResolver(DEFAULT_POLICY)


@pytest.fixture
def authority(resolver):
    return AuthorityChecker(resolver)


@pytest.fixture
def gate(resolver):
    return EnforcementGate(resolver)


@pytest.fixture
def store():
    return InMemoryActorStore()


@pytest.fixture
def service(store):
    return PermissionService(store, policy=DEFAULT_POLICY, max_retries=3)


@pytest.fixture
def staff(service, make_actor):
    """One stored actor per role, keyed by role value."""
    return {
        role.value: service.create_actor(make_actor(role, id=role.value, name=role.value.title()))
        for role in Role
    }
