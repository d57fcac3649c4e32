"""Integration tests for the SQLAlchemy actor store on in-memory SQLite."""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rxguard.core.errors import ConcurrentModificationError, NotFoundError, ValidationError
from rxguard.core.rbac.actor import Actor
from rxguard.core.rbac.permissions import PermissionKey as K
from rxguard.core.rbac.policy import DEFAULT_POLICY
from rxguard.core.rbac.roles import Role
from rxguard.db.actor_store import SqlAlchemyActorStore
from rxguard.db.base import Base
from rxguard.db.models import User
from rxguard.db.session import get_engine, get_session_factory
from rxguard.services import PermissionService


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlAlchemyActorStore(session_factory)


@pytest.fixture
def cashier(sql_store):
    return sql_store.create(Actor(id="c1", role=Role.CASHIER, name="Casey", email="casey@example.com"))


class TestSqlAlchemyActorStore:
    """Test persistence of actors and stored permission lists."""

    def test_create_and_get(self, sql_store, cashier):
        assert cashier.permissions is None
        assert cashier.version == 0

        loaded = sql_store.get_by_id("c1")
        assert loaded.role is Role.CASHIER
        assert loaded.email == "casey@example.com"
        assert not loaded.is_customized

    def test_duplicate(self, sql_store, cashier):
        with pytest.raises(ValidationError):
            sql_store.create(Actor(id="c1", role=Role.CASHIER))

    def test_missing(self, sql_store):
        with pytest.raises(NotFoundError):
            sql_store.get_by_id("ghost")

    def test_save_bumps_version(self, sql_store, cashier, session_factory):
        saved = sql_store.save(cashier.with_permissions([K.CREATE_SALE, K.REFUND_SALE]), expected_version=0)

        assert saved.version == 1
        assert saved.permissions == (K.CREATE_SALE, K.REFUND_SALE)

        with session_factory() as db:
            row = db.get(User, "c1")
            assert row.permissions == ["CREATE_SALE", "REFUND_SALE"]
            assert row.version == 1

    def test_save_empty_list(self, sql_store, cashier):
        saved = sql_store.save(cashier.with_permissions([]), expected_version=0)
        assert saved.permissions == ()
        assert saved.is_customized

    def test_uncustomized_row_holds_sql_null(self, sql_store, cashier, session_factory):
        with session_factory() as db:
            raw = db.execute(text("SELECT permissions FROM users WHERE id = 'c1'")).scalar_one()
        assert raw is None

    def test_emptied_list_is_not_role_defaults(self, sql_store, cashier, session_factory):
        service = PermissionService(sql_store, policy=DEFAULT_POLICY)
        service.set_explicit("c1", [])

        with session_factory() as db:
            assert db.get(User, "c1").permissions == []
        loaded = sql_store.get_by_id("c1")
        assert loaded.is_customized
        assert service.get_effective("c1").all == frozenset()
        assert not service.check("c1", "CREATE_SALE")

    def test_stale_version_rejected(self, sql_store, cashier):
        sql_store.save(cashier.with_permissions([K.CREATE_SALE]), expected_version=0)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            sql_store.save(cashier.with_permissions([K.VIEW_SALES]), expected_version=0)
        assert exc_info.value.details["actual_version"] == 1
        assert sql_store.get_by_id("c1").permissions == (K.CREATE_SALE,)

    def test_save_missing(self, sql_store):
        with pytest.raises(NotFoundError):
            sql_store.save(Actor(id="ghost", role=Role.CASHIER, permissions=[]), expected_version=0)

    def test_delete(self, sql_store, cashier):
        sql_store.delete("c1")
        with pytest.raises(NotFoundError):
            sql_store.get_by_id("c1")
        with pytest.raises(NotFoundError):
            sql_store.delete("c1")


class TestServiceOverSqlAlchemy:
    """Test the permission service end to end against the database."""

    def test_management_round_trip(self, sql_store, cashier):
        service = PermissionService(sql_store, policy=DEFAULT_POLICY)

        service.add("c1", ["VIEW_REPORTS"])
        service.remove("c1", ["VIEW_SALES"])
        assert service.check("c1", "VIEW_REPORTS")
        assert not service.check("c1", "VIEW_SALES")

        result = service.reset("c1")
        assert result.actor.version == 3
        assert service.get_effective("c1").all == DEFAULT_POLICY.defaults_for_role(Role.CASHIER)

    def test_forbidden_never_persisted(self, sql_store, session_factory):
        sql_store.create(Actor(id="a1", role=Role.ADMIN))
        service = PermissionService(sql_store, policy=DEFAULT_POLICY)

        service.set_explicit("a1", ["FINALIZE_SALE", "VIEW_USERS"])

        with session_factory() as db:
            assert db.get(User, "a1").permissions == ["VIEW_USERS"]


class TestStoreFromSettings:
    """Test building the store from ``DATABASE_URL``."""

    @pytest.fixture
    def configured_database(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'rxguard.db'}")
        get_engine.cache_clear()
        get_session_factory.cache_clear()
        Base.metadata.create_all(bind=get_engine())
        yield
        get_engine().dispose()
        get_engine.cache_clear()
        get_session_factory.cache_clear()

    def test_uses_configured_database(self, configured_database):
        store = SqlAlchemyActorStore.from_settings()
        assert store.session_factory is get_session_factory()
        assert str(get_engine().url).endswith("rxguard.db")

        store.create(Actor(id="p1", role=Role.PHARMACIST))
        service = PermissionService(store, policy=DEFAULT_POLICY)
        service.add("p1", ["VIEW_REPORTS"])

        assert SqlAlchemyActorStore.from_settings().get_by_id("p1").version == 1
