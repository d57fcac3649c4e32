"""SQLAlchemy-backed actor store.

Each call runs in its own transaction. ``save`` is a single
``UPDATE ... WHERE id = :id AND version = :expected`` so the compare-and-set
is atomic in the database; a zero rowcount means the actor is gone or was
modified concurrently.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from rxguard.core.errors import ConcurrentModificationError, NotFoundError, ValidationError
from rxguard.core.rbac.actor import Actor
from rxguard.core.store import ActorStore
from rxguard.db.models import User
from rxguard.db.session import get_session_factory

logger = logging.getLogger(__name__)


def _to_actor(user: User) -> Actor:
    # Actor validation rejects rows holding unknown roles or permission keys.
    # NULL permissions follow role defaults; a stored [] grants nothing.
    return Actor(
        id=user.id,
        role=user.role,
        permissions=user.permissions,
        version=user.version,
        name=user.name,
        email=user.email,
        pharmacy_id=user.pharmacy_id,
        is_active=bool(user.is_active),
    )


class SqlAlchemyActorStore(ActorStore):
    """Actor store over the ``users`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls) -> "SqlAlchemyActorStore":
        """Store over ``Settings.database_url``."""
        return cls(get_session_factory())

    def get_by_id(self, actor_id: str) -> Actor:
        with self.session_factory() as db:
            user = db.get(User, actor_id)
            if user is None:
                raise NotFoundError(f"Actor {actor_id} not found", details={"actor_id": actor_id})
            return _to_actor(user)

    def save(self, actor: Actor, expected_version: int) -> Actor:
        stmt = (
            update(User)
            .where(User.id == actor.id, User.version == expected_version)
            .values(
                permissions=actor.permission_values,
                version=User.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        with self.session_factory.begin() as db:
            result = db.execute(stmt)
            if result.rowcount == 0:
                current = db.get(User, actor.id)
                if current is None:
                    raise NotFoundError(f"Actor {actor.id} not found", details={"actor_id": actor.id})
                logger.debug(
                    f"Version conflict on actor {actor.id}: expected {expected_version}, found {current.version}"
                )
                raise ConcurrentModificationError(
                    details={
                        "actor_id": actor.id,
                        "expected_version": expected_version,
                        "actual_version": current.version,
                    }
                )
            return _to_actor(db.get(User, actor.id))

    def create(self, actor: Actor) -> Actor:
        with self.session_factory.begin() as db:
            if db.get(User, actor.id) is not None:
                raise ValidationError(
                    f"Actor {actor.id} already exists",
                    code="DUPLICATE_ACTOR",
                    details={"actor_id": actor.id},
                )
            user = User(
                id=actor.id,
                email=actor.email,
                name=actor.name,
                pharmacy_id=actor.pharmacy_id,
                role=actor.role.value,
                permissions=None,
                version=0,
                is_active=actor.is_active,
            )
            db.add(user)
            db.flush()
            return _to_actor(user)

    def delete(self, actor_id: str) -> None:
        with self.session_factory.begin() as db:
            user = db.get(User, actor_id)
            if user is None:
                raise NotFoundError(f"Actor {actor_id} not found", details={"actor_id": actor_id})
            db.delete(user)
