"""Actor store interface and an in-memory implementation.

Stores persist each actor's role and stored permission list. ``save`` is a
compare-and-set on ``version``: it succeeds only if the stored version still
equals ``expected_version`` and bumps the version by one. This is what keeps
concurrent management operations on the same actor from losing updates.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict

from rxguard.core.errors import ConcurrentModificationError, NotFoundError, ValidationError
from rxguard.core.rbac.actor import Actor


class ActorStore(ABC):
    """Persistence collaborator for actors."""

    @abstractmethod
    def get_by_id(self, actor_id: str) -> Actor:
        """Fetch a fresh snapshot.

        Raises:
            NotFoundError: If no such actor exists
        """

    @abstractmethod
    def save(self, actor: Actor, expected_version: int) -> Actor:
        """Persist ``actor.permissions`` if the stored version is unchanged.

        Returns:
            The stored actor with its new version

        Raises:
            NotFoundError: If the actor was deleted
            ConcurrentModificationError: If the stored version moved on
        """

    @abstractmethod
    def create(self, actor: Actor) -> Actor:
        """Insert a new actor with an empty (uncustomized) permission list."""

    @abstractmethod
    def delete(self, actor_id: str) -> None:
        """Remove an actor and its stored permissions."""


class InMemoryActorStore(ActorStore):
    """Thread-safe dictionary-backed store."""

    def __init__(self):
        self._actors: Dict[str, Actor] = {}
        self._lock = threading.Lock()

    def get_by_id(self, actor_id: str) -> Actor:
        with self._lock:
            actor = self._actors.get(actor_id)
        if actor is None:
            raise NotFoundError(f"Actor {actor_id} not found", details={"actor_id": actor_id})
        return actor

    def save(self, actor: Actor, expected_version: int) -> Actor:
        with self._lock:
            current = self._actors.get(actor.id)
            if current is None:
                raise NotFoundError(f"Actor {actor.id} not found", details={"actor_id": actor.id})
            if current.version != expected_version:
                raise ConcurrentModificationError(
                    details={
                        "actor_id": actor.id,
                        "expected_version": expected_version,
                        "actual_version": current.version,
                    }
                )
            stored = replace(current, permissions=actor.permissions, version=current.version + 1)
            self._actors[actor.id] = stored
        return stored

    def create(self, actor: Actor) -> Actor:
        with self._lock:
            if actor.id in self._actors:
                raise ValidationError(
                    f"Actor {actor.id} already exists",
                    code="DUPLICATE_ACTOR",
                    details={"actor_id": actor.id},
                )
            stored = replace(actor, permissions=None, version=0)
            self._actors[actor.id] = stored
        return stored

    def delete(self, actor_id: str) -> None:
        with self._lock:
            if self._actors.pop(actor_id, None) is None:
                raise NotFoundError(f"Actor {actor_id} not found", details={"actor_id": actor_id})
