"""Create/load/update/delete entities under their resolved keys.

Per-entity lifecycle: unkeyed -> keyed -> persisted | absent.

- `create` succeeds only if nothing is stored under the resolved key
  ("insert if absent").
- `load` reads stored fields into the entity in place.
- `update` and `delete` first confirm the entity exists, so a stale or
  never-assigned key cannot silently create or drop a different entity.

The existence check and the write are separate backend round trips and are not
atomic: concurrent writers to the same key race with last-write-wins results.
"""

from __future__ import annotations

from logging import getLogger
from typing import cast

from kindkey.backend.base import Backend, KeyNotFoundError, Query
from kindkey.entity import Entity
from kindkey.errors import EntityExistsError, NoSuchEntityError
from kindkey.key import Key
from kindkey.querier import Querier
from kindkey.resolver import KeyResolver

logger = getLogger(__name__)


class Datastore:
    """Entity lifecycle on top of a `Backend`.

    Args:
        backend: Storage collaborator. Its `new_key` builds every derived key.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self.resolver = KeyResolver(backend.new_key)

    def create(self, entity: Entity) -> Key:
        """Store a new entity and attach its effective key.

        Returns:
            The stored key; for auto-generated keys it carries the backend id.

        Raises:
            EntityExistsError: If an entity is already stored under the key.
        """

        key = self._resolve_key(entity)
        if self._exists(key, entity):
            raise EntityExistsError(f"Entity already exists: {key}")

        key = self.backend.put(key, entity)
        entity.set_key(key)
        logger.debug("created %s", key)
        return key

    def load(self, entity: Entity) -> None:
        """Read the stored fields of `entity` into it.

        A key is resolved and attached first if the entity has none.

        Raises:
            NoSuchEntityError: If nothing is stored under the key.
        """

        key = self._resolve_key(entity)
        try:
            self.backend.get(key, entity)
        except KeyNotFoundError as e:
            raise NoSuchEntityError(f"Entity not found: {key}") from e

    def update(self, entity: Entity) -> None:
        """Overwrite a stored entity with the current field values.

        Raises:
            NoSuchEntityError: If nothing is stored under the key.
        """

        key = self._resolve_key(entity)
        if not self._exists(key, entity):
            raise NoSuchEntityError(f"Entity not found: {key}")
        self.backend.put(key, entity)
        logger.debug("updated %s", key)

    def delete(self, entity: Entity) -> None:
        """Remove a stored entity. Its key stays attached.

        Raises:
            NoSuchEntityError: If nothing is stored under the key.
        """

        key = self._resolve_key(entity)
        if not self._exists(key, entity):
            raise NoSuchEntityError(f"Entity not found: {key}")
        self.backend.delete(key)
        logger.debug("deleted %s", key)

    def new_key_for(self, entity: Entity) -> Key:
        """Derive the key `entity`'s annotations describe, without attaching it."""

        return self.resolver.new_key_for(entity)

    def query(self, query: Query) -> Querier:
        return Querier(self.backend, query)

    def _resolve_key(self, entity: Entity) -> Key:
        self.resolver.resolve(entity)
        return cast(Key, entity.key)

    def _exists(self, key: Key, entity: Entity) -> bool:
        # Read into a copy so unsaved field values on `entity` survive the check.
        scratch = entity.model_copy(deep=True)
        try:
            self.backend.get(key, scratch)
        except KeyNotFoundError:
            return False
        return True
