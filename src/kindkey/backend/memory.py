"""In-process backend keeping entities in a dict keyed by `Key`.

Entities are stored in their JSON-mode property form (plus their uuid), so
reads always hand back independent copies. Query results follow insertion
order. Integer ids for incomplete keys come from a single counter shared by all
kinds; values already taken by explicitly keyed entities are skipped.
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from logging import getLogger
from typing import Any

from kindkey.backend.base import Done, KeyNotFoundError, Query
from kindkey.entity import Entity
from kindkey.key import Key, new_key

logger = getLogger(__name__)


@dataclass(slots=True)
class _StoredEntity:
    uuid: str
    properties: dict[str, Any]


class MemoryCursor:
    """Cursor over a snapshot of matching entities taken when the query ran."""

    def __init__(self, results: list[tuple[Key, _StoredEntity]]) -> None:
        self._results: Iterator[tuple[Key, _StoredEntity]] = iter(results)

    def next(self, entity: Entity) -> Key:
        try:
            key, stored = next(self._results)
        except StopIteration:
            raise Done() from None
        _load_into(entity, stored)
        return key


class MemoryBackend:
    """Thread-safe in-memory implementation of `kindkey.backend.base.Backend`."""

    def __init__(self) -> None:
        self._entities: dict[Key, _StoredEntity] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def new_key(
        self,
        kind: str,
        string_id: str = "",
        int_id: int = 0,
        parent: Key | None = None,
    ) -> Key:
        return new_key(kind, string_id, int_id, parent)

    def put(self, key: Key, entity: Entity) -> Key:
        stored = _StoredEntity(uuid=entity.uuid, properties=entity.to_properties())
        with self._lock:
            if key.incomplete:
                candidate = key.with_int_id(next(self._ids))
                # Explicit int ids may already occupy counter values.
                while candidate in self._entities:
                    candidate = key.with_int_id(next(self._ids))
                key = candidate
            self._entities[key] = stored
        logger.debug("put %s", key)
        return key

    def get(self, key: Key, entity: Entity) -> None:
        with self._lock:
            stored = self._entities.get(key)
        if stored is None:
            raise KeyNotFoundError(f"No entity stored under {key}")
        _load_into(entity, stored)

    def delete(self, key: Key) -> None:
        with self._lock:
            removed = self._entities.pop(key, None)
        if removed is not None:
            logger.debug("deleted %s", key)

    def run(self, query: Query) -> MemoryCursor:
        return MemoryCursor(self._select(query))

    def get_all(self, query: Query, dst: list[Any]) -> list[Key]:
        keys: list[Key] = []
        for key, stored in self._select(query):
            entity = query.entity_type.model_validate(copy.deepcopy(stored.properties))
            entity.set_uuid(stored.uuid)
            dst.append(entity)
            keys.append(key)
        return keys

    def _select(self, query: Query) -> list[tuple[Key, _StoredEntity]]:
        with self._lock:
            snapshot = list(self._entities.items())
        matched = [
            (key, stored)
            for key, stored in snapshot
            if query.matches(key, stored.properties)
        ]
        return matched[: query.limit]


def _load_into(entity: Entity, stored: _StoredEntity) -> None:
    entity.load_properties(copy.deepcopy(stored.properties))
    entity.set_uuid(stored.uuid)
