"""Bind keys returned by a backend query back onto the entities it filled."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from kindkey.backend.base import Backend, Query
from kindkey.entity import Keyed
from kindkey.key import Key


def entity_at(collection: Sequence[Any], index: int) -> Keyed:
    """Return the entity at position `index` of `collection`.

    Raises:
        TypeError: If `collection` is not a sequence (strings and bytes do not
            count) or the element does not implement `Keyed`. These are caller
            bugs, not runtime conditions.
    """

    if not isinstance(collection, Sequence) or isinstance(collection, (str, bytes, bytearray)):
        raise TypeError(f"entity_at given a non-sequence type: {type(collection).__name__}")
    item = collection[index]
    if not isinstance(item, Keyed):
        raise TypeError(
            f"entity_at found a {type(item).__name__} at index {index}, not a keyed entity"
        )
    return item


def bind_keys(collection: Sequence[Any], keys: Sequence[Key], *, start: int = 0) -> None:
    """Attach `keys[i]` to the entity at `start + i`, preserving order."""

    for i, key in enumerate(keys):
        entity_at(collection, start + i).set_key(key)


class Querier:
    """Run one query against a backend and key its results.

    `all` reads a single page of at most `query.limit` results.
    """

    def __init__(self, backend: Backend, query: Query) -> None:
        self.backend = backend
        self.query = query

    def all(self, dst: list[Any]) -> None:
        """Append every result to `dst` with its key attached."""

        start = len(dst)
        keys = self.backend.get_all(self.query, dst)
        bind_keys(dst, keys, start=start)

    def first(self, entity: Keyed) -> Key:
        """Load the first result into `entity` and attach its key.

        Raises:
            Done: If the query matched nothing.
        """

        cursor = self.backend.run(self.query)
        key = cursor.next(entity)
        entity.set_key(key)
        return key
