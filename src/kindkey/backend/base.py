"""Structural interface for key-value backends consumed by `kindkey`.

The datastore and querier only talk to storage through `Backend` and `Cursor`.
A backend owns persistence, key id assignment and query execution; `kindkey`
never builds predicates itself, it only passes a `Query` through and consumes
the returned keys.

Design notes / invariants:
- `put()` returns the effective key. For an incomplete key it is a copy with a
  backend-assigned integer id.
- `get()` populates the given entity in place and raises `KeyNotFoundError` when
  nothing is stored under the key. Incomplete keys never address anything.
- `delete()` of a missing key is a no-op.
- Query results are capped at `MAX_QUERY_RESULTS` (a single bounded page).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pydantic import TypeAdapter

from kindkey.entity import Entity
from kindkey.key import Key
from kindkey.registry import descriptor_for

MAX_QUERY_RESULTS = 1000


class KeyNotFoundError(LookupError):
    """Nothing is stored under the requested key."""


class Done(Exception):
    """A query cursor has no more results."""


@dataclass(frozen=True)
class Query:
    """A kind query with optional ancestor and property-equality filters.

    Filter values are given as Python values of the filtered field and are
    serialized with the field's type, so they compare equal to the JSON-mode
    properties backends store (a `datetime` filter matches its ISO string).
    """

    entity_type: type[Entity]
    ancestor: Key | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    limit: int = MAX_QUERY_RESULTS
    _stored_filters: dict[str, Any] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        if not 1 <= self.limit <= MAX_QUERY_RESULTS:
            raise ValueError(
                f"limit must be between 1 and {MAX_QUERY_RESULTS}; got {self.limit}"
            )
        unknown = set(self.filters) - set(self.entity_type.model_fields)
        if unknown:
            raise ValueError(
                f"Unknown {self.entity_type.__name__} field(s) in filters: "
                f"{', '.join(sorted(unknown))}"
            )
        fields = self.entity_type.model_fields
        stored = {
            name: TypeAdapter(fields[name].annotation).dump_python(value, mode="json")
            for name, value in self.filters.items()
        }
        object.__setattr__(self, "_stored_filters", stored)

    @property
    def kind(self) -> str:
        return descriptor_for(self.entity_type).kind

    def matches(self, key: Key, properties: Mapping[str, Any]) -> bool:
        """Return true if a stored `(key, properties)` pair satisfies this query."""

        if key.kind != self.kind:
            return False
        if self.ancestor is not None and not key.has_ancestor(self.ancestor):
            return False
        return all(
            properties.get(name) == value for name, value in self._stored_filters.items()
        )


@runtime_checkable
class Cursor(Protocol):
    """Streaming iterator over query results."""

    def next(self, entity: Entity) -> Key:
        """Load the next result into `entity` and return its key.

        Raises:
            Done: When the results are exhausted.
        """


@runtime_checkable
class Backend(Protocol):
    """Protocol for storing entities under hierarchical keys."""

    def new_key(
        self,
        kind: str,
        string_id: str = "",
        int_id: int = 0,
        parent: Key | None = None,
    ) -> Key:
        """Build a key for this backend."""

    def put(self, key: Key, entity: Entity) -> Key:
        """Upsert `entity` under `key` and return the effective key."""

    def get(self, key: Key, entity: Entity) -> None:
        """Load the entity stored under `key` into `entity`.

        Raises:
            KeyNotFoundError: If nothing is stored under `key`.
        """

    def delete(self, key: Key) -> None:
        """Remove the entity stored under `key`, if any."""

    def run(self, query: Query) -> Cursor:
        """Start streaming the results of `query`."""

    def get_all(self, query: Query, dst: list[Any]) -> list[Key]:
        """Append up to `query.limit` results to `dst` and return their keys in order."""
