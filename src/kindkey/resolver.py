"""Resolve the storage key of an entity.

`KeyResolver.resolve` either reads back the key an entity already carries
(for example one loaded from storage or bound by a query) or derives one from
the entity's annotations and attaches it. The resolver keeps no per-call
state: every call returns its own `KeyMetadata`, so one instance can serve many
threads.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias, cast

from kindkey.entity import Keyed
from kindkey.key import Key, new_key
from kindkey.metadata import KeyMetadata, extract_metadata

KeyFactory: TypeAlias = Callable[[str, str, int, Key | None], Key]


class KeyResolver:
    """Derive and attach keys using a backend's key constructor.

    Args:
        new_key: Callable building a key from `(kind, string_id, int_id, parent)`.
    """

    def __init__(self, new_key: KeyFactory = new_key) -> None:
        self._new_key = new_key

    def resolve(self, entity: Keyed) -> KeyMetadata:
        """Return the key metadata of `entity`, attaching a new key if it has none.

        Extraction errors (`MissingStringIdError`, `MissingIntIdError`,
        `MissingParentKeyError`) propagate unchanged and leave the entity unkeyed.
        """

        if entity.has_key():
            return KeyMetadata.from_key(cast(Key, entity.key))

        metadata = extract_metadata(entity)
        entity.set_key(self._build(metadata))
        return metadata

    def new_key_for(self, entity: Keyed) -> Key:
        """Derive a key from annotations, ignoring any key already attached."""

        return self._build(extract_metadata(entity))

    def _build(self, metadata: KeyMetadata) -> Key:
        return self._new_key(
            metadata.kind,
            metadata.string_id,
            metadata.int_id,
            metadata.parent,
        )
