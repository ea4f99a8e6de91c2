"""Metadata-driven keys and entity lifecycle for hierarchical key-value stores.

Public entrypoints:
- `Entity`, `KeyId`: declare storable records and their key metadata.
- `Key`: hierarchical storage key.
- `KeyResolver`, `extract_metadata`: derive keys from entities.
- `Datastore`: create/load/update/delete with existence checks.
- `Querier`, `bind_keys`, `entity_at`: attach query result keys.
"""

from kindkey.datastore import Datastore
from kindkey.entity import Entity, Keyed, KeyId
from kindkey.errors import (
    DatastoreError,
    EntityExistsError,
    InvalidKeyError,
    KeyResolutionError,
    MissingIntIdError,
    MissingParentKeyError,
    MissingStringIdError,
    NoSuchEntityError,
)
from kindkey.key import Key, new_key
from kindkey.metadata import KeyMetadata, extract_metadata
from kindkey.querier import Querier, bind_keys, entity_at
from kindkey.resolver import KeyResolver

__all__ = [
    "Datastore",
    "DatastoreError",
    "Entity",
    "EntityExistsError",
    "InvalidKeyError",
    "Key",
    "KeyId",
    "KeyMetadata",
    "KeyResolutionError",
    "KeyResolver",
    "Keyed",
    "MissingIntIdError",
    "MissingParentKeyError",
    "MissingStringIdError",
    "NoSuchEntityError",
    "Querier",
    "bind_keys",
    "entity_at",
    "extract_metadata",
    "new_key",
]
