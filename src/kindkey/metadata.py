"""Derive key metadata from an entity's declared annotations and field values.

`extract_metadata` is a pure function: it reads the entity's registered
`KindDescriptor` plus its current field values and returns a fresh, frozen
`KeyMetadata`. Nothing is cached between calls, so concurrent extractions for
different entities never share state.
"""

from __future__ import annotations

from dataclasses import dataclass

from kindkey.entity import Keyed
from kindkey.errors import MissingIntIdError, MissingParentKeyError, MissingStringIdError
from kindkey.key import Key
from kindkey.registry import KindDescriptor, descriptor_for


@dataclass(frozen=True, slots=True)
class KeyMetadata:
    """Key components resolved for one entity."""

    kind: str
    string_id: str = ""
    int_id: int = 0
    has_parent: bool = False
    parent: Key | None = None

    @property
    def is_auto_generated(self) -> bool:
        """True when the backend assigns the id (no id field, or a read-back incomplete key)."""

        return self.string_id == "" and self.int_id == 0

    @classmethod
    def from_key(cls, key: Key) -> KeyMetadata:
        """Read back the components of an existing key."""

        return cls(
            kind=key.kind,
            string_id=key.string_id,
            int_id=key.int_id,
            has_parent=key.parent is not None,
            parent=key.parent,
        )


def extract_kind_metadata(entity: Keyed, descriptor: KindDescriptor) -> tuple[str, bool]:
    """Return `(kind, has_parent)`, requiring a parent key when the kind declares one."""

    if descriptor.has_parent and entity.parent is None:
        raise MissingParentKeyError(
            f"{type(entity).__name__} declares kind {descriptor.kind!r} with hasparent "
            "but has no parent key"
        )
    return descriptor.kind, descriptor.has_parent


def extract_id_metadata(entity: Keyed, descriptor: KindDescriptor) -> tuple[str, int]:
    """Return `(string_id, int_id)` from the entity's id field.

    Both are zero when the type declares no id field.
    """

    if descriptor.id_field is None:
        return "", 0

    value = getattr(entity, descriptor.id_field)
    name = f"{type(entity).__name__}.{descriptor.id_field}"
    if descriptor.id_type is str:
        if not value:
            raise MissingStringIdError(f"{name} is the key id but is empty")
        return str(value), 0

    if not value:
        raise MissingIntIdError(f"{name} is the key id but is {value!r}")
    return "", int(value)


def extract_metadata(entity: Keyed) -> KeyMetadata:
    """Build a fresh `KeyMetadata` for `entity`.

    Raises:
        MissingParentKeyError: The kind declares `hasparent` and no parent is set.
        MissingStringIdError: A `str` id field is empty.
        MissingIntIdError: An `int` id field is zero.
    """

    descriptor = descriptor_for(type(entity))
    kind, has_parent = extract_kind_metadata(entity, descriptor)
    string_id, int_id = extract_id_metadata(entity, descriptor)
    return KeyMetadata(
        kind=kind,
        string_id=string_id,
        int_id=int_id,
        has_parent=has_parent,
        parent=entity.parent,
    )
