"""Per-type key descriptors, computed once per entity class.

A `KindDescriptor` captures everything static about how an entity type maps to
keys: its kind, whether it requires a parent, and which field (if any) supplies
the key id. `Entity` subclasses register themselves when the class is created;
`descriptor_for` registers lazily for types that were not complete at that time.

Declaration rules:
- `__kind__ = "<Kind>[,hasparent]"`. A blank `<Kind>` falls back to the class
  name.
- The first field in declaration order that carries a `KeyId` marker and is
  annotated as `str` or `int` (optionally `Optional[...]`) is the id field.
  Marked fields of any other type are skipped; additional marked fields are
  ignored. Both cases are logged as warnings.
"""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from kindkey.entity import Entity

logger = getLogger(__name__)

HAS_PARENT_FLAG = "hasparent"

IdType: TypeAlias = type[str] | type[int]


@dataclass(frozen=True, slots=True)
class KeyId:
    """Annotation marker for the field that supplies a key's id.

    Usage: `name: Annotated[str, KeyId()] = ""`.
    """


@dataclass(frozen=True, slots=True)
class KindDescriptor:
    entity_type: type
    kind: str
    has_parent: bool = False
    id_field: str | None = None
    id_type: IdType | None = None


_descriptors: dict[type, KindDescriptor] = {}


def parse_kind_tag(tag: str | None, default: str) -> tuple[str, bool]:
    """Split a kind annotation into `(kind, has_parent)`.

    >>> parse_kind_tag("People,hasparent", "Person")
    ('People', True)
    >>> parse_kind_tag(None, "Person")
    ('Person', False)
    """

    if not tag:
        return default, False
    values = tag.split(",")
    kind = values[0].strip() or default
    has_parent = len(values) > 1 and values[1].strip() == HAS_PARENT_FLAG
    return kind, has_parent


def register(entity_type: type[Entity]) -> KindDescriptor:
    """Compute and store the descriptor for `entity_type`.

    Raises:
        TypeError: If `__kind__` is set to something other than a string.
    """

    tag = getattr(entity_type, "__kind__", None)
    if tag is not None and not isinstance(tag, str):
        raise TypeError(
            f"{entity_type.__name__}.__kind__ must be a string; got {type(tag).__name__}"
        )
    kind, has_parent = parse_kind_tag(tag, entity_type.__name__)

    id_field: str | None = None
    id_type: IdType | None = None
    for name, field_info in entity_type.model_fields.items():
        if not any(isinstance(m, KeyId) for m in field_info.metadata):
            continue
        if id_field is not None:
            logger.warning(
                "%s.%s is marked KeyId but %s.%s already supplies the key id; ignoring it",
                entity_type.__name__,
                name,
                entity_type.__name__,
                id_field,
            )
            continue
        candidate = _id_type_of(field_info.annotation)
        if candidate is None:
            logger.warning(
                "%s.%s is marked KeyId but is annotated %r; only str and int ids are supported",
                entity_type.__name__,
                name,
                field_info.annotation,
            )
            continue
        id_field, id_type = name, candidate

    descriptor = KindDescriptor(
        entity_type=entity_type,
        kind=kind,
        has_parent=has_parent,
        id_field=id_field,
        id_type=id_type,
    )
    _descriptors[entity_type] = descriptor
    return descriptor


def descriptor_for(entity_type: type[Entity]) -> KindDescriptor:
    """Return the descriptor for `entity_type`, registering it if needed."""

    descriptor = _descriptors.get(entity_type)
    if descriptor is None:
        if not entity_type.__pydantic_complete__:
            entity_type.model_rebuild()
        descriptor = register(entity_type)
    return descriptor


def _id_type_of(annotation: Any) -> IdType | None:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) != 1:
            return None
        annotation = args[0]
    if not isinstance(annotation, type):
        return None
    if issubclass(annotation, bool):
        return None
    if issubclass(annotation, str):
        return str
    if issubclass(annotation, int):
        return int
    return None
