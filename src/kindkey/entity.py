"""Entity contract and the pydantic base model that implements it.

Storage-eligible types subclass `Entity` and declare their key metadata in the
class body:

    class Person(Entity):
        __kind__ = "People"
        name: Annotated[str, KeyId()] = ""
        country: str = ""

- `__kind__` is the kind annotation: `"<Kind>[,hasparent]"`. Without it the
  kind defaults to the class name.
- `KeyId()` marks the field that supplies the key's string or integer id.
  Without one, keys are auto-generated by the backend.

The key, parent key and uuid are private attributes: they are not model fields
and never appear in `to_properties()`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Protocol, runtime_checkable
from uuid import UUID, uuid4

from pydantic import BaseModel, PrivateAttr

from kindkey.key import Key
from kindkey.registry import KeyId, register

__all__ = ["Entity", "KeyId", "Keyed"]


@runtime_checkable
class Keyed(Protocol):
    """Capabilities every storage-eligible record provides."""

    def has_key(self) -> bool:
        """Return true if a key (complete or not) is attached."""

    @property
    def key(self) -> Key | None:
        """The attached key, or `None`."""

    def set_key(self, key: Key | None) -> None:
        """Attach `key`, replacing any previous key."""

    @property
    def parent(self) -> Key | None:
        """Key of the owning entity, or `None`."""

    def set_parent(self, parent: Key | None) -> None:
        """Set the owning entity's key."""

    @property
    def uuid(self) -> str:
        """Stable unique identifier, independent of the key."""

    def set_uuid(self, value: str | UUID) -> None:
        """Replace the uuid; raises `ValueError` for malformed values."""


class Entity(BaseModel):
    """Base model for records stored through `kindkey.datastore.Datastore`."""

    __kind__: ClassVar[str | None] = None

    _key: Key | None = PrivateAttr(default=None)
    _parent: Key | None = PrivateAttr(default=None)
    _uuid: str = PrivateAttr(default_factory=lambda: uuid4().hex)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        # Types with unresolved forward refs are registered on first lookup.
        if cls.__pydantic_complete__:
            register(cls)

    def has_key(self) -> bool:
        return self._key is not None

    @property
    def key(self) -> Key | None:
        return self._key

    def set_key(self, key: Key | None) -> None:
        self._key = key

    @property
    def parent(self) -> Key | None:
        return self._parent

    def set_parent(self, parent: Key | None) -> None:
        self._parent = parent

    @property
    def uuid(self) -> str:
        return self._uuid

    def set_uuid(self, value: str | UUID) -> None:
        if isinstance(value, UUID):
            self._uuid = value.hex
            return
        try:
            self._uuid = UUID(value).hex
        except ValueError as e:
            raise ValueError(f"Invalid UUID: {value!r}") from e

    def to_properties(self) -> dict[str, Any]:
        """Return the stored form of this entity's fields."""

        return self.model_dump(mode="json")

    def load_properties(self, data: Mapping[str, Any]) -> None:
        """Validate `data` and assign every field of this entity in place."""

        loaded = type(self).model_validate(data)
        for name in type(self).model_fields:
            setattr(self, name, getattr(loaded, name))
