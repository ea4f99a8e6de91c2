"""Hierarchical storage keys.

A `Key` addresses one stored entity by `(kind, id, parent)`:

- `kind` names the logical table the entity lives in.
- The id is either `string_id` or `int_id`; at most one of them is non-zero.
  When both are zero the key is *incomplete* and the backend assigns an
  integer id on write.
- `parent` optionally points at another key. Parents are set before the child
  is created, so ancestry always terminates at a root key.

Keys are frozen pydantic models: hashable, structurally comparable, and safe to
share between threads.
"""

from __future__ import annotations

import base64

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from kindkey.errors import InvalidKeyError


class Key(BaseModel):
    """Structured address of a stored entity."""

    model_config = ConfigDict(frozen=True)

    kind: str
    string_id: str = ""
    int_id: int = 0
    parent: Key | None = None

    @field_validator("kind")
    @classmethod
    def _validate_kind(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("kind must be a non-empty string")
        return value

    @model_validator(mode="after")
    def _validate_single_id(self) -> Key:
        if self.string_id and self.int_id:
            raise ValueError(
                f"at most one of string_id and int_id may be set; got "
                f"string_id={self.string_id!r}, int_id={self.int_id}"
            )
        return self

    @property
    def incomplete(self) -> bool:
        """True when the backend still has to assign an id."""

        return not self.string_id and self.int_id == 0

    @property
    def id_(self) -> str | int | None:
        if self.string_id:
            return self.string_id
        if self.int_id:
            return self.int_id
        return None

    def has_ancestor(self, other: Key) -> bool:
        """Return true if `other` is this key or one of its ancestors."""

        current: Key | None = self
        while current is not None:
            if current == other:
                return True
            current = current.parent
        return False

    def path(self) -> tuple[tuple[str, str | int | None], ...]:
        """Return `(kind, id)` pairs from the root key down to this one."""

        pairs: list[tuple[str, str | int | None]] = []
        current: Key | None = self
        while current is not None:
            pairs.append((current.kind, current.id_))
            current = current.parent
        return tuple(reversed(pairs))

    def with_int_id(self, int_id: int) -> Key:
        """Return a copy of this key carrying a backend-assigned integer id."""

        return Key(kind=self.kind, int_id=int_id, parent=self.parent)

    def encode(self) -> str:
        """Return a URL-safe text form of this key (no base64 padding)."""

        raw = self.model_dump_json().encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, encoded: str) -> Key:
        """Parse text produced by `encode()`.

        Raises:
            InvalidKeyError: If `encoded` is not a valid encoded key.
        """

        padded = encoded + "=" * (-len(encoded) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        except ValueError as e:
            raise InvalidKeyError(f"Invalid encoded key: {encoded!r}") from e
        try:
            return cls.model_validate_json(raw)
        except ValueError as e:
            raise InvalidKeyError(f"Invalid encoded key: {encoded!r}: {e}") from e

    def __str__(self) -> str:
        parts = []
        for kind, id_ in self.path():
            parts.append(f"{kind},{'?' if id_ is None else id_}")
        return "/" + "/".join(parts)


def new_key(
    kind: str,
    string_id: str = "",
    int_id: int = 0,
    parent: Key | None = None,
) -> Key:
    """Build a key; the default key constructor used by resolvers and backends."""

    return Key(kind=kind, string_id=string_id, int_id=int_id, parent=parent)
