"""Error taxonomy for key resolution and the entity lifecycle.

- Data errors (`KeyResolutionError` subclasses): the entity's current field
  values cannot produce a valid key. Never transient.
- Existence errors (`NoSuchEntityError`, `EntityExistsError`): expected outcomes
  of create/load/update/delete that callers branch on.

Backend failures other than "not found" are not wrapped; they reach the caller
as raised by the backend.
"""

from __future__ import annotations


class DatastoreError(Exception):
    """Base class for errors reported by `kindkey`."""


class KeyResolutionError(DatastoreError, ValueError):
    """An entity's metadata is insufficient to build its key."""


class MissingStringIdError(KeyResolutionError):
    """A textual identifier field is empty."""


class MissingIntIdError(KeyResolutionError):
    """An integral identifier field is zero."""


class MissingParentKeyError(KeyResolutionError):
    """The entity kind declares `hasparent` but no parent key is set."""


class NoSuchEntityError(DatastoreError, LookupError):
    """No stored entity exists under the resolved key."""


class EntityExistsError(DatastoreError):
    """An entity is already stored under the resolved key."""


class InvalidKeyError(DatastoreError, ValueError):
    """Encoded key text could not be decoded."""
