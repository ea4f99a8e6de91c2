"""Storage backends.

- `Backend` / `Cursor`: the structural interface `kindkey` consumes.
- `MemoryBackend`: in-process dict, for tests and ephemeral use.
- `JsonlBackend`: one entity per line in a JSON Lines file.
"""

from kindkey.backend.base import (
    MAX_QUERY_RESULTS,
    Backend,
    Cursor,
    Done,
    KeyNotFoundError,
    Query,
)
from kindkey.backend.jsonl import JsonlBackend
from kindkey.backend.memory import MemoryBackend

__all__ = [
    "MAX_QUERY_RESULTS",
    "Backend",
    "Cursor",
    "Done",
    "JsonlBackend",
    "KeyNotFoundError",
    "MemoryBackend",
    "Query",
]
