"""JSONL-file backend: one stored entity per line.

Each non-empty line is a JSON object `{"key": ..., "uuid": ..., "properties": ...}`.

Design notes / invariants:
- Parsing is strict: invalid JSON, an invalid key, or a duplicate key raises a
  `ValueError` with line context, since silently skipping corrupt lines can hide
  data-loss bugs.
- A missing file counts as an empty store.
- The backend caches parsed lines and reloads when the file's mtime/size
  changes; call `refresh()` to force a reload.
- Every write rewrites the whole file through a temporary file followed by an
  atomic replace. Line order is insertion order; updates keep their position.
- Integer ids for incomplete keys continue from the largest `int_id` on disk.
"""

from __future__ import annotations

import copy
import tempfile
import threading
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from kindkey.backend.base import Done, KeyNotFoundError, Query
from kindkey.entity import Entity
from kindkey.key import Key, new_key

logger = getLogger(__name__)


@dataclass(slots=True)
class _CacheKey:
    mtime_ns: int
    size: int


class _StoredLine(BaseModel):
    """On-disk schema of one line."""

    key: Key
    uuid: str
    properties: dict[str, Any] = Field(default_factory=dict)


class JsonlCursor:
    """Cursor over lines that matched when the query ran."""

    def __init__(self, results: list[_StoredLine]) -> None:
        self._results = iter(results)

    def next(self, entity: Entity) -> Key:
        try:
            line = next(self._results)
        except StopIteration:
            raise Done() from None
        _load_into(entity, line)
        return line.key


class JsonlBackend:
    """Store entities in a JSON Lines file.

    Args:
        path: Path to the JSONL file. Parent directories are created on write.
        encoding: File encoding used for reading/writing.

    Safe for concurrent use within one process. Separate processes writing the
    same file race; the last full rewrite wins.
    """

    path: Path
    encoding: str

    _cache_key: _CacheKey | None
    _lines: dict[Key, _StoredLine]

    def __init__(self, path: str | Path, *, encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self._cache_key = None
        self._lines = {}
        self._lock = threading.RLock()

    def refresh(self) -> None:
        """Force a reload from disk (even if the file did not change)."""

        with self._lock:
            self._cache_key = None
            self._load_if_needed()

    def new_key(
        self,
        kind: str,
        string_id: str = "",
        int_id: int = 0,
        parent: Key | None = None,
    ) -> Key:
        return new_key(kind, string_id, int_id, parent)

    def put(self, key: Key, entity: Entity) -> Key:
        with self._lock:
            self._load_if_needed()
            if key.incomplete:
                key = key.with_int_id(self._next_int_id())
            lines = dict(self._lines)
            lines[key] = _StoredLine(
                key=key, uuid=entity.uuid, properties=entity.to_properties()
            )
            self._persist_snapshot(lines)
        logger.debug("put %s into %s", key, self.path)
        return key

    def get(self, key: Key, entity: Entity) -> None:
        with self._lock:
            self._load_if_needed()
            line = self._lines.get(key)
        if line is None:
            raise KeyNotFoundError(f"No entity stored under {key} in {self.path}")
        _load_into(entity, line)

    def delete(self, key: Key) -> None:
        with self._lock:
            self._load_if_needed()
            if key not in self._lines:
                return
            lines = dict(self._lines)
            del lines[key]
            self._persist_snapshot(lines)
        logger.debug("deleted %s from %s", key, self.path)

    def run(self, query: Query) -> JsonlCursor:
        return JsonlCursor(self._select(query))

    def get_all(self, query: Query, dst: list[Any]) -> list[Key]:
        keys: list[Key] = []
        for line in self._select(query):
            entity = query.entity_type.model_validate(copy.deepcopy(line.properties))
            entity.set_uuid(line.uuid)
            dst.append(entity)
            keys.append(line.key)
        return keys

    def _select(self, query: Query) -> list[_StoredLine]:
        with self._lock:
            self._load_if_needed()
            lines = list(self._lines.values())
        matched = [line for line in lines if query.matches(line.key, line.properties)]
        return matched[: query.limit]

    def _next_int_id(self) -> int:
        return max([0, *(key.int_id for key in self._lines)]) + 1

    def _load_if_needed(self) -> None:
        key = self._stat_key()
        if key is None:
            # Missing file counts as an empty store.
            self._cache_key = None
            self._lines = {}
            return

        if self._cache_key is not None and key == self._cache_key:
            return

        self._lines = _read_jsonl_lines(self.path, encoding=self.encoding)
        self._cache_key = key

    def _stat_key(self) -> _CacheKey | None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return _CacheKey(mtime_ns=stat.st_mtime_ns, size=stat.st_size)

    def _persist_snapshot(self, lines: dict[Key, _StoredLine]) -> None:
        """Write `lines` to disk, then adopt them as the cached state.

        On failure the cache is left untouched, so it still matches the file.
        """

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding=self.encoding,
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tf:
            tmp_path = Path(tf.name)
            for line in lines.values():
                tf.write(line.model_dump_json() + "\n")

        try:
            tmp_path.replace(self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        self._lines = lines
        self._cache_key = self._stat_key()


def _read_jsonl_lines(path: Path, *, encoding: str) -> dict[Key, _StoredLine]:
    lines: dict[Key, _StoredLine] = {}

    with path.open("r", encoding=encoding) as f:
        for line_no, raw_line in enumerate(f, start=1):
            text = raw_line.strip()
            if not text:
                continue
            try:
                line = _StoredLine.model_validate_json(text)
            except ValidationError as e:
                raise ValueError(f"Invalid entity line at {path}:{line_no}: {e}") from e

            if line.key.incomplete:
                raise ValueError(f"Incomplete key at {path}:{line_no}: {line.key}")
            if line.key in lines:
                raise ValueError(f"Duplicate key at {path}:{line_no}: {line.key}")
            lines[line.key] = line

    return lines


def _load_into(entity: Entity, line: _StoredLine) -> None:
    entity.load_properties(copy.deepcopy(line.properties))
    entity.set_uuid(line.uuid)
