from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import pytest

from kindkey.backend import JsonlBackend, KeyNotFoundError, MemoryBackend
from kindkey.entity import Entity, KeyId
from kindkey.key import new_key


class Person(Entity):
    __kind__ = "People"
    name: Annotated[str, KeyId()] = ""
    country: str = ""


class Tag(Entity):
    name: str = ""


def test_missing_file_counts_as_empty(tmp_path) -> None:
    backend = JsonlBackend(tmp_path / "missing" / "entities.jsonl")

    with pytest.raises(KeyNotFoundError):
        backend.get(new_key("People", "Diego"), Person())
    backend.delete(new_key("People", "Diego"))
    assert not backend.path.exists()


def test_put_writes_one_line_per_entity(tmp_path) -> None:
    path = tmp_path / "data" / "entities.jsonl"
    backend = JsonlBackend(path)
    diego = Person(name="Diego", country="Brazil")

    key = backend.put(new_key("People", "Diego"), diego)
    backend.put(key, Person(name="Diego", country="Portugal"))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["key"]["kind"] == "People"
    assert payload["key"]["string_id"] == "Diego"
    assert payload["properties"] == {"name": "Diego", "country": "Portugal"}


def test_entities_survive_reopen(tmp_path) -> None:
    path = tmp_path / "entities.jsonl"
    writer = JsonlBackend(path)
    diego = Person(name="Diego", country="Brazil")
    key = writer.put(new_key("People", "Diego"), diego)

    reader = JsonlBackend(path)
    loaded = Person()
    reader.get(key, loaded)

    assert loaded.country == "Brazil"
    assert loaded.uuid == diego.uuid


def test_refresh_picks_up_external_writes(tmp_path) -> None:
    path = tmp_path / "entities.jsonl"
    reader = JsonlBackend(path)
    with pytest.raises(KeyNotFoundError):
        reader.get(new_key("People", "Diego"), Person())

    JsonlBackend(path).put(new_key("People", "Diego"), Person(name="Diego"))
    reader.refresh()

    loaded = Person()
    reader.get(new_key("People", "Diego"), loaded)
    assert loaded.name == "Diego"


def test_auto_ids_continue_after_reopen(tmp_path) -> None:
    path = tmp_path / "entities.jsonl"
    k1 = JsonlBackend(path).put(new_key("Tag"), Tag(name="a"))
    k2 = JsonlBackend(path).put(new_key("Tag"), Tag(name="b"))

    assert (k1.int_id, k2.int_id) == (1, 2)


def test_invalid_lines_raise_with_context(tmp_path) -> None:
    path = tmp_path / "entities.jsonl"
    path.write_text("\n{not json}\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"entities.jsonl:2"):
        JsonlBackend(path).get(new_key("People", "Diego"), Person())


def test_duplicate_and_incomplete_keys_are_rejected(tmp_path) -> None:
    line = json.dumps(
        {"key": {"kind": "People", "string_id": "Diego"}, "uuid": "u", "properties": {}}
    )
    path = tmp_path / "dup.jsonl"
    path.write_text(line + "\n" + line + "\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Duplicate key at .*dup.jsonl:2"):
        JsonlBackend(path).refresh()

    incomplete = json.dumps({"key": {"kind": "Tag"}, "uuid": "u", "properties": {}})
    path = tmp_path / "incomplete.jsonl"
    path.write_text(incomplete + "\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Incomplete key"):
        JsonlBackend(path).refresh()


def test_memory_backend_assigns_ids_and_copies_properties() -> None:
    backend = MemoryBackend()
    tag = Tag(name="go")

    key = backend.put(new_key("Tag"), tag)
    tag.name = "changed"
    loaded = Tag()
    backend.get(key, loaded)

    assert key.int_id == 1
    assert loaded.name == "go"
    assert len(backend) == 1
    backend.delete(key)
    assert len(backend) == 0


def test_failed_write_leaves_cached_state_unchanged(tmp_path, monkeypatch) -> None:
    backend = JsonlBackend(tmp_path / "entities.jsonl")
    backend.put(new_key("People", "Diego"), Person(name="Diego", country="Brazil"))

    def fail_replace(self, target):
        raise OSError("disk full")

    with monkeypatch.context() as m:
        m.setattr(Path, "replace", fail_replace)
        with pytest.raises(OSError, match="disk full"):
            backend.put(new_key("People", "Ana"), Person(name="Ana"))
        with pytest.raises(OSError, match="disk full"):
            backend.delete(new_key("People", "Diego"))

    with pytest.raises(KeyNotFoundError):
        backend.get(new_key("People", "Ana"), Person())
    loaded = Person()
    backend.get(new_key("People", "Diego"), loaded)
    assert loaded.country == "Brazil"
    assert [p.name for p in tmp_path.iterdir()] == ["entities.jsonl"]
