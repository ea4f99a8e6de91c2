from __future__ import annotations

import threading
from typing import Annotated

import pytest

from kindkey.entity import Entity, KeyId
from kindkey.errors import MissingIntIdError, MissingParentKeyError, MissingStringIdError
from kindkey.key import Key, new_key
from kindkey.metadata import KeyMetadata, extract_metadata
from kindkey.resolver import KeyResolver


class Person(Entity):
    __kind__ = "People"
    name: Annotated[str, KeyId()] = ""
    country: str = ""


class Nameless(Entity):
    __kind__ = "People"
    name: Annotated[str, KeyId()] = ""


class Account(Entity):
    __kind__ = "Accounts"
    number: Annotated[int, KeyId()] = 0


class Tag(Entity):
    name: str = ""


class Comment(Entity):
    __kind__ = "Foo,hasparent"
    body: str = ""


class Note(Entity):
    slug: Annotated[str | None, KeyId()] = None


def test_string_id_scenario() -> None:
    metadata = extract_metadata(Person(name="Diego"))

    assert metadata == KeyMetadata(kind="People", string_id="Diego", int_id=0, has_parent=False)
    assert metadata.parent is None
    assert not metadata.is_auto_generated

    with pytest.raises(MissingStringIdError, match="Nameless.name"):
        extract_metadata(Nameless(name=""))


def test_extraction_is_idempotent() -> None:
    person = Person(name="Diego", country="Brazil")

    assert extract_metadata(person) == extract_metadata(person)
    assert not person.has_key()


def test_int_id() -> None:
    assert extract_metadata(Account(number=42)).int_id == 42
    with pytest.raises(MissingIntIdError, match="Account.number"):
        extract_metadata(Account(number=0))


def test_negative_int_id_resolves() -> None:
    account = Account(number=-5)

    metadata = KeyResolver().resolve(account)

    assert metadata.int_id == -5
    assert account.key == new_key("Accounts", int_id=-5)


def test_none_id_counts_as_missing() -> None:
    with pytest.raises(MissingStringIdError):
        extract_metadata(Note())
    assert extract_metadata(Note(slug="hello")).string_id == "hello"


def test_hasparent_requires_parent() -> None:
    comment = Comment(body="hi")
    resolver = KeyResolver()

    with pytest.raises(MissingParentKeyError, match="Foo"):
        resolver.resolve(comment)
    assert not comment.has_key()

    parent = new_key("Post", int_id=9)
    comment.set_parent(parent)
    metadata = resolver.resolve(comment)

    assert metadata.kind == "Foo"
    assert metadata.has_parent
    assert metadata.parent == parent
    assert comment.key == Key(kind="Foo", parent=parent)


def test_parent_is_carried_without_hasparent() -> None:
    person = Person(name="Diego")
    person.set_parent(new_key("Country", "Brazil"))

    metadata = extract_metadata(person)

    assert metadata.has_parent is False
    assert metadata.parent == new_key("Country", "Brazil")


def test_resolve_attaches_derived_key() -> None:
    person = Person(name="Diego")

    metadata = KeyResolver().resolve(person)

    assert metadata.kind == "People"
    assert person.key == new_key("People", "Diego")


def test_auto_generated_keys() -> None:
    resolver = KeyResolver()
    first, second = Tag(name="golang"), Tag(name="golang")

    m1 = resolver.resolve(first)
    m2 = resolver.resolve(second)

    assert m1.is_auto_generated and m2.is_auto_generated
    assert first.key is not None and first.key.incomplete
    assert second.key is not None and second.key.incomplete
    # The second resolution of a keyed entity is a read-back.
    assert resolver.resolve(first).is_auto_generated


def test_resolve_reads_back_existing_key() -> None:
    tag = Tag(name="golang")
    foreign = new_key("Labels", "go", parent=new_key("Blog", int_id=1))
    tag.set_key(foreign)

    metadata = KeyResolver().resolve(tag)

    assert metadata == KeyMetadata(
        kind="Labels",
        string_id="go",
        int_id=0,
        has_parent=True,
        parent=new_key("Blog", int_id=1),
    )
    assert tag.key is foreign


def test_read_back_skips_annotation_checks() -> None:
    person = Person(name="")
    person.set_key(new_key("People", "Diego"))

    assert KeyResolver().resolve(person).string_id == "Diego"


def test_resolver_uses_injected_key_constructor() -> None:
    calls: list[tuple[str, str, int, Key | None]] = []

    def factory(kind: str, string_id: str, int_id: int, parent: Key | None) -> Key:
        calls.append((kind, string_id, int_id, parent))
        return new_key(kind, string_id, int_id, parent)

    KeyResolver(factory).resolve(Account(number=5))

    assert calls == [("Accounts", "", 5, None)]


def test_new_key_for_ignores_attached_key() -> None:
    person = Person(name="Diego")
    person.set_key(new_key("Other", "x"))

    assert KeyResolver().new_key_for(person) == new_key("People", "Diego")
    assert person.key == new_key("Other", "x")


def test_shared_resolver_is_safe_across_threads() -> None:
    resolver = KeyResolver()
    people = [Person(name=f"p{i}") for i in range(200)]
    accounts = [Account(number=i + 1) for i in range(200)]

    def work(entities: list[Entity]) -> None:
        for entity in entities:
            resolver.resolve(entity)

    threads = [
        threading.Thread(target=work, args=(people,)),
        threading.Thread(target=work, args=(accounts,)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert [p.key for p in people] == [new_key("People", f"p{i}") for i in range(200)]
    assert [a.key for a in accounts] == [new_key("Accounts", int_id=i + 1) for i in range(200)]
