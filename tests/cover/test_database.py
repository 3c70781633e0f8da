# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import os

import pytest

from supposition import settings
from supposition.configuration import set_supposition_home_dir
from supposition.database import (
    STORED_EXAMPLE_FORMAT,
    DirectoryBasedExampleDatabase,
    ExampleDatabase,
    ExampleStore,
    InMemoryExampleDatabase,
    StoredExample,
)
from supposition.errors import InvalidArgument

from tests.common.utils import capture_reports


@pytest.fixture(params=["memory", "directory"])
def db(request, tmp_path):
    if request.param == "memory":
        return InMemoryExampleDatabase()
    return DirectoryBasedExampleDatabase(str(tmp_path / "examples"))


def test_can_save_and_fetch(db):
    db.save(b"key", b"value")
    assert list(db.fetch(b"key")) == [b"value"]


def test_saving_twice_stores_once(db):
    db.save(b"key", b"value")
    db.save(b"key", b"value")
    assert list(db.fetch(b"key")) == [b"value"]


def test_fetching_a_missing_key_is_empty(db):
    assert list(db.fetch(b"nothing here")) == []


def test_can_delete(db):
    db.save(b"key", b"a")
    db.save(b"key", b"b")
    db.delete(b"key", b"a")
    db.delete(b"key", b"missing")
    assert list(db.fetch(b"key")) == [b"b"]


def test_can_move(db):
    db.save(b"a", b"value")
    db.move(b"a", b"b", b"value")
    assert list(db.fetch(b"a")) == []
    assert list(db.fetch(b"b")) == [b"value"]


def test_moving_to_the_same_key_keeps_the_value(db):
    db.move(b"a", b"a", b"value")
    assert list(db.fetch(b"a")) == [b"value"]


def test_directory_database_writes_no_temporary_files(tmp_path):
    db = DirectoryBasedExampleDatabase(str(tmp_path))
    db.save(b"key", b"value")
    (keydir,) = os.listdir(tmp_path)
    (valuefile,) = os.listdir(tmp_path / keydir)
    assert "." not in valuefile


def test_directory_databases_share_storage(tmp_path):
    DirectoryBasedExampleDatabase(str(tmp_path)).save(b"key", b"value")
    assert list(DirectoryBasedExampleDatabase(str(tmp_path)).fetch(b"key")) == [
        b"value"
    ]


@pytest.mark.parametrize("path", [None, ":memory:"])
def test_example_database_picks_in_memory(path):
    assert isinstance(ExampleDatabase(path), InMemoryExampleDatabase)


def test_example_database_picks_a_directory(tmp_path):
    db = ExampleDatabase(str(tmp_path))
    assert isinstance(db, DirectoryBasedExampleDatabase)
    assert db.path == str(tmp_path)


def test_default_database_lives_in_the_storage_directory(tmp_path):
    set_supposition_home_dir(tmp_path)
    db = ExampleDatabase()
    assert isinstance(db, DirectoryBasedExampleDatabase)
    assert db.path == str(tmp_path / "examples")


def test_default_settings_database_follows_the_storage_directory(tmp_path):
    set_supposition_home_dir(tmp_path)
    db = settings(settings.get_profile("default")).database
    assert db.path == str(tmp_path / "examples")


def test_database_setting_must_be_a_database():
    with pytest.raises(InvalidArgument):
        settings(database="some/path")


def test_stored_examples_encode_their_fields():
    example = StoredExample([0, 2**64 - 1, 300], generation=7, max_choices=10)
    data = example.encode()
    assert data[0] == STORED_EXAMPLE_FORMAT
    assert StoredExample.decode(data) == example


def test_stored_example_cap_defaults_to_its_length():
    data = StoredExample([1, 2]).encode()
    assert StoredExample.decode(data).max_choices == 2


@pytest.mark.parametrize(
    "data",
    [
        b"",
        bytes([STORED_EXAMPLE_FORMAT + 1, 0, 1, 1, 0]),
        bytes([STORED_EXAMPLE_FORMAT, 0, 1, 1]),
        bytes([STORED_EXAMPLE_FORMAT, 0, 1, 1, 0, 0]),
        bytes([STORED_EXAMPLE_FORMAT, 0, 1, 2, 0, 0]),
        bytes([STORED_EXAMPLE_FORMAT, 0x80]),
    ],
)
def test_unreadable_data_decodes_to_none(data):
    assert StoredExample.decode(data) is None


def test_store_looks_up_the_simplest_example():
    db = InMemoryExampleDatabase()
    store = ExampleStore(db, "key")
    store.store(StoredExample([5, 5]))
    store.store(StoredExample([9]))
    store.store(StoredExample([3, 1]))
    db.save(b"key", b"garbage")
    assert store.lookup() == StoredExample([9])


def test_store_lookup_of_nothing_is_none():
    assert ExampleStore(InMemoryExampleDatabase(), "key").lookup() is None


def test_store_replaces_examples():
    db = InMemoryExampleDatabase()
    store = ExampleStore(db, "key")
    old = StoredExample([9])
    store.store(old)
    store.store(StoredExample([3]), replacing=old)
    assert store.lookup() == StoredExample([3])
    assert len(list(db.fetch(b"key"))) == 1


def test_store_can_discard():
    db = InMemoryExampleDatabase()
    store = ExampleStore(db, "key")
    store.store(StoredExample([9]))
    store.discard(StoredExample([9]))
    assert store.lookup() is None


class BrokenDatabase(ExampleDatabase):
    def save(self, key, value):
        raise PermissionError("no writing")

    def fetch(self, key):
        raise OSError("no reading")

    def delete(self, key, value):
        raise PermissionError("no deleting")


def test_store_survives_a_broken_database():
    store = ExampleStore(BrokenDatabase(), "key")
    with capture_reports() as reports:
        assert store.lookup() is None
        store.store(StoredExample([1]))
        store.discard(StoredExample([1]))
    assert len(store.diagnostics) == 3
    assert reports == store.diagnostics
    assert "PermissionError: no writing" in store.diagnostics[1]


def test_abstract_database_methods_are_not_implemented():
    class Incomplete(ExampleDatabase):
        pass

    db = Incomplete()
    with pytest.raises(NotImplementedError):
        db.save(b"a", b"b")
    with pytest.raises(NotImplementedError):
        db.fetch(b"a")
