# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import binascii
import os
from hashlib import sha384
from typing import Iterable, Optional

import attr

from supposition.configuration import storage_directory
from supposition.internal.conjecture.shrinker import sort_key
from supposition.reporting import report
from supposition.utils.conventions import not_set

__all__ = [
    "DirectoryBasedExampleDatabase",
    "ExampleDatabase",
    "InMemoryExampleDatabase",
]


def _db_for_path(path=not_set):
    if path is not_set:
        path = storage_directory("examples")
    if path in (None, ":memory:"):
        return InMemoryExampleDatabase()
    return DirectoryBasedExampleDatabase(str(path))


class EDMeta(type):
    def __call__(self, *args, **kwargs):
        if self is ExampleDatabase:
            return _db_for_path(*args, **kwargs)
        return super().__call__(*args, **kwargs)


class ExampleDatabase(metaclass=EDMeta):
    """An abstract base class for storing examples in Supposition's internal
    format.

    An ExampleDatabase maps each ``bytes`` key to many distinct ``bytes``
    values, like a ``Mapping[bytes, AbstractSet[bytes]]``.
    """

    def save(self, key: bytes, value: bytes) -> None:
        """Save ``value`` under ``key``.

        If this value is already present for this key, silently do nothing.
        """
        raise NotImplementedError(f"{type(self).__name__}.save")

    def fetch(self, key: bytes) -> Iterable[bytes]:
        """Return an iterable over all values matching this key."""
        raise NotImplementedError(f"{type(self).__name__}.fetch")

    def delete(self, key: bytes, value: bytes) -> None:
        """Remove this value from this key.

        If this value is not present, silently do nothing.
        """
        raise NotImplementedError(f"{type(self).__name__}.delete")

    def move(self, src: bytes, dest: bytes, value: bytes) -> None:
        """Move ``value`` from key ``src`` to key ``dest``. Equivalent to
        ``delete(src, value)`` followed by ``save(src, value)``, but may have
        a more efficient implementation.

        Note that ``value`` will be inserted at ``dest`` regardless of whether
        it is currently present at ``src``.
        """
        if src == dest:
            self.save(src, value)
            return
        self.delete(src, value)
        self.save(dest, value)


class InMemoryExampleDatabase(ExampleDatabase):
    """A non-persistent example database, implemented in terms of a dict of
    sets.

    This can be useful if you call a test function several times in a single
    session, or for testing other database implementations, but because it
    does not persist between runs we do not recommend it for general use.
    """

    def __init__(self) -> None:
        self.data: "dict[bytes, set[bytes]]" = {}

    def __repr__(self) -> str:
        return f"InMemoryExampleDatabase({self.data!r})"

    def fetch(self, key: bytes) -> Iterable[bytes]:
        yield from self.data.get(key, ())

    def save(self, key: bytes, value: bytes) -> None:
        self.data.setdefault(key, set()).add(bytes(value))

    def delete(self, key: bytes, value: bytes) -> None:
        self.data.get(key, set()).discard(bytes(value))


def _hash(key: bytes) -> str:
    return sha384(key).hexdigest()[:16]


class DirectoryBasedExampleDatabase(ExampleDatabase):
    """Use a directory to store Supposition examples as files.

    Each key is a subdirectory named by a hash of the key, and each value a
    file in it named by a hash of the value.  Writes go to a temporary file
    which is then renamed into place, so a concurrent reader never sees a
    partially written value.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.keypaths: "dict[bytes, str]" = {}

    def __repr__(self) -> str:
        return f"DirectoryBasedExampleDatabase({self.path!r})"

    def _key_path(self, key: bytes) -> str:
        try:
            return self.keypaths[key]
        except KeyError:
            pass
        self.keypaths[key] = os.path.join(self.path, _hash(key))
        return self.keypaths[key]

    def _value_path(self, key: bytes, value: bytes) -> str:
        return os.path.join(self._key_path(key), _hash(value))

    def fetch(self, key: bytes) -> Iterable[bytes]:
        kp = self._key_path(key)
        if not os.path.isdir(kp):
            return
        for path in os.listdir(kp):
            try:
                with open(os.path.join(kp, path), "rb") as i:
                    yield i.read()
            except OSError:
                pass

    def save(self, key: bytes, value: bytes) -> None:
        # Note: we attempt to create the dir in question now. We
        # already checked for permissions, but there can still be other issues,
        # e.g. the disk is full
        os.makedirs(self._key_path(key), exist_ok=True)
        path = self._value_path(key, value)
        if not os.path.exists(path):
            suffix = binascii.hexlify(os.urandom(16)).decode("ascii")
            tmpname = path + "." + suffix
            with open(tmpname, "wb") as o:
                o.write(value)
            try:
                os.rename(tmpname, path)
            except OSError:  # pragma: no cover
                os.unlink(tmpname)
            assert not os.path.exists(tmpname)

    def move(self, src: bytes, dest: bytes, value: bytes) -> None:
        if src == dest:
            self.save(src, value)
            return
        try:
            os.makedirs(self._key_path(dest), exist_ok=True)
            os.rename(self._value_path(src, value), self._value_path(dest, value))
        except OSError:
            self.delete(src, value)
            self.save(dest, value)

    def delete(self, key: bytes, value: bytes) -> None:
        try:
            os.unlink(self._value_path(key, value))
        except OSError:
            pass


# The first byte of every stored example.  Bump it whenever the layout
# below changes, so that older entries are ignored rather than misread.
STORED_EXAMPLE_FORMAT = 1


def _write_varint(out: bytearray, n: int) -> None:
    assert n >= 0
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _read_varint(data: bytes, i: int) -> "tuple[int, int]":
    n = 0
    shift = 0
    while True:
        if i >= len(data):
            raise ValueError("truncated varint")
        byte = data[i]
        i += 1
        n |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return n, i


@attr.s(slots=True, frozen=True)
class StoredExample:
    """A choice sequence saved from an earlier run, along with the generation
    it was produced in and the cap on choices it ran under.

    Encoded as a format byte followed by varints for the generation, the cap,
    the number of choices and then each choice.
    """

    choices: "tuple[int, ...]" = attr.ib(converter=tuple)
    generation: int = attr.ib(default=0)
    max_choices: Optional[int] = attr.ib(default=None)

    def encode(self) -> bytes:
        out = bytearray([STORED_EXAMPLE_FORMAT])
        _write_varint(out, self.generation)
        _write_varint(
            out, len(self.choices) if self.max_choices is None else self.max_choices
        )
        _write_varint(out, len(self.choices))
        for choice in self.choices:
            _write_varint(out, choice)
        return bytes(out)

    @classmethod
    def decode(cls, data: bytes) -> Optional["StoredExample"]:
        """Returns the example encoded in ``data``, or None if ``data`` is not
        a stored example we can read."""
        if not data or data[0] != STORED_EXAMPLE_FORMAT:
            return None
        try:
            generation, i = _read_varint(data, 1)
            max_choices, i = _read_varint(data, i)
            n, i = _read_varint(data, i)
            choices = []
            for _ in range(n):
                choice, i = _read_varint(data, i)
                choices.append(choice)
        except ValueError:
            return None
        if i != len(data) or n > max_choices:
            return None
        return cls(choices, generation, max_choices)


class ExampleStore:
    """The search's view of a database: the stored examples for a single
    property.

    A broken database must never break a test run, so every operation
    here reports and swallows database errors, recording a diagnostic for the
    caller.
    """

    def __init__(self, database: ExampleDatabase, key: str) -> None:
        self.database = database
        self.key = key.encode("utf-8")
        self.diagnostics: "list[str]" = []

    def __repr__(self) -> str:
        return f"ExampleStore({self.database!r}, {self.key!r})"

    def __failed(self, action: str, err: Exception) -> None:
        message = (
            f"Could not {action} stored examples in {self.database!r}: "
            f"{type(err).__name__}: {err}"
        )
        self.diagnostics.append(message)
        report(message)

    def lookup(self) -> Optional[StoredExample]:
        """Returns the simplest stored example we can read, if any."""
        try:
            values = list(self.database.fetch(self.key))
        except Exception as err:
            self.__failed("read", err)
            return None
        examples = [e for e in map(StoredExample.decode, values) if e is not None]
        if not examples:
            return None
        return min(examples, key=lambda e: sort_key(e.choices))

    def store(
        self, example: StoredExample, *, replacing: Optional[StoredExample] = None
    ) -> None:
        """Save ``example``, deleting ``replacing`` if it is a different
        stored example that ``example`` supersedes."""
        try:
            self.database.save(self.key, example.encode())
            if replacing is not None and replacing != example:
                self.database.delete(self.key, replacing.encode())
        except Exception as err:
            self.__failed("save", err)

    def discard(self, example: StoredExample) -> None:
        try:
            self.database.delete(self.key, example.encode())
        except Exception as err:
            self.__failed("delete", err)
