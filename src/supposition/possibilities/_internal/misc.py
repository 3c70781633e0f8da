# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from random import Random
from typing import Any, Sequence

from supposition.internal.conjecture.data import MAX_CHOICE
from supposition.possibilities._internal.possibility import Possibility


class JustPossibility(Possibility):
    """Always produces ``value`` without making any choices."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"just({self.value!r})"

    def produce(self, attempt) -> Any:
        return self.value


class BooleansPossibility(Possibility[bool]):
    def __repr__(self) -> str:
        return "booleans()"

    def produce(self, attempt) -> bool:
        return attempt.weighted(0.5)


class SampledFromPossibility(Possibility):
    """Produces one of a fixed sequence of elements, shrinking towards the
    first."""

    def __init__(self, elements: Sequence) -> None:
        assert len(elements) >= 2
        self.elements = tuple(elements)

    def __repr__(self) -> str:
        return f"sampled_from({list(self.elements)!r})"

    def produce(self, attempt) -> Any:
        return self.elements[attempt.choice(len(self.elements) - 1)]


class RandomsPossibility(Possibility[Random]):
    """Produces ``random.Random`` instances seeded from a single choice, so
    that everything drawn from them replays along with the attempt."""

    def __repr__(self) -> str:
        return "randoms()"

    def produce(self, attempt) -> Random:
        return Random(attempt.draw_integer(0, MAX_CHOICE))
