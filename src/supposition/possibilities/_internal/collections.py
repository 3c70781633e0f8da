# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from typing import Any, Callable, Sequence

from supposition.internal.conjecture import utils as cu
from supposition.internal.escalation import call_user_code
from supposition.internal.reflection import nicerepr, repr_call
from supposition.possibilities._internal.possibility import Possibility


class TuplesPossibility(Possibility[tuple]):
    """A possibility responsible for fixed length tuples based on
    heterogeneous possibilities for each of their elements."""

    def __init__(self, possibilities: Sequence[Possibility]) -> None:
        self.element_possibilities = tuple(possibilities)

    def __repr__(self) -> str:
        return "tuples({})".format(", ".join(map(repr, self.element_possibilities)))

    def calc_label(self) -> int:
        return cu.combine_labels(
            self.class_label, *(p.label for p in self.element_possibilities)
        )

    def produce(self, attempt) -> tuple:
        return tuple(attempt.produce(p) for p in self.element_possibilities)


class ListPossibility(Possibility[list]):
    """A possibility for lists which takes a possibility for its elements
    and produces lists of some length between ``min_size`` and
    ``max_size``.

    With ``unique=True``, elements equal to one already in the list are
    thrown away, counting as a rejected element.
    """

    def __init__(
        self, elements: Possibility, min_size=0, max_size=float("inf"), unique=False
    ) -> None:
        self.element_possibility = elements
        self.min_size = min_size
        self.max_size = max_size
        self.unique = unique
        self.average_size = cu.average_size(min_size, max_size)

    def __repr__(self) -> str:
        return "lists({!r}, min_size={!r}, max_size={!r}{})".format(
            self.element_possibility,
            self.min_size,
            self.max_size,
            ", unique=True" if self.unique else "",
        )

    def calc_label(self) -> int:
        return cu.combine_labels(self.class_label, self.element_possibility.label)

    def produce(self, attempt) -> list:
        elements = cu.many(
            attempt,
            min_size=self.min_size,
            max_size=self.max_size,
            average_size=self.average_size,
        )
        result: list = []
        while elements.more():
            value = attempt.produce(self.element_possibility)
            if self.unique and value in result:
                elements.reject()
            else:
                result.append(value)
        return result


class BuildsPossibility(Possibility):
    """Calls ``target`` with positional and keyword arguments produced from
    the given possibilities."""

    def __init__(
        self,
        target: Callable,
        args: "tuple[Possibility, ...]",
        kwargs: "dict[str, Possibility]",
        *,
        composed: bool = False,
    ) -> None:
        self.target = target
        self.args = args
        self.kwargs = kwargs
        self.composed = composed

    def calc_label(self) -> int:
        return cu.combine_labels(
            self.class_label, cu.calc_label_from_function(self.target)
        )

    def __repr__(self) -> str:
        if self.composed:
            return repr_call(self.target, self.args, self.kwargs)
        bits = [nicerepr(self.target), *map(repr, self.args)]
        bits.extend(f"{k}={v!r}" for k, v in self.kwargs.items())
        return "builds({})".format(", ".join(bits))

    def produce(self, attempt) -> Any:
        args = [attempt.produce(p) for p in self.args]
        kwargs = {k: attempt.produce(p) for k, p in self.kwargs.items()}
        return call_user_code(self.target, *args, **kwargs)
