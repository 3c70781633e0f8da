# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from supposition.errors import InvalidArgument
from supposition.internal.conjecture.utils import (
    calc_label_from_cls,
    calc_label_from_name,
    combine_labels,
)
from supposition.internal.escalation import call_user_code
from supposition.internal.reflection import get_pretty_function_description

Ex = TypeVar("Ex", covariant=True)
T = TypeVar("T")

FILTER_ATTEMPT_LABEL = calc_label_from_name("one attempt at a filtered value")


class Possibility(Generic[Ex]):
    """A Possibility is an immutable description of how to produce values of
    some type from the choices of an attempt.

    Subclasses implement ``produce(attempt)``, which must be a pure function
    of the choices it makes: replaying the same choices produces the same
    value.  Composite possibilities produce their parts with
    ``attempt.produce(child)``, which records a span around each part.

    Except where noted otherwise, methods on this class are not part of the
    public API and their behaviour may change between minor releases.
    """

    _label: Optional[int] = None

    def produce(self, attempt) -> Ex:
        raise NotImplementedError(f"{type(self).__name__}.produce")

    @property
    def class_label(self) -> int:
        cls = self.__class__
        try:
            return cls.__dict__["_class_label"]
        except KeyError:
            pass
        result = calc_label_from_cls(cls)
        cls._class_label = result
        return result

    @property
    def label(self) -> int:
        if self._label is None:
            self._label = self.calc_label()
        return self._label

    def calc_label(self) -> int:
        return self.class_label

    def example(self) -> Ex:
        """Provide an example of the sort of value that this possibility
        produces.

        This method is for interactive exploration of the API, not for any
        sort of real testing.

        This method is part of the public API.
        """
        from supposition.core import example

        return example(self)

    def map(self, pack: Callable[[Ex], T]) -> "Possibility[T]":
        """Returns a new possibility that produces values by producing a value
        from this possibility and then calling pack() on the result, giving
        that.

        This method is part of the public API.
        """
        if not callable(pack):
            raise InvalidArgument(f"Expected a callable but got pack={pack!r}")
        return MappedPossibility(self, pack)

    def flatmap(self, expand: Callable[[Ex], "Possibility[T]"]) -> "Possibility[T]":
        """Returns a new possibility that produces values by producing a value
        from this possibility, say x, then producing a value from
        ``expand(x)``.

        This method is part of the public API.
        """
        if not callable(expand):
            raise InvalidArgument(f"Expected a callable but got expand={expand!r}")
        return FlatMappedPossibility(self, expand)

    bind = flatmap

    def filter(self, condition: Callable[[Ex], Any]) -> "Possibility[Ex]":
        """Returns a new possibility that produces values from this possibility
        which satisfy the provided condition.

        Each produced value that fails the condition is retried a few times,
        after which the whole attempt is rejected.  If the condition is too
        hard to satisfy the search may give up as unsatisfiable.

        This method is part of the public API.
        """
        if not callable(condition):
            raise InvalidArgument(
                f"Expected a callable but got condition={condition!r}"
            )
        return FilteredPossibility(self, (condition,))

    def __or__(self, other: "Possibility[T]") -> "Possibility":
        """Return a possibility which produces values by picking one of the
        two possibilities and producing from it.

        This method is part of the public API.
        """
        if not isinstance(other, Possibility):
            raise ValueError(f"Cannot | a Possibility with {other!r}")
        return OneOfPossibility((self, other))


class OneOfPossibility(Possibility[Ex]):
    """Implements a union of possibilities. Given a number of possibilities
    this produces values which could have come from any of them.

    The conditional distribution draws uniformly at random from some
    non-empty subset of these possibilities and then produces from the
    conditional distribution of that possibility.  Shrinking moves towards
    the earlier alternatives.
    """

    def __init__(self, possibilities: Sequence[Possibility]) -> None:
        flattened: "list[Possibility]" = []
        for p in possibilities:
            if isinstance(p, OneOfPossibility):
                flattened.extend(p.element_possibilities)
            else:
                flattened.append(p)
        assert flattened
        self.element_possibilities = tuple(flattened)

    def calc_label(self) -> int:
        return combine_labels(
            self.class_label, *(p.label for p in self.element_possibilities)
        )

    def produce(self, attempt) -> Ex:
        i = attempt.choice(len(self.element_possibilities) - 1)
        return attempt.produce(self.element_possibilities[i])

    def __repr__(self) -> str:
        return "one_of({})".format(", ".join(map(repr, self.element_possibilities)))


class MappedPossibility(Possibility[Ex]):
    """A possibility which is defined purely by conversion from another
    possibility."""

    def __init__(self, possibility: Possibility, pack: Callable) -> None:
        self.mapped_possibility = possibility
        self.pack = pack

    def calc_label(self) -> int:
        return combine_labels(self.class_label, self.mapped_possibility.label)

    def __repr__(self) -> str:
        if not hasattr(self, "_cached_repr"):
            self._cached_repr = (
                f"{self.mapped_possibility!r}.map("
                f"{get_pretty_function_description(self.pack)})"
            )
        return self._cached_repr

    def produce(self, attempt) -> Ex:
        return call_user_code(self.pack, attempt.produce(self.mapped_possibility))


class FlatMappedPossibility(Possibility[Ex]):
    def __init__(self, possibility: Possibility, expand: Callable) -> None:
        self.flatmapped_possibility = possibility
        self.expand = expand

    def calc_label(self) -> int:
        return combine_labels(self.class_label, self.flatmapped_possibility.label)

    def __repr__(self) -> str:
        if not hasattr(self, "_cached_repr"):
            self._cached_repr = (
                f"{self.flatmapped_possibility!r}.flatmap("
                f"{get_pretty_function_description(self.expand)})"
            )
        return self._cached_repr

    def produce(self, attempt) -> Ex:
        source = attempt.produce(self.flatmapped_possibility)
        expanded = call_user_code(self.expand, source)
        if not isinstance(expanded, Possibility):
            raise InvalidArgument(
                f"Expected flatmap({get_pretty_function_description(self.expand)}) "
                f"to return a Possibility, but got {expanded!r}"
            )
        return attempt.produce(expanded)


class FilteredPossibility(Possibility[Ex]):
    def __init__(
        self, possibility: Possibility, conditions: "tuple[Callable, ...]"
    ) -> None:
        if isinstance(possibility, FilteredPossibility):
            # Flatten chained filters into a single filter with multiple
            # conditions.
            self.flat_conditions = possibility.flat_conditions + tuple(conditions)
            self.filtered_possibility = possibility.filtered_possibility
        else:
            self.flat_conditions = tuple(conditions)
            self.filtered_possibility = possibility
        assert self.flat_conditions

    def calc_label(self) -> int:
        return combine_labels(self.class_label, self.filtered_possibility.label)

    def __repr__(self) -> str:
        if not hasattr(self, "_cached_repr"):
            self._cached_repr = "{!r}{}".format(
                self.filtered_possibility,
                "".join(
                    f".filter({get_pretty_function_description(cond)})"
                    for cond in self.flat_conditions
                ),
            )
        return self._cached_repr

    def produce(self, attempt) -> Ex:
        for _ in range(3):
            start = len(attempt.nodes)
            attempt.start_span(FILTER_ATTEMPT_LABEL)
            value = attempt.produce(self.filtered_possibility)
            if all(call_user_code(cond, value) for cond in self.flat_conditions):
                attempt.stop_span()
                return value
            attempt.stop_span(discard=True)
            # If we consumed no choices, retrying would give the same value.
            if len(attempt.nodes) == start:
                break
        attempt.mark_invalid(f"Aborted test because unable to satisfy {self!r}")


class Nothing(Possibility):
    def produce(self, attempt):
        attempt.mark_invalid("nothing() cannot produce any values")

    def __repr__(self) -> str:
        return "nothing()"

    def map(self, pack):
        return self

    def filter(self, condition):
        return self

    def flatmap(self, expand):
        return self


NOTHING = Nothing()
