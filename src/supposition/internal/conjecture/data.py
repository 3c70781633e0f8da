# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import itertools
from enum import IntEnum
from random import Random
from typing import Any, Iterator, NoReturn, Optional, Sequence

import attr

from supposition.errors import Frozen, InvalidArgument, StopTest
from supposition.internal.conjecture.utils import TOP_LABEL
from supposition.internal.escalation import InterestingOrigin
from supposition.reporting import debug_report
from supposition.utils.conventions import not_set

MAX_CHOICE = 2**64 - 1

# Counter used to tell StopTest signals from different attempts apart.
_testcounter = itertools.count()


class Status(IntEnum):
    OVERRUN = 0
    INVALID = 1
    VALID = 2
    INTERESTING = 3

    def __repr__(self) -> str:
        return f"Status.{self.name}"


@attr.s(slots=True, frozen=True)
class ChoiceNode:
    """A single choice made by an attempt, along with the range it was drawn
    from.  The shrinker uses the range to know how far a value can go down."""

    value: int = attr.ib()
    min_value: int = attr.ib()
    max_value: int = attr.ib()
    index: int = attr.ib(eq=False)

    @property
    def trivial(self) -> bool:
        return self.value == self.min_value


class ChoiceSource:
    """Where an attempt gets its choices from."""

    @property
    def exhausted(self) -> bool:
        return False

    def draw(
        self, min_value: int, max_value: int, *, probability: Optional[float] = None
    ) -> int:
        raise NotImplementedError(f"{type(self).__name__}.draw")


class FreshSource(ChoiceSource):
    """Draws every choice uniformly at random from the requested range, or
    with the requested probability of 1 for a weighted choice in [0, 1]."""

    def __init__(self, random: Random) -> None:
        self.random = random

    def draw(self, min_value, max_value, *, probability=None):
        if probability is not None:
            assert (min_value, max_value) == (0, 1)
            return int(self.random.random() < probability)
        return self.random.randint(min_value, max_value)


class SimplestSource(ChoiceSource):
    """Makes the simplest possible choice every time."""

    def draw(self, min_value, max_value, *, probability=None):
        return min_value


class ReplaySource(ChoiceSource):
    """Replays a fixed sequence of choices, then hands over to ``fallback``
    once the sequence runs out.

    If a replayed value doesn't fit the range it is now being drawn from, the
    sequence has become misaligned with the possibilities consuming it, and we
    use the simplest choice for that range instead.
    """

    def __init__(
        self, prefix: Sequence[int], fallback: Optional[ChoiceSource] = None
    ) -> None:
        self.prefix = tuple(prefix)
        self.fallback = fallback
        self.index = 0
        self.misaligned_at: Optional[int] = None

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.prefix) and self.fallback is None

    def draw(self, min_value, max_value, *, probability=None):
        if self.index < len(self.prefix):
            value = self.prefix[self.index]
            self.index += 1
            if not min_value <= value <= max_value:
                # only track first misalignment for now.
                if self.misaligned_at is None:
                    self.misaligned_at = self.index - 1
                value = min_value
            return value
        assert self.fallback is not None
        return self.fallback.draw(min_value, max_value, probability=probability)


@attr.s(slots=True, frozen=True)
class Span:
    """A span tracks the hierarchical structure of choices within a single
    attempt: every call to ``produce``, and every element of a collection,
    records the range of choice indices ``[start, end)`` that it consumed.

    Spans let the shrinker operate on whole generated values rather than on
    individual choices, e.g. deleting an element of a list or sorting a run
    of elements that were all produced the same way."""

    index: int = attr.ib()
    label: int = attr.ib(repr=False)
    start: int = attr.ib()
    end: int = attr.ib()
    depth: int = attr.ib()
    parent: Optional[int] = attr.ib()
    discarded: bool = attr.ib(default=False)

    @property
    def choice_count(self) -> int:
        return self.end - self.start


class Spans:
    """The spans of a finished attempt, indexed in the order they started.
    Span 0 is the top level span covering every choice."""

    def __init__(self, spans: Sequence[Span]) -> None:
        self.__spans = tuple(spans)
        self.__children: "Optional[list[tuple[int, ...]]]" = None

    @property
    def children(self) -> "list[tuple[int, ...]]":
        if self.__children is None:
            children: "list[list[int]]" = [[] for _ in self.__spans]
            for span in self.__spans:
                if span.parent is not None:
                    children[span.parent].append(span.index)
            self.__children = [tuple(c) for c in children]
        return self.__children

    def __len__(self) -> int:
        return len(self.__spans)

    def __getitem__(self, i: int) -> Span:
        return self.__spans[i]

    def __iter__(self) -> Iterator[Span]:
        return iter(self.__spans)

    def __repr__(self) -> str:
        return f"Spans({list(self.__spans)!r})"


@attr.s(slots=True, frozen=True)
class AttemptResult:
    """Result class storing the parts of an Attempt that we will care about
    after the original Attempt has outlived its usefulness."""

    status: Status = attr.ib()
    interesting_origin: Optional[InterestingOrigin] = attr.ib()
    nodes: "tuple[ChoiceNode, ...]" = attr.ib(eq=False, repr=False)
    max_choices: int = attr.ib()
    generation: int = attr.ib()
    target_score: Optional[float] = attr.ib()
    events: "tuple[tuple[str, Any], ...]" = attr.ib(repr=False)
    output: str = attr.ib(repr=False)
    expected_exception: Optional[BaseException] = attr.ib(eq=False, repr=False)
    expected_traceback: Optional[str] = attr.ib(eq=False, repr=False)
    spans: Spans = attr.ib(eq=False, repr=False)
    misaligned_at: Optional[int] = attr.ib(repr=False)
    invalid_because: Optional[str] = attr.ib(repr=False)

    def as_result(self) -> "AttemptResult":
        return self

    @property
    def choices(self) -> "tuple[int, ...]":
        return tuple(node.value for node in self.nodes)


class Attempt:
    """The state of a single trial: the choices made so far, the cap on how
    many may be made, and whatever the trial reported about itself.

    An attempt is in progress until it is frozen, which happens when it is
    concluded with a status or when the engine finishes running it.  Once
    frozen, nothing about it may change.
    """

    @classmethod
    def for_choices(
        cls,
        choices: Sequence[int],
        *,
        random: Optional[Random] = None,
        max_choices: Optional[int] = None,
        generation: int = 0,
    ) -> "Attempt":
        """Replay exactly ``choices``.  If ``random`` is given, choices made
        after the sequence runs out are drawn from it, up to ``max_choices``.
        """
        choices = tuple(choices)
        fallback = None if random is None else FreshSource(random)
        if max_choices is None or fallback is None:
            max_choices = len(choices)
        return cls(
            ReplaySource(choices, fallback),
            max_choices=max_choices,
            generation=generation,
        )

    def __init__(
        self, source: ChoiceSource, *, max_choices: int, generation: int = 0
    ) -> None:
        self.source = source
        self.max_choices = max_choices
        self.generation = generation
        self.nodes: "list[ChoiceNode]" = []
        self.status = Status.VALID
        self.frozen = False
        self.testcounter = next(_testcounter)

        self.target_score: Optional[float] = None
        self.events: "list[tuple[str, Any]]" = []
        self.output = ""
        self.invalid_because: Optional[str] = None
        self.interesting_origin: Optional[InterestingOrigin] = None
        self.expected_exception: Optional[BaseException] = None
        self.expected_traceback: Optional[str] = None

        # Seed for the independent random stream handed to user code.  It is
        # itself a choice, drawn the first time the stream is asked for.
        self.rng_seed: Optional[int] = None
        self.__random: Optional[Random] = None

        self.__result: Optional[AttemptResult] = None

        # We want the top level span to have depth 0, so we start at -1.
        self.depth = -1
        self.__spans: "list[list]" = []
        self.__span_stack: "list[int]" = []
        self.start_span(TOP_LABEL)

    def __repr__(self) -> str:
        return "Attempt(%s, %d choices%s)" % (
            self.status.name,
            len(self.nodes),
            ", frozen" if self.frozen else "",
        )

    @property
    def choices(self) -> "tuple[int, ...]":
        return tuple(node.value for node in self.nodes)

    def __assert_not_frozen(self, name: str) -> None:
        if self.frozen:
            raise Frozen(f"Cannot call {name} on frozen {self!r}")

    def _draw(
        self, min_value: int, max_value: int, *, probability: Optional[float] = None
    ) -> int:
        self.__assert_not_frozen("draw_integer")
        if len(self.nodes) >= self.max_choices:
            debug_report(f"overrun because hit {self.max_choices=}")
            self.mark_overrun()
        if self.source.exhausted:
            self.mark_overrun()
        value = self.source.draw(min_value, max_value, probability=probability)
        self.nodes.append(ChoiceNode(value, min_value, max_value, len(self.nodes)))
        return value

    def draw_integer(self, min_value: int, max_value: int) -> int:
        """Make a choice in the inclusive range ``[min_value, max_value]``.
        Smaller choices are simpler."""
        if not 0 <= min_value <= max_value <= MAX_CHOICE:
            raise InvalidArgument(
                f"Cannot draw a choice between {min_value=} and {max_value=}: choices "
                f"are unsigned and at most {MAX_CHOICE}"
            )
        return self._draw(min_value, max_value)

    def choice(self, n: int) -> int:
        return self.draw_integer(0, n)

    def weighted(self, p: float) -> bool:
        """Return True with probability ``p``, shrinking towards False."""
        if p <= 0:
            return bool(self._draw(0, 0))
        if p >= 1:
            return bool(self._draw(1, 1))
        return bool(self._draw(0, 1, probability=p))

    @property
    def random(self) -> Random:
        """An independent random number generator for residual randomness
        that doesn't come from possibilities, seeded from a single choice."""
        if self.__random is None:
            self.rng_seed = self.draw_integer(0, MAX_CHOICE)
            self.__random = Random(self.rng_seed)
        return self.__random

    def produce(self, possibility, label: Optional[int] = None) -> Any:
        self.__assert_not_frozen("produce")
        self.start_span(possibility.label if label is None else label)
        try:
            return possibility.produce(self)
        finally:
            self.stop_span()

    def target(self, score: float) -> None:
        """Record a score for this attempt.  Only the first score counts."""
        self.__assert_not_frozen("target")
        if self.target_score is None:
            self.target_score = float(score)

    def event(self, label: Any, value: Any = not_set) -> None:
        self.__assert_not_frozen("event")
        if value is not_set:
            label, value = f"UNLABELED_EVENT_{len(self.events)}", label
        self.events.append((label, value))

    def note(self, value: Any) -> None:
        self.__assert_not_frozen("note")
        if not isinstance(value, str):
            value = repr(value)
        self.output += value

    def start_span(self, label: int) -> None:
        self.__assert_not_frozen("start_span")
        self.depth += 1
        parent = self.__span_stack[-1] if self.__span_stack else None
        self.__span_stack.append(len(self.__spans))
        self.__spans.append([label, len(self.nodes), None, self.depth, parent, False])

    def stop_span(self, *, discard: bool = False) -> None:
        if self.frozen:
            return
        i = self.__span_stack.pop()
        record = self.__spans[i]
        record[2] = len(self.nodes)
        record[5] = discard
        self.depth -= 1
        assert self.depth >= -1

    @property
    def spans(self) -> Spans:
        assert self.frozen
        return Spans(
            [
                Span(i, label, start, end, depth, parent, discarded)
                for i, (label, start, end, depth, parent, discarded) in enumerate(
                    self.__spans
                )
            ]
        )

    def freeze(self) -> None:
        if self.frozen:
            return
        # Always finish by closing all remaining spans so that we have a
        # valid tree.
        while self.__span_stack:
            self.stop_span()
        self.frozen = True

    def as_result(self) -> AttemptResult:
        """Convert the result of running this attempt into an immutable
        AttemptResult."""
        assert self.frozen
        if self.__result is None:
            self.__result = AttemptResult(
                status=self.status,
                interesting_origin=self.interesting_origin,
                nodes=tuple(self.nodes),
                max_choices=self.max_choices,
                generation=self.generation,
                target_score=self.target_score,
                events=tuple(self.events),
                output=self.output,
                expected_exception=self.expected_exception,
                expected_traceback=self.expected_traceback,
                spans=self.spans,
                misaligned_at=getattr(self.source, "misaligned_at", None),
                invalid_because=self.invalid_because,
            )
        return self.__result

    def conclude_test(
        self,
        status: Status,
        interesting_origin: Optional[InterestingOrigin] = None,
    ) -> NoReturn:
        assert (interesting_origin is None) or (status == Status.INTERESTING)
        self.__assert_not_frozen("conclude_test")
        self.interesting_origin = interesting_origin
        self.status = status
        self.freeze()
        raise StopTest(self.testcounter)

    def mark_interesting(self, interesting_origin: InterestingOrigin) -> NoReturn:
        self.conclude_test(Status.INTERESTING, interesting_origin)

    def mark_invalid(self, why: Optional[str] = None) -> NoReturn:
        if why is not None:
            self.invalid_because = why
        self.conclude_test(Status.INVALID)

    def mark_overrun(self) -> NoReturn:
        self.conclude_test(Status.OVERRUN)
