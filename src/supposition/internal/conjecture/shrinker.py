# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from typing import TYPE_CHECKING, Callable, Sequence

from supposition.internal.conjecture.data import AttemptResult, ChoiceNode, Spans
from supposition.internal.conjecture.junkdrawer import (
    binary_search,
    block_sizes,
    find_integer,
)
from supposition.internal.escalation import compare_errors

if TYPE_CHECKING:
    from supposition.internal.conjecture.engine import SearchEngine


def sort_key(choices: Sequence[int]) -> "tuple[int, tuple[int, ...]]":
    """Returns a sort key such that "simpler" choice sequences are smaller than
    "more complicated" ones.

    We define sort_key so that x is simpler than y if x is shorter than y or if
    they have the same length and x < y lexicographically. This is called the
    shortlex order.

    The reason for using the shortlex order is:

    1. If x is shorter than y then that means we had to make fewer decisions
       in constructing the test case when we ran x than we did when we ran y.
    2. If x is the same length as y then replacing a choice with a lower one
       corresponds to moving a value towards the simplest end of its range.
    3. We want a total order, and given (2) the natural choices for things of
       the same size are either the lexicographic or colexicographic orders.
       Because choices made early in generation potentially get used in more
       places they potentially have a more significant impact on the final
       result, so it makes sense to prioritise reducing earlier values over
       later ones. This makes the lexicographic order the more natural choice.
    """
    return (len(choices), tuple(choices))


class Shrinker:
    """A shrinker is a child object of a SearchEngine which is designed to
    manage the associated state of a particular shrink problem. That is, we
    have some initial AttemptResult and some property of interest that it
    satisfies, and we want to find an AttemptResult with a shortlex (see
    sort_key above) smaller choice sequence that exhibits the same property.

    The property we use is that the status is INTERESTING with the same
    classification as the initial result: a failure stays a failure, and an
    error stays an error of the same exception type.

    The shrinker keeps track of a value shrink_target which represents the
    current best known AttemptResult satisfying the predicate.  It refines
    this value by repeatedly running *shrink passes*, which are methods that
    perform a series of transformations to the current shrink_target and
    evaluate the underlying test function to find new results.  If any of
    these satisfy the predicate, the shrink_target is updated automatically.
    Shrinking runs until no shrink pass can improve the shrink_target, at
    which point it stops.  It may also be terminated if the underlying
    engine throws RunIsComplete because the call budget ran out, but that is
    handled by the calling code rather than the Shrinker.

    The main invariant a shrink pass must satisfy is that whether it makes
    progress must be deterministic: if you run a shrink pass, it makes no
    progress, and then you immediately run it again, it should never succeed
    on the second time.  This lets us stop as soon as we have run every pass
    once without seeing any progress.

    Shrink passes need to be written so as to be robust against change in the
    underlying shrink target.  They generally walk an index over the current
    choices, and leave the index where it is rather than restarting from the
    beginning when the target changes, so that the number of steps a pass
    takes is bounded above by the number it would take if nothing worked.
    """

    def default_passes(self) -> "list[str]":
        """Returns the list of shrink passes, in a good order to run them in.

        Deletion comes first because shorter sequences are always simpler
        and mean less work for every later pass."""
        return [
            "delete_spans",
            "delete_blocks",
            "zero_blocks",
            "minimize_individual_choices",
            "normalize_spans",
            "swap_adjacent_spans",
        ]

    def __init__(
        self,
        engine: "SearchEngine",
        initial: AttemptResult,
        predicate: Callable[[AttemptResult], bool],
    ) -> None:
        """Create a shrinker for a particular engine, with a given starting
        point and predicate. When shrink() is called it will attempt to find an
        example for which predicate is True and which is strictly smaller than
        initial."""
        assert predicate(initial)
        self.__engine = engine
        self.__predicate = predicate
        self.__seen: "set[tuple[int, ...]]" = set()
        self.initial = initial
        self.shrink_target = initial
        self.shrinks = 0
        self.initial_calls = engine.call_count

    @property
    def calls(self) -> int:
        """Return the number of calls that have been made to the underlying
        test function."""
        return self.__engine.call_count

    @property
    def choices(self) -> "tuple[int, ...]":
        return self.shrink_target.choices

    @property
    def nodes(self) -> "tuple[ChoiceNode, ...]":
        return self.shrink_target.nodes

    @property
    def spans(self) -> Spans:
        return self.shrink_target.spans

    def debug(self, msg: str) -> None:
        self.__engine.debug(msg)

    def shrink(self) -> AttemptResult:
        """Run passes until a full round of them makes no progress."""
        previous = None
        while previous is not self.shrink_target:
            previous = self.shrink_target
            for name in self.default_passes():
                before = self.calls
                getattr(self, name)()
                self.debug(
                    f"Shrink pass {name} made {self.calls - before} calls, now at "
                    f"{len(self.choices)} choices"
                )
        self.debug(
            f"Shrinking finished after {self.shrinks} shrinks and "
            f"{self.calls - self.initial_calls} calls"
        )
        return self.shrink_target

    def update_shrink_target(self, new_target: AttemptResult) -> None:
        assert self.__predicate(new_target)
        self.shrinks += 1
        self.shrink_target = new_target

    def consider_choices(self, choices: Sequence[int]) -> bool:
        """Returns True if after running these choices the result would be
        the current shrink_target."""
        choices = tuple(choices)
        return choices == self.choices or self.incorporate_choices(choices)

    def incorporate_choices(self, choices: Sequence[int]) -> bool:
        """Either runs the test function on these choices and returns True if
        that changed the shrink_target, or determines that doing so would
        be useless and returns False without running it."""
        choices = tuple(choices)
        if sort_key(choices) >= sort_key(self.choices):
            return False
        if choices in self.__seen:
            return False
        self.__seen.add(choices)
        return self.incorporate_result(self.__engine.cached_test_function(choices))

    def incorporate_result(self, result: AttemptResult) -> bool:
        """Takes an AttemptResult and updates the current shrink_target if it
        represents an improvement over it, returning True if it is."""
        if result is self.shrink_target:
            return False
        if (
            self.__predicate(result)
            and sort_key(result.choices) < sort_key(self.choices)
            # A registered ordering can veto an error it ranks as worse.
            and compare_errors(
                result.expected_exception, self.shrink_target.expected_exception
            )
            is not False
        ):
            self.update_shrink_target(result)
            return True
        return False

    def delete_spans(self) -> None:
        """Attempts to delete every span from the test case.

        That is, it is logically equivalent to trying ``choices[:span.start] +
        choices[span.end:]`` for every span.  When deleting a span works, we
        try to delete progressively more of its following siblings at the
        same time, so that e.g. a long list can lose many elements in a
        logarithmic number of calls.
        """
        i = len(self.spans) - 1
        while i > 0:
            if i < len(self.spans):
                self.__delete_sibling_run(i)
            i -= 1

    def __delete_sibling_run(self, i: int) -> None:
        choices = self.choices
        spans = self.spans
        span = spans[i]
        if span.choice_count == 0 or span.parent is None:
            return
        siblings = spans.children[span.parent]
        j = siblings.index(i)

        def delete(n):
            if j + n > len(siblings):
                return False
            end = spans[siblings[j + n - 1]].end
            return self.consider_choices(choices[: span.start] + choices[end:])

        if delete(1):
            find_integer(lambda n: delete(n + 1))

    def delete_blocks(self) -> None:
        """Try deleting every contiguous block of choices, for block sizes
        1, 2, 4, ... and then back down again.

        This catches deletions that don't line up with a span, e.g. when a
        value was produced by drawing several choices directly.  If deleting a
        block doesn't work, we also try decrementing the choice before it,
        which is usually what is needed when that choice controls how many
        more choices get made.
        """
        for k in block_sizes(len(self.choices)):
            i = len(self.choices) - k
            while i >= 0:
                if i + k <= len(self.choices):
                    attempt = self.choices[:i] + self.choices[i + k :]
                    if (
                        not self.consider_choices(attempt)
                        and i > 0
                        and attempt[i - 1] > self.nodes[i - 1].min_value
                    ):
                        self.consider_choices(
                            attempt[: i - 1] + (attempt[i - 1] - 1,) + attempt[i:]
                        )
                i -= 1

    def zero_blocks(self) -> None:
        """Replace blocks of choices with the simplest value each of them
        could have taken, largest blocks first."""
        n = len(self.choices)
        for k in reversed(block_sizes(n)[: n.bit_length()]):
            i = 0
            while i + k <= len(self.choices):
                block = self.nodes[i : i + k]
                if not all(node.trivial for node in block):
                    self.consider_choices(
                        self.choices[:i]
                        + tuple(node.min_value for node in block)
                        + self.choices[i + k :]
                    )
                i += k

    def minimize_individual_choices(self) -> None:
        """Move each choice as close to the bottom of its range as it can go.

        We first try the bottom of the range and the value just above it,
        since those usually work if anything does, then binary search for the
        smallest value that keeps the test case interesting.
        """
        i = 0
        while i < len(self.nodes):
            self.minimize_choice(i)
            i += 1

    def minimize_choice(self, i: int) -> None:
        node = self.nodes[i]
        if node.trivial:
            return

        def replace(value):
            if i >= len(self.choices):
                return False
            return self.consider_choices(
                self.choices[:i] + (value,) + self.choices[i + 1 :]
            )

        lo = node.min_value
        if replace(lo):
            return
        if lo + 1 < node.value and replace(lo + 1):
            return
        # replace(lo) is False and replace(node.value) is True, so there is a
        # smallest working value in (lo, node.value].
        best = binary_search(lo, node.value, lambda v: v > lo and replace(v)) + 1
        replace(best)

    def __same_shape_runs(self, parent: int) -> "list[tuple[int, int, int]]":
        """Returns ``(start, end, size)`` for each maximal run of at least two
        consecutive child spans of ``parent`` that share a label and consume
        the same non-zero number of choices."""
        spans = self.spans
        runs = []
        run: "list" = []
        for c in spans.children[parent]:
            span = spans[c]
            if (
                run
                and span.label == run[-1].label
                and span.choice_count == run[-1].choice_count
                and span.start == run[-1].end
            ):
                run.append(span)
                continue
            if len(run) >= 2:
                runs.append((run[0].start, run[-1].end, run[0].choice_count))
            run = [span] if span.choice_count > 0 else []
        if len(run) >= 2:
            runs.append((run[0].start, run[-1].end, run[0].choice_count))
        return runs

    def normalize_spans(self) -> None:
        """Sort and deduplicate runs of sibling spans that were produced the
        same way, such as the elements of a list.

        Sorting can't make the sequence longer, and deduplicating makes it
        shorter, so both are improvements whenever they keep the test case
        interesting.
        """
        parent = 0
        while parent < len(self.spans):
            for start, end, size in self.__same_shape_runs(parent):
                choices = self.choices
                if end > len(choices):
                    continue
                blocks = [choices[s : s + size] for s in range(start, end, size)]
                prefix, suffix = choices[:start], choices[end:]

                deduplicated = list(dict.fromkeys(blocks))
                if len(deduplicated) < len(blocks) and self.consider_choices(
                    prefix + sum(deduplicated, ()) + suffix
                ):
                    continue
                ordered = sorted(blocks)
                if ordered != blocks:
                    self.consider_choices(prefix + sum(ordered, ()) + suffix)
            parent += 1

    def swap_adjacent_spans(self) -> None:
        """Swap adjacent sibling spans of the same size when the later one is
        simpler, regardless of how they were produced.  This occasionally
        gets us out of a local minimum that deletion and value reduction
        can't escape."""
        i = 0
        while i < len(self.spans):
            spans = self.spans
            siblings = spans.children[i]
            for a, b in zip(siblings, siblings[1:]):
                if b >= len(spans):
                    break
                x, y = spans[a], spans[b]
                if x.choice_count != y.choice_count or x.choice_count == 0:
                    continue
                choices = self.choices
                if x.end != y.start or y.end > len(choices):
                    continue
                first, second = choices[x.start : x.end], choices[y.start : y.end]
                if second < first:
                    self.consider_choices(
                        choices[: x.start] + second + first + choices[y.end :]
                    )
                    spans = self.spans
            i += 1
