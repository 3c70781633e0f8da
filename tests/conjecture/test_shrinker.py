# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import pytest

from supposition import possibilities as ps, register_error_ordering
from supposition.internal.conjecture.data import Status
from supposition.internal.conjecture.shrinker import sort_key
from supposition.internal.escalation import FALSIFIED, InterestingOrigin

from tests.conjecture.common import interesting_origin, shrinking_from


def test_shrinks_a_single_choice_to_the_boundary():
    @shrinking_from([90])
    def shrinker(attempt):
        if attempt.draw_integer(0, 100) >= 17:
            attempt.mark_interesting(FALSIFIED)

    shrinker.shrink()
    assert shrinker.choices == (17,)


def test_deletes_elements_and_lowers_the_count_before_them():
    @shrinking_from([5, 1, 2, 90, 3, 4])
    def shrinker(attempt):
        n = attempt.draw_integer(0, 10)
        values = [attempt.draw_integer(0, 100) for _ in range(n)]
        if any(v >= 50 for v in values):
            attempt.mark_interesting(FALSIFIED)

    shrinker.shrink()
    assert shrinker.choices == (1, 50)


def test_shrinking_never_makes_things_worse():
    start = [3, 80, 70, 60]

    @shrinking_from(start)
    def shrinker(attempt):
        n = attempt.draw_integer(0, 10)
        if sum(attempt.draw_integer(0, 100) for _ in range(n)) >= 100:
            attempt.mark_interesting(FALSIFIED)

    result = shrinker.shrink()
    assert sort_key(result.choices) <= sort_key(start)
    assert result.status == Status.INTERESTING


def test_shrinking_a_shrunk_result_changes_nothing():
    def f(attempt):
        n = attempt.draw_integer(0, 10)
        if sum(attempt.draw_integer(0, 100) for _ in range(n)) >= 100:
            attempt.mark_interesting(FALSIFIED)

    first = shrinking_from([3, 80, 70, 60])(f).shrink()
    again = shrinking_from(first.choices)(f)
    again.shrink()
    assert again.choices == first.choices
    assert again.shrinks == 0


def test_zeroes_blocks_of_choices():
    @shrinking_from([7, 8, 7, 10])
    def shrinker(attempt):
        values = [attempt.draw_integer(0, 10) for _ in range(4)]
        if values[0] == values[2]:
            attempt.mark_interesting(FALSIFIED)

    shrinker.zero_blocks()
    assert shrinker.choices == (0, 0, 0, 0)


def test_sorts_runs_of_list_elements():
    @shrinking_from([1, 3, 1, 1, 1, 2, 0])
    def shrinker(attempt):
        if sorted(attempt.produce(ps.lists(ps.integers(0, 10)))) == [1, 2, 3]:
            attempt.mark_interesting(FALSIFIED)

    shrinker.normalize_spans()
    assert shrinker.choices == (1, 1, 1, 2, 1, 3, 0)


def test_deduplicates_runs_of_list_elements():
    @shrinking_from([1, 5, 1, 5, 1, 5, 0])
    def shrinker(attempt):
        if set(attempt.produce(ps.lists(ps.integers(0, 10)))) == {5}:
            attempt.mark_interesting(FALSIFIED)

    shrinker.normalize_spans()
    assert shrinker.choices == (1, 5, 0)


def test_swaps_adjacent_values():
    @shrinking_from([7, 2])
    def shrinker(attempt):
        pair = attempt.produce(ps.tuples(ps.integers(0, 10), ps.integers(0, 10)))
        if sorted(pair) == [2, 7]:
            attempt.mark_interesting(FALSIFIED)

    shrinker.swap_adjacent_spans()
    assert shrinker.choices == (2, 7)


def test_deletes_whole_list_elements():
    @shrinking_from([1, 4, 1, 50, 1, 9, 1, 3, 0])
    def shrinker(attempt):
        if any(x >= 20 for x in attempt.produce(ps.lists(ps.integers(0, 100)))):
            attempt.mark_interesting(FALSIFIED)

    shrinker.delete_spans()
    assert shrinker.choices == (1, 50, 0)


def test_shrinks_lists_to_the_minimal_failing_list():
    @shrinking_from([1, 4, 1, 50, 1, 9, 1, 3, 0])
    def shrinker(attempt):
        xs = attempt.produce(ps.lists(ps.integers(0, 100)))
        if len(xs) >= 2 and max(xs) >= 20:
            attempt.mark_interesting(FALSIFIED)

    shrinker.shrink()
    assert shrinker.choices == (1, 0, 1, 20, 0)


def error_at(x):
    if x >= 50:
        return InterestingOrigin(ValueError, "a", 1)
    if x >= 10:
        return InterestingOrigin(TypeError, "b", 2)
    return None


def test_keeps_the_classification_of_errors():
    initial = error_at(80)

    @shrinking_from(
        [80],
        lambda r: r.status == Status.INTERESTING and r.interesting_origin == initial,
    )
    def shrinker(attempt):
        origin = error_at(attempt.draw_integer(0, 100))
        if origin is not None:
            attempt.mark_interesting(origin)

    shrinker.shrink()
    assert shrinker.choices == (50,)


class Boom(Exception):
    def __init__(self, badness):
        super().__init__(badness)
        self.badness = badness


def booming(attempt):
    x = attempt.draw_integer(0, 100)
    if x >= 10:
        attempt.expected_exception = Boom(-x)
        attempt.mark_interesting(interesting_origin(1))


def test_shrinks_errors_without_a_registered_ordering():
    shrinker = shrinking_from([14])(booming)
    shrinker.shrink()
    assert shrinker.choices == (10,)


def test_a_registered_ordering_vetoes_worse_errors():
    register_error_ordering(Boom, lambda a, b: a.badness < b.badness)
    shrinker = shrinking_from([14])(booming)
    shrinker.shrink()
    assert shrinker.choices == (14,)
    assert shrinker.shrink_target.expected_exception.badness == -14


@pytest.mark.parametrize("n", [0, 1, 5])
def test_shrinks_a_count_down_to_what_is_needed(n):
    @shrinking_from([10] + [1] * 10)
    def shrinker(attempt):
        k = attempt.draw_integer(0, 10)
        if k >= n and sum(attempt.draw_integer(0, 1) for _ in range(k)) >= n:
            attempt.mark_interesting(FALSIFIED)

    shrinker.shrink()
    assert shrinker.choices == (n,) + (1,) * n
