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

from supposition.internal.conjecture.junkdrawer import (
    binary_search,
    block_sizes,
    clamp,
    find_integer,
)


def test_binary_search_finds_the_boundary():
    assert binary_search(0, 100, lambda x: x < 37) == 36


def test_binary_search_with_an_empty_range_returns_lo():
    assert binary_search(5, 6, lambda x: False) == 5


@pytest.mark.parametrize("n", [0, 1, 3, 4, 5, 17, 1000])
def test_find_integer_finds_the_largest_true_value(n):
    assert find_integer(lambda i: i <= n) == n


def test_find_integer_makes_few_calls_for_small_answers():
    calls = []

    def f(i):
        calls.append(i)
        return i <= 1

    assert find_integer(f) == 1
    assert calls == [1, 2]


def test_block_sizes_grow_then_shrink():
    assert block_sizes(0) == []
    assert block_sizes(1) == [1]
    assert block_sizes(5) == [1, 2, 4, 2, 1]
    assert block_sizes(8) == [1, 2, 4, 8, 4, 2, 1]


@pytest.mark.parametrize(
    "lower, value, upper, expected",
    [(0, 5, 10, 5), (0, -1, 10, 0), (0, 11, 10, 10)],
)
def test_clamp(lower, value, upper, expected):
    assert clamp(lower, value, upper) == expected
