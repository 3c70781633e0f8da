# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import math

import pytest

from supposition.errors import StopTest
from supposition.internal.conjecture import utils as cu
from supposition.internal.conjecture.data import Attempt, Status


def test_labels_are_stable_and_distinct():
    assert cu.calc_label_from_name("a") == cu.calc_label_from_name("a")
    assert cu.calc_label_from_name("a") != cu.calc_label_from_name("b")
    assert 0 <= cu.calc_label_from_name("a") < 2**64


def test_combined_labels_depend_on_order():
    a = cu.calc_label_from_name("a")
    b = cu.calc_label_from_name("b")
    assert cu.combine_labels(a, b) != cu.combine_labels(b, a)
    assert 0 <= cu.combine_labels(a, b, a, b) < 2**64


def count_many(choices, min_size, max_size):
    attempt = Attempt.for_choices(choices)
    elements = cu.many(
        attempt,
        min_size=min_size,
        max_size=max_size,
        average_size=cu.average_size(min_size, max_size),
    )
    count = 0
    while elements.more():
        count += 1
    return count, attempt


def test_many_stops_when_told_to():
    count, attempt = count_many([1, 1, 0], 0, math.inf)
    assert count == 2
    assert attempt.choices == (1, 1, 0)


def test_many_forces_the_minimum_size():
    count, attempt = count_many([0, 0, 0], 2, math.inf)
    assert count == 2
    # The first two continuations are forced, so replaying 0 is misaligned.
    assert attempt.choices == (1, 1, 0)
    assert [(n.min_value, n.max_value) for n in attempt.nodes][:2] == [(1, 1)] * 2


def test_many_forces_a_stop_at_the_maximum_size():
    count, attempt = count_many([1, 1, 1], 0, 2)
    assert count == 2
    assert attempt.choices == (1, 1, 0)


def test_many_of_fixed_size_makes_no_choices():
    count, attempt = count_many([], 3, 3)
    assert count == 3
    assert attempt.choices == ()


def test_many_gives_up_after_too_many_rejections():
    attempt = Attempt.for_choices([1, 1, 1, 1])
    elements = cu.many(attempt, min_size=1, max_size=math.inf, average_size=2)
    with pytest.raises(StopTest):
        while elements.more():
            elements.reject()
    assert attempt.status == Status.INVALID


@pytest.mark.parametrize(
    "min_size, max_size, expected",
    [(0, None, 5), (0, 4, 2), (10, None, 20), (0, math.inf, 5)],
)
def test_average_size(min_size, max_size, expected):
    assert cu.average_size(min_size, max_size) == expected
