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

import pytest

from supposition import possibilities as ps
from supposition.errors import Frozen, InvalidArgument, StopTest
from supposition.internal.conjecture.data import (
    MAX_CHOICE,
    Attempt,
    FreshSource,
    ReplaySource,
    SimplestSource,
    Status,
)
from supposition.internal.escalation import FALSIFIED


def test_draws_are_recorded_with_their_range():
    attempt = Attempt.for_choices([3])
    assert attempt.draw_integer(0, 10) == 3
    (node,) = attempt.nodes
    assert (node.value, node.min_value, node.max_value) == (3, 0, 10)


def test_misaligned_replay_uses_the_simplest_choice():
    attempt = Attempt.for_choices([1, 20])
    assert attempt.draw_integer(0, 10) == 1
    assert attempt.draw_integer(5, 10) == 5
    assert attempt.source.misaligned_at == 1
    attempt.freeze()
    assert attempt.as_result().misaligned_at == 1
    assert attempt.choices == (1, 5)


def test_running_out_of_replayed_choices_is_an_overrun():
    attempt = Attempt.for_choices([1])
    attempt.draw_integer(0, 1)
    with pytest.raises(StopTest) as e:
        attempt.draw_integer(0, 1)
    assert e.value.testcounter == attempt.testcounter
    assert attempt.status == Status.OVERRUN
    assert attempt.frozen


def test_replay_falls_back_to_fresh_choices():
    attempt = Attempt.for_choices([1], random=Random(0), max_choices=10)
    assert attempt.draw_integer(0, 1) == 1
    assert 0 <= attempt.draw_integer(0, 100) <= 100
    assert len(attempt.nodes) == 2


def test_cannot_make_more_than_max_choices():
    attempt = Attempt(FreshSource(Random(0)), max_choices=2)
    attempt.draw_integer(0, 10)
    attempt.draw_integer(0, 10)
    with pytest.raises(StopTest):
        attempt.draw_integer(0, 10)
    assert attempt.status == Status.OVERRUN
    assert len(attempt.nodes) == 2


def test_cannot_draw_after_freezing():
    attempt = Attempt.for_choices([1, 2])
    attempt.draw_integer(0, 10)
    attempt.freeze()
    with pytest.raises(Frozen):
        attempt.draw_integer(0, 10)
    with pytest.raises(Frozen):
        attempt.target(1)


def test_freezing_is_idempotent():
    attempt = Attempt.for_choices([])
    attempt.freeze()
    attempt.freeze()
    assert attempt.status == Status.VALID
    assert attempt.frozen


@pytest.mark.parametrize(
    "min_value, max_value", [(1, 0), (-1, 1), (0, MAX_CHOICE + 1)]
)
def test_rejects_invalid_ranges(min_value, max_value):
    attempt = Attempt.for_choices([0])
    with pytest.raises(InvalidArgument):
        attempt.draw_integer(min_value, max_value)
    assert not attempt.nodes


def test_simplest_source_always_picks_the_minimum():
    attempt = Attempt(SimplestSource(), max_choices=10)
    assert attempt.draw_integer(3, 10) == 3
    assert attempt.draw_integer(0, MAX_CHOICE) == 0
    assert not attempt.weighted(0.9)


def test_fresh_source_stays_in_range():
    attempt = Attempt(FreshSource(Random(0)), max_choices=1000)
    for _ in range(500):
        assert 17 <= attempt.draw_integer(17, 19) <= 19


def test_forced_weighted_choices_have_a_single_value():
    attempt = Attempt(FreshSource(Random(0)), max_choices=10)
    assert not attempt.weighted(0)
    assert attempt.weighted(1)
    assert [(n.min_value, n.max_value) for n in attempt.nodes] == [(0, 0), (1, 1)]


def test_only_the_first_target_counts():
    attempt = Attempt.for_choices([])
    attempt.target(1)
    attempt.target(2)
    attempt.freeze()
    assert attempt.as_result().target_score == 1.0


def test_unlabeled_events_are_numbered_by_position():
    attempt = Attempt.for_choices([])
    attempt.event("a")
    attempt.event("size", 2)
    attempt.event("b")
    assert attempt.events == [
        ("UNLABELED_EVENT_0", "a"),
        ("size", 2),
        ("UNLABELED_EVENT_2", "b"),
    ]


def test_notes_are_collected_as_output():
    attempt = Attempt.for_choices([])
    attempt.note("hi ")
    attempt.note(1)
    assert attempt.output == "hi 1"


def test_random_is_only_seeded_when_asked_for():
    attempt = Attempt.for_choices([7, 123])
    assert attempt.draw_integer(0, 10) == 7
    assert attempt.rng_seed is None
    assert attempt.random.random() == Random(123).random()
    assert attempt.rng_seed == 123
    assert attempt.choices == (7, 123)


def test_random_is_the_same_object_for_the_whole_attempt():
    attempt = Attempt(FreshSource(Random(0)), max_choices=10)
    assert attempt.random is attempt.random
    assert len(attempt.nodes) == 1


def test_concluding_raises_stop_test_for_this_attempt():
    attempt = Attempt.for_choices([])
    with pytest.raises(StopTest) as e:
        attempt.mark_invalid("because")
    assert e.value.testcounter == attempt.testcounter
    assert attempt.status == Status.INVALID
    assert attempt.invalid_because == "because"
    attempt.freeze()
    assert attempt.as_result().invalid_because == "because"


def test_attempts_have_distinct_test_counters():
    assert Attempt.for_choices([]).testcounter != Attempt.for_choices([]).testcounter


def test_cannot_conclude_twice():
    attempt = Attempt.for_choices([])
    with pytest.raises(StopTest):
        attempt.mark_interesting(FALSIFIED)
    with pytest.raises(Frozen):
        attempt.mark_invalid()
    assert attempt.status == Status.INTERESTING
    assert attempt.as_result().interesting_origin == FALSIFIED


def test_result_is_cached_and_immutable():
    attempt = Attempt.for_choices([2, 3])
    attempt.draw_integer(0, 5)
    attempt.draw_integer(0, 5)
    attempt.freeze()
    result = attempt.as_result()
    assert result is attempt.as_result()
    assert result.choices == (2, 3)
    assert result.status == Status.VALID
    with pytest.raises(AttributeError):
        result.status = Status.INVALID


def test_spans_follow_the_structure_of_production():
    attempt = Attempt.for_choices([1, 2])
    attempt.produce(ps.tuples(ps.integers(0, 5), ps.integers(0, 5)))
    attempt.freeze()
    spans = attempt.spans
    assert [(s.start, s.end, s.depth) for s in spans] == [
        (0, 2, 0),
        (0, 2, 1),
        (0, 1, 2),
        (1, 2, 2),
    ]
    assert spans[0].parent is None
    assert spans.children[1] == (2, 3)
    assert spans[2].label == spans[3].label != spans[1].label


def test_freezing_closes_open_spans():
    attempt = Attempt.for_choices([1, 2])
    attempt.start_span(1)
    attempt.draw_integer(0, 5)
    attempt.start_span(2)
    attempt.draw_integer(0, 5)
    attempt.freeze()
    spans = attempt.spans
    assert [(s.start, s.end) for s in spans] == [(0, 2), (0, 2), (1, 2)]


def test_replay_source_is_exhausted_only_without_fallback():
    source = ReplaySource([1])
    assert not source.exhausted
    source.draw(0, 1)
    assert source.exhausted
    assert not ReplaySource([], FreshSource(Random(0))).exhausted
