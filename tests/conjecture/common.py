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

from supposition import settings
from supposition.internal.conjecture.data import Status
from supposition.internal.conjecture.engine import SearchEngine
from supposition.internal.conjecture.shrinker import Shrinker
from supposition.internal.escalation import InterestingOrigin

TEST_SETTINGS = settings(max_examples=300, database=None)


def interesting_origin(n=None):
    """An InterestingOrigin for an error, such that interesting_origin(n) ==
    interesting_origin(m) iff n == m."""
    try:
        int("not an int")
    except Exception as e:
        origin = InterestingOrigin.from_exception(e)
        return origin._replace(lineno=n if n is not None else origin.lineno)


def run_to_result(f):
    engine = SearchEngine(f, settings=TEST_SETTINGS, random=Random(0))
    engine.run()
    assert engine.interesting is not None
    return engine.interesting


def run_to_choices(f):
    return run_to_result(f).choices


def shrinking_from(start, predicate=None):
    """Decorator that returns a Shrinker for the test function it decorates,
    starting from the interesting result that ``start`` produces."""

    def accept(f):
        engine = SearchEngine(
            f, settings=settings(TEST_SETTINGS, max_examples=5000), random=Random(0)
        )
        initial = engine.cached_test_function(start)
        assert initial.status == Status.INTERESTING
        return Shrinker(
            engine,
            initial,
            predicate or (lambda r: r.status == Status.INTERESTING),
        )

    return accept
