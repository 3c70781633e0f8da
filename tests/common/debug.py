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

from supposition import Phase, check, find, settings as Settings

no_shrink = (Phase.reuse, Phase.generate, Phase.target)


def minimal(definition, condition=lambda x: True, settings=None):
    """The simplest example of ``definition`` satisfying ``condition``, as
    found by a search seeded so that it is the same every time."""
    settings = Settings(
        settings,
        max_examples=500,
        database=None,
        phases=(Phase.generate, Phase.shrink),
    )
    return find(definition, condition, settings=settings, random=Random(0))


def find_any(definition, condition=lambda _: True, settings=None):
    settings = settings or Settings.default
    return find(
        definition,
        condition,
        settings=Settings(
            settings, phases=no_shrink, max_examples=max(1000, settings.max_examples)
        ),
        random=Random(0),
    )


def assert_all_examples(possibility, predicate, settings=None):
    """Asserts that all examples of the given possibility match the
    predicate."""
    outcome = check(
        predicate,
        possibility,
        settings=Settings(settings, database=None),
        random=Random(0),
    )
    assert not outcome.failed, (
        f"Found {outcome.arguments!r} using possibility {possibility!r} "
        "which does not match"
    )
    return outcome


def assert_no_examples(possibility, condition=lambda _: True):
    assert_all_examples(possibility, lambda value: not condition(value))
