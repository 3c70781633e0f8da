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

from supposition import Verbosity, settings
from supposition._settings import local_settings
from supposition.internal.conjecture.engine import SearchEngine
from supposition.internal.escalation import FALSIFIED
from supposition.reporting import (
    base_report,
    debug_report,
    report,
    to_text,
    verbose_report,
    with_reporter,
)

from tests.common.utils import capture_out, capture_reports


def test_default_reporter_prints():
    with capture_out() as out:
        report("hello")
    assert out.getvalue() == "hello\n"


def test_reporter_can_be_replaced():
    with capture_reports() as reports:
        base_report("hi")
    assert reports == ["hi"]


def test_reporters_nest():
    outer, inner = [], []
    with with_reporter(outer.append):
        with with_reporter(inner.append):
            base_report("a")
        base_report("b")
    assert (outer, inner) == (["b"], ["a"])


@pytest.mark.parametrize(
    "verbosity, expected",
    [
        (Verbosity.quiet, []),
        (Verbosity.normal, ["normal"]),
        (Verbosity.verbose, ["normal", "verbose"]),
        (Verbosity.debug, ["normal", "verbose", "debug"]),
    ],
)
def test_reports_are_gated_on_verbosity(verbosity, expected):
    with local_settings(settings(verbosity=verbosity)):
        with capture_reports() as reports:
            report("normal")
            verbose_report("verbose")
            debug_report("debug")
    assert reports == expected


def test_to_text_calls_functions_and_decodes_bytes():
    assert to_text(lambda: "lazy") == "lazy"
    assert to_text(b"bytes") == "bytes"
    assert to_text("text") == "text"


def test_reports_can_be_computed_lazily():
    with local_settings(settings(verbosity=Verbosity.normal)):
        with capture_reports() as reports:
            debug_report(lambda: 1 / 0)
    assert reports == []


def test_debug_engine_logs_each_attempt():
    def f(attempt):
        if attempt.draw_integer(0, 10) >= 5:
            attempt.mark_interesting(FALSIFIED)

    engine = SearchEngine(
        f,
        settings=settings(verbosity=Verbosity.debug, database=None),
        random=Random(0),
    )
    with capture_reports() as reports:
        engine.run()
    assert any(r.startswith("1 choices [0] -> VALID") for r in reports)
    assert any(r.startswith("Shrinking ") for r in reports)
    assert reports[-1].startswith(f"Run complete after {engine.call_count} attempts")


def test_normal_engine_is_silent():
    def f(attempt):
        attempt.draw_integer(0, 10)

    engine = SearchEngine(f, settings=settings(database=None), random=Random(0))
    with capture_reports() as reports:
        engine.run()
    assert reports == []


def test_debug_lines_explain_rejections_and_misalignment():
    def f(attempt):
        if attempt.draw_integer(0, 10) == 0:
            attempt.mark_invalid("zero is not allowed")

    engine = SearchEngine(
        f,
        settings=settings(verbosity=Verbosity.debug, database=None),
        random=Random(0),
    )
    with capture_reports() as reports:
        engine.cached_test_function([20])
    assert reports == [
        "1 choices [0] -> INVALID, zero is not allowed, misaligned at choice 0"
    ]
