# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import contextlib
import functools
import sys
from io import StringIO

import pytest

from supposition.internal.entropy import deterministic_PRNG
from supposition.reporting import default, with_reporter


@contextlib.contextmanager
def capture_out():
    old_out = sys.stdout
    try:
        new_out = StringIO()
        sys.stdout = new_out
        with with_reporter(default):
            yield new_out
    finally:
        sys.stdout = old_out


@contextlib.contextmanager
def capture_reports():
    reports = []
    with with_reporter(reports.append):
        yield reports


def fails_with(e, *, match=None):
    def accepts(f):
        @functools.wraps(f)
        def inverted_test(*arguments, **kwargs):
            # Rig the PRNG outside of pytest.raises, so that any problem doing
            # so can't count as the expected failure.
            with deterministic_PRNG():
                with pytest.raises(e, match=match):
                    f(*arguments, **kwargs)

        return inverted_test

    return accepts


fails = fails_with(AssertionError)
