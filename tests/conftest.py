# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import gc
import random

import pytest

from supposition import settings
from supposition.configuration import set_supposition_home_dir
from supposition.internal import escalation

settings.register_profile("tests", settings(database=None, max_examples=100))
settings.load_profile("tests")


@pytest.fixture(scope="function", autouse=True)
def gc_before_each_test():
    gc.collect()


@pytest.fixture(scope="function", autouse=True)
def restore_profile():
    yield
    settings.load_profile("tests")


@pytest.fixture(scope="function", autouse=True)
def restore_error_orderings():
    original = dict(escalation._error_orderings)
    yield
    escalation._error_orderings.clear()
    escalation._error_orderings.update(original)


@pytest.fixture(scope="function", autouse=True)
def isolated_storage_directory(tmp_path):
    set_supposition_home_dir(tmp_path / ".supposition")
    yield
    set_supposition_home_dir(None)


@pytest.fixture(scope="function", autouse=True)
def consistent_global_random():
    state = random.getstate()
    random.seed(0)
    yield
    random.setstate(state)
