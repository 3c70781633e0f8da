# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

"""Supposition checks properties of your code against inputs built from
replayable sequences of integer choices, and shrinks any input that breaks a
property to a minimal one by simplifying the sequence that produced it.
"""

from supposition import possibilities
from supposition._settings import Phase, Verbosity, settings
from supposition.control import assume, event, note, reject, target
from supposition.core import Outcome, Verdict, check, example, find, given
from supposition.internal.escalation import register_error_ordering
from supposition.version import __version__, __version_info__

__all__ = [
    "Outcome",
    "Phase",
    "Verbosity",
    "Verdict",
    "__version__",
    "assume",
    "check",
    "event",
    "example",
    "find",
    "given",
    "note",
    "possibilities",
    "register_error_ordering",
    "reject",
    "settings",
    "target",
]
