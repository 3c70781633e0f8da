# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from supposition.possibilities._internal.core import (
    ascii_characters,
    booleans,
    builds,
    characters,
    composed,
    floats,
    integers,
    just,
    lists,
    nothing,
    one_of,
    randoms,
    recursive,
    sampled_from,
    text,
    tuples,
)
from supposition.possibilities._internal.possibility import Possibility

__all__ = [
    "Possibility",
    "ascii_characters",
    "booleans",
    "builds",
    "characters",
    "composed",
    "floats",
    "integers",
    "just",
    "lists",
    "nothing",
    "one_of",
    "randoms",
    "recursive",
    "sampled_from",
    "text",
    "tuples",
]
