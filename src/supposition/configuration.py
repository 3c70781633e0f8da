# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import os
from pathlib import Path

__supposition_home_directory_default = Path.cwd() / ".supposition"

__supposition_home_directory = None


def set_supposition_home_dir(directory):
    global __supposition_home_directory
    __supposition_home_directory = None if directory is None else Path(directory)


def storage_directory(*names):
    global __supposition_home_directory
    if not __supposition_home_directory:
        if where := os.getenv("SUPPOSITION_STORAGE_DIRECTORY"):
            __supposition_home_directory = Path(where)
    if not __supposition_home_directory:
        __supposition_home_directory = __supposition_home_directory_default
    return __supposition_home_directory.joinpath(*names)
