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
import sys
import traceback
from inspect import getframeinfo
from pathlib import Path
from typing import Callable, NamedTuple, Optional

import supposition
from supposition.errors import (
    Flaky,
    InvalidArgument,
    StopTest,
    SuppositionException,
    UnsatisfiedAssumption,
)


def belongs_to(package):
    if not hasattr(package, "__file__"):  # pragma: no cover
        return lambda filepath: False

    root = Path(package.__file__).resolve().parent
    cache = {str: {}, bytes: {}}

    def accept(filepath):
        ftype = type(filepath)
        try:
            return cache[ftype][filepath]
        except KeyError:
            pass
        try:
            Path(filepath).resolve().relative_to(root)
            result = True
        except Exception:
            result = False
        cache[ftype][filepath] = result
        return result

    accept.__name__ = f"is_{package.__name__}_file"
    return accept


PREVENT_ESCALATION = os.getenv("SUPPOSITION_DO_NOT_ESCALATE") == "true"

is_supposition_file = belongs_to(supposition)

SUPPOSITION_CONTROL_EXCEPTIONS = (StopTest, UnsatisfiedAssumption)

# Bounds the number of frames kept in the trace of a captured error.
MAX_TRACE_FRAMES = 20


def escalate_supposition_internal_error():
    if PREVENT_ESCALATION:
        return

    _, e, tb = sys.exc_info()

    if getattr(e, "supposition_internal_never_escalate", False):
        return

    filepath = traceback.extract_tb(tb)[-1][0]
    if is_supposition_file(filepath) and not isinstance(
        e, (SuppositionException, *SUPPOSITION_CONTROL_EXCEPTIONS)
    ):
        raise


def call_user_code(f, *args, **kwargs):
    """Call ``f``, a function the user gave us, so that anything it raises is
    treated as the user's error and never escalated as an internal one.

    A builtin adds no frame of its own to a traceback, so without this an
    exception it raises looks like it came from the Supposition code that
    called it.
    """
    try:
        return f(*args, **kwargs)
    except Exception as e:
        try:
            e.supposition_internal_never_escalate = True
        except AttributeError:  # pragma: no cover
            pass
        raise


def get_trimmed_traceback(exception=None):
    """Return the current traceback, minus any frames added by Supposition."""
    from supposition._settings import Verbosity, settings

    if exception is None:
        _, exception, tb = sys.exc_info()
    else:
        tb = exception.__traceback__
    if tb is None:
        return tb
    # Avoid trimming the traceback if we're in debug mode, or the error
    # was raised inside Supposition itself.
    if settings.default.verbosity >= Verbosity.debug or (
        is_supposition_file(traceback.extract_tb(tb)[-1][0])
        and not isinstance(exception, Flaky)
        and not getattr(exception, "supposition_internal_never_escalate", False)
    ):
        return tb
    while tb is not None and is_supposition_file(getframeinfo(tb.tb_frame)[0]):
        tb = tb.tb_next
    return tb


def format_trace(exception, *, limit=MAX_TRACE_FRAMES):
    """Format ``exception`` with its trimmed traceback, keeping at most the
    innermost ``limit`` frames."""
    tb = get_trimmed_traceback(exception)
    return "".join(
        traceback.format_exception(type(exception), exception, tb, limit=-limit)
    )


class InterestingOrigin(NamedTuple):
    # The `interesting_origin` is how Supposition tells failures apart: a
    # property that returned a falsey value has no exception type, and a
    # property that raised is identified by the exception type and the
    # location it was raised from.
    exc_type: Optional[type]
    filename: Optional[str]
    lineno: Optional[int]

    def __str__(self) -> str:
        if self.exc_type is None:
            return "property returned a falsey value"
        return f"{self.exc_type.__name__} at {self.filename}:{self.lineno}"

    @property
    def is_error(self) -> bool:
        return self.exc_type is not None

    @classmethod
    def from_exception(cls, exception: BaseException) -> "InterestingOrigin":
        tb = get_trimmed_traceback(exception)
        if tb is None:
            return cls(type(exception), None, None)
        filename, lineno, *_ = traceback.extract_tb(tb)[-1]
        return cls(type(exception), filename, lineno)


FALSIFIED = InterestingOrigin(None, None, None)


def same_classification(origin: InterestingOrigin, other: InterestingOrigin) -> bool:
    """Two interesting results are classified the same if both are failures,
    or both are errors of the same exception type."""
    return origin.exc_type is other.exc_type


_error_orderings: "dict[type, Callable[[BaseException, BaseException], bool]]" = {}


def register_error_ordering(exc_type, less_than):
    """Register ``less_than(e1, e2)`` as the ordering between two errors of
    type ``exc_type`` (or a subclass of it).

    It should return True if ``e1`` is simpler than ``e2``, and is consulted
    only to prefer one error over another of exactly the same type, e.g. to
    prefer a smaller index in an ``IndexError`` message.
    """
    if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
        raise InvalidArgument(
            f"exc_type={exc_type!r} must be an exception type to register an ordering"
        )
    if not callable(less_than):
        raise InvalidArgument(f"less_than={less_than!r} must be callable")
    _error_orderings[exc_type] = less_than


def error_ordering_for(exc_type):
    for klass in exc_type.__mro__:
        try:
            return _error_orderings[klass]
        except KeyError:
            pass
    return None


def compare_errors(error, other):
    """Returns True if ``error`` is preferred over ``other``, False if ``other``
    is preferred, and None if there is no preference between them."""
    if type(error) is not type(other):
        return None
    less_than = error_ordering_for(type(error))
    if less_than is None:
        return None
    if less_than(error, other):
        return True
    if less_than(other, error):
        return False
    return None
