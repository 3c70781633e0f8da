# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import math
from typing import Any, NoReturn

from supposition.errors import InvalidArgument, InvalidState, UnsatisfiedAssumption
from supposition.internal.conjecture.data import Attempt
from supposition.reporting import report
from supposition.utils.conventions import not_set
from supposition.utils.dynamicvariables import DynamicVariable


def reject() -> NoReturn:
    if _current_build_context.value is None:
        raise InvalidState("reject() can only be called while an attempt is running")
    raise UnsatisfiedAssumption


def assume(condition: object) -> bool:
    """Calling ``assume`` is like an :ref:`assert <python:assert>` that marks
    the attempt as bad, rather than failing the test.

    This allows you to specify properties that you *assume* will be
    true, and let Supposition try to avoid similar examples in future.
    """
    if _current_build_context.value is None:
        raise InvalidState("assume() can only be called while an attempt is running")
    if not condition:
        raise UnsatisfiedAssumption
    return True


_current_build_context = DynamicVariable(None)


def currently_in_attempt() -> bool:
    """Return ``True`` if the calling code is currently running inside a
    Supposition attempt, or ``False`` otherwise.

    This is useful for third-party integrations and assertion helpers which
    may be called from traditional or property-based tests, but can only use
    :func:`~supposition.assume` or :func:`~supposition.target` in the latter
    case.
    """
    return _current_build_context.value is not None


def current_build_context() -> "BuildContext":
    context = _current_build_context.value
    if context is None:
        raise InvalidState("No build context registered")
    return context


def current_attempt() -> Attempt:
    return current_build_context().attempt


class BuildContext:
    """Binds an attempt as the current one for the duration of a ``with``
    block, restoring whatever was bound before on the way out."""

    def __init__(self, attempt: Attempt, *, is_final: bool = False) -> None:
        self.attempt = attempt
        self.is_final = is_final
        self.notes: "list[str]" = []

    def __enter__(self):
        self.assign_variable = _current_build_context.with_value(self)
        self.assign_variable.__enter__()
        return self

    def __exit__(self, exc_type, value, tb):
        self.assign_variable.__exit__(exc_type, value, tb)


def note(value: Any) -> None:
    """Report this value for the minimal failing example."""
    context = current_build_context()
    if not isinstance(value, str):
        value = repr(value)
    context.attempt.note(value)
    context.notes.append(value)
    if context.is_final:
        report(value)


def event(value: Any, payload: Any = not_set) -> None:
    """Record an event that occurred during this attempt.

    ``event(value)`` labels the event automatically as
    ``UNLABELED_EVENT_<n>``, where ``n`` is the number of events recorded so
    far.  ``event(label, payload)`` uses an explicit label.  Events are
    counted in the run statistics and reported with the final example.
    """
    current_attempt().event(value, payload)


def target(observation: float) -> float:
    """Calling this function with a numeric ``observation`` gives it a score
    which the search will try to maximize.

    Only the first call in each attempt counts; later calls are ignored.
    The observation is returned unchanged, for convenience.
    """
    if isinstance(observation, bool) or not isinstance(observation, (int, float)):
        raise InvalidArgument(
            f"observation={observation!r} must be an int or float, "
            f"not {type(observation).__name__}"
        )
    if math.isnan(observation):
        raise InvalidArgument(f"observation={observation!r} must not be NaN")
    current_attempt().target(observation)
    return observation


def current_random():
    """A ``random.Random`` instance for the current attempt, seeded from one
    of its choices so that it replays along with everything else."""
    return current_attempt().random
