# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

class SuppositionException(Exception):
    """Generic parent class for exceptions thrown by Supposition."""


class UnsatisfiedAssumption(SuppositionException):
    """An internal error raised by assume and reject.

    If you're seeing this error something has gone wrong: it should always
    be caught at the boundary of the attempt that raised it.
    """


class NoSuchExample(SuppositionException):
    """The condition we have been asked to satisfy appears to be always false.

    This does not guarantee that no example exists, only that we were
    unable to find one.
    """

    def __init__(self, condition_string, extra=""):
        super().__init__(f"No examples found of condition {condition_string}{extra}")


class NoExamples(SuppositionException):
    """Raised when example() is called on a possibility but we cannot find any
    examples after enough tries that we really should have been able to if this
    was ever going to work."""


class Unsatisfiable(SuppositionException):
    """Too many consecutive attempts were rejected or ran out of choices
    before we could find enough examples which satisfy the assumptions of
    this property.

    This is usually because the property uses assume or filter in a way that
    is too hard to satisfy.  If so, try building the values you want directly
    instead of filtering for them.
    """


class Flaky(SuppositionException):
    """This property appears to fail non-deterministically: we have seen it
    fail when passed this example at least once, but a subsequent invocation
    did not fail.

    Common causes for this problem are:
        1. The property depends on external state, such as an unseeded
           random number generator.
        2. The property is timing sensitive and can pass or fail depending
           on how long it takes.
    """


class UnexpectedPass(SuppositionException):
    """A property marked as ``broken`` did not fail."""


class InvalidArgument(SuppositionException, TypeError):
    """Used to indicate that the arguments to a Supposition function were in
    some manner incorrect."""


class InvalidState(SuppositionException):
    """The system is not in a state where you were allowed to do that."""


class Frozen(SuppositionException):
    """Raised when a mutation method has been called on an Attempt after
    freeze() has been called."""


class StopTest(BaseException):
    """Raised when an attempt should stop executing the test function.

    This is a BaseException rather than an Exception so that user code
    catching ``Exception`` cannot swallow it.  It carries the counter of the
    attempt that raised it, so that the engine only consumes the signal for
    the attempt it is running.
    """

    def __init__(self, testcounter):
        super().__init__(repr(testcounter))
        self.testcounter = testcounter
