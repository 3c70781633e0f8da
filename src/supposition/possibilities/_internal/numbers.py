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

from supposition.internal.conjecture.data import MAX_CHOICE
from supposition.internal.floats import int_to_float
from supposition.possibilities._internal.possibility import Possibility

# The largest integer n such that every integer in [0, n] is exactly
# representable as a float.
MAX_PRECISE_INTEGER = 2**53


class IntegersPossibility(Possibility[int]):
    """Integers in ``[start, end]``, shrinking towards zero.

    If the range contains zero we first choose a sign, so that negative
    values shrink towards positive ones, and then a magnitude.  Otherwise
    we choose an offset from whichever end is closest to zero.
    """

    def __init__(self, start: int, end: int) -> None:
        assert start <= end
        self.start = start
        self.end = end

    def __repr__(self) -> str:
        return f"integers({self.start}, {self.end})"

    def produce(self, attempt) -> int:
        if self.start >= 0:
            return self.start + attempt.draw_integer(0, self.end - self.start)
        if self.end <= 0:
            return self.end - attempt.draw_integer(0, self.end - self.start)
        if attempt.choice(1):
            return -attempt.draw_integer(1, -self.start)
        return attempt.draw_integer(0, self.end)

    @staticmethod
    def fits(start: int, end: int) -> bool:
        """Whether every value in ``[start, end]`` can be produced from a
        single choice."""
        if start >= 0 or end <= 0:
            return end - start <= MAX_CHOICE
        return max(-start, end) <= MAX_CHOICE


class FloatsPossibility(Possibility[float]):
    """Floats in ``[min_value, max_value]``, where either bound may be None.

    Unbounded floats are either an integral value, which is where shrinking
    heads, or an arbitrary 64-bit pattern, optionally including the infinite
    and NaN values.  Half bounded floats are a non-negative magnitude away
    from their bound.  Bounded floats are a fraction of the way from the end
    closest to zero to the other end.
    """

    FRACTION_DENOMINATOR = 2**53 - 1

    def __init__(self, min_value, max_value, *, allow_nan, allow_infinity):
        self.min_value = min_value
        self.max_value = max_value
        self.allow_nan = allow_nan
        self.allow_infinity = allow_infinity

    def __repr__(self) -> str:
        return (
            f"floats(min_value={self.min_value!r}, max_value={self.max_value!r}, "
            f"allow_nan={self.allow_nan!r}, allow_infinity={self.allow_infinity!r})"
        )

    def __permitted(self, value: float) -> bool:
        if math.isnan(value):
            return self.allow_nan
        if math.isinf(value):
            return self.allow_infinity
        return True

    def __magnitude(self, attempt) -> float:
        """A non-negative float, either integral or an arbitrary bit
        pattern."""
        if not attempt.choice(1):
            return float(attempt.draw_integer(0, MAX_PRECISE_INTEGER))
        return abs(int_to_float(attempt.draw_integer(0, MAX_CHOICE)))

    def __fraction(self, attempt) -> float:
        return attempt.draw_integer(0, self.FRACTION_DENOMINATOR) / (
            self.FRACTION_DENOMINATOR
        )

    def produce(self, attempt) -> float:
        lo, hi = self.min_value, self.max_value
        if lo is None and hi is None:
            magnitude = self.__magnitude(attempt)
            result = -magnitude if attempt.choice(1) else magnitude
        elif hi is None:
            result = lo + self.__magnitude(attempt)
        elif lo is None:
            result = hi - self.__magnitude(attempt)
        elif lo >= 0:
            result = min(lo + (hi - lo) * self.__fraction(attempt), hi)
        elif hi <= 0:
            result = max(hi - (hi - lo) * self.__fraction(attempt), lo)
        elif attempt.choice(1):
            result = lo * self.__fraction(attempt)
        else:
            result = hi * self.__fraction(attempt)
        if not self.__permitted(result):
            attempt.mark_invalid(f"{self!r} produced {result!r}")
        return result
