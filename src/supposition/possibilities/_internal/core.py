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
import sys
from typing import Any, Callable, Optional, Sequence, TypeVar, Union

from supposition.errors import InvalidArgument
from supposition.internal.validation import (
    check_possibility,
    check_type,
    check_valid_bound,
    check_valid_integer,
    check_valid_interval,
    check_valid_sizes,
)
from supposition.possibilities._internal.collections import (
    BuildsPossibility,
    ListPossibility,
    TuplesPossibility,
)
from supposition.possibilities._internal.misc import (
    BooleansPossibility,
    JustPossibility,
    RandomsPossibility,
    SampledFromPossibility,
)
from supposition.possibilities._internal.numbers import (
    FloatsPossibility,
    IntegersPossibility,
)
from supposition.possibilities._internal.possibility import (
    NOTHING,
    OneOfPossibility,
    Possibility,
)
from supposition.possibilities._internal.strings import (
    SURROGATES,
    CharactersPossibility,
    TextPossibility,
)

T = TypeVar("T")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def nothing() -> Possibility:
    """This possibility never successfully produces a value and will always
    reject on an attempt to produce.

    Examples from this possibility do not shrink (because there are none).
    """
    return NOTHING


def just(value: T) -> Possibility[T]:
    """Return a possibility which only produces ``value``.

    Note: ``value`` is not copied. Be wary of using mutable values.

    Examples from this possibility do not shrink (because there is only one).
    """
    return JustPossibility(value)


def booleans() -> Possibility[bool]:
    """Returns a possibility which produces instances of :class:`python:bool`.

    Examples from this possibility will shrink towards ``False`` (i.e.
    shrinking will replace ``True`` with ``False`` where possible).
    """
    return BooleansPossibility()


def integers(
    min_value: Optional[int] = None, max_value: Optional[int] = None
) -> Possibility[int]:
    """Returns a possibility which produces integers.

    If min_value is not None then all values will be >= min_value. If
    max_value is not None then all values will be <= max_value.  A missing
    bound defaults to the corresponding end of the signed 64-bit range.

    Examples from this possibility will shrink towards zero, and negative
    values will also shrink towards positive (i.e. -n may be replaced by +n).
    """
    check_valid_integer(min_value, "min_value")
    check_valid_integer(max_value, "max_value")
    check_valid_interval(min_value, max_value, "min_value", "max_value")

    if min_value is None:
        min_value = INT64_MIN
        if max_value is not None:
            min_value = min(min_value, max_value - INT64_MAX)
    if max_value is None:
        max_value = max(INT64_MAX, min_value + INT64_MAX)
    if not IntegersPossibility.fits(min_value, max_value):
        raise InvalidArgument(
            f"Cannot produce integers between {min_value=} and {max_value=}: the "
            "range is too wide to be chosen from a single choice"
        )
    if min_value == max_value:
        return just(min_value)
    return IntegersPossibility(min_value, max_value)


def floats(
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    *,
    allow_nan: Optional[bool] = None,
    allow_infinity: Optional[bool] = None,
) -> Possibility[float]:
    """Returns a possibility which produces floats.

    - If min_value is not None, all values will be ``>= min_value``.
    - If max_value is not None, all values will be ``<= max_value``.
    - If min_value or max_value is not None, it is an error to enable
      allow_nan.
    - If both min_value and max_value are not None, it is an error to enable
      allow_infinity.

    Where not explicitly ruled out by the bounds, NaN and infinite values
    are possible by default.

    Examples from this possibility shrink towards integral values, and
    towards the bound closest to zero when bounded.
    """
    for name, value in (("allow_nan", allow_nan), ("allow_infinity", allow_infinity)):
        if value is not None:
            check_type(bool, value, name)
    check_valid_bound(min_value, "min_value")
    check_valid_bound(max_value, "max_value")
    check_valid_interval(min_value, max_value, "min_value", "max_value")
    for name, value in (("min_value", min_value), ("max_value", max_value)):
        if value is not None and math.isinf(value):
            raise InvalidArgument(
                f"{name}={value!r} must be finite.  Leave it as None for an "
                "unbounded range."
            )

    if min_value is not None:
        min_value = float(min_value)
    if max_value is not None:
        max_value = float(max_value)

    bounded = min_value is not None or max_value is not None
    if allow_nan is None:
        allow_nan = not bounded
    elif allow_nan and bounded:
        raise InvalidArgument(
            f"Cannot have allow_nan={allow_nan!r}, with {min_value=} or {max_value=}"
        )
    if allow_infinity is None:
        allow_infinity = min_value is None or max_value is None
    elif allow_infinity and min_value is not None and max_value is not None:
        raise InvalidArgument(
            f"Cannot have allow_infinity={allow_infinity!r}, with both "
            f"{min_value=} and {max_value=}"
        )
    return FloatsPossibility(
        min_value, max_value, allow_nan=allow_nan, allow_infinity=allow_infinity
    )


def sampled_from(elements: Sequence[T]) -> Possibility[T]:
    """Returns a possibility which produces any value present in
    ``elements``.

    Note that as with :func:`~supposition.possibilities.just`, values will
    not be copied and thus you should be careful of using mutable data.

    ``sampled_from`` supports ordered collections, as well as
    :class:`~python:enum.Enum` objects.

    Examples from this possibility shrink by replacing them with values
    earlier in the list.
    """
    if isinstance(elements, (set, frozenset, dict)):
        raise InvalidArgument(
            f"Cannot sample from {elements!r}, because its iteration order is "
            "not deterministic.  Sort it first, or use a list or tuple."
        )
    values = tuple(elements)
    if not values:
        return nothing()
    if len(values) == 1:
        return just(values[0])
    return SampledFromPossibility(values)


def one_of(*args: Union[Possibility, Sequence[Possibility]]) -> Possibility:
    """Return a possibility which produces values from any of the argument
    possibilities.

    This may be called with one iterable argument instead of multiple
    possibility arguments, in which case ``one_of(x)`` and ``one_of(*x)`` are
    equivalent.

    Examples from this possibility will generally shrink to ones that come
    from possibilities earlier in the list, then shrink according to
    behaviour of the possibility that produced them.
    """
    if len(args) == 1 and not isinstance(args[0], Possibility):
        try:
            args = tuple(args[0])
        except TypeError:
            pass
    for i, arg in enumerate(args):
        check_possibility(arg, f"args[{i}]")
    possibilities = [p for p in args if p is not NOTHING]
    if not possibilities:
        return nothing()
    if len(possibilities) == 1:
        return possibilities[0]
    return OneOfPossibility(possibilities)


def tuples(*args: Possibility) -> Possibility[tuple]:
    """Return a possibility which produces a tuple of the same length as args
    by producing the value at index i from args[i].

    e.g. ``tuples(integers(), integers())`` would produce a tuple of length
    two with both values an integer.

    Examples from this possibility shrink by shrinking their component parts.
    """
    for i, arg in enumerate(args):
        check_possibility(arg, f"args[{i}]")
    return TuplesPossibility(args)


def lists(
    elements: Possibility[T],
    *,
    min_size: int = 0,
    max_size: Optional[int] = None,
    unique: bool = False,
) -> Possibility["list[T]"]:
    """Returns a list containing values produced from elements with length in
    the interval [min_size, max_size] (no bounds in that direction if these
    are None).

    If ``unique`` is True, no two elements of the list will be equal.

    Examples from this possibility shrink by trying to remove elements from
    the list, and by shrinking each individual element of the list.
    """
    check_possibility(elements, "elements")
    check_valid_sizes(min_size, max_size)
    check_type(bool, unique, "unique")
    if max_size == 0:
        return just([]).map(list)
    return ListPossibility(
        elements,
        min_size=min_size,
        max_size=float("inf") if max_size is None else max_size,
        unique=unique,
    )


def characters(
    min_codepoint: int = 0, max_codepoint: int = sys.maxunicode
) -> Possibility[str]:
    """Returns a possibility that produces single characters with codepoints
    between ``min_codepoint`` and ``max_codepoint`` inclusive.  Surrogate
    codepoints are never produced.

    Examples from this possibility shrink towards the character with the
    smallest codepoint.
    """
    check_valid_integer(min_codepoint, "min_codepoint")
    check_valid_integer(max_codepoint, "max_codepoint")
    check_valid_interval(min_codepoint, max_codepoint, "min_codepoint", "max_codepoint")
    if min_codepoint < 0 or max_codepoint > sys.maxunicode:
        raise InvalidArgument(
            f"Codepoints must be between 0 and {sys.maxunicode}, but got "
            f"{min_codepoint=} and {max_codepoint=}"
        )
    if SURROGATES.start <= min_codepoint and max_codepoint < SURROGATES.stop:
        raise InvalidArgument(
            f"There are no characters between {min_codepoint=} and "
            f"{max_codepoint=} that are not surrogates"
        )
    return CharactersPossibility(min_codepoint, max_codepoint)


def ascii_characters() -> Possibility[str]:
    """Characters with codepoints between 0 and 127."""
    return characters(0, 127)


def text(
    alphabet: Union[Sequence[str], Possibility[str], None] = None,
    *,
    min_size: int = 0,
    max_size: Optional[int] = None,
) -> Possibility[str]:
    """Produces strings with characters drawn from ``alphabet``, which should
    be a collection of length one strings or a possibility producing such
    strings.  The default alphabet is :func:`characters`.

    Examples from this possibility shrink towards shorter strings, and with
    the characters in the text shrinking as per the alphabet possibility.
    """
    check_valid_sizes(min_size, max_size)
    if alphabet is None:
        alphabet = characters()
    elif not isinstance(alphabet, Possibility):
        if isinstance(alphabet, str):
            alphabet = sorted(set(alphabet))
        for c in alphabet:
            if not (isinstance(c, str) and len(c) == 1):
                raise InvalidArgument(
                    f"The alphabet must contain only length one strings, but "
                    f"got {c!r}"
                )
        alphabet = sampled_from(alphabet)
    if alphabet is NOTHING or max_size == 0:
        if min_size > 0:
            return nothing()
        return just("")
    return TextPossibility(
        alphabet, min_size, float("inf") if max_size is None else max_size
    )


def recursive(
    base: Possibility,
    extend: Callable[[Possibility], Possibility],
    *,
    max_layers: int = 3,
) -> Possibility:
    """base: A possibility to start from.

    extend: A function which takes a possibility and returns a new
    possibility.

    max_layers: The maximum number of times extend is applied.

    This returns a possibility ``S`` such that ``S = one_of(base,
    extend(S))``, cut off after ``max_layers`` applications of extend, e.g.
    ``recursive(booleans(), lists)`` produces booleans, lists of booleans,
    lists of lists of booleans, and so on.

    Examples from this possibility shrink by trying to reduce the amount of
    recursion and by shrinking according to the shrinking behaviour of base
    and the result of extend.
    """
    check_possibility(base, "base")
    if not callable(extend):
        raise InvalidArgument(f"Expected extend={extend!r} to be callable")
    check_type(int, max_layers, "max_layers")
    if max_layers < 1:
        raise InvalidArgument(f"{max_layers=} must be at least one")
    possibility = base
    for _ in range(max_layers):
        extended = extend(possibility)
        check_possibility(extended, f"extend({possibility!r})")
        possibility = one_of(base, extended)
    return possibility


def randoms() -> Possibility:
    """Produces :class:`python:random.Random` instances, each seeded from a
    single choice so that values drawn from them replay exactly.

    Examples from this possibility shrink to seeds closer to zero.
    """
    return RandomsPossibility()


def builds(
    target: Callable[..., T], *args: Possibility, **kwargs: Possibility
) -> Possibility[T]:
    """Produces values by calling ``target`` with arguments produced from
    the positional and keyword possibilities given.

    e.g. ``builds(target, integers(), flag=booleans())`` would produce values
    by calling ``target(<some int>, flag=<some bool>)``.

    Examples from this possibility shrink by shrinking the argument values
    to the target.
    """
    if not callable(target):
        raise InvalidArgument(f"Expected target={target!r} to be callable")
    for i, arg in enumerate(args):
        check_possibility(arg, f"args[{i}]")
    for k, arg in kwargs.items():
        check_possibility(arg, k)
    return BuildsPossibility(target, args, kwargs)


def composed(
    *args: Possibility, **kwargs: Possibility
) -> Callable[[Callable[..., T]], Possibility[T]]:
    """A decorator that turns a function into a possibility: each argument
    of the function is produced from the corresponding possibility, and the
    return value of the function is the produced value.

    .. code-block:: python

        @composed(integers(0, 10), name=text(max_size=5))
        def labelled(n, name):
            return f"{name}-{n}"

    ``labelled`` is then a possibility producing strings like ``"ab-3"``.
    """
    for i, arg in enumerate(args):
        check_possibility(arg, f"args[{i}]")
    for k, arg in kwargs.items():
        check_possibility(arg, k)

    def accept(f: Callable[..., T]) -> Possibility[T]:
        if not callable(f):
            raise InvalidArgument(f"Expected {f!r} to be callable")
        return BuildsPossibility(f, args, kwargs, composed=True)

    return accept
