# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from supposition.internal.conjecture import utils as cu
from supposition.possibilities._internal.possibility import Possibility

SURROGATES = range(0xD800, 0xE000)


class CharactersPossibility(Possibility[str]):
    """Single characters with codepoints in ``[min_codepoint,
    max_codepoint]``, excluding surrogates, shrinking towards
    ``min_codepoint``.

    We choose an index into the allowed codepoints rather than a codepoint,
    so that no choice ever lands on a surrogate and has to be rejected.
    """

    def __init__(self, min_codepoint: int, max_codepoint: int) -> None:
        self.min_codepoint = min_codepoint
        self.max_codepoint = max_codepoint
        lo = max(min_codepoint, SURROGATES.start)
        hi = min(max_codepoint, SURROGATES.stop - 1)
        self.surrogates = range(lo, hi + 1) if lo <= hi else range(0)
        self.size = max_codepoint - min_codepoint + 1 - len(self.surrogates)
        assert self.size > 0

    def __repr__(self) -> str:
        return f"characters({self.min_codepoint}, {self.max_codepoint})"

    def produce(self, attempt) -> str:
        codepoint = self.min_codepoint + attempt.draw_integer(0, self.size - 1)
        if self.surrogates and codepoint >= self.surrogates.start:
            codepoint += len(self.surrogates)
        return chr(codepoint)


class TextPossibility(Possibility[str]):
    def __init__(self, alphabet: Possibility, min_size, max_size) -> None:
        self.alphabet = alphabet
        self.min_size = min_size
        self.max_size = max_size
        self.average_size = cu.average_size(min_size, max_size)

    def __repr__(self) -> str:
        return (
            f"text({self.alphabet!r}, min_size={self.min_size!r}, "
            f"max_size={self.max_size!r})"
        )

    def calc_label(self) -> int:
        return cu.combine_labels(self.class_label, self.alphabet.label)

    def produce(self, attempt) -> str:
        chars = cu.many(
            attempt,
            min_size=self.min_size,
            max_size=self.max_size,
            average_size=self.average_size,
        )
        result = []
        while chars.more():
            result.append(attempt.produce(self.alphabet))
        return "".join(result)
