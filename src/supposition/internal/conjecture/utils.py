# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

import hashlib
import math

from supposition.internal.reflection import get_pretty_function_description

LABEL_MASK = 2**64 - 1


def calc_label_from_name(name: str) -> int:
    hashed = hashlib.sha384(name.encode()).digest()
    return int.from_bytes(hashed[:8], "big")


def calc_label_from_cls(cls: type) -> int:
    return calc_label_from_name(cls.__qualname__)


def calc_label_from_function(f) -> int:
    return calc_label_from_name(get_pretty_function_description(f))


def combine_labels(*labels: int) -> int:
    label = 0
    for l in labels:
        label = (label << 1) & LABEL_MASK
        label ^= l
    return label


TOP_LABEL = calc_label_from_name("top")
ONE_FROM_MANY_LABEL = calc_label_from_name("one more from many()")


class many:
    """Utility class for collections. Bundles up the logic we use for "should I
    keep drawing more values?" and handles starting and stopping spans in
    the right place.

    Intended usage is something like:

    elements = many(attempt, ...)
    while elements.more():
        add_stuff_to_result()

    Every element, together with the choice that decided to draw it, lives in
    its own span, so that the shrinker can delete, sort and deduplicate whole
    elements at a time.
    """

    def __init__(self, attempt, min_size, max_size, average_size):
        assert 0 <= min_size <= average_size <= max_size
        self.min_size = min_size
        self.max_size = max_size
        self.attempt = attempt
        self.p_continue = 1 - 1.0 / (1 + average_size)
        self.count = 0
        self.rejections = 0
        self.drawn = False
        self.force_stop = False
        self.rejected = False

    def more(self):
        """Should I draw another element to add to the collection?"""
        if self.drawn:
            self.attempt.stop_span(discard=self.rejected)

        self.drawn = True
        self.rejected = False

        self.attempt.start_span(ONE_FROM_MANY_LABEL)
        if self.min_size == self.max_size:
            should_continue = self.count < self.min_size
        elif self.force_stop or self.count >= self.max_size:
            should_continue = bool(self.attempt.draw_integer(0, 0))
        elif self.count < self.min_size:
            should_continue = bool(self.attempt.draw_integer(1, 1))
        else:
            should_continue = self.attempt.weighted(self.p_continue)

        if should_continue:
            self.count += 1
            return True
        else:
            self.attempt.stop_span()
            return False

    def reject(self):
        """Reject the last example (i.e. don't count it towards our budget of
        elements because it's not going to go in the final collection)."""
        assert self.count > 0
        self.count -= 1
        self.rejections += 1
        self.rejected = True
        if self.rejections > 2 * self.count:
            if self.count < self.min_size:
                self.attempt.mark_invalid("too many rejected elements")
            else:
                self.force_stop = True


def average_size(min_size, max_size):
    if max_size is None or math.isinf(max_size):
        return min(max(min_size * 2, min_size + 5), min_size + 25)
    return min(max(min_size * 2, min_size + 5), 0.5 * (min_size + max_size))
