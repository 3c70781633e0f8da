# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

from collections import Counter
from enum import Enum
from random import Random, getrandbits
from typing import Callable, Optional, Sequence

from supposition._settings import Phase, Verbosity, local_settings, settings as Settings
from supposition.database import ExampleStore, StoredExample
from supposition.errors import StopTest, UnsatisfiedAssumption
from supposition.internal.conjecture.data import (
    Attempt,
    AttemptResult,
    FreshSource,
    ReplaySource,
    SimplestSource,
    Status,
)
from supposition.internal.conjecture.junkdrawer import clamp
from supposition.internal.conjecture.shrinker import Shrinker, sort_key
from supposition.internal.escalation import compare_errors, same_classification
from supposition.reporting import base_report

# Upper bound on the number of test function calls made while shrinking, not
# counting replays answered from the cache.
MAX_SHRINK_CALLS = 5000

# How often, once we have a scored attempt and nothing interesting, a fresh
# attempt is replaced by a mutation of the best scoring one.
TARGET_MUTATION_PROBABILITY = 0.5


class ExitReason(Enum):
    max_examples = "settings.max_examples={s.max_examples}"
    max_rejections = (
        "settings.max_consecutive_rejections={s.max_consecutive_rejections}"
    )
    max_shrinks = f"shrunk example {MAX_SHRINK_CALLS=} times"
    finished = "nothing left to do"

    def describe(self, settings: Settings) -> str:
        return self.value.format(s=settings)


class RunIsComplete(Exception):
    pass


class SearchEngine:
    """Runs a test function against many attempts, looking for an interesting
    one and then shrinking it.

    ``test_function`` takes an ``Attempt``, and communicates anything
    interesting about it by concluding the attempt (mark_interesting,
    mark_invalid, ...) or by raising UnsatisfiedAssumption to reject it.
    Everything else is classified as valid.
    """

    def __init__(
        self,
        test_function: Callable[[Attempt], None],
        *,
        settings: Optional[Settings] = None,
        random: Optional[Random] = None,
        database_key: Optional[str] = None,
    ) -> None:
        self._test_function = test_function
        self.settings: Settings = settings or Settings()
        self.random = random or Random(getrandbits(128))
        self.database_key = database_key

        self.call_count = 0
        self.valid_examples = 0
        self.invalid_examples = 0
        self.overrun_examples = 0
        self.consecutive_rejections = 0
        self.shrinks = 0
        self.shrink_calls = 0
        self.event_counts: "Counter[str]" = Counter()
        self.exit_reason: Optional[ExitReason] = None

        self.best_failure: Optional[AttemptResult] = None
        self.best_error: Optional[AttemptResult] = None
        self.best_scoring: Optional[AttemptResult] = None

        self.store: Optional[ExampleStore] = None
        if database_key is not None and self.settings.database is not None:
            self.store = ExampleStore(self.settings.database, database_key)
        self.stored: Optional[StoredExample] = None
        self.stored_still_interesting = False

        self.__cache: "dict[tuple[int, ...], AttemptResult]" = {}
        self.__shrinking = False

    @property
    def interesting(self) -> Optional[AttemptResult]:
        """The result that would be reported right now: errors first, then
        failures."""
        return self.best_error or self.best_failure

    @property
    def exhausted(self) -> bool:
        return self.exit_reason is ExitReason.max_rejections

    @property
    def diagnostics(self) -> "list[str]":
        return [] if self.store is None else self.store.diagnostics

    def debug(self, message: str) -> None:
        if self.settings.verbosity >= Verbosity.debug:
            base_report(message)

    def debug_result(self, result: AttemptResult) -> None:
        message = (
            f"{self.call_count} choices {list(result.choices)} -> {result.status.name}"
        )
        if result.interesting_origin is not None:
            message += f", {result.interesting_origin}"
        if result.invalid_because is not None:
            message += f", {result.invalid_because}"
        if result.misaligned_at is not None:
            message += f", misaligned at choice {result.misaligned_at}"
        if result.target_score is not None:
            message += f", score={result.target_score}"
        self.debug(message)

    def test_function(self, attempt: Attempt) -> None:
        if self.__shrinking:
            if self.shrink_calls >= MAX_SHRINK_CALLS:
                self.exit_reason = ExitReason.max_shrinks
                raise RunIsComplete
            self.shrink_calls += 1
        self.call_count += 1
        try:
            try:
                self._test_function(attempt)
            except UnsatisfiedAssumption as e:
                attempt.mark_invalid(str(e) or None)
        except StopTest as e:
            if e.testcounter != attempt.testcounter:
                raise
        attempt.freeze()
        result = attempt.as_result()
        self.debug_result(result)
        if result.status != Status.OVERRUN:
            self.__cache.setdefault(result.choices, result)
        self.record(result)

    def record(self, result: AttemptResult) -> None:
        """Fold a finished attempt into the counters and the best results
        seen so far."""
        for label, _ in result.events:
            self.event_counts[str(label)] += 1

        if result.status == Status.VALID:
            self.valid_examples += 1
            self.consecutive_rejections = 0
            if result.target_score is not None and (
                self.best_scoring is None
                or result.target_score > self.best_scoring.target_score
            ):
                self.debug(f"New best score {result.target_score}")
                self.best_scoring = result
        elif result.status == Status.INTERESTING:
            self.consecutive_rejections = 0
            if result.interesting_origin.is_error:
                # The first error found fixes the type of error we report.
                if self.best_error is None or (
                    same_classification(
                        result.interesting_origin, self.best_error.interesting_origin
                    )
                    and self.__better_error(result, self.best_error)
                ):
                    self.best_error = result
            elif self.best_failure is None or sort_key(result.choices) < sort_key(
                self.best_failure.choices
            ):
                self.best_failure = result
        else:
            if result.status == Status.INVALID:
                self.invalid_examples += 1
            else:
                self.overrun_examples += 1
            self.consecutive_rejections += 1

    def __better_error(self, result: AttemptResult, other: AttemptResult) -> bool:
        preferred = compare_errors(result.expected_exception, other.expected_exception)
        if preferred is not None:
            return preferred
        return sort_key(result.choices) < sort_key(other.choices)

    def cached_test_function(
        self,
        choices: Sequence[int],
        *,
        max_choices: Optional[int] = None,
        generation: Optional[int] = None,
    ) -> AttemptResult:
        """Run the test function on ``choices``, unless we have already done
        so, in which case return the previous result.  Choices the sequence
        doesn't specify are made at random, seeded from the sequence so that
        running it again always gives the same result."""
        choices = tuple(choices)
        try:
            return self.__cache[choices]
        except KeyError:
            pass
        attempt = Attempt(
            ReplaySource(choices, FreshSource(Random(hash(choices)))),
            max_choices=(
                self.settings.max_choices if max_choices is None else max_choices
            ),
            generation=self.call_count if generation is None else generation,
        )
        self.test_function(attempt)
        result = attempt.as_result()
        self.__cache[choices] = result
        return result

    def new_attempt(self) -> Attempt:
        if (
            Phase.target in self.settings.phases
            and self.best_scoring is not None
            and self.best_scoring.choices
            and self.random.random() < TARGET_MUTATION_PROBABILITY
        ):
            return self.mutate(self.best_scoring)
        return Attempt(
            FreshSource(self.random),
            max_choices=self.settings.max_choices,
            generation=self.call_count,
        )

    def mutate(self, result: AttemptResult) -> Attempt:
        """Returns an attempt that replays ``result`` with a single choice
        changed, either nudged a little or redrawn from its whole range."""
        node = result.nodes[self.random.randrange(len(result.nodes))]
        if self.random.random() < 0.5:
            delta = self.random.randint(1, 8) * self.random.choice((-1, 1))
            value = clamp(node.min_value, node.value + delta, node.max_value)
        else:
            value = self.random.randint(node.min_value, node.max_value)
        choices = result.choices
        return Attempt(
            ReplaySource(
                choices[: node.index] + (value,) + choices[node.index + 1 :],
                FreshSource(self.random),
            ),
            max_choices=self.settings.max_choices,
            generation=self.call_count,
        )

    def reuse_existing_examples(self) -> None:
        """Replay the stored example for this property, if there is one.
        This is always the very first attempt of a run."""
        if self.store is None or Phase.reuse not in self.settings.phases:
            return
        self.stored = self.store.lookup()
        if self.stored is None:
            return
        self.debug(f"Replaying stored example {list(self.stored.choices)}")
        result = self.cached_test_function(
            self.stored.choices,
            max_choices=self.stored.max_choices,
            generation=self.stored.generation,
        )
        self.stored_still_interesting = result.status == Status.INTERESTING

    def generate_new_examples(self) -> None:
        if Phase.generate not in self.settings.phases or self.interesting:
            return

        self.test_function(
            Attempt(
                SimplestSource(),
                max_choices=self.settings.max_choices,
                generation=self.call_count,
            )
        )

        while self.interesting is None:
            if self.valid_examples >= self.settings.max_examples:
                self.exit_reason = ExitReason.max_examples
                return
            if self.consecutive_rejections >= self.settings.max_consecutive_rejections:
                self.exit_reason = ExitReason.max_rejections
                return
            self.test_function(self.new_attempt())

    def shrink_interesting_examples(self) -> None:
        """Shrink the best interesting result until shrinking it again
        makes no difference.

        Every replay made while shrinking is also recorded, so the result we
        are shrinking can be replaced by a better one from under us, e.g. an
        error found while shrinking a failure.  We keep going until the
        current best has itself been shrunk.
        """
        if Phase.shrink not in self.settings.phases:
            return
        shrunk: "set[tuple[int, ...]]" = set()
        self.__shrinking = True
        try:
            while self.interesting is not None:
                target = self.interesting
                if target.choices in shrunk:
                    break
                shrunk.add(target.choices)
                self.debug(
                    f"Shrinking {target.interesting_origin} from "
                    f"{len(target.choices)} choices"
                )
                shrinker = Shrinker(
                    self,
                    target,
                    lambda r, origin=target.interesting_origin: (
                        r.status == Status.INTERESTING
                        and same_classification(r.interesting_origin, origin)
                    ),
                )
                try:
                    shrunk.add(shrinker.shrink().choices)
                finally:
                    self.shrinks += shrinker.shrinks
        finally:
            self.__shrinking = False

    def persist(self) -> None:
        """Write the best interesting result to the store if it improves on
        what is there, or delete a stored example that no longer fails."""
        if self.store is None:
            return
        best = self.interesting
        if best is None:
            if self.stored is not None:
                self.debug("Stored example no longer fails, deleting it")
                self.store.discard(self.stored)
            return
        if (
            self.stored is None
            or not self.stored_still_interesting
            or sort_key(best.choices) < sort_key(self.stored.choices)
        ):
            self.store.store(
                StoredExample(best.choices, best.generation, best.max_choices),
                replacing=self.stored,
            )

    def _run(self) -> None:
        self.reuse_existing_examples()
        self.generate_new_examples()
        self.shrink_interesting_examples()
        if self.exit_reason is None:
            self.exit_reason = ExitReason.finished

    def run(self) -> None:
        with local_settings(self.settings):
            try:
                self._run()
            except RunIsComplete:
                pass
            self.persist()
            self.debug(
                f"Run complete after {self.call_count} attempts "
                f"({self.valid_examples} valid) and {self.shrinks} shrinks: "
                f"{self.exit_reason.describe(self.settings)}"
            )
