# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

"""This module provides the core primitives of Supposition, such as given."""

import functools
import inspect
from enum import Enum
from hashlib import sha384
from random import Random, getrandbits
from typing import Any, Callable, Optional, TypeVar

import attr

from supposition._settings import local_settings, settings as Settings
from supposition.control import BuildContext
from supposition.errors import (
    Flaky,
    InvalidArgument,
    NoExamples,
    NoSuchExample,
    StopTest,
    Unsatisfiable,
    UnexpectedPass,
    UnsatisfiedAssumption,
)
from supposition.internal.conjecture.data import Attempt, AttemptResult, FreshSource
from supposition.internal.conjecture.engine import SearchEngine
from supposition.internal.entropy import deterministic_PRNG
from supposition.internal.escalation import (
    FALSIFIED,
    SUPPOSITION_CONTROL_EXCEPTIONS,
    InterestingOrigin,
    call_user_code,
    escalate_supposition_internal_error,
    format_trace,
)
from supposition.internal.reflection import (
    function_digest,
    function_identity,
    get_pretty_function_description,
    repr_call,
)
from supposition.internal.validation import check_possibility, check_type
from supposition.possibilities._internal.possibility import Possibility
from supposition.reporting import report

T = TypeVar("T")


class Verdict(Enum):
    PASSED = "passed"
    SCORED = "scored"
    FAILED = "failed"
    ERRORED = "errored"
    EXHAUSTED = "exhausted"

    def __repr__(self) -> str:
        return f"Verdict.{self.name}"


@attr.s(slots=True, frozen=True)
class Outcome:
    """What happened when a property was checked.

    ``verdict`` says how the search ended.  For a failure or an error,
    ``arguments`` holds the minimal ``(args, kwargs)`` the property was
    called with, and ``choices`` the choice sequence that produces them;
    for a scored run they are those of the best scoring attempt.

    When the property is marked ``broken``, a failure or error keeps its
    verdict but is an expected failure, which counts as passing.
    """

    verdict: Verdict = attr.ib()
    arguments: "Optional[tuple[tuple, dict]]" = attr.ib(default=None)
    events: "tuple[tuple[str, Any], ...]" = attr.ib(default=())
    error: Optional[BaseException] = attr.ib(default=None, eq=False)
    origin: Optional[InterestingOrigin] = attr.ib(default=None)
    trace: Optional[str] = attr.ib(default=None, eq=False, repr=False)
    score: Optional[float] = attr.ib(default=None)
    choices: "tuple[int, ...]" = attr.ib(default=(), repr=False)
    generation: int = attr.ib(default=0, repr=False)
    max_choices: Optional[int] = attr.ib(default=None, repr=False)
    broken: bool = attr.ib(default=False)
    notes: "tuple[str, ...]" = attr.ib(default=(), repr=False)
    diagnostics: "tuple[str, ...]" = attr.ib(default=(), repr=False)
    statistics: "dict[str, Any]" = attr.ib(factory=dict, eq=False, repr=False)

    @property
    def failed(self) -> bool:
        return self.verdict in (Verdict.FAILED, Verdict.ERRORED) and not self.broken

    @property
    def errored(self) -> bool:
        return self.verdict is Verdict.ERRORED

    @property
    def passed(self) -> bool:
        return self.verdict in (Verdict.PASSED, Verdict.SCORED) or self.expected_failure

    @property
    def exhausted(self) -> bool:
        return self.verdict is Verdict.EXHAUSTED

    @property
    def expected_failure(self) -> bool:
        """A property marked as broken failed, as it was expected to.  This
        counts as passing."""
        return self.broken and self.verdict in (Verdict.FAILED, Verdict.ERRORED)


def property_key(
    test: Callable, possibilities: "tuple[Possibility, ...]", named: "dict"
) -> str:
    """The key a property's examples are stored under: its qualified name, a
    digest of its source, and the possibilities its arguments come from."""
    name = f"{function_identity(test)}@{function_digest(test).hex()[:16]}"
    return repr_call(name, possibilities, named)


def random_for(settings: Settings, key: str) -> Random:
    """The random number generator to drive the search with.  An explicit
    seed wins, then derandomization, which seeds from the property key so
    that each property always explores the same examples."""
    if settings.seed is not None:
        return Random(settings.seed)
    if settings.derandomize:
        seed = int.from_bytes(sha384(key.encode("utf-8")).digest()[:8], "big")
        return Random(seed)
    return Random(getrandbits(128))


class PropertyRunner:
    """Checks one property: runs the search over it, then replays the
    result the search settled on to recover the actual arguments."""

    def __init__(
        self,
        test: Callable,
        possibilities: "tuple[Possibility, ...]",
        named: "dict[str, Possibility]",
        *,
        settings: Optional[Settings] = None,
        random: Optional[Random] = None,
        database_key: Optional[str] = None,
        display: Optional[Callable] = None,
    ) -> None:
        for i, p in enumerate(possibilities):
            check_possibility(p, f"possibilities[{i}]")
        for k, p in named.items():
            check_possibility(p, k)
        self.test = test
        self.display = display or test
        self.possibilities = tuple(possibilities)
        self.named = dict(named)
        self.settings = settings or Settings.default
        if database_key is None:
            database_key = property_key(self.display, self.possibilities, self.named)
        self.database_key = database_key
        self.random = random or random_for(self.settings, database_key)
        self.last_arguments: "Optional[tuple[tuple, dict]]" = None
        self.last_notes: "list[str]" = []

    @property
    def name(self) -> str:
        return get_pretty_function_description(self.display)

    def execute_once(self, attempt: Attempt, *, is_final: bool = False) -> Any:
        """Produce the arguments from ``attempt`` and call the property with
        them, returning whatever it returns."""
        self.last_arguments = None
        with deterministic_PRNG():
            with BuildContext(attempt, is_final=is_final) as context:
                self.last_notes = context.notes
                args = tuple(attempt.produce(p) for p in self.possibilities)
                kwargs = {k: attempt.produce(p) for k, p in self.named.items()}
                self.last_arguments = (args, kwargs)
                if is_final:
                    report(f"Falsifying example: {self.example_string()}")
                return call_user_code(self.test, *args, **kwargs)

    def example_string(self) -> str:
        assert self.last_arguments is not None
        return repr_call(self.display, *self.last_arguments)

    def _execute_once_for_engine(self, attempt: Attempt) -> None:
        """Wraps execute_once so that failures and errors are reported to the
        engine by concluding the attempt, rather than by raising."""
        try:
            result = self.execute_once(attempt)
        except SUPPOSITION_CONTROL_EXCEPTIONS:
            raise
        except Exception as e:
            escalate_supposition_internal_error()
            attempt.expected_exception = e
            attempt.expected_traceback = format_trace(e)
            attempt.mark_interesting(InterestingOrigin.from_exception(e))
        if result is not None and not result:
            attempt.mark_interesting(FALSIFIED)

    def run_engine(self) -> SearchEngine:
        engine = SearchEngine(
            self._execute_once_for_engine,
            settings=self.settings,
            random=self.random,
            database_key=self.database_key,
        )
        engine.run()
        return engine

    def replay(
        self, result: AttemptResult, *, is_final: bool = False
    ) -> "tuple[Attempt, Any, Optional[Exception]]":
        """Run the property again on exactly the choices of ``result``,
        returning the attempt, what the property returned, and the exception
        it raised if any."""
        attempt = Attempt.for_choices(result.choices, generation=result.generation)
        value = error = None
        with local_settings(self.settings):
            try:
                try:
                    value = self.execute_once(attempt, is_final=is_final)
                except UnsatisfiedAssumption:
                    attempt.mark_invalid()
            except StopTest as e:
                if e.testcounter != attempt.testcounter:
                    raise
            except Exception as e:
                error = e
        attempt.freeze()
        if self.last_arguments is None and error is None:
            raise Flaky(
                f"Replaying {list(result.choices)} for {self.name} no longer "
                f"produces arguments (status {attempt.status.name}), which "
                "means the possibilities do not replay deterministically."
            )
        return attempt, value, error

    def statistics(self, engine: SearchEngine) -> "dict[str, Any]":
        return {
            "calls": engine.call_count,
            "valid": engine.valid_examples,
            "invalid": engine.invalid_examples,
            "overrun": engine.overrun_examples,
            "shrinks": engine.shrinks,
            "shrink_calls": engine.shrink_calls,
            "stopped_because": engine.exit_reason.describe(self.settings),
            "events": dict(engine.event_counts),
        }

    def outcome(self, engine: SearchEngine) -> Outcome:
        common = {
            "broken": self.settings.broken,
            "diagnostics": tuple(engine.diagnostics),
            "statistics": self.statistics(engine),
        }
        best = engine.interesting
        if best is not None:
            self.replay(best)
            return Outcome(
                Verdict.ERRORED if best.interesting_origin.is_error else Verdict.FAILED,
                arguments=self.last_arguments,
                events=best.events,
                error=best.expected_exception,
                origin=best.interesting_origin,
                trace=best.expected_traceback,
                choices=best.choices,
                generation=best.generation,
                max_choices=best.max_choices,
                notes=tuple(self.last_notes),
                **common,
            )
        if engine.exhausted:
            return Outcome(Verdict.EXHAUSTED, **common)
        best = engine.best_scoring
        if best is not None:
            self.replay(best)
            return Outcome(
                Verdict.SCORED,
                arguments=self.last_arguments,
                events=best.events,
                score=best.target_score,
                choices=best.choices,
                generation=best.generation,
                max_choices=best.max_choices,
                notes=tuple(self.last_notes),
                **common,
            )
        return Outcome(Verdict.PASSED, **common)

    def run_as_test(self) -> None:
        """Run the search and raise if the property does not hold, the way
        a test framework expects."""
        engine = self.run_engine()
        best = engine.interesting
        if best is None:
            if engine.exhausted:
                raise Unsatisfiable(
                    f"Unable to satisfy assumptions of {self.name}: stopped because "
                    f"{engine.exit_reason.describe(self.settings)}, after "
                    f"{engine.valid_examples} valid attempts"
                )
            if self.settings.broken:
                raise UnexpectedPass(f"{self.name} is marked as broken but passed")
            return

        _, value, error = self.replay(best, is_final=True)
        if self.settings.broken:
            report(f"{self.name} failed, as expected because it is marked broken")
            return
        if error is not None:
            if self.last_arguments is not None and hasattr(error, "add_note"):
                error.add_note(f"Falsifying example: {self.example_string()}")
            raise error
        if value is not None and not value:
            raise AssertionError(
                f"{self.name} returned {value!r} for {self.example_string()}"
            )
        raise Flaky(
            f"{self.name} failed with {best.interesting_origin} while searching, "
            f"but passed when replaying {self.example_string()}"
        )


def check(
    predicate: Callable[..., Any],
    *possibilities: Possibility,
    settings: Optional[Settings] = None,
    random: Optional[Random] = None,
    database_key: Optional[str] = None,
    **named: Possibility,
) -> Outcome:
    """Search for arguments, produced from ``possibilities`` and ``named``,
    for which ``predicate`` returns a false value (other than None) or
    raises, and return an :class:`Outcome` describing the result.

    Unlike :func:`given`, failures of the property are never raised: they
    are described by the outcome.
    """
    if not callable(predicate):
        raise InvalidArgument(f"Expected predicate={predicate!r} to be callable")
    runner = PropertyRunner(
        predicate,
        possibilities,
        named,
        settings=settings,
        random=random,
        database_key=database_key,
    )
    return runner.outcome(runner.run_engine())


def given(
    *given_possibilities: Possibility, **given_named: Possibility
) -> "Callable[[Callable[..., None]], Callable[..., None]]":
    """A decorator for turning a test function that accepts arguments into a
    randomized test.

    This is the main entry point to Supposition.  The possibilities produce
    the last positional arguments of the test and the named keyword
    arguments; any remaining arguments (e.g. ``self``, or pytest fixtures
    passed by keyword) are passed through from the call.
    """
    for i, p in enumerate(given_possibilities):
        check_possibility(p, f"given_possibilities[{i}]")
    for k, p in given_named.items():
        check_possibility(p, k)

    def run_test_as_given(test):
        if inspect.isclass(test):
            raise InvalidArgument("@given cannot be applied to a class.")
        original_sig = inspect.signature(test)
        for name in given_named:
            if name not in original_sig.parameters:
                raise InvalidArgument(
                    f"{test.__name__}() got an unexpected keyword argument "
                    f"{name!r}, from `{name}={given_named[name]!r}` in @given"
                )
        params = [
            p for p in original_sig.parameters.values() if p.name not in given_named
        ]
        if given_possibilities:
            if len(given_possibilities) > len(params):
                raise InvalidArgument(
                    f"Too many positional arguments for {test.__name__}() were "
                    f"passed to @given - expected at most {len(params)} "
                    f"arguments, but got {len(given_possibilities)}"
                )
            params = params[: len(params) - len(given_possibilities)]

        @functools.wraps(test)
        def wrapped_test(*arguments, **kwargs):
            settings = (
                getattr(wrapped_test, "_supposition_internal_use_settings", None)
                or getattr(test, "_supposition_internal_use_settings", None)
                or Settings.default
            )

            def run(*args, **named):
                return test(*arguments, *args, **kwargs, **named)

            PropertyRunner(
                run,
                given_possibilities,
                given_named,
                settings=settings,
                display=test,
            ).run_as_test()

        wrapped_test.__signature__ = original_sig.replace(parameters=params)
        wrapped_test.is_supposition_test = True
        return wrapped_test

    return run_test_as_given


def find(
    possibility: Possibility[T],
    condition: Callable[[T], Any],
    *,
    settings: Optional[Settings] = None,
    random: Optional[Random] = None,
    database_key: Optional[str] = None,
) -> T:
    """Returns the minimal example from the given possibility ``possibility``
    that satisfies the given function ``condition``.

    Raises NoSuchExample if no such example is found.
    """
    check_possibility(possibility, "possibility")
    if not callable(condition):
        raise InvalidArgument(f"Expected condition={condition!r} to be callable")
    settings = settings or Settings.default
    if database_key is None:
        settings = Settings(settings, database=None)

    def predicate(value):
        return not condition(value)

    outcome = check(
        predicate,
        possibility,
        settings=settings,
        random=random,
        database_key=database_key,
    )
    if outcome.verdict is Verdict.FAILED:
        ((value,), _) = outcome.arguments
        return value
    if outcome.errored:
        raise outcome.error
    raise NoSuchExample(
        get_pretty_function_description(condition),
        " (every attempt was rejected)" if outcome.exhausted else "",
    )


def example(
    possibility: Possibility[T],
    n: Optional[int] = None,
    *,
    tries: int = 100_000,
    generation: Optional[int] = None,
) -> Any:
    """Produce an example of ``possibility`` outside of any test, or a list
    of ``n`` examples if ``n`` is given.

    Each example gets up to ``tries`` attempts, any of which may be rejected
    by filters or assumptions, before we give up and raise NoExamples.
    This is for interactive exploration, not for testing.
    """
    check_possibility(possibility, "possibility")
    check_type(int, tries, "tries")
    rng = Random()
    if n is not None:
        check_type(int, n, "n")
        generations = list(range(1, n + 1))
        rng.shuffle(generations)
        return [
            example(possibility, tries=tries, generation=g) for g in generations
        ]
    if generation is None:
        generation = rng.randint(1, 500)
    for _ in range(tries):
        attempt = Attempt(
            FreshSource(rng),
            max_choices=Settings.default.max_choices,
            generation=generation,
        )
        try:
            with BuildContext(attempt):
                return attempt.produce(possibility)
        except UnsatisfiedAssumption:
            continue
        except StopTest as e:
            if e.testcounter != attempt.testcounter:
                raise
    raise NoExamples(
        f"Tried sampling {possibility!r} {tries} times without getting a "
        "result.  Perhaps you're filtering out too many examples?"
    )
