# This file is part of Supposition, which may be found at
# https://github.com/supposition-testing/supposition/
#
# Copyright the Supposition Authors.
# Individual contributors are listed in AUTHORS.rst and the git log.
#
# This Source Code Form is subject to the terms of the Mozilla Public License,
# v. 2.0. If a copy of the MPL was not distributed with this file, You can
# obtain one at https://mozilla.org/MPL/2.0/.

"""A module controlling settings for Supposition to use in its search.

Either an explicit settings object can be used or the default object on
this module can be modified.
"""

import contextlib
import inspect
from enum import IntEnum, unique
from typing import Any, Optional

import attr

from supposition.errors import InvalidArgument, InvalidState
from supposition.internal.reflection import get_pretty_function_description
from supposition.internal.validation import check_type
from supposition.utils.conventions import not_set
from supposition.utils.dynamicvariables import DynamicVariable

__all__ = ["settings"]

all_settings: "dict[str, Setting]" = {}


class settingsProperty:
    def __init__(self, name, show_default):
        self.name = name
        self.show_default = show_default

    def __get__(self, obj, type=None):
        if obj is None:
            return self
        else:
            try:
                result = obj.__dict__[self.name]
                # Resolving the default database lazily means that changing the
                # storage directory is reflected in the default database.
                if self.name == "database" and result is not_set:
                    from supposition.database import ExampleDatabase

                    result = ExampleDatabase(not_set)
                return result
            except KeyError:
                raise AttributeError(self.name) from None

    def __set__(self, obj, value):
        obj.__dict__[self.name] = value

    def __delete__(self, obj):
        raise AttributeError(f"Cannot delete attribute {self.name}")

    @property
    def __doc__(self):
        description = all_settings[self.name].description
        default = (
            repr(getattr(settings.default, self.name))
            if self.show_default
            else "(dynamically calculated)"
        )
        return f"{description}\n\ndefault value: ``{default}``"


default_variable = DynamicVariable(None)


class settingsMeta(type):
    @property
    def default(cls):
        v = default_variable.value
        if v is not None:
            return v
        if hasattr(settings, "_current_profile"):
            settings.load_profile(settings._current_profile)
            assert default_variable.value is not None
        return default_variable.value

    def _assign_default_internal(cls, value):
        default_variable.value = value

    def __setattr__(cls, name, value):
        if name == "default":
            raise AttributeError(
                "Cannot assign to the property settings.default - "
                "consider using settings.load_profile instead."
            )
        elif not (isinstance(value, settingsProperty) or name.startswith("_")):
            raise AttributeError(
                f"Cannot assign supposition.settings.{name}={value!r} - the settings "
                "class is immutable.  You can change the global default "
                "settings with settings.load_profile, or use @settings(...) "
                "to decorate your test instead."
            )
        return super().__setattr__(name, value)


class settings(metaclass=settingsMeta):
    """A settings object controls the parameters of the search: how many
    examples to try, how many rejections to tolerate, where to store
    failing examples, and so on.

    Default values are picked up from the settings.default object and
    changes made there will be picked up in newly created settings.
    """

    _WHITELISTED_REAL_PROPERTIES = ["_construction_complete"]
    __definitions_are_locked = False
    _profiles: "dict[str, settings]" = {}
    __module__ = "supposition"

    def __getattr__(self, name):
        if name in all_settings:
            return all_settings[name].default
        else:
            raise AttributeError(f"settings has no attribute {name}")

    def __init__(self, parent: Optional["settings"] = None, **kwargs: Any) -> None:
        if parent is not None and not isinstance(parent, settings):
            raise InvalidArgument(
                f"Invalid argument: parent={parent!r} is not a settings instance"
            )
        if kwargs.get("derandomize"):
            if kwargs.get("database") is not None:
                raise InvalidArgument(
                    "derandomize=True implies database=None, so passing "
                    f"database={kwargs['database']!r} too is invalid."
                )
            kwargs["database"] = None
        self._construction_complete = False
        defaults = parent or settings.default
        if defaults is not None:
            for setting in all_settings.values():
                if kwargs.get(setting.name, not_set) is not_set:
                    kwargs[setting.name] = getattr(defaults, setting.name)
                else:
                    if setting.validator:
                        kwargs[setting.name] = setting.validator(kwargs[setting.name])
        for name, value in kwargs.items():
            if name not in all_settings:
                raise InvalidArgument(
                    f"Invalid argument: {name!r} is not a valid setting"
                )
            setattr(self, name, value)
        self._construction_complete = True

    def __call__(self, test):
        """Make the settings object (self) an attribute of the test.

        The settings are later discovered by looking them up on the test itself.
        """
        if not callable(test) or inspect.isclass(test):
            raise InvalidArgument(
                "settings objects can be called as a decorator with @given, "
                f"but decorated test={test!r} is not a function."
            )
        if hasattr(test, "_supposition_internal_settings_applied"):
            raise InvalidArgument(
                f"{get_pretty_function_description(test)} has already been decorated "
                "with a settings object."
                f"\n    Previous:  {test._supposition_internal_use_settings!r}"
                f"\n    This:  {self!r}"
            )

        test._supposition_internal_use_settings = self
        test._supposition_internal_settings_applied = True
        return test

    @classmethod
    def _define_setting(
        cls,
        name,
        description,
        default,
        options=None,
        validator=None,
        show_default=True,
    ):
        """Add a new setting.

        - name is the name of the property that will be used to access the
          setting. This must be a valid python identifier.
        - description will appear in the property's docstring
        - default is the default value.
        """
        if settings.__definitions_are_locked:
            raise InvalidState(
                "settings have been locked and may no longer be defined."
            )
        if options is not None:
            options = tuple(options)
            assert default in options
        else:
            assert validator is not None

        all_settings[name] = Setting(
            name=name,
            description=description.strip(),
            default=default,
            options=options,
            validator=validator,
        )
        setattr(settings, name, settingsProperty(name, show_default))

    @classmethod
    def lock_further_definitions(cls):
        settings.__definitions_are_locked = True

    def __setattr__(self, name, value):
        if name in settings._WHITELISTED_REAL_PROPERTIES:
            return object.__setattr__(self, name, value)
        elif name in all_settings:
            if self._construction_complete:
                raise AttributeError(
                    "settings objects are immutable and may not be assigned to"
                    " after construction."
                )
            else:
                setting = all_settings[name]
                if setting.options is not None and value not in setting.options:
                    raise InvalidArgument(
                        f"Invalid {name}, {value!r}. Valid options: {setting.options!r}"
                    )
                return object.__setattr__(self, name, value)
        else:
            raise AttributeError(f"No such setting {name}")

    def __repr__(self):
        bits = sorted(f"{name}={getattr(self, name)!r}" for name in all_settings)
        return "settings({})".format(", ".join(bits))

    @staticmethod
    def register_profile(
        name: str, parent: Optional["settings"] = None, **kwargs: Any
    ) -> None:
        """Registers a collection of values to be used as a settings profile.

        Settings profiles can be loaded by name - for example, you might
        create a 'fast' profile which runs fewer examples, keep the 'default'
        profile, and create a 'ci' profile that increases the number of
        examples and uses a different database to store failures.

        The arguments to this method are exactly as for
        :class:`~supposition.settings`: optional ``parent`` settings, and
        keyword arguments for each setting that will be set differently to
        parent (or settings.default, if parent is None).
        """
        check_type(str, name, "name")
        settings._profiles[name] = settings(parent=parent, **kwargs)

    @staticmethod
    def get_profile(name: str) -> "settings":
        """Return the profile with the given name."""
        check_type(str, name, "name")
        try:
            return settings._profiles[name]
        except KeyError:
            raise InvalidArgument(f"Profile {name!r} is not registered") from None

    @staticmethod
    def load_profile(name: str) -> None:
        """Loads in the settings defined in the profile provided.

        If the profile does not exist, InvalidArgument will be raised.
        Any setting not defined in the profile will be the library
        defined default for that setting.
        """
        profile = settings.get_profile(name)
        settings._current_profile = name
        settings._assign_default_internal(profile)


@contextlib.contextmanager
def local_settings(s):
    with default_variable.with_value(s):
        yield s


@attr.s()
class Setting:
    name = attr.ib()
    description = attr.ib()
    default = attr.ib()
    options = attr.ib()
    validator = attr.ib()


def _positive_int_validator(name):
    def validate(x):
        check_type(int, x, name)
        if x < 1:
            raise InvalidArgument(f"{name}={x!r} should be at least one.")
        return x

    validate.__name__ = f"_validate_{name}"
    return validate


settings._define_setting(
    "max_examples",
    default=100,
    validator=_positive_int_validator("max_examples"),
    description="""
Once this many valid attempts have been considered without finding any
counter-example, the search will terminate.

Attempts that were rejected or ran out of choices do not count towards
this budget.
""",
)


settings._define_setting(
    "max_consecutive_rejections",
    default=1000,
    validator=_positive_int_validator("max_consecutive_rejections"),
    description="""
If this many attempts in a row are rejected (through ``reject``, ``assume`` or
``filter``) or run out of choices, the search gives up and reports the
property as unsatisfiable rather than passing.
""",
)


settings._define_setting(
    "max_choices",
    default=10_000,
    validator=_positive_int_validator("max_choices"),
    description="""
The maximum number of choices a single attempt may make.  An attempt that
tries to make more is stopped and counts as an overrun, which is treated
like a rejection.
""",
)


settings._define_setting(
    "derandomize",
    default=False,
    options=(True, False),
    description="""
If this is True then Supposition will run in deterministic mode, where each
search uses a random number generator that is seeded based on the property
being searched, which will be consistent across multiple runs.  This has the
disadvantage of making your tests less likely to find novel breakages.
""",
)


def _validate_seed(seed):
    if seed is None:
        return seed
    check_type(int, seed, "seed")
    return seed


settings._define_setting(
    "seed",
    default=None,
    validator=_validate_seed,
    description="""
An integer used to seed the random number generator of the search, or None
to pick a fresh seed for every run.  Takes precedence over ``derandomize``.
""",
)


def _validate_database(db):
    from supposition.database import ExampleDatabase

    if db is None or isinstance(db, ExampleDatabase):
        return db
    raise InvalidArgument(
        "Arguments to the database setting must be None or an instance of "
        f"ExampleDatabase.  Try passing database=ExampleDatabase({db!r}), or "
        "construct and use one of the specific subclasses in "
        "supposition.database"
    )


settings._define_setting(
    "database",
    default=not_set,
    show_default=False,
    description="""
An instance of supposition.database.ExampleDatabase that will be
used to save the minimal failing example of each property and to replay it
first on the next run.  May be ``None`` in which case no storage will be used.
""",
    validator=_validate_database,
)


settings._define_setting(
    "broken",
    default=False,
    options=(True, False),
    description="""
Mark the property as known to be broken.  The search runs exactly as usual,
but a failure is reported as expected rather than raised, and a property
that passes is reported as unexpectedly passing.
""",
)


@unique
class Phase(IntEnum):
    reuse = 1
    generate = 2
    target = 3
    shrink = 4

    def __repr__(self):
        return f"Phase.{self.name}"


@unique
class Verbosity(IntEnum):
    quiet = 0
    normal = 1
    verbose = 2
    debug = 3

    def __repr__(self):
        return f"Verbosity.{self.name}"


settings._define_setting(
    "verbosity",
    options=tuple(Verbosity),
    default=Verbosity.normal,
    description="Control the verbosity level of Supposition messages",
)


def _validate_phases(phases):
    phases = tuple(phases)
    for a in phases:
        if not isinstance(a, Phase):
            raise InvalidArgument(f"{a!r} is not a valid phase")
    return tuple(p for p in list(Phase) if p in phases)


settings._define_setting(
    "phases",
    default=tuple(Phase),
    description="""
Control which phases should be run: replaying the stored example, generating
new examples, hill climbing towards higher ``target`` scores, and shrinking
failing examples.
""",
    validator=_validate_phases,
)

settings.lock_further_definitions()

settings.register_profile("default", settings())
settings.load_profile("default")
assert settings.default is not None
