r"""
Sargent tags: the names an argument answers to.

Overview
- Tag: immutable value object holding any combination of
  • short: a single character, matched by "-x",
  • long: a multi-character name, matched by "--name",
  • env: an environment variable name, consulted when the CLI supplied nothing.
  At least one form must be present.

- Builders
  • short("v"), long("verbose"), both("v", "verbose"), env("VERBOSE").
  • Tags combine with "|": long("list") | env("LIST").
  • copy.replace(tag, env="OTHER") / tag.replace(...) derive a new tag.

Validation highlights
- short must be exactly one character; "-", "=" and whitespace are rejected.
- long must be non-empty, must not start with "-" (the prefix is implied) and
  must not contain "=" or whitespace.
- env must be non-empty and must not contain "=" or whitespace.
- Type errors raise TypeError; shape errors raise ValueError.

Equality and hashing are by exact, case-sensitive value of the three forms.

Quick example:
    >>> from sargent.tags import both, env
    >>> tag = both("n", "name") | env("NAME")
    >>> tag.matches_long("name"), tag.matches_short("n")
    (True, True)
"""
import copy
import functools
import operator
import re

from .utils import *


class TagType(type):
    """
    Metaclass giving tags stable, readable representations.

    Responsibilities
    - Expose the names listed in __introspectable__ as read-only properties
      (backed by "_<name>" fields, see mirror()).
    - Provide __repr__/__rich_repr__ built from the same field list.
    - Derive __typename__ (hyphenated class name) for messages.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                if (object := getattr(self, name)) is not None:
                    yield name, object
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_forms(cls, metadata, /):
    """
    Internal: validate and normalize the three tag forms.

    Unset forms become None. At least one form must remain.

    Raises
    - TypeError: a form is not a string, or no form was given at all.
    - ValueError: a form has an invalid shape.
    """
    for name, object in metadata.items():
        if not isinstance(object, str | UnsetType | None):
            raise TypeError(f"{cls.__typename__} {name!r} form must be a string")
        metadata[name] = coalesce(object)

    if all(object is None for object in metadata.values()):
        raise TypeError(f"{cls.__typename__} must specify at least one of 'short', 'long' or 'env'")

    if (short := metadata["short"]) is not None:
        if len(short) != 1:
            raise ValueError(f"{cls.__typename__} 'short' form must be exactly one character")
        if short in "-=" or short.isspace():
            raise ValueError(f"{cls.__typename__} 'short' form cannot be {short!r}")

    if (long := metadata["long"]) is not None:
        if not long:
            raise ValueError(f"{cls.__typename__} 'long' form cannot be empty")
        if long.startswith("-"):
            raise ValueError(f"{cls.__typename__} 'long' form must be given without leading dashes")
        if "=" in long or re.search(r"\s", long):
            raise ValueError(f"{cls.__typename__} 'long' form cannot contain '=' or whitespaces")

    if (env := metadata["env"]) is not None:
        if not env:
            raise ValueError(f"{cls.__typename__} 'env' form cannot be empty")
        if "=" in env or re.search(r"\s", env):
            raise ValueError(f"{cls.__typename__} 'env' form cannot contain '=' or whitespaces")


class Tag(metaclass=TagType):
    """
    Identifier of a declared argument.

    Tags are immutable: attribute assignment raises AttributeError once built.
    Use "|" or replace() to derive new tags.
    """

    __introspectable__ = (
        "short",
        "long",
        "env",
    )

    def __new__(cls, short=Unset, long=Unset, env=Unset):
        metadata = {
            "short": short,
            "long": long,
            "env": env,
        }
        _sanitize_forms(cls, metadata)

        self = super().__new__(cls)
        for name, value in metadata.items():
            object.__setattr__(self, "_" + name, value)
        return self

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__typename__} is immutable")

    def __delattr__(self, name, /):
        raise AttributeError(f"{type(self).__typename__} is immutable")

    def __getnewargs__(self):
        return self._short, self._long, self._env

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __replace__(self, /, **changes):
        return type(self)(**{
            "short": self._short,
            "long": self._long,
            "env": self._env,
        } | changes)

    def replace(self, /, **changes):
        """
        Return a new tag with the given forms replaced (None removes a form).
        """
        return copy.replace(self, **changes)

    def __or__(self, other, /):
        """
        Merge two tags into one holding the forms of both.

        A form present in both tags must be equal; otherwise ValueError.
        """
        if not isinstance(other, Tag):
            return NotImplemented
        merged = {}
        for name in type(self).__introspectable__:
            mine, theirs = getattr(self, name), getattr(other, name)
            if mine is not None and theirs is not None and mine != theirs:
                raise ValueError(f"cannot merge tags with different {name!r} forms ({mine!r} and {theirs!r})")
            merged[name] = mine if mine is not None else theirs
        return type(self)(**merged)

    def __eq__(self, other, /):
        if not isinstance(other, Tag):
            return NotImplemented
        return (self._short, self._long, self._env) == (other._short, other._long, other._env)

    def __hash__(self):
        return hash((self._short, self._long, self._env))

    def __str__(self):
        forms = []
        if self._short is not None:
            forms.append("-" + self._short)
        if self._long is not None:
            forms.append("--" + self._long)
        if self._env is not None:
            forms.append("$" + self._env)
        return " / ".join(forms)

    @property
    def has_cli(self):
        return self._short is not None or self._long is not None

    @property
    def has_env(self):
        return self._env is not None

    def matches_short(self, short, /):
        return self._short is not None and self._short == short

    def matches_long(self, long, /):
        return self._long is not None and self._long == long

    def matches_env(self, env, /):
        return self._env is not None and self._env == env

    def collisions(self, other, /):
        """
        Return the names of the forms this tag shares with another one.

        Two tags collide when they have the same short, long or env form;
        the registry refuses to hold colliding tags.
        """
        return tuple(
            name for name in type(self).__introspectable__
            if getattr(self, name) is not None and getattr(self, name) == getattr(other, name)
        )


def short(short, /):
    """
    Create a tag with just a short form, matched by "-x".
    """
    return Tag(short=short)


def long(long, /):
    """
    Create a tag with just a long form, matched by "--name".
    """
    return Tag(long=long)


def both(short, long, /):
    """
    Create a tag matched by either "-x" or "--name".
    """
    return Tag(short=short, long=long)


def env(env, /):
    """
    Create a tag resolved only from the environment variable `env`.
    """
    return Tag(env=env)


__all__ = (
    "Tag",
    "short",
    "long",
    "both",
    "env",
)

del TagType
