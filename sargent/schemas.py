"""
Sargent schemas: declare arguments as annotated class attributes.

Overview
- @schema turns a class with annotated attributes into an argument class. Each
  attribute becomes one declared argument:
  • the long form defaults to the attribute name with "_" replaced by "-",
  • the kind comes from kindof(annotation) unless field(kind=...) says otherwise,
  • a plain class value is the argument's default,
  • field(...) sets short/long/env forms, kind, default and policy explicitly.

- Generated API
  • Cls.parse(cli=Unset, env=Unset) -> (instance, remainder)
  • Cls.parse_cli(cli), Cls.parse_env(env), Cls.parse_process()
  • Cls.parser() -> a fresh Parser holding every declared argument
  • __init__(**values), __repr__, __eq__, __rich_repr__

Policies
- Attributes default to Policy.STRICT: parsing raises UnsuppliedArgumentError for
  an absent argument and the ConversionError of a bad one.
- field(policy=Policy.DISCARD) gives None instead; Policy.KEEP gives the Outcome.

Example
    @schema
    class Args:
        help: bool = field("h")
        name: str = field("n", env="NAME")
        times: int = field(default=1, policy=Policy.DISCARD)

    args, remainder = Args.parse(["greet", "-n", "world"])
"""
import inspect
import logging
import os
import sys

from .kinds import kindof
from .parsers import Parser, Policy, Unknown
from .tags import Tag
from .utils import *

logger = logging.getLogger(__name__)


class Field:
    """
    Explicit declaration of one schema attribute (see field()).
    """
    __slots__ = ("short", "long", "env", "kind", "default", "policy")

    def __init__(self, short=Unset, long=Unset, env=Unset, *, kind=Unset, default=Unset, policy=Unset):
        if policy is not Unset and not isinstance(policy, Policy):
            raise TypeError("field() 'policy' must be a Policy")
        self.short = short
        self.long = long
        self.env = env
        self.kind = kind
        self.default = default
        self.policy = policy

    def __rich_repr__(self):
        for name in self.__slots__:
            if (value := getattr(self, name)) is not Unset:
                yield name, value

    def __repr__(self):
        return "field(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


def field(short=Unset, long=Unset, env=Unset, *, kind=Unset, default=Unset, policy=Unset):
    """
    Declare a schema attribute.

    Parameters
    - short: single character matched by "-x".
    - long: name matched by "--name"; defaults to the attribute name with "_"
      replaced by "-". Pass None to declare no long form.
    - env: environment variable consulted when the CLI supplied nothing.
    - kind: explicit kind, overriding the annotation.
    - default: raw text (str) or ready value used when nothing was supplied.
    - policy: retrieval Policy, defaults to the schema's policy.
    """
    return Field(short, long, env, kind=kind, default=default, policy=policy)


def _declarations(cls, policy):
    """
    Build (name, tag, kind, default, policy) for every annotated attribute.
    """
    declarations = []
    for name, annotation in inspect.get_annotations(cls, eval_str=True).items():
        if name.startswith("_"):
            continue

        declared = cls.__dict__.get(name, Unset)
        if not isinstance(declared, Field):
            declared = Field(default=declared)

        tag = Tag(
            short=declared.short,
            long=coalesce(declared.long, name.replace("_", "-")),
            env=declared.env,
        )
        try:
            kind = kindof(coalesce(declared.kind, annotation))
        except TypeError:
            raise TypeError(f"schema attribute {name!r} has no usable kind ({annotation!r})") from None

        declarations.append((name, tag, kind, declared.default, coalesce(declared.policy, policy)))
    return tuple(declarations)


def schema(cls=Unset, /, *, policy=Policy.STRICT, unknown=Unknown.REMAINDER, shell=False, fancy=False, colorful=True):
    """
    Class decorator building an argument class from annotated attributes.

    Usable bare (@schema) or with options (@schema(policy=Policy.KEEP)).
    The parser options (unknown, shell, fancy, colorful) are forwarded to every
    Parser the class builds.

    Raises
    - TypeError/ValueError: an attribute has an unusable kind or malformed forms.
    - DuplicateTagError: two attributes share a form.
    """
    if not isinstance(policy, Policy):
        raise TypeError("@schema() 'policy' must be a Policy")

    @rename("schema")
    def wrapper(cls, /):
        if not isinstance(cls, type):
            raise TypeError("@schema() must be applied to a class")

        declarations = _declarations(cls, policy)
        names = tuple(declaration[0] for declaration in declarations)

        def bind():
            parser = Parser(unknown=unknown, shell=shell, fancy=fancy, colorful=colorful)
            references = {
                name: parser.add(tag, kind, default=default, policy=policy)
                for name, tag, kind, default, policy in declarations
            }
            return parser, references

        @rename("parser")
        def parser(cls):
            return bind()[0]

        @rename("parse")
        def parse(cls, cli=Unset, env=Unset):
            parser, references = bind()
            arguments = parser.parse(cli, env)
            instance = cls.__new__(cls)
            for name, reference in references.items():
                object.__setattr__(instance, name, reference.get(arguments))
            logger.debug("parsed %s with remainder %r", cls.__qualname__, arguments.remainder)
            return instance, arguments.remainder

        @rename("parse_cli")
        def parse_cli(cls, cli, /):
            return cls.parse(cli, None)

        @rename("parse_env")
        def parse_env(cls, env, /):
            return cls.parse((), env)

        @rename("parse_process")
        def parse_process(cls):
            return cls.parse(sys.argv, os.environ)

        @rename("__init__")
        def __init__(self, /, **values):
            if unexpected := values.keys() - set(names):
                raise TypeError(f"{cls.__qualname__}() got unexpected arguments: {", ".join(sorted(unexpected))}")
            for name in names:
                setattr(self, name, values.get(name))

        @rename("__eq__")
        def __eq__(self, other, /):
            if type(self) is not type(other):
                return NotImplemented
            return all(getattr(self, name) == getattr(other, name) for name in names)

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in names:
                yield name, getattr(self, name)

        @rename("__repr__")
        def __repr__(self):
            return f"{cls.__qualname__}({", ".join("%s=%r" % pair for pair in self.__rich_repr__())})"

        for name, *_ in declarations:
            if isinstance(cls.__dict__.get(name), Field):
                delattr(cls, name)

        cls.__fields__ = names
        cls.parser = classmethod(parser)
        cls.parse = classmethod(parse)
        cls.parse_cli = classmethod(parse_cli)
        cls.parse_env = classmethod(parse_env)
        cls.parse_process = classmethod(parse_process)
        cls.__init__ = __init__
        cls.__eq__ = __eq__
        cls.__hash__ = None
        cls.__rich_repr__ = __rich_repr__
        cls.__repr__ = __repr__

        # collisions surface at declaration time
        bind()
        logger.debug("declared schema %s with %d arguments", cls.__qualname__, len(names))
        return cls

    if cls is Unset:
        return wrapper
    return wrapper(cls)


__all__ = (
    "Field",
    "field",
    "schema",
)
