"""
Sargent parser: registration, the parse pass, and retrieval.

What this module provides
- Parser: registry of declared arguments (tag + kind + default + policy) and the
  parse pass mapping CLI tokens and environment pairs onto typed values.
- Reference: handle returned by Parser.add(); a lookup key with no data of its own.
- Arguments: immutable result of one parse pass (resolved table, remainder, binary).
- Outcome: resolved value of one argument, either a value or a ConversionError.
- Policy: per-argument retrieval contract (STRICT, KEEP, DISCARD).
- Unknown: what to do with "-x"/"--name" tokens matching no declared tag.

Parse pass
- the first CLI token is the binary name; it is kept in the remainder and never matched.
- "--name=value" and "--name value" are equivalent for value-taking kinds; flags never
  consume the following token.
- "-abc" sets several short tags at once; at most one of them may take a value.
- tokens matching nothing are kept in the remainder, in their original order.
- arguments the CLI did not supply fall back to their environment variable, then to
  their registered default, then to their kind's fallback (False for flags).
- conversion failures are stored per argument and never abort the pass.

Quick start
    from sargent import Parser, Policy, tags, kinds

    parser = Parser()
    verbose = parser.add(tags.both("v", "verbose"), kinds.Flag)
    threads = parser.add(tags.long("threads") | tags.env("THREADS"), kinds.U32, default="4")

    arguments = parser.parse(["prog", "-v", "file.txt"], {"THREADS": "8"})
    verbose.get()          # True
    threads.get().value    # 8
    arguments.remainder    # ["prog", "file.txt"]
"""
import copy
import difflib
import enum
import functools
import logging
import os
import shlex
import sys
import threading
from collections import deque
from collections.abc import Iterable, Mapping

from .faults import *
from .kinds import Text, kindof
from .tags import Tag
from .utils import *

logger = logging.getLogger(__name__)


class Policy(enum.Enum):
    """
    how Reference.get() surfaces a missing or failed argument.

    - STRICT: return the value; raise UnsuppliedArgumentError when absent and the
      stored ConversionError when conversion failed.
    - KEEP: return None when absent, otherwise the Outcome (value or error).
    - DISCARD: return the value, or None when absent or failed.
    """
    STRICT = "strict"
    KEEP = "keep"
    DISCARD = "discard"


class Unknown(enum.Enum):
    """
    what the parse pass does with "-x"/"--name" tokens matching no declared tag.

    - REMAINDER: keep them as positional remainder (default).
    - ERROR: abort the pass with UnknownTagError.
    """
    REMAINDER = "remainder"
    ERROR = "error"


@functools.cache
def _ordinal(number):
    """
    Return a human-friendly ordinal label for a 1-based position.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


class Outcome:
    """
    Resolved value of one argument for one parse pass.

    Exactly one of `value` and `error` is meaningful: an outcome is truthy when the
    conversion succeeded. unwrap() returns the value or raises the error.
    """
    __slots__ = ("_value", "_error")

    def __init__(self, value=None, error=None):
        if error is not None and not isinstance(error, ConversionError):
            raise TypeError("outcome 'error' must be a conversion error")
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value, /):
        return cls(value)

    @classmethod
    def fail(cls, error, /):
        return cls(error=error)

    @property
    def value(self):
        return self._value

    @property
    def error(self):
        return self._error

    def unwrap(self):
        if self._error is not None:
            raise self._error
        return self._value

    def __bool__(self):
        return self._error is None

    def __eq__(self, other, /):
        if not isinstance(other, Outcome):
            return NotImplemented
        if self._error is not None or other._error is not None:
            return self._error is other._error
        return self._value == other._value

    __hash__ = None

    def __repr__(self):
        if self._error is not None:
            return "Outcome.fail(%r)" % self._error
        return "Outcome.ok(%r)" % (self._value,)

    def __rich_repr__(self):
        if self._error is not None:
            yield "error", self._error
        else:
            yield "value", self._value


class _Entry:
    """
    Declared argument as stored by the parser.
    """
    __slots__ = ("tag", "kind", "default", "policy")

    def __init__(self, tag, kind, default, policy):
        self.tag = tag
        self.kind = kind
        self.default = default
        self.policy = policy

    def same(self, tag, kind, default, policy):
        return (
            self.tag == tag and
            self.kind == kind and
            self.policy is policy and
            (self.default is default or self.default == default)
        )


class Reference:
    """
    Handle to a declared argument.

    A reference only knows its parser and its position in the parser's table; the
    parser owns every resolved value. get() reads the parser's latest pass, or the
    pass given as argument.
    """
    __slots__ = ("_parser", "_index")

    def __init__(self, parser, index, /):
        self._parser = parser
        self._index = index

    @property
    def parser(self):
        return self._parser

    @property
    def tag(self):
        return self._parser._entry(self._index).tag

    @property
    def kind(self):
        return self._parser._entry(self._index).kind

    @property
    def policy(self):
        return self._parser._entry(self._index).policy

    def _arguments(self, arguments):
        arguments = coalesce(arguments, self._parser.latest)
        if not isinstance(arguments, Arguments):
            raise TypeError("reference argument must be the result of a parse pass")
        if arguments.parser is not self._parser:
            raise ValueError("reference does not belong to the parser that produced these arguments")
        return arguments

    def outcome(self, arguments=Unset, /):
        """
        Return the raw Outcome (or None when absent), ignoring the policy.
        """
        return self._arguments(arguments)._outcome(self._index)

    def origin(self, arguments=Unset, /):
        """
        Return where the raw value came from: "cli", "env", "default" or None.
        """
        return self._arguments(arguments)._origin(self._index)

    def get(self, arguments=Unset, /):
        """
        Retrieve the resolved value according to the argument's policy.
        """
        outcome = self.outcome(arguments)

        match self.policy:
            case Policy.KEEP:
                return outcome
            case Policy.DISCARD:
                return outcome.value if outcome else None
            case Policy.STRICT:
                if outcome is None:
                    self._parser.trigger(UnsuppliedArgumentError(
                        "argument %s was not supplied" % self.tag,
                        title="unsupplied argument",
                        code=FaultCode.UNSUPPLIED_ARGUMENT,
                        input=str(self.tag),
                        hint="pass %s or give it a default value" % self.tag,
                        docs=getdoc(FaultCode.UNSUPPLIED_ARGUMENT),
                    ))
                if not outcome:
                    self._parser.trigger(outcome.error)
                return outcome.value

    def __repr__(self):
        return "reference(tag=%r, kind=%r, policy=%s)" % (self.tag, self.kind, self.policy.value)


class Arguments:
    """
    Result of one parse pass.

    Holds a snapshot of every resolved value (by reference), the remainder and the
    binary name. Arguments registered after the pass read as absent.
    """

    def __init__(self, parser, outcomes, origins, remainder, binary):
        self._parser = parser
        self._outcomes = tuple(outcomes)
        self._origins = tuple(origins)
        self._remainder = tuple(remainder)
        self._binary = binary

    parser = property(lambda self: self._parser)
    binary = property(lambda self: self._binary)
    remainder = mirror("remainder")

    def _outcome(self, index):
        try:
            return self._outcomes[index]
        except IndexError:
            return None

    def _origin(self, index):
        try:
            return self._origins[index]
        except IndexError:
            return None

    def __getitem__(self, reference, /):
        if not isinstance(reference, Reference):
            raise TypeError("arguments indices must be references")
        return reference.get(self)

    def __contains__(self, reference, /):
        return isinstance(reference, Reference) and reference.outcome(self) is not None

    @property
    def failures(self):
        """
        Map each failed argument's tag to its ConversionError, in declaration order.
        """
        return {
            self._parser._entry(index).tag: outcome.error
            for index, outcome in enumerate(self._outcomes)
            if outcome is not None and not outcome
        }

    def check(self):
        """
        Raise a ParserExit bundling every conversion failure of this pass, if any.
        """
        if failures := self.failures:
            self._parser.trigger(ParserExit(failures.values()))
        return self

    def __rich_repr__(self):
        yield "binary", self._binary
        yield "remainder", list(self._remainder)
        for index, outcome in enumerate(self._outcomes):
            yield str(self._parser._entry(index).tag), outcome

    def __repr__(self):
        return "arguments(binary=%r, remainder=%r)" % (self._binary, list(self._remainder))


def _tokenize(cli):
    if cli is Unset:
        return list(sys.argv)
    if isinstance(cli, str):
        return shlex.split(cli)
    if isinstance(cli, Iterable):
        tokens = list(cli)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse() 'cli' argument must be a string or an iterable of strings")
        return tokens
    raise TypeError("parse() 'cli' argument must be a string or an iterable of strings")


def _environ(env):
    """
    Normalize environment input into a lookup where the first pair wins.
    """
    if env is Unset or env is None:
        return {}
    if isinstance(env, Mapping):
        env = env.items()
    if not isinstance(env, Iterable) or isinstance(env, str):
        raise TypeError("parse() 'env' argument must be a mapping or an iterable of pairs")
    lookup = {}
    for pair in env:
        try:
            name, value = pair
        except (TypeError, ValueError):
            raise TypeError("parse() 'env' argument must contain (name, value) pairs") from None
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError("parse() 'env' names and values must be strings")
        lookup.setdefault(name, value)
    return lookup


class Parser:
    """
    Registry of declared arguments and the parse pass over them.

    Options
    - unknown: Unknown policy for unmatched "-x"/"--name" tokens (default REMAINDER).
    - shell: render faults with rich on stderr and exit instead of raising.
    - fancy: render faults inside panels (shell mode).
    - colorful: use colors when rendering faults.

    Thread-safety
    - registration, parsing and retrieval take an internal re-entrant lock so they
      can be called from several places of a program; concurrent parse passes on
      the same parser are not supported.
    """

    def __init__(self, *, unknown=Unknown.REMAINDER, shell=False, fancy=False, colorful=True):
        if not isinstance(unknown, Unknown):
            raise TypeError("parser 'unknown' must be an Unknown policy")
        self.unknown = unknown
        self.shell = bool(shell)
        self.fancy = bool(fancy)
        self.colorful = bool(colorful)

        self._lock = threading.RLock()
        self._entries = []
        self._shorts = {}
        self._longs = {}
        self._latest = Arguments(self, (), (), (), None)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    @property
    def tags(self):
        with self._lock:
            return tuple(entry.tag for entry in self._entries)

    @property
    def latest(self):
        """
        Result of the latest parse pass (an empty result before the first pass).
        """
        with self._lock:
            return self._latest

    @property
    def binary(self):
        return self.latest.binary

    def _entry(self, index):
        with self._lock:
            return self._entries[index]

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this parser's rendering options merged in.
        """
        binary = options.pop("binary", self._latest.binary)
        trigger(fault, **{
            "shell": self.shell,
            "fancy": self.fancy,
            "colorful": self.colorful,
            "prog": os.path.basename(binary) if binary else None,
        } | options)

    def add(self, tag, kind=Text, /, default=Unset, policy=Policy.KEEP):
        """
        Declare an argument and return its Reference.

        Parameters
        - tag: Tag
          names the argument answers to.
        - kind: kind or annotation (see kinds.kindof), defaults to Text.
        - default: raw text (str, converted like any input) or a ready value,
          applied only when neither the CLI nor the environment supplied one.
        - policy: Policy used by Reference.get().

        Raises
        - TypeError: invalid tag, kind or policy.
        - DuplicateTagError: a form of `tag` is already used by another argument.

        Declaring the very same argument twice returns the existing reference.
        """
        if not isinstance(tag, Tag):
            raise TypeError("add() first argument must be a tag")
        kind = kindof(kind)
        if not isinstance(policy, Policy):
            raise TypeError("add() 'policy' must be a Policy")

        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.same(tag, kind, default, policy):
                    return Reference(self, index)
                if collisions := tag.collisions(entry.tag):
                    self.trigger(DuplicateTagError(
                        "tag %s collides with the already declared %s (%s)" % (tag, entry.tag, ", ".join(collisions)),
                        title="duplicate tag",
                        code=FaultCode.DUPLICATE_TAG,
                        input=str(tag),
                        collisions=collisions,
                        hint="give every argument its own short, long and env names",
                        docs=getdoc(FaultCode.DUPLICATE_TAG),
                    ))

            index = len(self._entries)
            self._entries.append(_Entry(tag, kind, default, policy))
            if tag.short is not None:
                self._shorts[tag.short] = index
            if tag.long is not None:
                self._longs[tag.long] = index
            logger.debug("declared %s as %r (policy=%s)", tag, kind, policy.value)
            return Reference(self, index)

    def parse(self, cli=Unset, env=Unset):
        """
        Run a parse pass and return its Arguments.

        Parameters
        - cli: Unset (read sys.argv), a shell-like string (split with shlex) or an
          iterable of strings; the first token is the binary name.
        - env: Unset/None (no environment), a mapping, or an iterable of
          (name, value) pairs; the first pair for a name wins.

        Raises
        - ConsumedValueError: two tags of one short group both need a value.
        - UnknownTagError: an unknown tag was given with Unknown.ERROR.
        """
        tokens = _tokenize(cli)
        lookup = _environ(env)

        with self._lock:
            entries = tuple(self._entries)
            occurrences = [[] for _ in entries]
            remainder = []

            binary = tokens[0] if tokens else None
            queue = deque(tokens[1:])
            remainder.extend(tokens[:1])

            index = 0
            while queue:
                token = queue.popleft()
                index += 1

                if token.startswith("--") and token != "--":
                    name, separator, value = token[2:].partition("=")
                    try:
                        positions = [self._longs[name]]
                    except KeyError:
                        self._unknown(token, "--" + name, index, remainder, binary)
                        continue
                elif token.startswith("-") and token not in ("-", "--"):
                    names, separator, value = token[1:].partition("=")
                    try:
                        positions = [self._shorts[name] for name in names] if names else None
                    except KeyError as error:
                        self._unknown(token, "-" + error.args[0], index, remainder, binary)
                        continue
                    if positions is None:
                        remainder.append(token)
                        continue
                else:
                    remainder.append(token)
                    continue

                consumers = [position for position in positions if entries[position].kind.consumes]
                if len(consumers) > 1:
                    self.trigger(ConsumedValueError(
                        "tags %s at %s position all try to consume the same value" % (
                            ", ".join(str(entries[position].tag) for position in consumers), _ordinal(index)
                        ),
                        title="value consumed twice",
                        code=FaultCode.CONSUMED_VALUE,
                        input=token,
                        index=index,
                        hint="split the group so that each value-taking tag gets its own value",
                        docs=getdoc(FaultCode.CONSUMED_VALUE),
                    ), binary=binary)

                value = value if separator else None
                for offset, position in enumerate(positions, 1):
                    entry = entries[position]
                    if entry.kind.consumes:
                        if value is None and queue:
                            value = queue.popleft()
                            index += 1
                        raw = value
                    elif value is not None and not consumers and offset == len(positions):
                        raw = value
                    else:
                        raw = None

                    occurrences[position].append(raw)
                    logger.debug("matched %s at %s position with %r", entry.tag, _ordinal(index), raw)

                    if len(occurrences[position]) == 2 and entry.kind.consumes and not entry.kind.repeatable:
                        self.trigger(RepeatedTagWarning(
                            "tag %s was given more than once, the last value wins" % entry.tag,
                            title="repeated tag",
                            code=FaultCode.REPEATED_TAG,
                            input=str(entry.tag),
                            index=index,
                            hint="keep a single %s" % entry.tag,
                            docs=getdoc(FaultCode.REPEATED_TAG),
                        ), binary=binary)

            outcomes = []
            origins = []
            for entry, raws in zip(entries, occurrences):
                outcome, origin = self._resolve(entry, raws, lookup)
                outcomes.append(outcome)
                origins.append(origin)

            self._latest = Arguments(self, outcomes, origins, remainder, binary)
            return self._latest

    def parse_cli(self, cli, /):
        """
        Parse CLI tokens only.
        """
        return self.parse(cli, None)

    def parse_env(self, env, /):
        """
        Parse environment pairs only (no CLI tokens, no binary name).
        """
        return self.parse((), env)

    def parse_process(self):
        """
        Parse sys.argv and os.environ.
        """
        return self.parse(sys.argv, os.environ)

    def _unknown(self, token, input, index, remainder, binary):
        if self.unknown is Unknown.ERROR:
            known = ["--" + name for name in self._longs] + ["-" + name for name in self._shorts]
            suggestions = difflib.get_close_matches(input, known, 5)
            try:
                hint = "did you mean %r?" % suggestions[0]
            except IndexError:
                hint = "remove it or declare it on the parser"
            self.trigger(UnknownTagError(
                "unknown tag %r at %s position" % (input, _ordinal(index)),
                title="unknown tag",
                code=FaultCode.UNKNOWN_TAG,
                input=input,
                index=index,
                suggestions=suggestions,
                hint=hint,
                docs=getdoc(FaultCode.UNKNOWN_TAG),
            ), binary=binary)
        logger.debug("kept unknown %r at %s position as remainder", token, _ordinal(index))
        remainder.append(token)

    def _resolve(self, entry, raws, lookup):
        """
        Pick the raw source of one argument (CLI, env, default, fallback) and convert it.
        """
        if raws:
            origin = "cli"
        elif entry.tag.env is not None and entry.tag.env in lookup:
            origin = "env"
            raws = [lookup[entry.tag.env]]
            logger.debug("%s taken from the environment", entry.tag)
        elif entry.default is not Unset:
            origin = "default"
            if not isinstance(entry.default, str):
                return Outcome.ok(copy.copy(entry.default)), origin
            raws = [entry.default]
        else:
            try:
                fallback = entry.kind.__fallback__()
            except ConversionError as error:
                return self._failed(entry, error, None), None
            except Exception as exception:
                return self._failed(entry, self._delegated(entry, exception), None), None
            return (None if fallback is Unset else Outcome.ok(fallback)), None

        if not entry.kind.repeatable:
            raws = raws[-1:]

        try:
            values = [value for value in map(entry.kind.__convert__, raws) if value is not Unset]
        except ConversionError as error:
            return self._failed(entry, error, origin), origin
        except Exception as exception:
            return self._failed(entry, self._delegated(entry, exception), origin), origin

        if not values:
            return None, origin
        return Outcome.ok(entry.kind.__join__(values)), origin

    def _delegated(self, entry, exception):
        error = DelegatedConversionError(
            "%s could not be converted: %s" % (entry.tag, exception),
            title="invalid value",
            code=FaultCode.DELEGATED_CONVERSION,
            exception=exception,
            hint="check the expected format of this argument",
            docs=getdoc(FaultCode.DELEGATED_CONVERSION),
        )
        error.__cause__ = exception
        return error

    def _failed(self, entry, error, origin):
        logger.debug("%s failed to convert (%s): %s", entry.tag, origin, error)
        return Outcome.fail(copy.replace(error, tag=str(entry.tag), origin=origin))


__all__ = (
    "Parser",
    "Reference",
    "Arguments",
    "Outcome",
    "Policy",
    "Unknown",
)
