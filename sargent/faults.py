"""
Sargent faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues
  (errors and warnings). Codes are grouped by the phase that detects them.
- ParserException / ParserWarning: base types that carry message + options and
  know how to render themselves in a friendly, lowercased, and actionable way.
- ConversionError: per-argument failure stored in an Outcome instead of aborting a pass.
- ParserExit: exception group bundling every conversion failure of one pass.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Integration
- The parser raises structural faults through Parser.trigger(fault, **ctx), which
  merges its runtime options (shell, fancy, colorful, prog) before calling trigger().
- In non-shell mode, exceptions are raised and warnings are emitted through the
  warnings module; in shell mode, they are rendered via rich on stderr.
- Host applications may customise rendering through __main__:
  __styles__ (rich styles), __codes__ (code labels), __prog__ (program name), __docs__.
"""
import copy
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, UnsetType

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping (by phase)
    - registration (111xx)
      • DUPLICATE_TAG
    - parsing (112xx)
      • UNKNOWN_TAG, CONSUMED_VALUE
    - conversion (113xx), stored per argument
      • MISSING_VALUE, INVALID_INTEGER, INVALID_FLOAT, DELEGATED_CONVERSION
    - retrieval (114xx)
      • UNSUPPLIED_ARGUMENT
    - warnings (122xx)
      • REPEATED_TAG
    """
    # --- registration errors (111xx) ---
    DUPLICATE_TAG               = 11101

    # --- parse pass errors (112xx) ---
    UNKNOWN_TAG                 = 11201
    CONSUMED_VALUE              = 11202

    # --- conversion errors (113xx) ---
    MISSING_VALUE               = 11301
    INVALID_INTEGER             = 11302
    INVALID_FLOAT               = 11303
    DELEGATED_CONVERSION        = 11304

    # --- retrieval errors (114xx) ---
    UNSUPPLIED_ARGUMENT         = 11401

    # --- warnings (122xx) ---
    REPEATED_TAG                = 12201

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _message(fault):
    return "" if fault.message is Unset else fault.message


def _render(fault, defaults, title, body):
    """
    Build the rich renderable shared by exceptions and warnings.

    The header reads "[ prog — code | title ]", followed by the message and a
    single hint line. fancy=True wraps everything in a Panel.
    """
    main = __import__("__main__")
    options = fault.options
    colorful = options.get("colorful", True)
    fancy = options.get("fancy", False)

    styles = defaultdict(str, defaults | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    prog = text(getattr(main, "__prog__", options.get("prog") or "sargent"), styler("prog-name"))

    code = options.get("code")
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if isinstance(code, FaultCode) else "?", styler("code")),
        " | ",
        text(str(options.get("title", "")).title(), styler(title)),
        " ]"
    )
    message = text(_message(fault), styler(body))
    hint = Text.assemble(text(" → ", styler("hint-arrow")), text(options.get("hint", ""), styler("hint")))

    if fancy:
        try:
            width = int((console.width - 4) * options["ratio"])
        except KeyError:
            width = None
        return Panel(Group(message, hint), title=header, title_align="left", width=width)

    return Group(header, message, hint)


class ParserException(Exception):
    """
    base type for every error surfaced by the library.

    options are free-form context (title, code, hint, input, argument...) plus the
    runtime switches consumed by rendering (shell, fancy, colorful, prog).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }, "error-title", "error-message")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from self.__cause__
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        fault = type(self)(self.message, **{**self.options, **overrides})
        fault.__cause__ = self.__cause__
        return fault


class DuplicateTagError(ParserException): ...
class UnknownTagError(ParserException): ...
class ConsumedValueError(ParserException): ...
class UnsuppliedArgumentError(ParserException): ...


class ConversionError(ParserException, ValueError):
    """
    a raw value could not be converted to the declared kind.

    conversion errors never abort a parse pass; the parser stores them in the
    argument's Outcome, and the retrieval policy decides how they surface.
    """


class MissingValueError(ConversionError): ...
class InvalidIntegerError(ConversionError): ...
class InvalidFloatError(ConversionError): ...
class DelegatedConversionError(ConversionError): ...


class ParserWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "warning-message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }, "warning-title", "warning-message")

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class RepeatedTagWarning(ParserWarning): ...


class ParserExit(ExceptionGroup[ConversionError]):
    """
    every conversion failure of one parse pass, raised by Arguments.check().
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad arguments", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("bad arguments", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", True)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "title": "bold #FF4DA6",
        } | getattr(main, "__styles__", {}))

        prog = Text(
            str(getattr(main, "__prog__", self.options.get("prog") or "sargent")),
            styles["prog-name"] if colorful else ""
        )
        header = Text.assemble("[ ", prog, " — ", Text(self.message.title(), styles["title"] if colorful else ""), " ]")

        renders = [copy.replace(exception, ratio=2/3, colorful=colorful) for exception in self.exceptions]

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via the rich console; otherwise, exceptions
      are raised and warnings are emitted through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "FaultCode",
    "ParserException",
    "DuplicateTagError",
    "UnknownTagError",
    "ConsumedValueError",
    "UnsuppliedArgumentError",
    "ConversionError",
    "MissingValueError",
    "InvalidIntegerError",
    "InvalidFloatError",
    "DelegatedConversionError",
    "ParserWarning",
    "RepeatedTagWarning",
    "ParserExit",
    "trigger",
    "getdoc",
)
