"""
Sargent value kinds: how raw text becomes a typed value.

Conversion contract (duck-typed, see SupportsConversion in kinds.pyi)
- consumes: bool
  Whether the tag takes a value token ("--name value"). Flags do not.
- repeatable: bool
  Whether repeated occurrences of the tag accumulate (lists) instead of the last
  one winning.
- __convert__(raw) -> value
  raw is the text given for one occurrence, or None when the tag was present
  without a value. Raise ConversionError (or any exception, for Custom) on failure.
  Returning Unset means "not supplied".
- __join__(values) -> value
  Combine the converted occurrences of a repeatable tag, in order.
- __fallback__() -> value | Unset
  Value used when the tag was entirely absent and no default was registered.

Built-in kinds
- Flag (Boolean): absent → False; present → True; "0"/"false" (any case) → False.
- I8 … I64, U8 … U64 (Integer): base-10 text, range checked for the width.
- F32, F64 (Floating): decimal/exponential text, "inf"/"nan" accepted.
- Text (String): verbatim, empty string allowed.
- List(element): comma separated elements; repeated tags append.
- Custom(converter, default=...): user conversion with optional default provider.

kindof(annotation) maps Python annotations (bool, int, float, str, list[T],
callables) onto these kinds.
"""
import copy
import itertools
import math
import re
import struct
import typing

from .faults import *
from .utils import *


class _Kind:
    """
    Defaults shared by the built-in kinds.
    """
    consumes = True
    repeatable = False
    __typename__ = "value"

    def __fallback__(self):
        return Unset

    def __join__(self, values, /):
        return values[-1]

    def _key(self):
        return ()

    def __eq__(self, other, /):
        if type(self) is not type(other):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((type(self), self._key()))

    def __rich_repr__(self):
        yield from ()

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, ", ".join("%s=%r" % pair for pair in self.__rich_repr__()))

    def _missing(self):
        # present without value, e.g. "--count" as the last token
        return MissingValueError(
            "expected a %s value but none was given" % self.__typename__,
            title="missing value",
            code=FaultCode.MISSING_VALUE,
            hint="pass a value after the tag (for example: --name=<value> or --name <value>)",
            docs=getdoc(FaultCode.MISSING_VALUE),
        )


class Boolean(_Kind):
    """
    Presence-only kind.

    An explicit value is accepted ("--flag=0") and is false only for "0" and
    "false" (case-insensitive).
    """
    consumes = False
    __typename__ = "flag"

    def __convert__(self, raw, /):
        if raw is None:
            return True
        return raw.lower() not in ("0", "false")

    def __fallback__(self):
        return False


class Integer(_Kind):
    """
    Base-10 integer of a fixed width, signed or unsigned.
    """

    def __init__(self, bits=64, signed=True):
        if not isinstance(bits, int) or isinstance(bits, bool):
            raise TypeError("integer 'bits' must be an integer")
        if bits not in (8, 16, 32, 64, 128):
            raise ValueError("integer 'bits' must be one of 8, 16, 32, 64 or 128")
        self.bits = bits
        self.signed = bool(signed)
        if self.signed:
            self.minimum, self.maximum = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        else:
            self.minimum, self.maximum = 0, (1 << bits) - 1

    @property
    def __typename__(self):
        return ("i" if self.signed else "u") + str(self.bits)

    def _key(self):
        return self.bits, self.signed

    def __rich_repr__(self):
        yield "bits", self.bits
        yield "signed", self.signed

    def __convert__(self, raw, /):
        if raw is None:
            raise self._missing()

        if not re.fullmatch(r"[+-]?[0-9]+" if self.signed else r"[+]?[0-9]+", raw, re.ASCII):
            raise InvalidIntegerError(
                "invalid %s %r" % ("integer" if self.signed else "unsigned integer", raw),
                title="invalid integer",
                code=FaultCode.INVALID_INTEGER,
                input=raw,
                hint="use base-10 digits only, optionally prefixed by %s" % ("'+' or '-'" if self.signed else "'+'"),
                docs=getdoc(FaultCode.INVALID_INTEGER),
            )

        value = int(raw, 10)
        if not self.minimum <= value <= self.maximum:
            raise InvalidIntegerError(
                "%r does not fit in %s" % (raw, self.__typename__),
                title="integer out of range",
                code=FaultCode.INVALID_INTEGER,
                input=raw,
                hint="use a value between %d and %d" % (self.minimum, self.maximum),
                docs=getdoc(FaultCode.INVALID_INTEGER),
            )
        return value


class Floating(_Kind):
    """
    Floating point number, single (32) or double (64) precision.
    """

    def __init__(self, bits=64):
        if bits not in (32, 64):
            raise ValueError("floating 'bits' must be 32 or 64")
        self.bits = bits

    @property
    def __typename__(self):
        return "f" + str(self.bits)

    def _key(self):
        return self.bits,

    def __rich_repr__(self):
        yield "bits", self.bits

    def __convert__(self, raw, /):
        if raw is None:
            raise self._missing()

        try:
            if not raw or raw != raw.strip() or "_" in raw:
                raise ValueError(raw)
            value = float(raw)
        except ValueError:
            raise InvalidFloatError(
                "invalid float %r" % raw,
                title="invalid float",
                code=FaultCode.INVALID_FLOAT,
                input=raw,
                hint="use a decimal or exponential number (for example: 1.5, -2e10, inf)",
                docs=getdoc(FaultCode.INVALID_FLOAT),
            ) from None

        if self.bits == 32 and math.isfinite(value):
            try:
                value, = struct.unpack("f", struct.pack("f", value))
            except OverflowError:
                value = math.copysign(math.inf, value)
        return value


class String(_Kind):
    """
    Verbatim text.
    """
    __typename__ = "string"

    def __convert__(self, raw, /):
        if raw is None:
            raise self._missing()
        return raw


class List(_Kind):
    """
    Delimited sequence of elements of another kind.

    "--list 1,2 --list 3" resolves to [1, 2, 3]: repeated occurrences append.
    """
    repeatable = True

    def __init__(self, element, /, delimiter=","):
        element = kindof(element)
        if not isinstance(delimiter, str):
            raise TypeError("list 'delimiter' must be a string")
        if not delimiter:
            raise ValueError("list 'delimiter' cannot be empty")
        self.element = element
        self.delimiter = delimiter

    @property
    def __typename__(self):
        return "list of " + self.element.__typename__

    def _key(self):
        return self.element, self.delimiter

    def __rich_repr__(self):
        yield "element", self.element
        if self.delimiter != ",":
            yield "delimiter", self.delimiter

    def __convert__(self, raw, /):
        if raw is None:
            raise self._missing()
        return [self.element.__convert__(piece) for piece in raw.split(self.delimiter)]

    def __join__(self, values, /):
        return list(itertools.chain.from_iterable(values))


class Custom(_Kind):
    """
    User-defined kind built around a converter callable.

    converter(raw) receives the raw text (None when the tag was present without a
    value) and returns the value; raising any exception marks the conversion as
    failed, returning Unset marks the argument as not supplied.

    default is either a value or a zero-argument callable providing one, used
    only when no raw text exists.
    """

    def __init__(self, converter, /, default=Unset, *, consumes=True, repeatable=False):
        if not callable(converter):
            raise TypeError("custom 'converter' must be callable")
        self.converter = converter
        self.default = default
        self.consumes = bool(consumes)
        self.repeatable = bool(repeatable)

    @property
    def __typename__(self):
        return getattr(self.converter, "__name__", "custom")

    def _key(self):
        return self.converter, self.consumes, self.repeatable

    def __rich_repr__(self):
        yield "converter", self.converter
        if self.default is not Unset:
            yield "default", self.default

    def __convert__(self, raw, /):
        try:
            return self.converter(raw)
        except ConversionError:
            raise
        except Exception as exception:
            raise DelegatedConversionError(
                "%s could not convert %r: %s" % (self.__typename__, raw, exception),
                title="invalid value",
                code=FaultCode.DELEGATED_CONVERSION,
                input=raw,
                exception=exception,
                hint="check the expected format of this argument",
                docs=getdoc(FaultCode.DELEGATED_CONVERSION),
            ) from exception

    def __join__(self, values, /):
        return values if self.repeatable else values[-1]

    def __fallback__(self):
        if callable(self.default):
            return self.default()
        return copy.copy(self.default)


Flag = Boolean()

I8 = Integer(8)
I16 = Integer(16)
I32 = Integer(32)
I64 = Integer(64)
U8 = Integer(8, signed=False)
U16 = Integer(16, signed=False)
U32 = Integer(32, signed=False)
U64 = Integer(64, signed=False)

F32 = Floating(32)
F64 = Floating(64)

Text = String()

Int = I64
UInt = U64
Float = F64


def iskind(object, /):
    """
    Return whether `object` fulfils the conversion contract.
    """
    return (
        not isinstance(object, type) and
        callable(getattr(object, "__convert__", None)) and
        callable(getattr(object, "__fallback__", None)) and
        callable(getattr(object, "__join__", None)) and
        isinstance(getattr(object, "consumes", None), bool) and
        isinstance(getattr(object, "repeatable", None), bool)
    )


def kindof(annotation, /):
    """
    Map an annotation (or a kind) to a kind instance.

    - kinds pass through unchanged
    - bool → Flag, int → Int, float → Float, str → Text
    - list[T] → List(kindof(T)), bare list → List(Text)
    - kind classes are instantiated with their defaults
    - any other callable becomes Custom(callable)
    """
    if iskind(annotation):
        return annotation
    if annotation is bool:
        return Flag
    if annotation is int:
        return Int
    if annotation is float:
        return Float
    if annotation is str:
        return Text
    if annotation is list:
        return List(Text)
    if typing.get_origin(annotation) is list:
        element, = typing.get_args(annotation) or (str,)
        return List(kindof(element))
    if isinstance(annotation, type) and issubclass(annotation, _Kind) and annotation is not Custom:
        return annotation()
    if callable(annotation):
        return Custom(annotation)
    raise TypeError("kindof() argument must be a kind, a supported annotation or a callable")


__all__ = (
    # Kind classes
    "Boolean",
    "Integer",
    "Floating",
    "String",
    "List",
    "Custom",

    # Presets
    "Flag",
    "I8",
    "I16",
    "I32",
    "I64",
    "U8",
    "U16",
    "U32",
    "U64",
    "F32",
    "F64",
    "Text",
    "Int",
    "UInt",
    "Float",

    # Helpers
    "iskind",
    "kindof",
)
