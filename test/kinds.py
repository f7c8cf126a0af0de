# python
"""
Kinds module behavioral tests.

Scope
- Validate the built-in conversions (flags, integers, floats, text, lists).
- Validate Custom kinds: converter delegation, default providers, repeatable joins.
- Validate kindof() annotation mapping and iskind() duck typing.

Conventions
- Test method names follow CamelCase per project convention.
- Kinds are exercised directly through __convert__/__join__/__fallback__; the
  parser tests cover how they are driven by a parse pass.
"""

from __future__ import annotations

import math
import unittest
from unittest import TestCase

from sargent import (
    Boolean, Integer, Floating, String, List, Custom,
    Flag, I8, I32, I64, U8, U16, U32, U64, F32, F64, Text, Int, Float,
    iskind, kindof,
    MissingValueError, InvalidIntegerError, InvalidFloatError, DelegatedConversionError,
    FaultCode,
)
from sargent.utils import Unset


class TestFlag(TestCase):
    """Presence-only conversions."""

    def testPresentWithoutValueIsTrue(self):
        self.assertIs(Flag.__convert__(None), True)

    def testFalseSpellings(self):
        for raw in ("0", "false", "FALSE", "False"):
            with self.subTest(raw=raw):
                self.assertIs(Flag.__convert__(raw), False)

    def testAnythingElseIsTrue(self):
        for raw in ("1", "yes", "no", ""):
            with self.subTest(raw=raw):
                self.assertIs(Flag.__convert__(raw), True)

    def testFallbackIsFalse(self):
        self.assertIs(Flag.__fallback__(), False)

    def testFlagDoesNotConsume(self):
        self.assertFalse(Flag.consumes)
        self.assertFalse(Flag.repeatable)


class TestInteger(TestCase):
    """Base-10 parsing with width checks."""

    def testParsesSignedValues(self):
        self.assertEqual(I64.__convert__("42"), 42)
        self.assertEqual(I64.__convert__("-42"), -42)
        self.assertEqual(I64.__convert__("+7"), 7)

    def testRejectsGarbage(self):
        for raw in ("", "4.2", "0x10", " 1", "1 ", "1_000", "abc"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidIntegerError):
                    I64.__convert__(raw)

    def testRangeLimits(self):
        self.assertEqual(I8.__convert__("-128"), -128)
        self.assertEqual(I8.__convert__("127"), 127)
        with self.assertRaises(InvalidIntegerError):
            I8.__convert__("128")
        self.assertEqual(U8.__convert__("255"), 255)
        with self.assertRaises(InvalidIntegerError):
            U8.__convert__("256")
        with self.assertRaises(InvalidIntegerError):
            U32.__convert__("-1")
        self.assertEqual(U64.__convert__(str(2 ** 64 - 1)), 2 ** 64 - 1)

    def testUnsignedRejectsMinusSign(self):
        for raw in ("-0", "-1"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidIntegerError):
                    U64.__convert__(raw)
        self.assertEqual(U8.__convert__("+7"), 7)
        self.assertEqual(I8.__convert__("-0"), 0)

    def testMissingValue(self):
        with self.assertRaises(MissingValueError) as context:
            U16.__convert__(None)
        self.assertEqual(context.exception.code, FaultCode.MISSING_VALUE)

    def testErrorsAreValueErrors(self):
        with self.assertRaises(ValueError):
            I32.__convert__("nope")

    def testInvalidWidthRejected(self):
        with self.assertRaises(ValueError):
            Integer(12)
        with self.assertRaises(TypeError):
            Integer("8")

    def testTypenameAndEquality(self):
        self.assertEqual(U32.__typename__, "u32")
        self.assertEqual(Integer(32, signed=False), U32)
        self.assertNotEqual(U32, I32)
        self.assertIs(Int, I64)

    def testAbsentMeansNotSupplied(self):
        self.assertIs(I64.__fallback__(), Unset)


class TestFloating(TestCase):
    """Decimal and exponential parsing."""

    def testParsesDecimalAndExponential(self):
        self.assertEqual(F64.__convert__("10.11"), 10.11)
        self.assertEqual(F64.__convert__("-2e3"), -2000.0)
        self.assertTrue(math.isinf(F64.__convert__("inf")))
        self.assertTrue(math.isnan(F64.__convert__("nan")))

    def testRejectsGarbage(self):
        for raw in ("", "badnum", " 1.0", "1_0.0"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidFloatError):
                    F64.__convert__(raw)

    def testSinglePrecisionRounds(self):
        self.assertNotEqual(F32.__convert__("0.1"), 0.1)
        self.assertAlmostEqual(F32.__convert__("0.1"), 0.1, places=6)

    def testSinglePrecisionOverflowIsInfinite(self):
        self.assertEqual(F32.__convert__("1e300"), math.inf)
        self.assertEqual(F32.__convert__("-1e300"), -math.inf)

    def testFloatAlias(self):
        self.assertIs(Float, F64)
        self.assertEqual(Floating(32), F32)


class TestString(TestCase):
    """Verbatim text."""

    def testVerbatim(self):
        self.assertEqual(Text.__convert__("Hello, World!"), "Hello, World!")
        self.assertEqual(Text.__convert__(""), "")

    def testMissingValue(self):
        with self.assertRaises(MissingValueError):
            Text.__convert__(None)


class TestList(TestCase):
    """Delimited sequences."""

    def testSplitsAndConverts(self):
        kind = List(U64)
        self.assertEqual(kind.__convert__("1,2,3"), [1, 2, 3])

    def testJoinConcatenates(self):
        kind = List(Text)
        self.assertEqual(kind.__join__([["a", "b"], ["c"]]), ["a", "b", "c"])
        self.assertTrue(kind.repeatable)

    def testElementFailureFailsTheList(self):
        with self.assertRaises(InvalidIntegerError):
            List(I64).__convert__("1,x,3")

    def testCustomDelimiter(self):
        self.assertEqual(List(str, delimiter=":").__convert__("a:b"), ["a", "b"])

    def testEmptyDelimiterRejected(self):
        with self.assertRaises(ValueError):
            List(str, delimiter="")

    def testEquality(self):
        self.assertEqual(List(int), List(I64))
        self.assertNotEqual(List(int), List(str))


class TestCustom(TestCase):
    """User-defined conversions."""

    def testConverterResult(self):
        kind = Custom(lambda raw: raw.upper())
        self.assertEqual(kind.__convert__("abc"), "ABC")

    def testConverterExceptionIsWrapped(self):
        kind = Custom(int)
        with self.assertRaises(DelegatedConversionError) as context:
            kind.__convert__("abc")
        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertIsInstance(context.exception.options["exception"], ValueError)

    def testConversionErrorPassesThrough(self):
        def converter(raw):
            raise InvalidIntegerError("nope")

        with self.assertRaises(InvalidIntegerError):
            Custom(converter).__convert__("x")

    def testDefaultValueAndProvider(self):
        self.assertEqual(Custom(int, default=3).__fallback__(), 3)
        self.assertEqual(Custom(int, default=lambda: 4).__fallback__(), 4)
        self.assertIs(Custom(int).__fallback__(), Unset)

    def testRepeatableJoinKeepsEveryValue(self):
        self.assertEqual(Custom(int, repeatable=True).__join__([1, 2]), [1, 2])
        self.assertEqual(Custom(int).__join__([1, 2]), 2)

    def testConverterMustBeCallable(self):
        with self.assertRaises(TypeError):
            Custom("int")


class TestKindof(TestCase):
    """Annotation mapping."""

    def testBuiltinAnnotations(self):
        self.assertIs(kindof(bool), Flag)
        self.assertIs(kindof(int), Int)
        self.assertIs(kindof(float), Float)
        self.assertIs(kindof(str), Text)

    def testListAnnotations(self):
        self.assertEqual(kindof(list[int]), List(Int))
        self.assertEqual(kindof(list), List(Text))

    def testKindsPassThrough(self):
        kind = List(U8)
        self.assertIs(kindof(kind), kind)
        self.assertEqual(kindof(String), Text)
        self.assertEqual(kindof(Boolean), Flag)

    def testCallablesBecomeCustom(self):
        kind = kindof(complex)
        self.assertIsInstance(kind, Custom)
        self.assertEqual(kind.__convert__("1+2j"), 1 + 2j)

    def testUnsupportedAnnotation(self):
        with self.assertRaises(TypeError):
            kindof(42)

    def testIskindDuckTyping(self):
        class Upper:
            consumes = True
            repeatable = False

            def __convert__(self, raw):
                return raw.upper()

            def __join__(self, values):
                return values[-1]

            def __fallback__(self):
                return Unset

        self.assertTrue(iskind(Upper()))
        self.assertFalse(iskind(Upper))
        self.assertFalse(iskind("text"))


if __name__ == "__main__":
    unittest.main()
