# python
"""
Faults module behavioral tests.

Scope
- Validate FaultCode normalization and getdoc() through __main__ hooks.
- Validate trigger(): raising, warning, option merging and shell-mode exits.
- Validate rich rendering of errors, warnings and ParserExit groups.

Conventions
- Test method names follow CamelCase per project convention.
- Rendering is captured with a colorless Console for deterministic output.
"""

from __future__ import annotations

import contextlib
import copy
import io
import unittest
from unittest import TestCase, mock

from rich.console import Console

from sargent import (
    FaultCode, ParserException, ConversionError, InvalidIntegerError, MissingValueError,
    UnknownTagError, RepeatedTagWarning, ParserExit, trigger, getdoc,
)


def render(renderable):
    console = Console(color_system=None, force_terminal=False, width=120)
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


class TestFaultCode(TestCase):
    """Stable identifiers and host overrides."""

    def testNormalizeDefaultsToNumber(self):
        self.assertEqual(FaultCode.UNKNOWN_TAG.normalize(), "11201")

    def testNormalizeUsesHostCodes(self):
        with mock.patch("__main__.__codes__", {FaultCode.UNKNOWN_TAG: "E-UNKNOWN"}, create=True):
            self.assertEqual(FaultCode.UNKNOWN_TAG.normalize(), "E-UNKNOWN")

    def testGetdoc(self):
        self.assertIsNone(getdoc(FaultCode.MISSING_VALUE))
        with mock.patch("__main__.__docs__", {FaultCode.MISSING_VALUE: "value expected"}, create=True):
            self.assertEqual(getdoc(FaultCode.MISSING_VALUE), "value expected")
        with self.assertRaises(TypeError):
            getdoc(11301)


class TestHierarchy(TestCase):
    """Exception types and options."""

    def testConversionErrorsAreValueErrors(self):
        self.assertTrue(issubclass(InvalidIntegerError, ConversionError))
        self.assertTrue(issubclass(ConversionError, ValueError))
        self.assertTrue(issubclass(ConversionError, ParserException))

    def testOptionsAreReadOnly(self):
        error = UnknownTagError("unknown", code=FaultCode.UNKNOWN_TAG, hint="try --name")
        self.assertIs(error.code, FaultCode.UNKNOWN_TAG)
        self.assertEqual(error.hint, "try --name")
        self.assertEqual(str(error), "unknown")
        with self.assertRaises(TypeError):
            error.options["hint"] = "other"

    def testReplaceMergesOptionsAndKeepsCause(self):
        error = MissingValueError("missing", code=FaultCode.MISSING_VALUE)
        error.__cause__ = KeyError("x")
        replaced = copy.replace(error, tag="--name")
        self.assertIsInstance(replaced, MissingValueError)
        self.assertEqual(replaced.options["tag"], "--name")
        self.assertIs(replaced.options["code"], FaultCode.MISSING_VALUE)
        self.assertIs(replaced.__cause__, error.__cause__)


class TestTrigger(TestCase):
    """Surfacing faults in library and shell modes."""

    def testTriggerRaisesInLibraryMode(self):
        with self.assertRaises(UnknownTagError):
            trigger(UnknownTagError("unknown"))

    def testTriggerWarnsInLibraryMode(self):
        with self.assertWarns(RepeatedTagWarning):
            trigger(RepeatedTagWarning("repeated"))

    def testTriggerExitsInShellMode(self):
        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as context:
                trigger(UnknownTagError("unknown tag '--nam'", code=FaultCode.UNKNOWN_TAG), shell=True, colorful=False)
        self.assertEqual(context.exception.code, 1)
        self.assertIn("unknown tag '--nam'", stderr.getvalue())

    def testTriggerRejectsPlainObjects(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("plain"))


class TestRendering(TestCase):
    """Rich output of faults."""

    def testErrorRendering(self):
        error = UnknownTagError(
            "unknown tag '--nam'",
            title="unknown tag",
            code=FaultCode.UNKNOWN_TAG,
            hint="did you mean '--name'?",
            prog="greet",
            colorful=False,
        )
        output = render(error)
        self.assertIn("[ greet — 11201 | Unknown Tag ]", output)
        self.assertIn("unknown tag '--nam'", output)
        self.assertIn("→ did you mean '--name'?", output)

    def testHostProgramName(self):
        error = UnknownTagError("unknown", code=FaultCode.UNKNOWN_TAG, colorful=False)
        with mock.patch("__main__.__prog__", "host", create=True):
            self.assertIn("[ host — 11201", render(error))

    def testFancyRenderingUsesPanel(self):
        error = UnknownTagError("unknown", code=FaultCode.UNKNOWN_TAG, fancy=True, colorful=False)
        output = render(error)
        self.assertIn("╭", output)
        self.assertIn("unknown", output)

    def testWarningRendering(self):
        warning = RepeatedTagWarning("tag --name was given more than once", code=FaultCode.REPEATED_TAG, colorful=False)
        self.assertIn("12201", render(warning))

    def testParserExitRendersEveryFailure(self):
        group = ParserExit([
            InvalidIntegerError("invalid integer 'x'", code=FaultCode.INVALID_INTEGER),
            MissingValueError("expected a u32 value", code=FaultCode.MISSING_VALUE),
        ], colorful=False)
        output = render(group)
        self.assertIn("Bad Arguments", output)
        self.assertIn("invalid integer 'x'", output)
        self.assertIn("expected a u32 value", output)
        self.assertEqual(len(group.exceptions), 2)


if __name__ == "__main__":
    unittest.main()
