"""
Tokenizer behavioral tests (subcommand detection, key/value grouping, faults).

Scope
- Validate the subcommand rule (only a non key-shaped first token).
- Validate grouping of values under the most recent key, including repeats.
- Validate the missing-key fault and the partial result under a fallback.

Conventions
- Test method names follow CamelCase per project convention.
"""
import sys
import unittest
from unittest import TestCase
from unittest.mock import patch

from clavis import parse_args, ParsedArgs, Reporter
from clavis.faults import MissingKeyError, FaultCode


class TestParseArgs(TestCase):
    """Behavioral tests for parse_args."""

    def testSubcommandWithOptions(self):
        parsed = parse_args(["opt", "--foo", "a", "b", "--bar", "c"])
        self.assertEqual(parsed.subcommand, "opt")
        self.assertEqual(parsed.options, {"foo": ["a", "b"], "bar": ["c"]})

    def testKeyShapedFirstTokenMeansNoSubcommand(self):
        parsed = parse_args(["--foo", "a"])
        self.assertIsNone(parsed.subcommand)
        self.assertEqual(parsed.options, {"foo": ["a"]})

    def testEmptyInput(self):
        self.assertEqual(parse_args([]), ParsedArgs({}, None))

    def testShortAndLongKeysLoseTheirDashes(self):
        parsed = parse_args(["-v", "--output", "out.txt"])
        self.assertEqual(parsed.options, {"v": [], "output": ["out.txt"]})

    def testThirdDashIsKeptInKey(self):
        parsed = parse_args(["---x"])
        self.assertEqual(parsed.options, {"-x": []})

    def testLoneDashIsAValue(self):
        parsed = parse_args(["--opt", "-", "b"])
        self.assertEqual(parsed.options, {"opt": ["-", "b"]})

    def testRepeatedKeyKeepsLastValuesAndFirstPosition(self):
        parsed = parse_args(["--a", "1", "--b", "--a", "2"])
        self.assertEqual(parsed.options, {"a": ["2"], "b": []})
        self.assertEqual(list(parsed.options), ["a", "b"])

    def testSubcommandTextRepeatedLaterIsAValue(self):
        parsed = parse_args(["run", "--target", "run"])
        self.assertEqual(parsed.subcommand, "run")
        self.assertEqual(parsed.options, {"target": ["run"]})

    def testValueBeforeAnyKeyRaises(self):
        with self.assertRaises(MissingKeyError) as context:
            parse_args(["sub", "stray", "--a", "1"])
        self.assertEqual(context.exception.options["code"], FaultCode.MISSING_KEY)
        self.assertEqual(context.exception.options["input"], "stray")
        self.assertIn("second position", context.exception.message)

    def testValueBeforeAnyKeyStopsScanUnderFallback(self):
        received = []
        reporter = Reporter(fallback=received.append)
        parsed = parse_args(["--a", "1"], reporter)
        self.assertEqual(parsed.options, {"a": ["1"]})
        self.assertEqual(received, [])

        parsed = parse_args(["sub", "stray", "--a", "1"], reporter)
        self.assertEqual(parsed, ParsedArgs({}, "sub"))
        self.assertEqual(len(received), 1)
        self.assertIsInstance(received[0], MissingKeyError)
        self.assertEqual(reporter.faults, tuple(received))

    def testDefaultsToProcessArguments(self):
        with patch.object(sys, "argv", ["prog", "build", "--fast"]):
            parsed = parse_args()
        self.assertEqual(parsed, ParsedArgs({"fast": []}, "build"))

    def testRejectsStringInput(self):
        with self.assertRaises(TypeError):
            parse_args("--foo a")

    def testRejectsNonStringTokens(self):
        with self.assertRaises(TypeError):
            parse_args(["--foo", 1])


if __name__ == "__main__":
    unittest.main()
