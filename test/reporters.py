"""
Reporter behavioral tests (fail fast, fallback, deferred).

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from clavis import Reporter
from clavis.faults import *


class TestReporter(TestCase):
    """Behavioral tests for the per-run fault sink."""

    def testDefaultRaises(self):
        reporter = Reporter(prog="tool")
        with self.assertRaises(MissingKeyError) as context:
            reporter.trigger(MissingKeyError("stray"))
        self.assertEqual(context.exception.options["prog"], "tool")
        self.assertEqual(len(reporter.faults), 1)

    def testFallbackReceivesEachFault(self):
        received = []
        reporter = Reporter(fallback=received.append)
        reporter.trigger(MissingKeyError("a"))
        reporter.trigger(OptionNotFoundError("b"), input="zz")
        self.assertEqual([type(fault) for fault in received], [MissingKeyError, OptionNotFoundError])
        self.assertEqual(received[1].options["input"], "zz")
        self.assertEqual(reporter.faults, tuple(received))

    def testDeferredHoldsUntilFinalize(self):
        reporter = Reporter(deferred=True)
        reporter.trigger(MissingKeyError("a"))
        reporter.trigger(OptionNotFoundError("b"))
        self.assertEqual(len(reporter.faults), 2)
        with self.assertRaises(CommandExit) as context:
            reporter.finalize()
        self.assertEqual(len(context.exception.exceptions), 2)
        # nothing left pending
        self.assertIsNone(reporter.finalize())

    def testDeferredWithoutFaultsIsNoop(self):
        self.assertIsNone(Reporter(deferred=True).finalize())

    def testDeferredWarningsAreEmittedOnFinalize(self):
        reporter = Reporter(deferred=True)
        reporter.trigger(UnreachableOptionWarning("ghost"))
        with self.assertWarns(UnreachableOptionWarning):
            reporter.finalize()

    def testFinalizeOutsideDeferredIsNoop(self):
        received = []
        reporter = Reporter(fallback=received.append)
        reporter.trigger(MissingKeyError("a"))
        reporter.finalize()
        self.assertEqual(len(received), 1)

    def testRejectsNonTriggerable(self):
        with self.assertRaises(TypeError):
            Reporter().trigger(ValueError("nope"))

    def testRejectsNonCallableFallback(self):
        with self.assertRaises(TypeError):
            Reporter(fallback="nope")

    def testFaultsAreReadOnly(self):
        reporter = Reporter(fallback=lambda fault: None)
        reporter.trigger(MissingKeyError("a"))
        self.assertIsInstance(reporter.faults, tuple)
        with self.assertRaises(AttributeError):
            reporter.faults = ()


if __name__ == "__main__":
    unittest.main()
