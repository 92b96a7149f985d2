"""
Clavis reporters: the error-handling strategy injected into a run.

A Reporter receives every fault the tokenizer, dispatcher and registry
produce, records it for the current run, and decides what happens next:

- default (fail fast): the fault is triggered immediately (raised, or
  rendered + exit in shell mode).
- fallback: a user callable receives each fault and the run continues.
- deferred (collect all): faults are held until finalize(), which triggers
  one CommandExit bundling every exception of the run.

One Reporter is created per invocation; nothing here is process-wide.
"""
import copy

from .faults import *
from .utils import *


class Reporter:
    """
    Per-run fault sink.

    Parameters
    - prog: str | Unset
      Program name shown in rendered fault headers.
    - fallback: Callable | Unset
      Custom sink. Receives a single fault (or a CommandExit on finalize in
      deferred mode). When set, faults are never raised by the reporter itself.
    - deferred: bool
      Collect faults and surface them together on finalize().
    - shell, fancy, colorful: bool
      Rendering flags forwarded to the faults (see clavis.faults).
    """

    def __init__(self, *, prog=Unset, fallback=Unset, deferred=False, shell=False, fancy=False, colorful=False):
        if fallback is not Unset and not callable(fallback):
            raise TypeError("reporter 'fallback' must be callable")
        self._prog = coalesce(prog, "clavis")
        self._fallback = fallback
        self._deferred = bool(deferred)
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)
        self._faults = []
        self._pending = []

    faults = mirror("faults")
    deferred = mirror("deferred")

    def __repr__(self):
        return "reporter(prog=%r, deferred=%r, shell=%r, faults=%d)" % (
            self._prog, self._deferred, self._shell, len(self._faults)
        )

    def _context(self):
        return {
            "prog": self._prog,
            "shell": self._shell,
            "fancy": self._fancy,
            "colorful": self._colorful,
            "deferred": self._deferred,
        }

    def trigger(self, fault, /, **options):
        """
        Record a fault for this run and apply the strategy.

        Returns normally when the strategy lets the run continue (fallback,
        deferred, or a shell-mode warning); otherwise raises or exits.
        """
        if (
                not hasattr(fault, "__trigger__") or
                not callable(fault.__trigger__) or
                not hasattr(fault, "__replace__") or
                not callable(fault.__replace__)
        ):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
        fault = copy.replace(fault, **options, **self._context())
        self._faults.append(fault)
        if self._deferred:
            return self._pending.append(fault)
        if self._fallback:
            self._fallback(fault)
        else:
            trigger(fault)

    def finalize(self):
        """
        Surface deferred faults: warnings first, then one CommandExit for all
        exceptions. No-op outside deferred mode or when nothing is pending.
        """
        pending, self._pending = self._pending, []

        exceptions = []
        for fault in pending:
            if isinstance(fault, CommandException):
                exceptions.append(fault)
            elif isinstance(fault, CommandWarning):
                trigger(fault, deferred=False)
            else:
                raise RuntimeError("unexpected fault")

        if not exceptions:
            return

        exit = CommandExit(exceptions, **self._context())
        if self._fallback:
            self._fallback(exit)
        else:
            trigger(exit)


__all__ = (
    "Reporter",
)
