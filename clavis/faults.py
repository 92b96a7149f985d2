"""
Clavis faults (errors and warnings) and rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing issue raised by
  the tokenizer, the dispatcher and the subcommand registry.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves (rich) or raise/warn (plain mode).
- CommandExit: an ExceptionGroup bundling every fault of one run (deferred mode).
- trigger(): central entry point to surface any fault.
- getdoc(): optional description lookup for a code from the host application.

Integration
- Parsing code never raises faults directly: it hands them to a Reporter
  (see clavis.reporters), which merges run-time context and applies the
  configured strategy (raise, fallback, deferred, shell).
- In non-shell mode exceptions are raised and warnings go through warnings.warn;
  in shell mode both are rendered on stderr via rich.
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

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (1110x)
      • SUBCOMMAND_MISSING, SUBCOMMANDS_NOT_ACCEPTED
    - keys and options (1111x)
      • MISSING_KEY, OPTION_NOT_FOUND, REQUIRED_OPTION_MISSING,
        INVALID_ARGUMENTS_LENGTH
    - option arguments (1112x)
      • MISSING_OPTION_ARGUMENT, INVALID_OPTION_ARGUMENT_TYPE
    - warnings (12xxx)
      • UNREACHABLE_OPTION
    """
    # --- routing errors ---
    SUBCOMMAND_MISSING           = 11101
    SUBCOMMANDS_NOT_ACCEPTED     = 11102

    # --- key/option errors ---
    MISSING_KEY                  = 11111
    OPTION_NOT_FOUND             = 11112
    REQUIRED_OPTION_MISSING      = 11113
    INVALID_ARGUMENTS_LENGTH     = 11114

    # --- option argument errors ---
    MISSING_OPTION_ARGUMENT      = 11121
    INVALID_OPTION_ARGUMENT_TYPE = 11122

    # --- warnings ---
    UNREACHABLE_OPTION           = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host can provide a __codes__ mapping in __main__ to relabel codes;
        without it, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, *, heading):
    """
    Build a rich renderable (header, message, hint) for a fault or warning.

    `heading` is the palette key used for the title; `palette` is merged with
    __styles__ from __main__ so hosts can restyle output.
    """
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = fault.options.get("colorful", False)
    fancy = fault.options.get("fancy", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style])

    code = fault.options.get("code")
    header = Text.assemble(
        "[ ",
        text(getattr(main, "__prog__", fault.options.get("prog", "clavis")), "prog-name"),
        " — ",
        text(code.normalize() if isinstance(code, FaultCode) else code, "code"),
        " | ",
        text(str(fault.options.get("title", "")).title(), heading),
        " ]"
    )
    message = text(fault.message, "message")
    hint = Text.assemble(text(" → ", "hint-arrow"), text(fault.options.get("hint"), "hint"))

    if fancy:
        return Panel(Group(message, hint), title=header, title_align="left")
    return Group(header, message, hint)


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }, heading="error-title")

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            raise self from None
        console.print(self)
        if self.options.get("deferred"):
            return
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class MissingKeyError(CommandException): ...
class OptionNotFoundError(CommandException): ...
class RequiredOptionMissingError(CommandException): ...
class InvalidArgumentsLengthError(CommandException): ...
class MissingOptionArgumentError(CommandException): ...
class InvalidOptionArgumentTypeError(CommandException): ...
class SubcommandMissingError(CommandException): ...
class SubcommandsNotAcceptedError(SubcommandMissingError): ...


class CommandWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }, heading="warning-title")

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnreachableOptionWarning(CommandWarning): ...


class CommandExit(ExceptionGroup[CommandException]):
    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)
        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "title": "bold #FF4DA6",
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        prog = text(getattr(main, "__prog__", self.options.get("prog", "clavis")), "prog-name")
        header = Text.assemble("[ ", prog, " — ", text(self.message.title(), "title"), " ]")

        renders = [copy.replace(exception, colorful=colorful, fancy=False) for exception in self.exceptions]

        if self.options.get("fancy"):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
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
    - options are merged into the fault via copy.replace(fault, **options)
      before triggering.
    - in shell mode, rendering happens via rich console; otherwise exceptions
      are raised and warnings are emitted with warnings.warn.

    typical options
    - prog, shell, fancy, colorful, deferred, title, code, hint, docs, and the
      fault payload (input, subcommand, option, argument, ...).
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
    optional documentation for a fault code, read from __docs__ in __main__.

    returns None when the host does not document the code.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "MissingKeyError",
    "OptionNotFoundError",
    "RequiredOptionMissingError",
    "InvalidArgumentsLengthError",
    "MissingOptionArgumentError",
    "InvalidOptionArgumentTypeError",
    "SubcommandMissingError",
    "SubcommandsNotAcceptedError",
    "CommandWarning",
    "UnreachableOptionWarning",
    "CommandExit",
    "FaultCode",
    "trigger",
    "getdoc",
)
