"""
Clavis command layer: subcommands, dispatch and the CLI registry.

What this module provides
- SubCommand: a named set of options plus a zero-argument handler. Builds its
  alias → option index once, at construction.
- run_subcommand(subcommand, parsed): validates parsed options against a
  subcommand, orders them by priority and runs the handlers.
- Cli: holds the main subcommand and the named ones, resolves which applies to
  an invocation, renders help (rich) and delegates to run_subcommand.
- subcommand(...) / invoke(...): decorator and runner helpers.

Dispatch order
1. required options are checked (the first missing one is reported);
2. each supplied key is resolved through the alias index (an unknown key is
   reported and stops resolution);
3. each matched option's values are validated against its arguments;
4. matched options are stably sorted by ascending priority;
5. option handlers run, then the subcommand handler runs once.

Faults never raise directly from here: they go through a Reporter (see
clavis.reporters), so the same code serves fail-fast, fallback and
collect-all runs.

Quick start
    from clavis import Cli, SubCommand, Argument, option, invoke

    @option("test", ["test"], ["t"], required=True, arguments=[Argument("uno")])
    def test(value):
        print("hi", value)

    cli = Cli("Test", SubCommand("main", [test]), version="0.1.0", helper=True)

    if __name__ == "__main__":
        invoke(cli)                     # reads sys.argv[1:]
        invoke(cli, "--test value")     # shell-like string
"""
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .arguments import Option, SpecType, parse_type
from .faults import *
from .reporters import Reporter
from .tokens import ParsedArgs, parse_args
from .utils import *


class SubCommand(metaclass=SpecType):
    """
    A subcommand: its options and its own handler.

    Properties
    - name: lookup name (the main subcommand's name is only used in messages).
    - options: tuple of Option, or None when the subcommand declares none. With
      None, supplied keys are not validated at all; an empty tuple rejects
      every key.
    - descr: optional description for help.

    The handler is bound with callback=... or @subcommand(...); calling the
    SubCommand forwards to it (no-op when nothing is bound).
    """

    __introspectable__ = (
        "name",
        "options",
        "descr",
    )

    def __init__(self, name, /, options=Unset, *, descr=Unset, callback=Unset):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")

        if options is not Unset:
            if isinstance(options, str) or not isinstance(options, Iterable):
                raise TypeError(f"{cls.__typename__} 'options' must be an iterable of options")
            options = tuple(options)
            if not all(isinstance(option, Option) for option in options):
                raise TypeError(f"{cls.__typename__} 'options' must contain only options")

        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        if callback is not Unset and not callable(callback):
            raise TypeError(f"{cls.__typename__} 'callback' must be callable")

        self._name = name
        self._options = coalesce(options)
        self._descr = coalesce(descr)
        self._callback = callback

        # first registration of an alias wins
        self._index = {}
        for option in self._options or ():
            for alias in option.names:
                self._index.setdefault(alias, option)

    def lookup(self, key, /):
        """
        Return the option owning alias `key`, or None.
        """
        return self._index.get(key)

    def __call__(self):
        if self._callback is Unset:
            return
        return self._callback()


def subcommand(*args, **kwargs):
    """
    Decorator/factory binding a handler to a new SubCommand.

    Usage
        @subcommand("test", [hello], descr="Test subcommand")
        def test():
            print("HI!")
    """
    if "callback" in kwargs:
        raise TypeError("@subcommand() binds the decorated function; 'callback' is not accepted")
    spec = SubCommand(*args, **kwargs)

    @rename("subcommand")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@subcommand() must be applied to a callable")
        if spec._callback is not Unset:
            raise TypeError("@subcommand() must be applied only once")
        spec._callback = callback
        return spec

    return wrapper


class Dispatch(NamedTuple):
    """
    Outcome of one dispatch.

    - calls: (option, arguments) pairs in the order their handlers ran.
    - faults: every fault reported while dispatching (empty on a clean run).
    """
    calls: tuple
    faults: tuple


def _check_required(subcommand, parsed, reporter):
    for option in subcommand.options:
        # an option without aliases is never present: all() over nothing holds
        if option.required and all(name not in parsed for name in option.names):
            reporter.trigger(RequiredOptionMissingError(
                "option %s is required in %r subcommand" % (option.label, subcommand.name),
                title="option missing",
                code=FaultCode.REQUIRED_OPTION_MISSING,
                hint="add %s to the command line" % option.label.split(", ")[-1],
                option=option,
                subcommand=subcommand.name,
                docs=getdoc(FaultCode.REQUIRED_OPTION_MISSING)
            ))
            break


def _resolve_arguments(subcommand, option, key, values, reporter):
    """
    Validate the raw values of one option and return the handler arguments.

    Failures are reported and validation carries on with the next argument.
    """
    arguments = []

    if not option.arguments:
        if values:
            reporter.trigger(InvalidArgumentsLengthError(
                "option %r doesn't take any arguments (got %d) in %r subcommand" % (key, len(values), subcommand.name),
                title="invalid arguments length",
                code=FaultCode.INVALID_ARGUMENTS_LENGTH,
                hint="remove the values after %s" % ("-" + key if len(key) == 1 else "--" + key),
                input=key,
                option=option,
                subcommand=subcommand.name,
                got=len(values),
                docs=getdoc(FaultCode.INVALID_ARGUMENTS_LENGTH)
            ))
        return ()

    for position, argument in enumerate(option.arguments):
        value = values[position] if position < len(values) else None
        actual = parse_type(value)

        if value == "-" and not argument.required:
            # explicit skip: the slot is left out, not padded
            continue
        elif actual is None and argument.required:
            reporter.trigger(MissingOptionArgumentError(
                "argument %r of option %r is missing in %r subcommand" % (argument.name, key, subcommand.name),
                title="missing option argument",
                code=FaultCode.MISSING_OPTION_ARGUMENT,
                hint="pass a value for %r at its %s place after the option" % (argument.name, ordinal(position + 1)),
                input=key,
                option=option,
                argument=argument,
                subcommand=subcommand.name,
                docs=getdoc(FaultCode.MISSING_OPTION_ARGUMENT)
            ))
            continue
        elif argument.type != "any" and actual != argument.type:
            reporter.trigger(InvalidOptionArgumentTypeError(
                "argument %r of option %r got %s, expected %s in %r subcommand" % (
                    argument.name, key, actual or "nothing", argument.type, subcommand.name
                ),
                title="invalid option arguments",
                code=FaultCode.INVALID_OPTION_ARGUMENT_TYPE,
                hint="pass a %s for %r%s" % (
                    argument.type, argument.name, "" if argument.required else " or '-' to skip it"
                ),
                input=key,
                option=option,
                argument=argument,
                subcommand=subcommand.name,
                value=value,
                got=actual,
                expected=argument.type,
                docs=getdoc(FaultCode.INVALID_OPTION_ARGUMENT_TYPE)
            ))
            continue

        arguments.append(value)

    return tuple(arguments)


def run_subcommand(subcommand, parsed, /, reporter=Unset):
    """
    Validate parsed options against `subcommand` and run the handlers.

    Parameters
    - subcommand: SubCommand
    - parsed: Mapping[str, Sequence[str]] | ParsedArgs
      Option key → raw values (a ParsedArgs contributes its options).
    - reporter: Reporter | Unset
      Fault strategy; Unset uses a fail-fast Reporter.

    Returns
    - Dispatch(calls, faults)

    Notes
    - handlers that already ran are not undone if a later handler raises.
    - in deferred mode the collected faults are surfaced before any handler runs.
    """
    if not isinstance(subcommand, SubCommand):
        raise TypeError("run_subcommand() first argument must be a subcommand")
    if isinstance(parsed, ParsedArgs):
        parsed = parsed.options
    reporter = coalesce(reporter, Reporter())
    start = len(reporter.faults)

    pending = []
    if subcommand.options is not None:
        _check_required(subcommand, parsed, reporter)

        for key, values in parsed.items():
            if (option := subcommand.lookup(key)) is None:
                reporter.trigger(OptionNotFoundError(
                    "option %r has not been found in %r subcommand" % (key, subcommand.name),
                    title="option not found",
                    code=FaultCode.OPTION_NOT_FOUND,
                    hint="check the spelling of %r or remove it" % key,
                    input=key,
                    subcommand=subcommand.name,
                    docs=getdoc(FaultCode.OPTION_NOT_FOUND)
                ))
                break

            pending.append((option, _resolve_arguments(subcommand, option, key, values, reporter)))

        # sorted() is stable: equal priorities keep their input order
        pending = sorted(pending, key=lambda pair: pair[0].priority)

    reporter.finalize()

    calls = []
    for option, arguments in pending:
        option(*arguments)
        calls.append((option, arguments))
    subcommand()

    return Dispatch(tuple(calls), reporter.faults[start:])


class Cli(metaclass=SpecType):
    """
    The CLI registry: main subcommand, named subcommands and run-time settings.

    Parameters
    - name: str: program name (messages, help header, fault headers).
    - main: SubCommand: runs when no subcommand name is given.
    - subcommands: Iterable[SubCommand]: looked up by exact name; on duplicate
      names the first registration wins.
    - version, descr: optional help header fields.
    - helper: bool: when True, a "-h"/"--help" key renders help and exits(0).
    - types: bool: show argument types in help.
    - fallback: Callable | Unset: custom fault sink (faults are not raised).
    - deferred: bool: collect faults and raise them together (CommandExit).
    - shell, fancy, colorful: bool: render faults with rich instead of raising.

    A fresh Reporter is created for every run from these settings.
    """

    __introspectable__ = (
        "name",
        "version",
        "descr",
        "main",
        "subcommands",
        "helper",
        "types",
        "deferred",
        "shell",
        "fancy",
        "colorful",
    )

    def __init__(
            self,
            name,
            main,
            /,
            subcommands=(),
            *,
            version=Unset,
            descr=Unset,
            helper=False,
            types=False,
            fallback=Unset,
            deferred=False,
            shell=False,
            fancy=False,
            colorful=False
    ):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
        if not isinstance(main, SubCommand):
            raise TypeError(f"{cls.__typename__} 'main' must be a subcommand")
        if isinstance(subcommands, str) or not isinstance(subcommands, Iterable):
            raise TypeError(f"{cls.__typename__} 'subcommands' must be an iterable of subcommands")
        subcommands = tuple(subcommands)
        if not all(isinstance(subcommand, SubCommand) for subcommand in subcommands):
            raise TypeError(f"{cls.__typename__} 'subcommands' must contain only subcommands")
        if not isinstance(version, str | int | float | Unset) or isinstance(version, bool):
            raise TypeError(f"{cls.__typename__} 'version' must be a string or a number")
        if not isinstance(descr, str | Text | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        if fallback is not Unset and not callable(fallback):
            raise TypeError(f"{cls.__typename__} 'fallback' must be callable")

        self._name = name
        self._main = main
        self._subcommands = subcommands
        self._version = coalesce(version)
        self._descr = coalesce(descr)
        self._helper = bool(helper)
        self._types = bool(types)
        self._fallback = fallback
        self._deferred = bool(deferred)
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)

        self._index = {}
        for subcommand in subcommands:
            self._index.setdefault(subcommand.name, subcommand)

    def reporter(self):
        """
        Build the Reporter for one run from this CLI's settings.
        """
        return Reporter(
            prog=self._name,
            fallback=self._fallback,
            deferred=self._deferred,
            shell=self._shell,
            fancy=self._fancy,
            colorful=self._colorful
        )

    def resolve(self, name=None, /):
        """
        Return the subcommand for `name` (None → main), or None when unknown.
        """
        if name is None:
            return self._main
        return self._index.get(name)

    def run(self, invocation=Unset, /):
        """
        Tokenize `invocation`, resolve the subcommand and dispatch.

        Parameters
        - invocation:
          • Unset: sys.argv[1:].
          • str: shell-like string, split with shlex.split.
          • Iterable[str]: tokens as given.

        Steps
        1. tokenize; an empty leading token ("") names no subcommand.
        2. a name given while no subcommands are registered reports
           SubcommandsNotAcceptedError. This runs before the lookup, since
           every name would otherwise be unknown; the error subclasses
           SubcommandMissingError.
        3. an unknown name reports SubcommandMissingError.
        4. with helper=True, "-h"/"--help" renders help and exits(0).
        5. otherwise the resolved subcommand (main when no name) is dispatched.

        Returns
        - Dispatch on a completed dispatch (its faults cover the whole run).
        - None when no subcommand could be resolved and the reporter did not raise.
        """
        if invocation is Unset:
            tokens = sys.argv[1:]
        elif isinstance(invocation, str):
            tokens = shlex.split(invocation)
        elif isinstance(invocation, Iterable):
            tokens = list(invocation)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("run() argument must be a string or an iterable of strings")
        else:
            raise TypeError("run() argument must be a string or an iterable of strings")

        reporter = self.reporter()
        parsed = parse_args(tokens, reporter)
        name = parsed.subcommand or None

        if name is not None and not self._subcommands:
            reporter.trigger(SubcommandsNotAcceptedError(
                "%r CLI doesn't accept subcommands (got %r)" % (self._name, name),
                title="subcommands not accepted",
                code=FaultCode.SUBCOMMANDS_NOT_ACCEPTED,
                hint="pass options only (for example: %s --help)" % self._name,
                input=name,
                docs=getdoc(FaultCode.SUBCOMMANDS_NOT_ACCEPTED)
            ))
            return reporter.finalize()

        if (subcommand := self.resolve(name)) is None:
            reporter.trigger(SubcommandMissingError(
                "subcommand %r has not been found in %r CLI" % (name, self._name),
                title="subcommand missing",
                code=FaultCode.SUBCOMMAND_MISSING,
                hint="use one of: %s" % ", ".join(map(repr, self._index)),
                input=name,
                docs=getdoc(FaultCode.SUBCOMMAND_MISSING)
            ))
            return reporter.finalize()

        if self._helper and ("h" in parsed.options or "help" in parsed.options):
            self.render_help(subcommand)
            sys.exit(0)

        return run_subcommand(subcommand, parsed.options, reporter)._replace(faults=reporter.faults)

    __invoke__ = run

    def render_help(self, subcommand=Unset, /):
        """
        Print help for `subcommand` (default: main) to stdout.

        Palette keys
        - name, version, description, category
        - option, option-description, argument, argument-name, argument-type
        - subcommand, subcommand-description, panel-title

        Define __styles__ in __main__ to override entries. With colorful=False
        no styling is applied; rich also drops colour when NO_COLOR is set.
        """
        subcommand = coalesce(subcommand, self._main)
        console = Console()
        styles = defaultdict(str, {
            "name": "bold #22C55E",
            "version": "#FFD600",
            "description": "italic #36C5F0",
            "category": "bold #FF4D94",
            "option": "bold #22C55E",
            "option-description": "#36C5F0",
            "argument": "#EF4444",
            "argument-name": "#FF4D94",
            "argument-type": "#22C55E",
            "subcommand": "bold #36C5F0",
            "subcommand-description": "#9CA3AF",
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def text(fragment, style=""):
            if fragment is None:
                return Text("")
            if not self._colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), styles[style])

        renders = []

        header = Text.assemble(text(self._name, "name"))
        if self._version is not None:
            header.append_text(Text.assemble(" (", text(self._version, "version"), ")"))
        renders.append(header)
        if self._descr:
            renders.append(Text.assemble(" » ", text(self._descr, "description")))

        if subcommand.options:
            renders.append(Text(""))
            renders.append(text("Options:", "category"))
            for option in subcommand.options:
                names = ["-" + short for short in option.shorts] + ["--" + alias for alias in option.aliases]
                line = Text.assemble(" » ", Text(", ").join(text(name, "option") for name in names))
                if option.descr:
                    line.append_text(Text.assemble(" – ", text(option.descr, "option-description")))
                if option.arguments:
                    line.append(" »")
                    for argument in option.arguments:
                        line.append_text(Text.assemble(
                            " ",
                            text("[", "argument"),
                            text(argument.name, "argument-name"),
                            text(" {%s}" % argument.type if self._types else None, "argument-type"),
                            text("]", "argument"),
                        ))
                renders.append(line)

        if subcommand is self._main and self._subcommands:
            renders.append(Text(""))
            renders.append(text("Subcommands:", "category"))
            for child in self._subcommands:
                line = Text.assemble(" » ", text(child.name, "subcommand"))
                if child.descr:
                    line.append_text(Text.assemble(" – ", text(child.descr, "subcommand-description")))
                renders.append(line)

        renderable = Group(*renders)
        if self._fancy:
            renderable = Panel(
                renderable,
                title=text("[ %s HELP ]" % self._name.upper(), "panel-title"),
                title_align="left",
            )

        console.print(renderable)


def invoke(object, invocation=Unset, /):
    """
    Run anything implementing __invoke__ (a Cli) with an invocation.

    Returns whatever __invoke__ returns (a Dispatch for a Cli).
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(invocation)
    target = "argument" if invocation is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "SubCommand",
    "subcommand",
    "Dispatch",
    "run_subcommand",
    "Cli",
    "invoke",
)
