r"""
Clavis option specifications and decorators.

Overview
- Specs
  • Argument: one positional slot of an option (name, declared type, required).
  • Option: a named option matched by long/short aliases, with ordered
    arguments, an execution priority and an optional handler.

- Decorators
  • @option(...): build an Option and bind the decorated function as its handler.

- Type inference
  • parse_type(value): classify a raw value as "number", "boolean" or "string"
    (None when the value is absent). Values are never converted.

- Introspection & representation
  • SpecType metaclass provides stable __repr__/__rich_repr__ and exposes the
    fields declared in __introspectable__ as read-only properties.

Validation highlights
- Aliases are given without dash prefix ("verbose", "v") and must be unique
  within an option. Nothing is enforced across options: the first option that
  registers an alias wins on lookup.
- An option with no aliases at all can never be matched; constructing one emits
  UnreachableOptionWarning but the option is kept as declared.
- Argument types are one of "string", "number", "boolean", "any".

Quick example:
    >>> from clavis.arguments import Argument, option
    >>> @option("output", ["output"], ["o"], arguments=[Argument("path", type="string", required=True)])
    ... def on_output(path): ...
"""
import functools
import operator
import re
from collections.abc import Iterable

from rich.text import Text

from .faults import *
from .utils import *

# Lenient numeric literal: decimal with optional sign/fraction/exponent, or a
# 0x/0o/0b prefixed integer. The body is optional, so "" and "  " match.
_NUMBER = re.compile(r"\s*(?:[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+)?\s*")

TYPES = ("string", "number", "boolean", "any")


def parse_type(value, /):
    """
    Infer the type of a raw option value.

    Returns
    - None when value is absent (None) or not a string.
    - "number" for a numeric literal. The empty string counts as a number.
    - "boolean" for exactly "true" or "false".
    - "string" otherwise.

    Examples
    - parse_type("42")   -> "number"
    - parse_type("true") -> "boolean"
    - parse_type("abc")  -> "string"
    - parse_type("")     -> "number"
    """
    if not isinstance(value, str):
        return None
    if _NUMBER.fullmatch(value):
        return "number"
    if value in ("true", "false"):
        return "boolean"
    return "string"


class SpecType(type):
    """
    Metaclass for read-only, introspectable specs.

    - __typename__ is derived from the class name ("SubCommand" -> "sub-command")
      and used as the subject of construction errors.
    - Every name in __introspectable__ becomes a read-only property mirroring
      the private "_<name>" field.
    - __repr__/__rich_repr__ list the introspectable fields.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_descr(cls, descr, /):
    """
    Validate an optional description: Unset -> None, otherwise a non-empty
    str (trimmed) or a rich Text.
    """
    if not isinstance(descr, str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    return coalesce(descr)


def _sanitize_name(cls, name, /):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    return name


def _sanitize_aliases(cls, metadata, /):
    """
    Validate long and short aliases of an option.

    - each alias is a non-empty string without whitespace and without a leading
      dash (keys reach the dispatcher already stripped of their dash prefix);
    - an alias appears at most once across both collections;
    - both collections are normalized to tuples, keeping declaration order
      (the first alias of each kind is the one named in messages).
    """
    seen = set()
    for field in ("aliases", "shorts"):
        if isinstance(metadata[field], str) or not isinstance(metadata[field], Iterable):
            raise TypeError(f"{cls.__typename__} '{field}' must be an iterable of strings")
        sanitized = []
        for alias in metadata[field]:
            if not isinstance(alias, str):
                raise TypeError(f"{cls.__typename__} '{field}' must contain only strings")
            elif not alias or re.search(r"\s", alias):
                raise ValueError(f"{cls.__typename__} '{field}' cannot contain empty or blank aliases")
            elif alias.startswith("-"):
                raise ValueError(f"{cls.__typename__} '{field}' must be given without dash prefix (got {alias!r})")
            elif alias in seen:
                raise ValueError(f"{cls.__typename__} alias {alias!r} is declared twice")
            seen.add(alias)
            sanitized.append(alias)
        metadata[field] = tuple(sanitized)


class Argument(metaclass=SpecType):
    """
    One positional slot of an option.

    Arguments bind by index: the i-th declared Argument receives the i-th raw
    value supplied after the option key. The declared type is only checked
    against parse_type(); the value handed to the handler stays a string.

    Properties
    - name: label used in messages and help.
    - type: "string" | "number" | "boolean" | "any" (default "any").
    - required: whether a value must be supplied (default False). An optional
      slot can be skipped explicitly with the literal "-".
    - descr: optional description.
    """

    __introspectable__ = (
        "name",
        "type",
        "required",
        "descr",
    )

    def __init__(self, name, /, type="any", required=False, descr=Unset):
        cls = self.__class__
        if type not in TYPES:
            raise ValueError(f"{cls.__typename__} 'type' must be one of {", ".join(map(repr, TYPES))}")
        self._name = _sanitize_name(cls, name)
        self._type = type
        self._required = bool(required)
        self._descr = _sanitize_descr(cls, descr)


class Option(metaclass=SpecType):
    """
    Named option specification.

    An Option is matched when one of its aliases appears as a key in the parsed
    input (`--alias` or `-short`). Its raw values are validated against the
    declared arguments, then its handler is called with the resolved values.

    Highlights
    - aliases / shorts: long and short lookup keys, without dashes.
    - required: the dispatch fails before any handler runs when none of the
      aliases is present.
    - arguments: ordered Argument slots (arity = len(arguments)). An option
      without arguments rejects any supplied value.
    - priority: lower runs first; equal priorities keep input order.
    - handler: bound with callback=... or the @option(...) decorator. Calling
      the Option forwards to it, and is a no-op when nothing is bound.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "shorts",
        "required",
        "arguments",
        "priority",
        "descr",
    )

    def __init__(
            self,
            name,
            /,
            aliases=(),
            shorts=(),
            *,
            required=False,
            arguments=(),
            priority=0,
            descr=Unset,
            callback=Unset
    ):
        cls = type(self)
        metadata = {
            "aliases": aliases,
            "shorts": shorts,
        }
        _sanitize_aliases(cls, metadata)

        if isinstance(arguments, str) or not isinstance(arguments, Iterable):
            raise TypeError(f"{cls.__typename__} 'arguments' must be an iterable of arguments")
        arguments = tuple(arguments)
        if not all(isinstance(argument, Argument) for argument in arguments):
            raise TypeError(f"{cls.__typename__} 'arguments' must contain only arguments")

        if isinstance(priority, bool) or not isinstance(priority, int):
            raise TypeError(f"{cls.__typename__} 'priority' must be an integer")

        if callback is not Unset and not callable(callback):
            raise TypeError(f"{cls.__typename__} 'callback' must be callable")

        self._name = _sanitize_name(cls, name)
        self._aliases = metadata["aliases"]
        self._shorts = metadata["shorts"]
        self._required = bool(required)
        self._arguments = arguments
        self._priority = priority
        self._descr = _sanitize_descr(cls, descr)
        self._callback = callback

        if not self._aliases and not self._shorts:
            trigger(UnreachableOptionWarning(
                "option %r declares no aliases and can never be matched from input" % self._name,
                title="unreachable option",
                code=FaultCode.UNREACHABLE_OPTION,
                hint="add at least one long or short alias%s" % (
                    " (as declared, the required check can never pass)" if self._required else ""
                ),
                option=self,
                docs=getdoc(FaultCode.UNREACHABLE_OPTION)
            ))

    @property
    def names(self):
        """
        Every lookup key of this option: long aliases first, then short ones.
        """
        return self._aliases + self._shorts

    @property
    def label(self):
        """
        Display form used in messages: first short and first long alias
        ("-t, --test"), falling back to the option name when it has none.
        """
        parts = []
        if self._shorts:
            parts.append("-" + self._shorts[0])
        if self._aliases:
            parts.append("--" + self._aliases[0])
        return ", ".join(parts) or self._name

    def __call__(self, *arguments):
        if self._callback is Unset:
            return
        return self._callback(*arguments)


def option(*args, **kwargs):
    """
    Decorator/factory binding a handler to a new Option.

    Usage
        @option("hello", ["hello"], arguments=[Argument("uno", required=True)])
        def hello(uno): ...

    The decorated name becomes the Option itself (calling it forwards to the
    handler). A decorator instance can be applied only once.
    """
    if "callback" in kwargs:
        raise TypeError("@option() binds the decorated function; 'callback' is not accepted")
    spec = Option(*args, **kwargs)

    @rename("option")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@option() must be applied to a callable")
        if spec._callback is not Unset:
            raise TypeError("@option() must be applied only once")
        spec._callback = callback
        return spec

    return wrapper


__all__ = (
    "Argument",
    "Option",
    "option",
    "parse_type",
)
