"""
Clavis tokenizer: raw process arguments → ParsedArgs.

Shape rules
- A key-shaped token is one or two dashes followed by at least one character
  ("-v", "--output", "---x" → key "-x"). The key is the text after the dashes.
- The first token is the subcommand name when it is not key-shaped.
- Every other non-key token is a value of the most recently opened key.
- A key seen again starts over (last occurrence wins) but keeps its first
  position in the mapping.

Faults
- MissingKeyError when a value shows up before any key was opened. The scan
  stops there; when the reporter lets the run continue, the keys parsed so far
  are returned.
"""
import re
import sys
from collections.abc import Iterable
from typing import NamedTuple

from .faults import *
from .reporters import Reporter
from .utils import *

KEY = re.compile(r"--?(.+)")


class ParsedArgs(NamedTuple):
    """
    Result of tokenization.

    - options: dict mapping option key (no dashes) → list of raw values.
    - subcommand: detected subcommand name, or None (main subcommand).
    """
    options: dict
    subcommand: str | None = None


def parse_args(tokens=Unset, /, reporter=Unset):
    """
    Split tokens into option keys with their values, and the subcommand name.

    Parameters
    - tokens: Iterable[str] | Unset
      Tokens to parse; Unset reads sys.argv[1:].
    - reporter: Reporter | Unset
      Fault strategy; Unset uses a fail-fast Reporter (faults are raised).

    Returns
    - ParsedArgs(options, subcommand)

    Example
    - parse_args(["opt", "--foo", "a", "b", "--bar", "c"])
      -> ParsedArgs(options={"foo": ["a", "b"], "bar": ["c"]}, subcommand="opt")
    """
    tokens = sys.argv[1:] if tokens is Unset else tokens
    if isinstance(tokens, str) or not isinstance(tokens, Iterable):
        raise TypeError("parse_args() argument must be an iterable of strings")
    tokens = list(tokens)
    if not all(isinstance(token, str) for token in tokens):
        raise TypeError("parse_args() argument must be an iterable of strings")
    reporter = coalesce(reporter, Reporter())

    options = {}
    subcommand = tokens[0] if tokens and not KEY.fullmatch(tokens[0]) else None
    key = None

    for index, token in enumerate(tokens):
        # only the leading token can be the subcommand, even if its text repeats later
        if index == 0 and subcommand is not None:
            continue

        if match := KEY.fullmatch(token):
            key = match[1]
            options[key] = []
            continue

        if key is None:
            reporter.trigger(MissingKeyError(
                "value %r at %s position has no option key" % (token, ordinal(index + 1)),
                title="missing key for value",
                code=FaultCode.MISSING_KEY,
                hint="put an option before its values (for example: --name %s)" % token,
                input=token,
                index=index + 1,
                subcommand=subcommand,
                docs=getdoc(FaultCode.MISSING_KEY)
            ))
            break

        options[key].append(token)

    return ParsedArgs(options, subcommand)


__all__ = (
    "ParsedArgs",
    "parse_args",
)
