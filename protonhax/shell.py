"""
protonhax Shell: quoting and launch-option parsing

Two jobs:
  1. A reversible escape for environment values, so a whole process
     environment can be stored as `declare -x NAME=VALUE` lines.
  2. Recovering the real command out of what Steam passes for %COMMAND%:
     sometimes a single string, sometimes prefixed with VAR=VALUE
     assignments, always containing the proton executable somewhere.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Escape codec
# ---------------------------------------------------------------------------

_QUOTE_TRIGGERS = frozenset("'\"\\$")
_ESCAPED_IN_QUOTES = frozenset('\\"$`')


def escape(value: str) -> str:
    """Quote a value for a `declare -x` line, leaving plain values untouched."""
    if not any(c.isspace() or c in _QUOTE_TRIGGERS for c in value):
        return value

    out = ['"']
    for c in value:
        if c in _ESCAPED_IN_QUOTES:
            out.append("\\")
        out.append(c)
    out.append('"')
    return "".join(out)


def unescape(text: str) -> str:
    """Inverse of `escape`. Unquoted input is returned as is."""
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return text

    body = text[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c != "\\":
            out.append(c)
            i += 1
            continue

        if i + 1 >= len(body):
            # Lone trailing backslash
            out.append("\\")
            break

        nxt = body[i + 1]
        if nxt in _ESCAPED_IN_QUOTES:
            out.append(nxt)
        else:
            out.append("\\")
            out.append(nxt)
        i += 2

    return "".join(out)


# ---------------------------------------------------------------------------
# Launch-option classification
# ---------------------------------------------------------------------------

_ENV_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

DEFAULT_EXECUTABLE_MARKER = "/proton"


class ParseError(Exception):
    """The launch command could not be turned into a runnable command."""


class MalformedCommandError(ParseError):
    pass


class NoCommandError(ParseError):
    pass


class NoExecutableError(ParseError):
    pass


@dataclass
class RealCommand:
    """The command Steam actually wanted to run."""
    argv: list[str]
    executable: str
    assignments: list[tuple[str, str]] = field(default_factory=list)


def is_env_assignment(token: str) -> bool:
    """True for leading shell-style `VAR=VALUE` tokens."""
    name, sep, _ = token.partition("=")
    return bool(sep) and _ENV_NAME.fullmatch(name) is not None


def split_command(tokens: list[str]) -> list[str]:
    """
    Steam sometimes forwards %COMMAND% as one string. Re-split it with
    POSIX shell rules when that happens; otherwise return the tokens as given.
    """
    if len(tokens) == 1 and any(c.isspace() for c in tokens[0]):
        try:
            return shlex.split(tokens[0])
        except ValueError as e:
            raise MalformedCommandError(f"Failed to parse command: {e}") from e
    return list(tokens)


def classify_command(
    tokens: list[str],
    executable_marker: str = DEFAULT_EXECUTABLE_MARKER,
) -> RealCommand:
    """
    Split off leading VAR=VALUE assignments and locate the proton executable.

    Raises:
        MalformedCommandError: a single-string command has unbalanced quoting.
        NoCommandError: nothing but assignments was given.
        NoExecutableError: no token contains the executable marker.
    """
    words = split_command(tokens)

    start = next((i for i, w in enumerate(words) if not is_env_assignment(w)), None)
    if start is None:
        raise NoCommandError("No command to run after environment assignments")

    argv = words[start:]
    executable = next((w for w in argv if executable_marker in w), None)
    if executable is None:
        raise NoExecutableError(f"Path to proton ('{executable_marker}') not found in command")

    assignments = []
    for w in words[:start]:
        name, _, value = w.partition("=")
        assignments.append((name, value))

    return RealCommand(argv=argv, executable=executable, assignments=assignments)
