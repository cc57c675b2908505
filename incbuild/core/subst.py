# SPDX-License-Identifier: MIT
"""Variable substitution for command templates.

Key design principles:
1. Lists stay as lists until final shell command generation
2. A list variable used as a whole token expands to several tokens
3. Shell quoting happens only at the end, appropriate for the target shell

Supported syntax:
- Simple variables: $VAR or ${VAR}
- Escaped dollars: $$ becomes literal $

Command template forms:
- String: "gcc $cflags -c -o $out $in" (auto-tokenized, shell-style)
- List: ["gcc", "$cflags", "-c", "-o", "$out", "$in"] (explicit tokens)

Variables listed in ``keep`` are left verbatim so a template can be
expanded in two stages: once per rule template (flags, tools) and once per
edge ($in, $out, $depfile, $extra_flags).
"""

from __future__ import annotations

import platform
import re
import shlex
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from incbuild.core.errors import MissingVariableError, SubstitutionError


@dataclass(frozen=True)
class Command:
    """One process invocation in a rule.

    Attributes:
        argv: Argument list (argv[0] is the program).
        stdout: If set, the process's standard output is written to this path.
    """

    argv: tuple[str, ...]
    stdout: str | None = None

    def __str__(self) -> str:
        return to_shell_command(self)


# Sentinel character to represent literal $ during expansion (replaced at the end)
_DOLLAR_SENTINEL = "\x00"

# Match: $$, ${var}, $var
_TOKEN_PATTERN = re.compile(
    r"(\$\$)"  # Group 1: Escaped dollar
    r"|"
    r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}"  # Group 2: Braced ${var}
    r"|"
    r"\$([a-zA-Z_][a-zA-Z0-9_]*)"  # Group 3: Simple $var
)

_WHOLE_VAR = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}|\$([a-zA-Z_][a-zA-Z0-9_]*)")


def tokenize(template: str | Sequence[str]) -> list[str]:
    """Split a string template into tokens (lists are copied as-is)."""
    if isinstance(template, str):
        try:
            return shlex.split(template)
        except ValueError as e:
            raise SubstitutionError(f"cannot split command {template!r}: {e}") from e
    return list(template)


def subst(
    template: str | Sequence[str],
    variables: Mapping[str, Any],
    *,
    keep: Collection[str] = (),
    context: str | None = None,
) -> list[str]:
    """Expand variables in a template, returning a flat token list.

    Args:
        template: String or list of tokens.
        variables: Variable values; str or list of str.
        keep: Variable names left unexpanded (as ``$name``).
        context: Context for error messages.

    Returns:
        Expanded tokens. Empty list variables vanish entirely.

    Raises:
        MissingVariableError: If a referenced variable is not defined.
        SubstitutionError: If a list variable is embedded inside a token.
    """
    result: list[str] = []
    for token in tokenize(template):
        result.extend(_expand_token(token, variables, keep, context))
    return [t.replace(_DOLLAR_SENTINEL, "$$" if keep else "$") for t in result]


def _expand_token(
    token: str,
    variables: Mapping[str, Any],
    keep: Collection[str],
    context: str | None,
) -> list[str]:
    """Expand a single token. A whole-token list variable yields several tokens."""
    whole = _WHOLE_VAR.fullmatch(token)
    if whole:
        name = whole.group(1) or whole.group(2)
        if name in keep:
            return [f"${name}"]
        value = _lookup_var(name, variables, context)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    def replace_match(match: re.Match[str]) -> str:
        if match.group(1):  # $$
            return _DOLLAR_SENTINEL
        name = match.group(2) or match.group(3)
        if name in keep:
            return f"${{{name}}}"
        value = _lookup_var(name, variables, context)
        if isinstance(value, (list, tuple)):
            if len(value) == 1:
                return str(value[0])
            raise SubstitutionError(
                f"list variable ${name} cannot be embedded in '{token}'; "
                "make it the entire token",
                context,
            )
        return str(value)

    return [_TOKEN_PATTERN.sub(replace_match, token)]


def _lookup_var(name: str, variables: Mapping[str, Any], context: str | None) -> Any:
    if name not in variables:
        raise MissingVariableError(name, context)
    return variables[name]


# =============================================================================
# Shell command formatting
# =============================================================================


def to_shell_command(
    commands: Command | Sequence[Command],
    shell: str = "auto",
    multi_join: str = " && ",
) -> str:
    """Convert one or more commands to a shell command string.

    Args:
        commands: A Command or a sequence of Commands run in order.
        shell: "auto", "bash", "cmd", or "ninja" (no quoting of $ variables).
        multi_join: Separator for multiple commands.
    """
    if shell == "auto":
        shell = "cmd" if platform.system() == "Windows" else "bash"

    if isinstance(commands, Command):
        commands = [commands]

    rendered = []
    for command in commands:
        text = " ".join(_quote_for_shell(t, shell) for t in command.argv)
        if command.stdout is not None:
            text += " > " + _quote_for_shell(command.stdout, shell)
        rendered.append(text)
    return multi_join.join(rendered)


def _quote_for_shell(s: str, shell: str) -> str:
    """Quote string for target shell if needed.

    For "ninja", tokens are already in ninja syntax ($in, $$ for a literal
    dollar), so only shell metacharacters other than $ trigger quoting.
    """
    if not s:
        return '""' if shell == "cmd" else "''"

    if shell == "ninja":
        needs_quote = any(c in s for c in " \t\n\"'\\`!*?[](){}|&;<>")
        if not needs_quote:
            return s
        if "'" not in s:
            return f"'{s}'"
        return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'

    if shell == "bash":
        needs_quote = any(c in s for c in " \t\n\"'\\$`!*?[](){}|&;<>")
        if not needs_quote:
            return s
        if "'" not in s:
            return f"'{s}'"
        escaped = (
            s.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("$", "\\$")
            .replace("`", "\\`")
        )
        return f'"{escaped}"'

    if shell == "cmd":
        needs_quote = any(c in s for c in ' \t"^&|<>()%!')
        if not needs_quote:
            return s
        return f'"{s.replace(chr(34), chr(34) + chr(34))}"'

    return f'"{s}"' if " " in s else s


def escape(s: str) -> str:
    """Escape dollar signs: $ -> $$"""
    return s.replace("$", "$$")
