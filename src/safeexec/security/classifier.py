"""
Position-aware argument classification.

Labels every token of an argument vector with the role it plays for the
target binary. The role decides which content rule set applies: search
patterns and grouping tokens may carry regex/glob punctuation, everything
else is held to the strict set.
"""

from __future__ import annotations

from typing import Callable, Sequence

from safeexec._types import AllowedCommand, ArgumentRole, CommandKind
from safeexec.security.commands import END_OF_FLAGS, CommandPolicy

Grammar = Callable[[Sequence[str], CommandPolicy], list[ArgumentRole]]

_FILESYSTEM_KINDS = frozenset({CommandKind.LOCATOR, CommandKind.SEARCHER, CommandKind.LISTER})


def _is_flag(token: str) -> bool:
    # A lone "-" names stdin, which is positional.
    return token.startswith("-") and token != "-"


def classify_searcher(args: Sequence[str], policy: CommandPolicy) -> list[ArgumentRole]:
    """
    Grammar for rg/grep: ``[flags] PATTERN [PATH...]``.

    Glob- and regexp-valued flags mark their value as a pattern. The first
    positional token is the pattern unless ``-e`` supplied one (or
    ``--files`` asked for a file listing), in which case every positional
    token is a path.
    """
    roles = [ArgumentRole.PATH] * len(args)
    candidate: int | None = None
    explicit_pattern = False

    i = 0
    while i < len(args):
        token = args[i]
        if token == END_OF_FLAGS:
            roles[i] = ArgumentRole.FLAG
            if candidate is None and not explicit_pattern and i + 1 < len(args):
                candidate = i + 1
                roles[candidate] = ArgumentRole.PATTERN
            break

        if _is_flag(token):
            roles[i] = ArgumentRole.FLAG
            name = policy.flag_name(token)
            if name in policy.regexp_flags or name in policy.listing_flags:
                explicit_pattern = True
            if name != token:
                if name in policy.pattern_value_flags and token.startswith("--"):
                    roles[i] = ArgumentRole.PATTERN
            elif policy.takes_value(token):
                if i + 1 < len(args):
                    if token in policy.pattern_value_flags:
                        roles[i + 1] = ArgumentRole.PATTERN
                    else:
                        roles[i + 1] = ArgumentRole.FLAG_VALUE
                i += 1
            i += 1
            continue

        if candidate is None:
            candidate = i
            roles[i] = ArgumentRole.PATTERN
        i += 1

    if explicit_pattern and candidate is not None:
        roles[candidate] = ArgumentRole.PATH
    return roles


def classify_locator(args: Sequence[str], policy: CommandPolicy) -> list[ArgumentRole]:
    """
    Grammar for find: ``[PATH...] EXPRESSION``.

    Tokens before the expression starts are paths. Inside the expression,
    the operand of a pattern-valued test (``-name``, ``-regex``, ...) is a
    pattern and grouping tokens are structural.
    """
    roles = [ArgumentRole.PATH] * len(args)

    i = 0
    while i < len(args):
        token = args[i]
        if token in policy.structural_tokens:
            roles[i] = ArgumentRole.STRUCTURAL
        elif _is_flag(token):
            roles[i] = ArgumentRole.FLAG
            if policy.takes_value(token):
                if i + 1 < len(args):
                    if token in policy.pattern_value_flags:
                        roles[i + 1] = ArgumentRole.PATTERN
                    else:
                        roles[i + 1] = ArgumentRole.FLAG_VALUE
                i += 1
        i += 1
    return roles


def classify_generic(args: Sequence[str], policy: CommandPolicy) -> list[ArgumentRole]:
    """Grammar for ls, git and npm: flags, flag values and paths."""
    roles = [ArgumentRole.PATH] * len(args)

    i = 0
    while i < len(args):
        token = args[i]
        if token == END_OF_FLAGS:
            roles[i] = ArgumentRole.FLAG
            break
        if _is_flag(token):
            roles[i] = ArgumentRole.FLAG
            if policy.takes_value(token):
                if i + 1 < len(args):
                    roles[i + 1] = ArgumentRole.FLAG_VALUE
                i += 1
        i += 1
    return roles


GRAMMARS: dict[AllowedCommand, Grammar] = {
    AllowedCommand.FIND: classify_locator,
    AllowedCommand.RIPGREP: classify_searcher,
    AllowedCommand.GREP: classify_searcher,
    AllowedCommand.LS: classify_generic,
    AllowedCommand.GIT: classify_generic,
    AllowedCommand.NPM: classify_generic,
}

_missing = set(AllowedCommand) - set(GRAMMARS)
if _missing:
    raise RuntimeError(f"No argument grammar for: {sorted(c.value for c in _missing)}")


def classify(
    command: AllowedCommand, args: Sequence[str], policy: CommandPolicy
) -> tuple[ArgumentRole, ...]:
    """
    Classify every argument of ``command``.

    Pure and linear in ``len(args)``; ``args`` is never modified.

    Returns:
        A tuple where index ``i`` is the role of ``args[i]``.
    """
    return tuple(GRAMMARS[command](args, policy))


def path_operands(
    command: AllowedCommand, args: Sequence[str], policy: CommandPolicy
) -> tuple[int, ...]:
    """
    Indices of the tokens ``command`` will resolve against the filesystem.

    For find, rg, grep and ls these are the path-role tokens other than
    ``-`` (stdin). git positionals are refs, pathspecs and subcommands, so
    only the value of a directory flag (``-C``) and the operands after the
    repository of a destination subcommand (``clone <repo> <dir>``) count.
    npm never touches a local path.

    Returns:
        Ascending indices into ``args``.
    """
    roles = GRAMMARS[command](args, policy)
    if command.kind in _FILESYSTEM_KINDS:
        return tuple(i for i, role in enumerate(roles) if role is ArgumentRole.PATH and args[i] != "-")

    positionals = [i for i, role in enumerate(roles) if role is ArgumentRole.PATH]
    # Directory flags are global options; after the subcommand "-C" means something else.
    end = positionals[0] if positionals else len(args)
    operands = [
        i
        for i in range(1, end)
        if roles[i] is ArgumentRole.FLAG_VALUE and args[i - 1] in policy.directory_flags
    ]
    if positionals and args[positionals[0]] in policy.destination_subcommands:
        operands.extend(positionals[2:])
    return tuple(sorted(operands))
