"""
Static per-command policy tables.

Every allowlisted command has a closed set of bare flags and flags that
consume a value. Anything else that looks like a flag is rejected.
Flags that follow symlinks during traversal (``rg -L``, ``grep -R``,
``find -L``, ``ls -L``) or that run helper programs (``rg --pre``,
``find -exec``) are deliberately absent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from safeexec._types import AllowedCommand

END_OF_FLAGS = "--"

_SHORT_CLUSTER = re.compile(r"-[A-Za-z0-9]{2,}")


@dataclass(frozen=True, slots=True)
class CommandPolicy:
    """
    Flag grammar and restrictions for one allowlisted command.

    Attributes:
        flags: Flags that take no value.
        value_flags: Flags that consume the following token.
        inline_value_flags: Flags whose value is optional and can only be
            attached as ``--name=value`` (GNU ``--color[=WHEN]``). Written
            bare they must also be in ``flags`` and consume nothing.
        pattern_value_flags: Subset of value_flags whose value is a search
            pattern or glob rather than a plain value.
        directory_flags: Subset of value_flags whose value is a directory
            the command changes into (``git -C``). Later relative paths
            resolve against it.
        regexp_flags: Subset of pattern_value_flags that supply the search
            pattern itself (``-e``), so positional tokens are all paths.
        listing_flags: Flags that turn a searcher into a file lister
            (``rg --files``), so every positional token is a path.
        structural_tokens: Grouping/boolean tokens of an expression grammar.
        disallowed_operators: Tokens rejected wherever they appear.
        subcommands: If set, the first positional token must be one of these.
        destination_subcommands: Subcommands whose operands after the first
            (``git clone <repo> <dir>``) are local paths.
        allow_clusters: Accept short-flag clusters (``-rn``) and attached
            short values (``-A3``).
    """

    flags: frozenset[str] = frozenset()
    value_flags: frozenset[str] = frozenset()
    inline_value_flags: frozenset[str] = frozenset()
    pattern_value_flags: frozenset[str] = frozenset()
    regexp_flags: frozenset[str] = frozenset()
    listing_flags: frozenset[str] = frozenset()
    directory_flags: frozenset[str] = frozenset()
    structural_tokens: frozenset[str] = frozenset()
    disallowed_operators: frozenset[str] = frozenset()
    subcommands: frozenset[str] | None = None
    destination_subcommands: frozenset[str] = frozenset()
    allow_clusters: bool = False

    def __post_init__(self) -> None:
        if not self.pattern_value_flags <= self.value_flags:
            raise ValueError("pattern_value_flags must be a subset of value_flags")
        if not self.regexp_flags <= self.pattern_value_flags:
            raise ValueError("regexp_flags must be a subset of pattern_value_flags")
        if not self.directory_flags <= self.value_flags:
            raise ValueError("directory_flags must be a subset of value_flags")
        if self.inline_value_flags & self.value_flags:
            raise ValueError("inline_value_flags cannot also consume the next token")
        if not self.destination_subcommands <= (self.subcommands or frozenset()):
            raise ValueError("destination_subcommands must be allowed subcommands")

    def takes_value(self, token: str) -> bool:
        """True if ``token`` consumes the next argument as its value."""
        return token in self.value_flags

    def flag_name(self, token: str) -> str:
        """
        Name of the flag a token spells.

        ``--glob=*.py`` -> ``--glob``; ``-A3`` -> ``-A`` when ``-A`` takes a
        value; any other token is returned unchanged.
        """
        if token.startswith("--") and "=" in token:
            return token.split("=", 1)[0]
        if self.allow_clusters and _SHORT_CLUSTER.fullmatch(token) and token[:2] in self.value_flags:
            return token[:2]
        return token

    def has_inline_value(self, token: str) -> bool:
        return self.flag_name(token) != token

    def accepts_flag(self, token: str) -> bool:
        """Closed-world check of a flag-position token."""
        if token == END_OF_FLAGS:
            return True
        if token in self.flags or token in self.value_flags:
            return True
        name = self.flag_name(token)
        if name != token:
            return name in self.value_flags or name in self.inline_value_flags
        if self.allow_clusters and _SHORT_CLUSTER.fullmatch(token):
            return all(f"-{letter}" in self.flags for letter in token[1:])
        return False

    def disallowed_operator(self, token: str) -> str | None:
        """Return the blocked operator ``token`` spells, if any."""
        if token in self.disallowed_operators:
            return token
        if "=" in token:
            name = token.split("=", 1)[0]
            if name in self.disallowed_operators:
                return name
        return None


FIND_POLICY = CommandPolicy(
    flags=frozenset({
        "-O3", "-E", "-empty", "-executable", "-readable", "-writable",
        "-prune", "-print", "-print0", "-quit", "-true", "-false",
        "-depth", "-xdev", "-mount", "--version",
    }),
    value_flags=frozenset({
        "-maxdepth", "-mindepth", "-type", "-name", "-iname", "-path",
        "-ipath", "-regex", "-iregex", "-regextype", "-size", "-perm",
        "-mtime", "-mmin", "-atime", "-amin", "-ctime", "-cmin",
    }),
    pattern_value_flags=frozenset({
        "-name", "-iname", "-path", "-ipath", "-regex", "-iregex", "-size", "-perm",
    }),
    structural_tokens=frozenset({"(", ")", "-o", "-or", "-a", "-and", "!", "-not"}),
    disallowed_operators=frozenset({
        "-delete", "-exec", "-execdir", "-ok", "-okdir",
        "-printf", "-fprintf", "-fprint", "-fprint0", "-fls", "-ls",
    }),
)

RIPGREP_POLICY = CommandPolicy(
    flags=frozenset({
        "-F", "-P", "-s", "-i", "-S", "-w", "-v", "-a", "-n", "-N", "-l",
        "-c", "-U", "-x", "-H", "-I", "-o", "-0",
        "--fixed-strings", "--pcre2", "--case-sensitive", "--ignore-case",
        "--smart-case", "--no-unicode", "--word-regexp", "--invert-match",
        "--text", "--binary", "--line-number", "--no-line-number", "--column",
        "--files-with-matches", "--files-without-match", "--count",
        "--count-matches", "--no-ignore", "--hidden", "--multiline",
        "--multiline-dotall", "--json", "--stats", "--no-mmap", "--no-messages",
        "--line-regexp", "--passthru", "--files", "--no-heading",
        "--with-filename", "--no-filename", "--null", "--only-matching",
        "--trim", "--vimgrep", "--version",
    }),
    value_flags=frozenset({
        "-g", "--glob", "--iglob", "-e", "--regexp",
        "-A", "-B", "-C", "--after-context", "--before-context", "--context",
        "-m", "--max-count", "-t", "--type", "-T", "--type-not",
        "-j", "--threads", "--sort", "--sortr", "--max-filesize",
        "-d", "--max-depth", "-E", "--encoding", "--color",
        "-M", "--max-columns",
    }),
    pattern_value_flags=frozenset({"-g", "--glob", "--iglob", "-e", "--regexp"}),
    regexp_flags=frozenset({"-e", "--regexp"}),
    listing_flags=frozenset({"--files"}),
    allow_clusters=True,
)

GREP_POLICY = CommandPolicy(
    flags=frozenset({
        "-r", "-n", "-i", "-w", "-v", "-l", "-L", "-c", "-F", "-E", "-G",
        "-P", "-H", "-h", "-s", "-o", "-x", "-q", "-I", "-a", "-Z",
        "--recursive", "--line-number", "--ignore-case", "--word-regexp",
        "--invert-match", "--files-with-matches", "--files-without-match",
        "--count", "--fixed-strings", "--extended-regexp", "--basic-regexp",
        "--perl-regexp", "--with-filename", "--no-filename", "--no-messages",
        "--only-matching", "--line-regexp", "--quiet", "--null", "--version",
        "--color", "--colour",
    }),
    value_flags=frozenset({
        "-e", "--regexp", "--include", "--exclude", "--exclude-dir",
        "-A", "-B", "-C", "--after-context", "--before-context", "--context",
        "-m", "--max-count", "--binary-files",
    }),
    inline_value_flags=frozenset({"--color", "--colour"}),
    pattern_value_flags=frozenset({"-e", "--regexp", "--include", "--exclude", "--exclude-dir"}),
    regexp_flags=frozenset({"-e", "--regexp"}),
    allow_clusters=True,
)

LS_POLICY = CommandPolicy(
    flags=frozenset({
        "-l", "-a", "-A", "-h", "-R", "-S", "-t", "-r", "-X", "-1", "-d",
        "-F", "-p", "-i", "-s", "-n",
        "--all", "--almost-all", "--human-readable", "--recursive",
        "--reverse", "--directory", "--classify", "--version", "--color",
    }),
    value_flags=frozenset({"--sort", "--time-style", "--indicator-style", "--time", "--format"}),
    inline_value_flags=frozenset({"--color"}),
    allow_clusters=True,
)

GIT_POLICY = CommandPolicy(
    flags=frozenset({
        "--version", "--no-pager", "--oneline", "--stat", "--name-only",
        "--name-status", "--no-color", "--single-branch", "--no-single-branch",
        "--sparse", "--no-tags", "--quiet", "-q", "--cached", "--no-checkout",
        "--porcelain", "--short", "--abbrev-commit", "--no-patch", "-p",
        "--patch", "--show-toplevel", "--abbrev-ref", "--cone", "--no-cone", "-z",
        "--pretty",
    }),
    value_flags=frozenset({
        "-C", "--depth", "--branch", "-b", "--filter", "-n", "--max-count",
        "--since", "--until", "--author", "-L", "--skip",
    }),
    inline_value_flags=frozenset({"--format", "--pretty"}),
    directory_flags=frozenset({"-C"}),
    disallowed_operators=frozenset({
        "-c", "--config", "--config-env", "--upload-pack", "-u",
        "--receive-pack", "--exec", "--exec-path", "--template",
    }),
    subcommands=frozenset({
        "clone", "log", "show", "diff", "status", "ls-files", "ls-tree",
        "rev-parse", "blame", "sparse-checkout",
    }),
    destination_subcommands=frozenset({"clone"}),
)

NPM_POLICY = CommandPolicy(
    flags=frozenset({"--json", "--version", "--long", "--parseable", "--no-description"}),
    value_flags=frozenset({"--searchlimit"}),
    subcommands=frozenset({"view", "search", "info"}),
)

DEFAULT_COMMAND_POLICIES: Mapping[AllowedCommand, CommandPolicy] = MappingProxyType({
    AllowedCommand.FIND: FIND_POLICY,
    AllowedCommand.RIPGREP: RIPGREP_POLICY,
    AllowedCommand.GREP: GREP_POLICY,
    AllowedCommand.LS: LS_POLICY,
    AllowedCommand.GIT: GIT_POLICY,
    AllowedCommand.NPM: NPM_POLICY,
})
