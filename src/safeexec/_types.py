"""
Core type definitions for safeexec.

Uses enums and frozen dataclasses; every value here is either static
configuration or created fresh per call and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from safeexec.errors import ExecutionError, SecurityViolation


class CommandKind(Enum):
    """Grammar family of an allowlisted command."""

    LOCATOR = "locator"
    SEARCHER = "searcher"
    LISTER = "lister"
    VCS = "vcs-client"
    PACKAGE = "package-client"


class AllowedCommand(Enum):
    """Closed set of binaries that may ever reach the executor."""

    FIND = "find"
    RIPGREP = "rg"
    GREP = "grep"
    LS = "ls"
    GIT = "git"
    NPM = "npm"

    @property
    def binary(self) -> str:
        """Executable name looked up on PATH."""
        return self.value

    @property
    def kind(self) -> CommandKind:
        return _COMMAND_KINDS[self]

    @classmethod
    def parse(cls, name: object) -> AllowedCommand | None:
        """
        Return the member for a bare binary name, or None.

        Paths such as ``/bin/ls`` and anything that is not a string are
        not recognised.
        """
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            return None
        try:
            return cls(name)
        except ValueError:
            return None


_COMMAND_KINDS: dict[AllowedCommand, CommandKind] = {
    AllowedCommand.FIND: CommandKind.LOCATOR,
    AllowedCommand.RIPGREP: CommandKind.SEARCHER,
    AllowedCommand.GREP: CommandKind.SEARCHER,
    AllowedCommand.LS: CommandKind.LISTER,
    AllowedCommand.GIT: CommandKind.VCS,
    AllowedCommand.NPM: CommandKind.PACKAGE,
}


class ArgumentRole(Enum):
    """Contextual purpose of one command-line token."""

    PATH = "path"
    PATTERN = "pattern"
    FLAG = "flag"
    FLAG_VALUE = "flag-value"
    STRUCTURAL = "structural"


class ErrorCategory(Enum):
    """Coarse failure taxonomy callers translate into user-facing errors."""

    POLICY_VIOLATION = "policy-violation"
    CONTENT_REJECTED = "content-rejected"
    PATH_REJECTED = "path-rejected"
    EXECUTION_LIMIT = "execution-limit"
    SPAWN_FAILURE = "spawn-failure"


class FailureKind(Enum):
    """Why a validation or execution failed."""

    UNKNOWN_COMMAND = "unknown-command"
    MALFORMED_ARGUMENTS = "malformed-arguments"
    DISALLOWED_FLAG = "disallowed-flag"
    DISALLOWED_SUBCOMMAND = "disallowed-subcommand"
    DISALLOWED_OPERATOR = "disallowed-operator"
    DANGEROUS_CONTENT = "dangerous-content"
    PATH_REJECTED = "path-rejected"
    TIMEOUT = "timeout"
    OUTPUT_LIMIT = "output-limit"
    SPAWN_FAILURE = "spawn-failure"

    @property
    def category(self) -> ErrorCategory:
        return _FAILURE_CATEGORIES[self]

    @property
    def retryable(self) -> bool:
        """True if narrowing the input (adding filters) may succeed."""
        return self.category is ErrorCategory.EXECUTION_LIMIT


_FAILURE_CATEGORIES: dict[FailureKind, ErrorCategory] = {
    FailureKind.UNKNOWN_COMMAND: ErrorCategory.POLICY_VIOLATION,
    FailureKind.MALFORMED_ARGUMENTS: ErrorCategory.POLICY_VIOLATION,
    FailureKind.DISALLOWED_FLAG: ErrorCategory.POLICY_VIOLATION,
    FailureKind.DISALLOWED_SUBCOMMAND: ErrorCategory.POLICY_VIOLATION,
    FailureKind.DISALLOWED_OPERATOR: ErrorCategory.POLICY_VIOLATION,
    FailureKind.DANGEROUS_CONTENT: ErrorCategory.CONTENT_REJECTED,
    FailureKind.PATH_REJECTED: ErrorCategory.PATH_REJECTED,
    FailureKind.TIMEOUT: ErrorCategory.EXECUTION_LIMIT,
    FailureKind.OUTPUT_LIMIT: ErrorCategory.EXECUTION_LIMIT,
    FailureKind.SPAWN_FAILURE: ErrorCategory.SPAWN_FAILURE,
}


class TerminationReason(Enum):
    """Why the executor force-killed a process."""

    TIMEOUT = "timeout"
    OUTPUT_LIMIT = "output-limit"


@dataclass(frozen=True, slots=True)
class Valid:
    """A command and argument vector that passed every check."""

    command: AllowedCommand
    args: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return True

    @property
    def argv(self) -> list[str]:
        """Full argument vector including the binary name."""
        return [self.command.binary, *self.args]

    def raise_for_status(self) -> None:
        """No-op; present so outcomes can be handled uniformly."""


@dataclass(frozen=True, slots=True)
class Invalid:
    """A rejected command, with the reason and its classification."""

    reason: str
    kind: FailureKind

    @property
    def is_valid(self) -> bool:
        return False

    def raise_for_status(self) -> None:
        """Raise SecurityViolation carrying the reason."""
        raise SecurityViolation(self.reason, self.kind)


ValidationOutcome = Union[Valid, Invalid]


class PathRejection(Enum):
    """Why a path or working directory was refused."""

    MALFORMED = "malformed"
    EMPTY = "empty"
    NULL_BYTE = "null-byte"
    OUTSIDE_ROOTS = "outside-roots"
    SENSITIVE = "sensitive"
    PERMISSION_DENIED = "permission-denied"
    SYMLINK_LOOP = "symlink-loop"
    NAME_TOO_LONG = "name-too-long"
    NOT_A_DIRECTORY = "not-a-directory"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True, slots=True)
class PathValidationResult:
    """Outcome of a path or working-directory containment check."""

    is_valid: bool
    sanitized_path: str | None = None
    error: str | None = None
    rejection: PathRejection | None = None

    @classmethod
    def accept(cls, sanitized_path: str) -> PathValidationResult:
        return cls(is_valid=True, sanitized_path=sanitized_path)

    @classmethod
    def reject(cls, error: str, rejection: PathRejection) -> PathValidationResult:
        return cls(is_valid=False, error=error, rejection=rejection)

    def raise_for_status(self) -> None:
        """Raise SecurityViolation if the path was rejected."""
        if not self.is_valid:
            raise SecurityViolation(self.error or "Path rejected", FailureKind.PATH_REJECTED)


DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class ExecutionLimits:
    """Per-call resource bounds for one process."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.max_output_bytes <= 0:
            raise ValueError(f"max_output_bytes must be positive, got {self.max_output_bytes}")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Immutable result from one sandboxed execution."""

    exit_code: int | None
    stdout: bytes = b""
    stderr: bytes = b""
    success: bool = False
    termination_reason: TerminationReason | None = None
    failure: FailureKind | None = None
    error: str | None = None

    @classmethod
    def failed(cls, kind: FailureKind, error: str) -> ExecResult:
        """Result for a call that never produced a process."""
        return cls(exit_code=None, failure=kind, error=error)

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def timed_out(self) -> bool:
        return self.termination_reason is TerminationReason.TIMEOUT

    def raise_for_status(self) -> None:
        """Raise ExecutionError unless the process exited with code 0."""
        if not self.success:
            raise ExecutionError(self)
