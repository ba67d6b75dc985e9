"""
Command allowlist and flag validation.

This is the gate in front of the executor: an argument vector is only
ever spawned after ``SecurityPolicy.validate`` returned ``Valid`` for it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from safeexec._types import (
    AllowedCommand,
    ArgumentRole,
    FailureKind,
    Invalid,
    Valid,
    ValidationOutcome,
)
from safeexec.errors import SecurityViolation
from safeexec.security.classifier import classify, path_operands
from safeexec.security.commands import DEFAULT_COMMAND_POLICIES, CommandPolicy
from safeexec.security.rules import PATTERN_PERMISSIVE, STRICT, RuleSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_ARG_LENGTH = 4096

# Tokens matching this are short and inert enough to quote back in errors.
_QUOTABLE = re.compile(r"-{0,2}[A-Za-z0-9][A-Za-z0-9._+-]{0,39}")

_ROLE_LABELS: dict[ArgumentRole, str] = {
    ArgumentRole.PATH: "argument",
    ArgumentRole.PATTERN: "search pattern",
    ArgumentRole.FLAG: "option",
    ArgumentRole.FLAG_VALUE: "option value",
    ArgumentRole.STRUCTURAL: "grouping token",
}


def _quote(token: object) -> str:
    """Render an untrusted token for an error message without echoing payloads."""
    if isinstance(token, AllowedCommand):
        token = token.value
    if isinstance(token, str) and _QUOTABLE.fullmatch(token):
        return f"'{token}'"
    length = len(token) if isinstance(token, str) else 0
    return f"<{length} characters>"


@dataclass(frozen=True, eq=False)
class SecurityPolicy:
    """
    Immutable command policy: which commands may run and with what arguments.

    Validation order is fixed and fail-fast: command allowlist, malformed
    input, disallowed operators, flag allowlist (including subcommands),
    then argument content.

    Example:
        >>> policy = SecurityPolicy.standard()
        >>> policy.validate("rg", ["-n", "(foo|bar)", "src"]).is_valid
        True
        >>> policy.validate("find", [".", "-name", "*.py", "-delete"]).is_valid
        False
    """

    commands: Mapping[AllowedCommand, CommandPolicy] = field(
        default_factory=lambda: DEFAULT_COMMAND_POLICIES
    )
    strict: RuleSet = STRICT
    permissive: RuleSet = PATTERN_PERMISSIVE
    max_arg_length: int = DEFAULT_MAX_ARG_LENGTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "commands", MappingProxyType(dict(self.commands)))

    @classmethod
    def standard(cls) -> SecurityPolicy:
        """Policy allowing every command in the default table."""
        return cls()

    @classmethod
    def restricted(cls, allowed: Iterable[AllowedCommand | str]) -> SecurityPolicy:
        """
        Policy exposing only a subset of the default commands.

        Args:
            allowed: Commands to keep, as members or binary names.

        Raises:
            ValueError: If a name is not an allowlisted command.
        """
        selected: dict[AllowedCommand, CommandPolicy] = {}
        for name in allowed:
            command = AllowedCommand.parse(name)
            if command is None:
                raise ValueError(f"Unknown command: {name!r}")
            selected[command] = DEFAULT_COMMAND_POLICIES[command]
        return cls(commands=selected)

    @property
    def allowed_commands(self) -> frozenset[AllowedCommand]:
        return frozenset(self.commands)

    def classify(self, command: AllowedCommand, args: Iterable[str]) -> tuple[ArgumentRole, ...]:
        """Roles of ``args`` under ``command``'s grammar."""
        return classify(command, tuple(args), self.commands[command])

    def path_operands(self, command: AllowedCommand, args: Iterable[str]) -> tuple[int, ...]:
        """Indices of the arguments ``command`` will open as local paths."""
        return path_operands(command, tuple(args), self.commands[command])

    def validate(self, command: object, args: object) -> ValidationOutcome:
        """
        Validate a command and its argument vector.

        Never raises: every input, including wrong types, yields a value.

        Args:
            command: Binary name (or AllowedCommand member).
            args: Argument vector, excluding the binary itself.

        Returns:
            ``Valid`` carrying the exact command/args to execute, or
            ``Invalid`` with a reason that does not echo rejected content.
        """
        outcome = self._validate(command, args)
        if not outcome.is_valid:
            resolved = AllowedCommand.parse(command)
            logger.warning(
                "Rejected %s invocation (%s): %s",
                resolved.value if resolved else "unknown",
                outcome.kind.value,
                outcome.reason,
            )
        return outcome

    def check_command(self, command: object, args: object) -> Valid:
        """
        Validate and raise on failure.

        Raises:
            SecurityViolation: If the invocation is rejected.
        """
        outcome = self.validate(command, args)
        if isinstance(outcome, Valid):
            return outcome
        raise SecurityViolation(outcome.reason, outcome.kind)

    def _validate(self, command: object, args: object) -> ValidationOutcome:
        resolved = AllowedCommand.parse(command)
        if resolved is None or resolved not in self.commands:
            allowed = ", ".join(sorted(c.value for c in self.commands))
            return Invalid(
                f"Command {_quote(command)} is not allowed. Allowed commands: {allowed}",
                FailureKind.UNKNOWN_COMMAND,
            )
        policy = self.commands[resolved]
        name = resolved.value

        if args is None or isinstance(args, (str, bytes)) or not isinstance(args, Iterable):
            return Invalid("Arguments must be a sequence of strings", FailureKind.MALFORMED_ARGUMENTS)
        items = tuple(args)
        for index, arg in enumerate(items):
            if not isinstance(arg, str):
                return Invalid(
                    f"Argument at position {index} is not a string",
                    FailureKind.MALFORMED_ARGUMENTS,
                )

        for arg in items:
            operator = policy.disallowed_operator(arg)
            if operator is not None:
                return Invalid(
                    f"{name} operator '{operator}' is not allowed",
                    FailureKind.DISALLOWED_OPERATOR,
                )

        roles = classify(resolved, items, policy)

        for index, (arg, role) in enumerate(zip(items, roles)):
            if role is ArgumentRole.FLAG and not policy.accepts_flag(arg):
                return Invalid(
                    f"{name} option {_quote(arg)} at position {index} is not allowed",
                    FailureKind.DISALLOWED_FLAG,
                )

        if policy.subcommands is not None:
            for index, (arg, role) in enumerate(zip(items, roles)):
                if role is ArgumentRole.PATH:
                    if arg not in policy.subcommands:
                        allowed = ", ".join(sorted(policy.subcommands))
                        return Invalid(
                            f"{name} subcommand {_quote(arg)} is not allowed. Allowed: {allowed}",
                            FailureKind.DISALLOWED_SUBCOMMAND,
                        )
                    break

        for index, (arg, role) in enumerate(zip(items, roles)):
            label = _ROLE_LABELS[role]
            if len(arg) > self.max_arg_length:
                return Invalid(
                    f"{label.capitalize()} at position {index} exceeds {self.max_arg_length} characters",
                    FailureKind.DANGEROUS_CONTENT,
                )
            rule_set = self.permissive if role in (ArgumentRole.PATTERN, ArgumentRole.STRUCTURAL) else self.strict
            positional = role in (ArgumentRole.PATH, ArgumentRole.FLAG_VALUE)
            rule = rule_set.scan(arg, positional=positional)
            if rule is not None:
                return Invalid(
                    f"Dangerous content in {label} at position {index}: {rule.description}. "
                    "This may be a command injection attempt.",
                    FailureKind.DANGEROUS_CONTENT,
                )

        return Valid(resolved, items)
