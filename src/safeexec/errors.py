"""
Exception types for safeexec.

Validators and the executor report failures as values. These exceptions
exist for callers that opt in via ``raise_for_status()`` and for
configuration mistakes made by the host program itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from safeexec._types import ExecResult, FailureKind


class SafeExecError(Exception):
    """Base class for all safeexec errors."""


class ConfigurationError(SafeExecError):
    """Raised when sandbox configuration values are malformed."""


class SecurityViolation(SafeExecError):
    """
    Raised when a validation outcome is converted into an exception.

    Attributes:
        reason: Why the command or path was rejected.
        kind: The failure classification.
    """

    def __init__(self, reason: str, kind: FailureKind) -> None:
        self.reason = reason
        self.kind = kind
        super().__init__(f"Security violation: {reason}")


class ExecutionError(SafeExecError):
    """Raised by ExecResult.raise_for_status() for unsuccessful runs."""

    def __init__(self, result: ExecResult) -> None:
        self.result = result
        if result.error:
            message = result.error
        else:
            message = f"Command failed with exit code {result.exit_code}"
            detail = result.stderr_text.strip()
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)
