"""
Top-level facade for safeexec.
"""

from safeexec._types import (
    AllowedCommand,
    ArgumentRole,
    CommandKind,
    ErrorCategory,
    ExecResult,
    ExecutionLimits,
    FailureKind,
    Invalid,
    PathRejection,
    PathValidationResult,
    TerminationReason,
    Valid,
    ValidationOutcome,
)
from safeexec.api import create_sandbox
from safeexec.config import SandboxConfig, resolve_workspace_root
from safeexec.discovery import check_command_available, discover_commands
from safeexec.environment import build_child_env
from safeexec.errors import ConfigurationError, ExecutionError, SafeExecError, SecurityViolation
from safeexec.sandbox import LocalSandbox, Sandbox, spawn_with_limits
from safeexec.security import (
    PathSandbox,
    SecurityPolicy,
    validate_execution_context,
    validate_process_context,
)

__all__ = [
    "AllowedCommand",
    "ArgumentRole",
    "CommandKind",
    "ConfigurationError",
    "ErrorCategory",
    "ExecResult",
    "ExecutionError",
    "ExecutionLimits",
    "FailureKind",
    "Invalid",
    "LocalSandbox",
    "PathRejection",
    "PathSandbox",
    "PathValidationResult",
    "SafeExecError",
    "Sandbox",
    "SandboxConfig",
    "SecurityPolicy",
    "SecurityViolation",
    "TerminationReason",
    "Valid",
    "ValidationOutcome",
    "build_child_env",
    "check_command_available",
    "create_sandbox",
    "discover_commands",
    "resolve_workspace_root",
    "spawn_with_limits",
    "validate_execution_context",
    "validate_process_context",
]
