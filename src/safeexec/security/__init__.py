"""Command, content and path validation for safeexec."""

from safeexec.errors import SecurityViolation
from safeexec.security.classifier import classify
from safeexec.security.commands import DEFAULT_COMMAND_POLICIES, CommandPolicy
from safeexec.security.context import validate_execution_context, validate_process_context
from safeexec.security.paths import PathSandbox
from safeexec.security.policy import SecurityPolicy
from safeexec.security.rules import PATTERN_PERMISSIVE, STRICT, Rule, RuleSet, scan
from safeexec.security.sensitive import is_sensitive_path

__all__ = [
    "DEFAULT_COMMAND_POLICIES",
    "PATTERN_PERMISSIVE",
    "STRICT",
    "CommandPolicy",
    "PathSandbox",
    "Rule",
    "RuleSet",
    "SecurityPolicy",
    "SecurityViolation",
    "classify",
    "is_sensitive_path",
    "scan",
    "validate_execution_context",
    "validate_process_context",
]
