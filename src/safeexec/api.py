"""
Main entry point: create_sandbox factory function.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

from safeexec._types import AllowedCommand, ExecutionLimits
from safeexec.config import SandboxConfig
from safeexec.sandbox.local import LocalSandbox
from safeexec.security.policy import SecurityPolicy


def create_sandbox(
    *,
    roots: Iterable[str | os.PathLike[str]] | None = None,
    security: SecurityPolicy | Iterable[AllowedCommand | str] | None = None,
    limits: ExecutionLimits | None = None,
    config: SandboxConfig | None = None,
) -> LocalSandbox:
    """
    Create a gated sandbox for running allowlisted commands.

    Args:
        roots: Sandbox roots. Defaults to the configured roots (workspace
            root plus ``SAFEEXEC_ALLOWED_PATHS``).
        security: A SecurityPolicy, or a collection of command names to
            build a restricted policy from. Defaults to the standard policy.
        limits: Default per-call limits. Defaults to the configured limits.
        config: Configuration to use instead of reading the environment.

    Returns:
        A LocalSandbox. Use it as an async context manager or call close().

    Raises:
        ConfigurationError: If environment configuration is malformed.

    Example:
        >>> sandbox = create_sandbox(roots=["./my_project"], security={"rg", "ls"})
        >>> result = await sandbox.execute("rg", ["-n", "TODO", "."])
    """
    if config is None:
        config = SandboxConfig.from_env()

    policy: SecurityPolicy
    if security is None:
        policy = SecurityPolicy.standard()
    elif isinstance(security, SecurityPolicy):
        policy = security
    else:
        policy = SecurityPolicy.restricted(security)

    return LocalSandbox(
        config.roots if roots is None else roots,
        security=policy,
        limits=limits or config.limits,
        block_sensitive_paths=config.block_sensitive_paths,
    )
