"""
Local subprocess-based sandbox.

Runs allowlisted commands directly with asyncio.subprocess after the
command, its arguments and its working directory have all been validated.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable, Sequence

from safeexec._types import (
    AllowedCommand,
    ExecResult,
    ExecutionLimits,
    FailureKind,
    Valid,
)
from safeexec.environment import env_for_command
from safeexec.sandbox._base import Sandbox
from safeexec.sandbox.process import spawn_with_limits
from safeexec.security.context import validate_execution_context
from safeexec.security.paths import PathSandbox
from safeexec.security.policy import SecurityPolicy

logger = logging.getLogger(__name__)


class LocalSandbox(Sandbox):
    """
    Subprocess sandbox gated by a SecurityPolicy and a PathSandbox.

    Security features:
    - Closed command allowlist with per-command flag tables
    - Role-aware dangerous-content scanning of every argument
    - Working directory and every path operand confined to the sandbox
      roots, re-checked per call
    - Timeout and output-size enforcement with force-kill
    - Child environment built from an allowlist

    Example:
        >>> async with LocalSandbox(["./my_project"]) as sandbox:
        ...     result = await sandbox.execute("rg", ["-n", "TODO", "src"])
        ...     print(result.stdout_text)
    """

    def __init__(
        self,
        roots: Iterable[str | os.PathLike[str]],
        *,
        security: SecurityPolicy | None = None,
        limits: ExecutionLimits | None = None,
        block_sensitive_paths: bool = True,
    ) -> None:
        """
        Initialize a local sandbox.

        Args:
            roots: Sandbox roots; the first one is the workspace root and
                the default working directory.
            security: Command policy to enforce. Defaults to the standard policy.
            limits: Default per-call limits.
            block_sensitive_paths: Reject credential files inside the roots.
        """
        self._paths = PathSandbox(roots, block_sensitive=block_sensitive_paths)
        self._security = security or SecurityPolicy.standard()
        self._limits = limits or ExecutionLimits()
        self._closed = False
        self._running: set[asyncio.Task[ExecResult]] = set()

    @property
    def paths(self) -> PathSandbox:
        return self._paths

    @property
    def security(self) -> SecurityPolicy:
        return self._security

    @property
    def limits(self) -> ExecutionLimits:
        return self._limits

    @property
    def workspace_root(self) -> str:
        return self._paths.workspace_root

    async def execute(
        self,
        command: AllowedCommand | str,
        args: Sequence[str] = (),
        *,
        limits: ExecutionLimits | None = None,
        cwd: str | None = None,
    ) -> ExecResult:
        """
        Validate and run an allowlisted command.

        Args:
            command: Allowlisted binary name.
            args: Argument vector, excluding the binary.
            limits: Per-call limits; the sandbox default when omitted.
            cwd: Working directory; the workspace root when omitted.

        Returns:
            ExecResult. Policy and path rejections are reported through
            ``failure``/``error`` without spawning anything.

        Raises:
            RuntimeError: If the sandbox has been closed.
        """
        if self._closed:
            raise RuntimeError("Sandbox has been closed")

        outcome = self._security.validate(command, args)
        if not outcome.is_valid:
            return ExecResult.failed(outcome.kind, outcome.reason)

        # Checked immediately before spawn; never cached.
        context = validate_execution_context(cwd, self._paths)
        if not context.is_valid or context.sanitized_path is None:
            return ExecResult.failed(FailureKind.PATH_REJECTED, context.error or "Working directory rejected")

        confined = self._confine_paths(outcome, context.sanitized_path)
        if isinstance(confined, ExecResult):
            return confined

        logger.debug("Executing %s in %s", outcome.command.value, context.sanitized_path)
        task = asyncio.ensure_future(
            spawn_with_limits(
                outcome.command.binary,
                confined,
                limits=limits or self._limits,
                cwd=context.sanitized_path,
                env=env_for_command(outcome.command, roots=self._paths.allowed_roots),
            )
        )
        self._running.add(task)
        try:
            return await task
        finally:
            self._running.discard(task)

    def _confine_paths(self, outcome: Valid, cwd: str) -> list[str] | ExecResult:
        """
        Run every filesystem path argument through the path sandbox.

        Path arguments are replaced by their sanitized form. Relative paths
        resolve against ``cwd``, or against the last ``git -C`` directory
        once one has been seen.
        """
        args = list(outcome.args)
        directory_flags = self._security.commands[outcome.command].directory_flags
        base = cwd
        for index in self._security.path_operands(outcome.command, args):
            candidate = args[index]
            if not os.path.isabs(candidate) and not candidate.startswith("~"):
                candidate = os.path.join(base, candidate)
            result = self._paths.validate(candidate)
            if not result.is_valid or result.sanitized_path is None:
                return ExecResult.failed(
                    FailureKind.PATH_REJECTED,
                    f"Path argument at position {index} rejected: {result.error}",
                )
            args[index] = result.sanitized_path
            if index > 0 and args[index - 1] in directory_flags:
                base = result.sanitized_path
        return args

    async def close(self) -> None:
        """
        Close the sandbox, cancelling any command still running.

        Cancelled commands have their processes killed. Safe to call
        multiple times.
        """
        if self._closed:
            return

        self._closed = True
        running = list(self._running)
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
