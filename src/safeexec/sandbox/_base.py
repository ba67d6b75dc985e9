"""
Abstract base class for sandbox implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from safeexec._types import AllowedCommand, ExecResult, ExecutionLimits


class Sandbox(ABC):
    """
    Abstract base for sandboxes that run allowlisted commands.

    A sandbox accepts a command name and an argument vector, never a
    shell string.
    """

    @abstractmethod
    async def execute(
        self,
        command: AllowedCommand | str,
        args: Sequence[str] = (),
        *,
        limits: ExecutionLimits | None = None,
        cwd: str | None = None,
    ) -> ExecResult:
        """
        Validate and run a command.

        Args:
            command: Allowlisted binary name.
            args: Argument vector, excluding the binary.
            limits: Per-call limits; the sandbox default when omitted.
            cwd: Working directory; the workspace root when omitted.

        Returns:
            ExecResult. Rejected invocations come back with ``failure``
            set and no process spawned.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Release sandbox resources.

        Idempotent - safe to call multiple times.
        """
        ...

    async def __aenter__(self) -> Sandbox:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, cleaning up resources."""
        await self.close()
