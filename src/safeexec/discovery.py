"""
Availability probing for allowlisted commands.

Checks which allowlisted binaries are installed so callers can decide up
front which actions to expose.
"""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

from safeexec._types import AllowedCommand, ExecutionLimits
from safeexec.environment import build_child_env

if TYPE_CHECKING:
    from safeexec.sandbox._base import Sandbox

# Short descriptions of what each command is used for
COMMAND_DESCRIPTIONS: dict[AllowedCommand, str] = {
    AllowedCommand.FIND: "Locate files by name, path, type, size or age",
    AllowedCommand.RIPGREP: "ripgrep - fast recursive regex search",
    AllowedCommand.GREP: "Pattern matching and searching (regex support)",
    AllowedCommand.LS: "List directory contents",
    AllowedCommand.GIT: "Read-only repository inspection and shallow clones",
    AllowedCommand.NPM: "Package metadata lookup",
}

PROBE_LIMITS = ExecutionLimits(timeout_ms=5_000, max_output_bytes=64 * 1024)


def discover_commands(path: str | None = None) -> set[AllowedCommand]:
    """
    Report which allowlisted binaries are on PATH.

    Args:
        path: Search path to use instead of the allowlisted PATH value.

    Returns:
        Set of commands whose binary was found.
    """
    search_path = path if path is not None else build_child_env().get("PATH")
    return {command for command in AllowedCommand if shutil.which(command.binary, path=search_path)}


async def check_command_available(sandbox: Sandbox, command: AllowedCommand | str) -> bool:
    """
    Run ``<command> --version`` through ``sandbox``.

    The probe goes through the same validation as any other call, so a
    command the sandbox's policy does not allow is reported unavailable.
    """
    result = await sandbox.execute(command, ["--version"], limits=PROBE_LIMITS)
    return result.success


def describe_commands(available: set[AllowedCommand]) -> str:
    """One line per available command, in allowlist order."""
    return "\n".join(
        f"{command.binary}: {COMMAND_DESCRIPTIONS[command]}"
        for command in AllowedCommand
        if command in available
    )
