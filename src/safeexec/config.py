"""
Sandbox configuration.

Configuration is loaded from environment variables once, when a sandbox
is created. Everything derived from it afterwards is immutable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from safeexec._types import DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_TIMEOUT_MS, ExecutionLimits
from safeexec.errors import ConfigurationError

WORKSPACE_ROOT_VARS = ("SAFEEXEC_WORKSPACE_ROOT", "WORKSPACE_ROOT")

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def resolve_workspace_root(explicit: str | os.PathLike[str] | None = None) -> str:
    """
    Pick the workspace root.

    Priority: ``explicit`` > ``SAFEEXEC_WORKSPACE_ROOT`` > ``WORKSPACE_ROOT``
    > the current working directory. Blank values are skipped.
    """
    if explicit is not None and os.fspath(explicit).strip():
        return os.path.abspath(os.path.expanduser(os.fspath(explicit)))
    for name in WORKSPACE_ROOT_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return os.path.abspath(os.path.expanduser(value))
    return os.getcwd()


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class SandboxConfig:
    """
    Configuration for a gated sandbox.

    Attributes:
        roots: Sandbox roots; the first one is the workspace root.
        timeout_ms: Default wall-clock limit per command.
        max_output_bytes: Default combined stdout+stderr limit per command.
        block_sensitive_paths: Reject credential files inside the roots.
    """

    roots: tuple[str, ...]
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    block_sensitive_paths: bool = True

    def __post_init__(self) -> None:
        if not self.roots:
            raise ConfigurationError("At least one sandbox root is required")
        if self.timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.max_output_bytes <= 0:
            raise ConfigurationError(f"max_output_bytes must be positive, got {self.max_output_bytes}")

    @classmethod
    def from_env(cls, workspace_root: str | os.PathLike[str] | None = None) -> SandboxConfig:
        """Load configuration from environment variables."""
        roots = [resolve_workspace_root(workspace_root)]
        for entry in os.getenv("SAFEEXEC_ALLOWED_PATHS", "").split(os.pathsep):
            entry = entry.strip()
            if entry:
                roots.append(os.path.abspath(os.path.expanduser(entry)))
        block = os.getenv("SAFEEXEC_BLOCK_SENSITIVE_PATHS", "1").strip().lower()
        return cls(
            roots=tuple(roots),
            timeout_ms=_positive_int("SAFEEXEC_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            max_output_bytes=_positive_int("SAFEEXEC_MAX_OUTPUT_BYTES", DEFAULT_MAX_OUTPUT_BYTES),
            block_sensitive_paths=block not in _FALSE_VALUES,
        )

    @property
    def workspace_root(self) -> str:
        return self.roots[0]

    @property
    def limits(self) -> ExecutionLimits:
        """Default per-call limits."""
        return ExecutionLimits(timeout_ms=self.timeout_ms, max_output_bytes=self.max_output_bytes)
