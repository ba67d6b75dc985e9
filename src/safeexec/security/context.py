"""
Working-directory checks for spawned processes.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

from safeexec._types import PathRejection, PathValidationResult
from safeexec.config import resolve_workspace_root
from safeexec.security.paths import PathSandbox, is_within, resolve_real_path


def _as_sandbox(roots: PathSandbox | Iterable[str | os.PathLike[str]] | None) -> PathSandbox:
    if isinstance(roots, PathSandbox):
        return roots
    if roots is None:
        roots = (resolve_workspace_root(),)
    return PathSandbox(roots, block_sensitive=False)


def validate_execution_context(
    cwd: object = None,
    roots: PathSandbox | Iterable[str | os.PathLike[str]] | None = None,
) -> PathValidationResult:
    """
    Validate a requested working directory.

    ``None`` means the workspace root. A directory that does not exist yet
    is accepted as long as it would resolve inside a root.

    Args:
        cwd: Requested working directory, absolute or relative to the
            workspace root.
        roots: A PathSandbox or its roots. Defaults to the resolved
            workspace root.

    Returns:
        PathValidationResult with the resolved directory when valid.
    """
    sandbox = _as_sandbox(roots)
    if cwd is None:
        return PathValidationResult.accept(sandbox.workspace_root)
    if isinstance(cwd, str) and not cwd.strip():
        return PathValidationResult.reject("Working directory cannot be empty", PathRejection.EMPTY)

    result = sandbox.validate(cwd)
    if result.rejection is PathRejection.OUTSIDE_ROOTS:
        return PathValidationResult.reject(
            f"Can only execute commands within workspace directory: {', '.join(sandbox.allowed_roots)}",
            PathRejection.OUTSIDE_ROOTS,
        )
    if not result.is_valid:
        return result

    directory = result.sanitized_path or ""
    if os.path.exists(directory) and not os.path.isdir(directory):
        return PathValidationResult.reject(
            "Working directory is not a directory", PathRejection.NOT_A_DIRECTORY
        )
    return result


def validate_process_context(
    roots: PathSandbox | Iterable[str | os.PathLike[str]] | None = None,
) -> PathValidationResult:
    """Check that this process is itself running inside the sandbox."""
    sandbox = _as_sandbox(roots)
    try:
        current = resolve_real_path(os.getcwd())
    except OSError:
        return PathValidationResult.reject(
            "Process working directory could not be resolved", PathRejection.UNRESOLVABLE
        )
    if any(is_within(current, root) for root in sandbox.allowed_roots):
        return PathValidationResult.accept(current)
    return PathValidationResult.reject(
        f"Process is running outside workspace directory. Workspace: {sandbox.workspace_root}",
        PathRejection.OUTSIDE_ROOTS,
    )
