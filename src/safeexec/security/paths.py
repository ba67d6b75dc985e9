"""
Symlink-safe path containment.

Every candidate path is resolved to its real location (all symlinks
followed, ``.`` and ``..`` collapsed) before it is compared against the
sandbox roots. A symlink inside a root that points outside it is therefore
rejected, and the sanitized path handed back is the resolved one.
"""

from __future__ import annotations

import errno
import logging
import os
import stat
from collections.abc import Iterable
from typing import Literal

from safeexec._types import PathRejection, PathValidationResult
from safeexec.security.sensitive import is_sensitive_path

logger = logging.getLogger(__name__)

PathType = Literal["file", "directory", "symlink"]

_ERRNO_REJECTIONS: dict[int, tuple[PathRejection, str]] = {
    errno.EACCES: (PathRejection.PERMISSION_DENIED, "Permission denied while resolving path"),
    errno.EPERM: (PathRejection.PERMISSION_DENIED, "Permission denied while resolving path"),
    errno.ELOOP: (PathRejection.SYMLINK_LOOP, "Symlink loop detected while resolving path"),
    errno.ENAMETOOLONG: (PathRejection.NAME_TOO_LONG, "Path name too long"),
    errno.ENOTDIR: (PathRejection.NOT_A_DIRECTORY, "A parent component of the path is not a directory"),
}


def resolve_real_path(path: str) -> str:
    """
    Resolve ``path`` to an absolute path with every symlink followed.

    Paths that do not exist yet resolve through their deepest existing
    ancestor, so a dangling symlink is still followed to its target.

    Raises:
        OSError: For permission errors, symlink loops, over-long names and
            non-directory parents.
    """
    try:
        return os.path.realpath(path, strict=True)
    except FileNotFoundError:
        return os.path.realpath(path)


def is_within(path: str, root: str) -> bool:
    """True if ``path`` is ``root`` or lies beneath it (segment-wise)."""
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


class PathSandbox:
    """
    Validates paths against a fixed set of sandbox roots.

    Roots are resolved once at construction and never change. Relative
    candidates are resolved against the first root, the workspace root.

    Example:
        >>> sandbox = PathSandbox(["/srv/workspace"])
        >>> sandbox.validate("src/main.py").is_valid
        True
        >>> sandbox.validate("../../etc/passwd").is_valid
        False
    """

    def __init__(self, roots: Iterable[str | os.PathLike[str]], *, block_sensitive: bool = True) -> None:
        """
        Initialize the path sandbox.

        Args:
            roots: Directories paths must stay within. The first one is the
                workspace root.
            block_sensitive: Also reject credential files and directories
                that sit inside a root.

        Raises:
            ValueError: If no roots are given.
        """
        resolved: list[str] = []
        for root in roots:
            real = os.path.realpath(os.path.expanduser(os.fspath(root)))
            if not os.path.isdir(real):
                logger.warning("Sandbox root does not exist or is not a directory: %s", real)
            if real not in resolved:
                resolved.append(real)
        if not resolved:
            raise ValueError("At least one sandbox root is required")
        self._roots = tuple(resolved)
        self._block_sensitive = block_sensitive

    @property
    def allowed_roots(self) -> tuple[str, ...]:
        return self._roots

    @property
    def workspace_root(self) -> str:
        return self._roots[0]

    def _reject(self, error: str, rejection: PathRejection) -> PathValidationResult:
        logger.warning("Path rejected (%s)", rejection.value)
        return PathValidationResult.reject(error, rejection)

    def _containing_root(self, path: str) -> str | None:
        for root in self._roots:
            if is_within(path, root):
                return root
        return None

    def _is_sensitive(self, path: str) -> bool:
        root = self._containing_root(path)
        if root is None:
            return False
        return is_sensitive_path(os.path.relpath(path, root))

    def absolute(self, candidate: str) -> str:
        """Absolute, un-resolved form of ``candidate``."""
        if candidate.startswith("~"):
            candidate = os.path.expanduser(candidate)
        if os.path.isabs(candidate):
            return candidate
        return os.path.join(self.workspace_root, candidate)

    def validate(self, path: object) -> PathValidationResult:
        """
        Check that ``path`` resolves to a location inside a sandbox root.

        Never raises. The error text never repeats the candidate path.

        Args:
            path: Absolute path, path relative to the workspace root, or a
                path starting with ``~``.

        Returns:
            PathValidationResult whose ``sanitized_path`` is the resolved
            real path when valid.
        """
        if isinstance(path, os.PathLike):
            path = os.fspath(path)
        if not isinstance(path, str):
            return self._reject("Path must be a string", PathRejection.MALFORMED)
        if not path.strip():
            return self._reject("Path cannot be empty", PathRejection.EMPTY)
        if "\x00" in path:
            return self._reject("Path contains a null byte", PathRejection.NULL_BYTE)

        absolute = self.absolute(path)
        try:
            real = resolve_real_path(absolute)
        except OSError as exc:
            rejection, message = _ERRNO_REJECTIONS.get(
                exc.errno, (PathRejection.UNRESOLVABLE, "Path could not be resolved")
            )
            return self._reject(message, rejection)
        except ValueError:
            return self._reject("Path could not be resolved", PathRejection.UNRESOLVABLE)

        if self._containing_root(real) is None:
            roots = ", ".join(self._roots)
            return self._reject(
                f"Path is outside allowed directories. Allowed roots: {roots}",
                PathRejection.OUTSIDE_ROOTS,
            )

        if self._block_sensitive:
            if self._is_sensitive(real) or self._is_sensitive(os.path.normpath(absolute)):
                return self._reject(
                    "Path points to a credential or secret file",
                    PathRejection.SENSITIVE,
                )

        return PathValidationResult.accept(real)

    def exists(self, path: object) -> bool:
        """True if ``path`` validates and the resolved location is readable."""
        result = self.validate(path)
        if not result.is_valid or result.sanitized_path is None:
            return False
        return os.access(result.sanitized_path, os.R_OK)

    def get_type(self, path: object) -> PathType | None:
        """Type of the resolved location, or None if invalid or missing."""
        result = self.validate(path)
        if not result.is_valid or result.sanitized_path is None:
            return None
        try:
            mode = os.lstat(result.sanitized_path).st_mode
        except OSError:
            return None
        if stat.S_ISREG(mode):
            return "file"
        if stat.S_ISDIR(mode):
            return "directory"
        if stat.S_ISLNK(mode):
            return "symlink"
        return None
