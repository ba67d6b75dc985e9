"""
Credential and secret locations that stay hidden even inside a sandbox root.

A path is sensitive if any of its directory segments names a credential
store, or if its final component matches a known secret-file pattern.
"""

from __future__ import annotations

import re
from pathlib import PurePath

# Directory segments (or segment pairs) that hold credentials.
SENSITIVE_DIRECTORIES: tuple[tuple[str, ...], ...] = (
    (".ssh",),
    (".aws",),
    (".gnupg",),
    (".kube",),
    (".docker",),
    (".azure",),
    (".password-store",),
    (".config", "gcloud"),
)

SENSITIVE_FILE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"\.env",
        r"\.env\..+",
        r"id_(?:rsa|dsa|ecdsa|ed25519)(?:\.pub)?",
        r".+_(?:rsa|dsa|ecdsa|ed25519)",
        r".+\.(?:pem|key|p12|pfx|kdbx|keystore|jks|ppk)",
        r"\.netrc",
        r"\.npmrc",
        r"\.pypirc",
        r"\.pgpass",
        r"\.git-credentials",
        r"credentials",
        r"\.(?:bash|zsh|sh|python|node_repl|psql|mysql)_history",
        r"\.histfile",
        r"terraform\.tfstate(?:\.backup)?",
    )
)


def _has_directory(parts: tuple[str, ...], segment: tuple[str, ...]) -> bool:
    width = len(segment)
    return any(parts[i : i + width] == segment for i in range(len(parts) - width + 1))


def is_sensitive_path(path: str | PurePath) -> bool:
    """
    True if ``path`` points at or into a credential location.

    Only the path's own components are inspected; nothing is read from disk.

    Example:
        >>> is_sensitive_path("/home/dev/project/.env.local")
        True
        >>> is_sensitive_path("/home/dev/project/src/env.py")
        False
    """
    pure = PurePath(path)
    parts = pure.parts
    if any(_has_directory(parts, segment) for segment in SENSITIVE_DIRECTORIES):
        return True
    name = pure.name
    return any(pattern.fullmatch(name) for pattern in SENSITIVE_FILE_PATTERNS)
