"""
Environment construction for child processes.

Children never inherit the host environment wholesale. Only variables on
an allowlist are copied, so tokens such as GITHUB_TOKEN cannot leak into
a spawned command.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping

from safeexec._types import AllowedCommand, CommandKind

# Never passed to a child. Kept for audits; the allowlists below already exclude them.
SENSITIVE_ENV_VARS: tuple[str, ...] = (
    "NODE_OPTIONS",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITLAB_TOKEN",
    "GL_TOKEN",
    "GITHUB_PERSONAL_ACCESS_TOKEN",
    "NPM_TOKEN",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
)

CORE_ALLOWED_ENV_VARS: tuple[str, ...] = (
    "PATH",
    "TMPDIR",
    "TMP",
    "TEMP",
    # Windows runtime
    "SYSTEMROOT",
    "WINDIR",
    "COMSPEC",
    "PATHEXT",
)

TOOLING_ALLOWED_ENV_VARS: tuple[str, ...] = CORE_ALLOWED_ENV_VARS + (
    "HOME",
    "USERPROFILE",
    "APPDATA",
    "LOCALAPPDATA",
)

GIT_ALLOWED_ENV_VARS: tuple[str, ...] = TOOLING_ALLOWED_ENV_VARS + (
    "GIT_TERMINAL_PROMPT",
    "GIT_ALLOW_PROTOCOL",
    "GIT_CEILING_DIRECTORIES",
)

# Opt-in only.
PROXY_ENV_VARS: tuple[str, ...] = (
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "NO_PROXY",
    "http_proxy",
    "https_proxy",
    "no_proxy",
)

GIT_ENV_OVERRIDES: Mapping[str, str] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ALLOW_PROTOCOL": "https:http:ssh",
}


def build_child_env(
    overrides: Mapping[str, str | None] | None = None,
    allow: Iterable[str] = CORE_ALLOWED_ENV_VARS,
    *,
    source: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Build a child environment from an allowlist.

    Args:
        overrides: Values to set on top of the copied variables. Keys not
            in ``allow`` are ignored; a value of None removes the key.
        allow: Names that may be copied from ``source``.
        source: Environment to copy from. Defaults to ``os.environ``.

    Returns:
        A fresh dict; ``source`` is never modified.
    """
    allowlist = tuple(allow)
    allowed = frozenset(allowlist)
    env_source = os.environ if source is None else source

    env: dict[str, str] = {}
    for name in allowlist:
        value = env_source.get(name)
        if value is not None:
            env[name] = value

    for name, value in (overrides or {}).items():
        if name not in allowed:
            continue
        if value is None:
            env.pop(name, None)
        else:
            env[name] = value
    return env


def env_for_command(
    command: AllowedCommand,
    *,
    roots: Iterable[str] = (),
    source: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Child environment profile for an allowlisted command.

    For git, the parent of every sandbox root becomes a ceiling directory,
    so repository discovery stops at the roots instead of climbing into a
    repository that contains them.
    """
    if command.kind is CommandKind.VCS:
        overrides = dict(GIT_ENV_OVERRIDES)
        ceilings = [os.path.dirname(root) for root in roots]
        if ceilings:
            overrides["GIT_CEILING_DIRECTORIES"] = os.pathsep.join(ceilings)
        return build_child_env(overrides, GIT_ALLOWED_ENV_VARS, source=source)
    if command.kind is CommandKind.PACKAGE:
        return build_child_env(None, TOOLING_ALLOWED_ENV_VARS, source=source)
    return build_child_env(None, CORE_ALLOWED_ENV_VARS, source=source)
