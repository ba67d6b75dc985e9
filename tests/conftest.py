"""Pytest configuration and fixtures for safeexec tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from safeexec import LocalSandbox, PathSandbox, SecurityPolicy


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests, with symlinks resolved."""
    with tempfile.TemporaryDirectory(prefix="safeexec_test_") as tmp:
        yield Path(os.path.realpath(tmp))


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """A sandbox root with a few files in it."""
    root = temp_dir / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text("def main():\n    return 'hello world'\n")
    (root / "src" / "util.py").write_text("# helper\nVALUE = 42\n")
    (root / "README.md").write_text("hello world\n")
    return root


@pytest.fixture
def outside(temp_dir: Path) -> Path:
    """A directory next to the workspace, outside every root."""
    path = temp_dir / "outside"
    path.mkdir()
    (path / "secret.txt").write_text("top secret\n")
    return path


@pytest.fixture
def path_sandbox(workspace: Path) -> PathSandbox:
    """PathSandbox rooted at the workspace."""
    return PathSandbox([workspace])


@pytest_asyncio.fixture
async def sandbox(workspace: Path) -> AsyncGenerator[LocalSandbox, None]:
    """Create a LocalSandbox for testing."""
    sandbox = LocalSandbox([workspace])
    try:
        yield sandbox
    finally:
        await sandbox.close()


@pytest.fixture
def standard_policy() -> SecurityPolicy:
    """Create a standard security policy."""
    return SecurityPolicy.standard()


@pytest.fixture
def restricted_policy() -> SecurityPolicy:
    """Create a policy exposing only the search commands."""
    return SecurityPolicy.restricted({"rg", "grep"})
