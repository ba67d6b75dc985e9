"""
Sandbox backends.
"""

from safeexec.sandbox._base import Sandbox
from safeexec.sandbox.local import LocalSandbox
from safeexec.sandbox.process import spawn_with_limits

__all__ = ["LocalSandbox", "Sandbox", "spawn_with_limits"]
