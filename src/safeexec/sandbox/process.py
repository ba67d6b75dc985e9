"""
Spawning a single process under a timeout and an output budget.

Arguments are passed to the OS as a vector; no shell is ever involved.
The process is force-killed when it runs past its deadline or when its
combined stdout+stderr would exceed the byte limit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from safeexec._types import ExecResult, ExecutionLimits, FailureKind, TerminationReason
from safeexec.environment import build_child_env

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass
class _OutputBudget:
    """Collected output shared by the stdout and stderr readers."""

    limit: int
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)
    total: int = 0
    exceeded: asyncio.Event = field(default_factory=asyncio.Event)


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray, budget: _OutputBudget) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return
        # The chunk that crosses the limit is dropped, not truncated.
        if budget.total + len(chunk) > budget.limit:
            budget.exceeded.set()
            return
        budget.total += len(chunk)
        sink.extend(chunk)


async def _cancel(*tasks: asyncio.Future[object]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


async def spawn_with_limits(
    command: str,
    args: Sequence[str],
    *,
    limits: ExecutionLimits | None = None,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> ExecResult:
    """
    Run ``command`` with ``args`` and collect its output.

    stdin is closed; stdout and stderr are captured separately. Never
    raises for process-level failures: a missing binary, a bad working
    directory, a timeout or an oversized output all come back as an
    ExecResult.

    Args:
        command: Executable name or path.
        args: Arguments, passed verbatim.
        limits: Timeout and output budget. Defaults to ExecutionLimits().
        cwd: Working directory for the child.
        env: Complete child environment. Defaults to the core allowlist
            of the host environment; the host environment is never
            inherited as a whole.

    Returns:
        ExecResult. ``success`` is True only for a normal exit with code 0.
    """
    limits = limits or ExecutionLimits()
    child_env = build_child_env() if env is None else dict(env)

    logger.debug("Spawning %s with %d arguments", command, len(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=cwd,
            env=child_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("Failed to spawn %s: %s", command, exc.__class__.__name__)
        return ExecResult.failed(
            FailureKind.SPAWN_FAILURE,
            f"Failed to start {command}: {exc.strerror or exc.__class__.__name__}",
        )
    except ValueError as exc:
        logger.error("Failed to spawn %s: %s", command, exc)
        return ExecResult.failed(FailureKind.SPAWN_FAILURE, f"Failed to start {command}: {exc}")

    budget = _OutputBudget(limit=limits.max_output_bytes)

    async def _complete() -> int:
        await asyncio.gather(
            _drain(proc.stdout, budget.stdout, budget),
            _drain(proc.stderr, budget.stderr, budget),
        )
        return await proc.wait()

    completion = asyncio.ensure_future(_complete())
    overflow = asyncio.ensure_future(budget.exceeded.wait())
    try:
        done, _ = await asyncio.wait(
            {completion, overflow},
            timeout=limits.timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        _kill(proc)
        await _cancel(completion, overflow)
        raise

    if budget.exceeded.is_set():
        reason = TerminationReason.OUTPUT_LIMIT
    elif completion in done:
        reason = None
    else:
        reason = TerminationReason.TIMEOUT

    if reason is None:
        await _cancel(overflow)
        exit_code = completion.result()
        return ExecResult(
            exit_code=exit_code,
            stdout=bytes(budget.stdout),
            stderr=bytes(budget.stderr),
            success=exit_code == 0,
        )

    _kill(proc)
    await _cancel(completion, overflow)
    await proc.wait()

    if reason is TerminationReason.TIMEOUT:
        logger.warning("Killed %s after %d ms timeout", command, limits.timeout_ms)
        failure = FailureKind.TIMEOUT
        error = f"Command timed out after {limits.timeout_ms}ms"
    else:
        logger.warning("Killed %s after exceeding %d bytes of output", command, limits.max_output_bytes)
        failure = FailureKind.OUTPUT_LIMIT
        error = (
            f"Output size limit exceeded ({limits.max_output_bytes} bytes). "
            "Narrow the search with more specific patterns or paths."
        )

    return ExecResult(
        exit_code=None,
        stdout=bytes(budget.stdout),
        stderr=bytes(budget.stderr),
        success=False,
        termination_reason=reason,
        failure=failure,
        error=error,
    )
