"""
Child process execution for the grading pipeline.

Every command runs in its own session so that a timeout or a
cancellation can kill the whole process group (npm spawns children).
"""

import asyncio
import logging
import os
import shlex
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

TIMEOUT_RETURNCODE = 124
KILL_GRACE_SECONDS = 5.0


@dataclass
class CommandResult:
    """Captured outcome of a finished (or killed) command."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for diagnostics."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def split_command(command: Union[str, Sequence[str]]) -> list[str]:
    """Turn a configured command string into an argv list."""
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


def _kill_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


async def _terminate(proc: asyncio.subprocess.Process) -> tuple[bytes, bytes]:
    _kill_group(proc, signal.SIGTERM)
    try:
        return await asyncio.wait_for(
            proc.communicate(), timeout=KILL_GRACE_SECONDS
        )
    except asyncio.TimeoutError:
        _kill_group(proc, signal.SIGKILL)
        return await proc.communicate()


async def run_command(
    command: Union[str, Sequence[str]],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    env: Optional[dict[str, str]] = None,
) -> CommandResult:
    """
    Run a command and capture its output.

    Args:
        command: argv list or a shell-style string (split, never
            passed to a shell)
        cwd: Working directory
        timeout: Wall-clock limit in seconds; None means unbounded
        env: Extra environment variables

    Returns:
        CommandResult: Exit code and decoded output. A timed out
        command reports returncode 124 and timed_out=True.

    Raises:
        OSError: If the executable cannot be started
        asyncio.CancelledError: Propagated after the process group
            has been killed
    """
    args = split_command(command)
    logger.info(f"Executing: {shlex.join(args)} (cwd={cwd})")

    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env={**os.environ, **env} if env else None,
        start_new_session=True,
    )

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"Command timed out after {timeout}s: {shlex.join(args)}"
        )
        stdout, stderr = await _terminate(proc)
        return CommandResult(
            args=args,
            returncode=TIMEOUT_RETURNCODE,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace") + "\nTIMEOUT",
            timed_out=True,
        )
    except asyncio.CancelledError:
        logger.warning(f"Command cancelled: {shlex.join(args)}")
        await asyncio.shield(_terminate(proc))
        raise

    return CommandResult(
        args=args,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
