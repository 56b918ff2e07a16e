"""Control submodule: command execution and credential comparison."""

from __future__ import annotations

import asyncio
import hmac
from typing import List

from loguru import logger

from svcpanel.exceptions import CommandError, CommandTimeoutError

from .models import CommandResult


def truncate(value: str, limit: int) -> tuple[str, bool]:
    if len(value) <= limit:
        return value, False
    return value[:limit], True


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without leaking where they differ."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


async def _terminate(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


async def run_command(command: List[str], timeout: float, limit: int) -> CommandResult:
    """Run a command and return its output.

    The child is killed and reaped if the deadline passes or the awaiting
    task is cancelled (for example when the HTTP client disconnects).
    Raises CommandTimeoutError on timeout and CommandError if the binary
    cannot be started.
    """
    logger.debug("Executing command: {}", command)
    command_name = command[0]

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        logger.error("Binary not found for {}", command)
        raise CommandError(f"binary not found: {command_name}", command=command_name) from exc
    except OSError as exc:
        logger.error("Failed to start {}: {}", command, exc)
        raise CommandError(f"failed to start {command_name}", command=command_name) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Command timeout after {}s for {}", timeout, command)
        await _terminate(process)
        raise CommandTimeoutError(
            f"{command_name} timed out after {timeout}s", command=command_name
        ) from exc
    except asyncio.CancelledError:
        logger.warning("Command cancelled, killing {}", command)
        await asyncio.shield(_terminate(process))
        raise

    stdout, stdout_truncated = truncate(stdout_bytes.decode("utf-8", errors="replace"), limit)
    stderr, stderr_truncated = truncate(stderr_bytes.decode("utf-8", errors="replace"), limit)

    result = CommandResult(
        exit_code=process.returncode,
        stdout=stdout,
        stderr=stderr,
        stdout_truncated=stdout_truncated,
        stderr_truncated=stderr_truncated,
    )

    if result.exit_code != 0:
        logger.debug("Command {} returned exit code {}", command_name, result.exit_code)

    return result
