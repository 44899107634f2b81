"""
Command Runner
==============

Runs external tools (xcrun, idb, open) without a shell and returns their
trimmed output. Blocking ``subprocess.run`` calls are pushed to a worker
thread so a long boot only suspends the calling request.
"""

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Union

from simsessions.core.errors import CommandError
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Trimmed output of a finished command."""

    stdout: str
    stderr: str
    returncode: int


def format_arg(value: Union[int, float, str]) -> str:
    """Render a numeric argument without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


async def run_command(
    *cmd: str,
    timeout: float = 120.0,
    check: bool = True,
) -> CommandResult:
    """
    Run a command asynchronously.

    Args:
        *cmd: Executable followed by its arguments.
        timeout: Command timeout in seconds.
        check: Raise on a non-zero exit status.

    Returns:
        CommandResult with trimmed stdout/stderr.

    Raises:
        CommandError: If the executable is missing, times out, or (with
            ``check``) exits non-zero. The raw tool output is kept verbatim.
    """
    argv = list(cmd)
    logger.debug("Running command", cmd=" ".join(argv))

    try:
        completed = await asyncio.to_thread(
            subprocess.run,
            argv,
            capture_output=True,
            timeout=timeout,
            text=True,
        )
    except FileNotFoundError as e:
        raise CommandError(argv, f"Executable not found: {argv[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(argv, f"{argv[0]} timed out after {timeout}s") from e

    result = CommandResult(
        stdout=(completed.stdout or "").strip(),
        stderr=(completed.stderr or "").strip(),
        returncode=completed.returncode,
    )

    if check and result.returncode != 0:
        logger.debug(
            "Command failed",
            cmd=argv[0],
            returncode=result.returncode,
            stderr=result.stderr,
        )
        raise CommandError(argv, result.stderr or result.stdout, result.returncode)

    return result
