"""Local command execution.

Commands run synchronously with fixed, non-interactive arguments. Failure
modes are classified so callers can tell them apart:
- the executable is missing          -> ToolUnavailableError
- the executable could not be started -> CommandFailedError (launch_error)
- the command outlived the timeout    -> CommandTimeoutError
A non-zero exit is not raised here; check CommandResult.success and
CommandResult.command_not_found.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from diag_bundle.models.tasks import COMMAND_NOT_FOUND_EXIT
from diag_bundle.utils.errors import (
    CommandFailedError,
    CommandTimeoutError,
    ToolUnavailableError,
)

logger = logging.getLogger(__name__)

# Keep audit details readable when a tool dumps a lot on stderr
MAX_STDERR_CHARS = 500


@dataclass
class CommandResult:
    """Result of local command execution."""

    argv: Sequence[str]
    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def command_not_found(self) -> bool:
        return self.exit_code == COMMAND_NOT_FOUND_EXIT

    def stderr_tail(self, limit: int = MAX_STDERR_CHARS) -> str:
        text = self.stderr.strip()
        if len(text) > limit:
            return "..." + text[-limit:]
        return text


def run_command(
    argv: Sequence[str],
    stdout_path: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run a command and wait for it to finish.

    Args:
        argv: Command and arguments (never passed through a shell)
        stdout_path: If set, stdout is streamed to this file instead of captured
        timeout: Seconds to wait (None waits indefinitely)

    Returns:
        CommandResult

    Raises:
        ToolUnavailableError: Executable not found on this host
        CommandFailedError: Executable found but could not be launched
        CommandTimeoutError: Timeout expired
    """
    argv = list(argv)
    logger.debug(f"Running: {' '.join(argv)}")

    # Opened outside the try so an unwritable destination surfaces as OSError
    out = open(stdout_path, "wb") if stdout_path is not None else None
    try:
        proc = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=out if out is not None else subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
        )
        stdout = "" if out is not None else _decode(proc.stdout)
    except FileNotFoundError as e:
        raise ToolUnavailableError(
            f"{argv[0]} is not installed or not on PATH", tool=argv[0]
        ) from e
    except subprocess.TimeoutExpired as e:
        raise CommandTimeoutError(
            f"{argv[0]} did not finish within {timeout}s", timeout=timeout
        ) from e
    except OSError as e:
        raise CommandFailedError(f"Failed to launch {argv[0]}: {e}") from e
    finally:
        if out is not None:
            out.close()

    return CommandResult(
        argv=argv,
        stdout=stdout,
        stderr=_decode(proc.stderr),
        exit_code=proc.returncode,
    )


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
