"""Process execution helpers."""

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional


logger = logging.getLogger(__name__)

SHELL_PROGRAM = "/bin/sh"


@dataclass
class CommandResult:
    """Result from running a command."""
    returncode: int
    stdout: str = ""
    stderr: str = ""


def run_command(
    cmd: List[str],
    check: bool = True,
    capture_output: bool = True,
    timeout: Optional[int] = None,
    **kwargs
) -> CommandResult:
    """Run a command and wait for it to finish."""
    logger.debug(f"Running command: {' '.join(cmd)}")

    completed = subprocess.run(
        cmd,
        stdout=subprocess.PIPE if capture_output else None,
        stderr=subprocess.PIPE if capture_output else None,
        timeout=timeout,
        **kwargs
    )

    result = CommandResult(
        returncode=completed.returncode,
        stdout=completed.stdout.decode() if completed.stdout else "",
        stderr=completed.stderr.decode() if completed.stderr else "",
    )

    if check and completed.returncode != 0:
        error = subprocess.CalledProcessError(
            completed.returncode, cmd
        )
        error.stdout = result.stdout
        error.stderr = result.stderr
        raise error

    return result


def execute_live(cmd: List[str], **kwargs) -> None:
    """Run a command, streaming its combined output to the log as it arrives.

    Raises subprocess.CalledProcessError on a non-zero exit status and
    OSError if the program cannot be launched.
    """
    logger.debug(f"Executing: {' '.join(cmd)}")

    process = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        **kwargs
    )
    with process:
        for line in process.stdout:
            logger.info(line.rstrip("\n"))
        returncode = process.wait()

    if returncode != 0:
        raise subprocess.CalledProcessError(returncode, cmd)


def execute_shell_live(command: str) -> None:
    """Run a shell command line with live output."""
    execute_live([SHELL_PROGRAM, "-c", command])
