"""Blocking execution of node CLI commands."""

import logging
import subprocess
from typing import Optional

from errors import ExternalToolError

logger = logging.getLogger(__name__)


def run_command(command: list[str], stdin_text: Optional[str] = None,
                combine_output: bool = True) -> str:
    """
    Run a command to completion and return its output.

    There is no timeout: a stuck command blocks the caller until it ends.

    Args:
        command: Executable and arguments
        stdin_text: Text written to the command's stdin
        combine_output: Merge stderr into the returned output

    Raises:
        ExternalToolError: the command could not be launched or exited non-zero;
            the captured output is attached
    """
    logger.debug(f"Running {' '.join(command)}")
    try:
        result = subprocess.run(
            command,
            input=stdin_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combine_output else subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise ExternalToolError(f"Failed to run {command[0]}: {e}", command=command) from e

    output = result.stdout or ""
    if result.returncode != 0:
        if not combine_output and result.stderr:
            output = f"{output}{result.stderr}"
        raise ExternalToolError(
            f"{command[0]} exited with code {result.returncode}: {output.strip()}",
            command=command,
            returncode=result.returncode,
            output=output,
        )
    return output
