"""
Process invocation helpers for multipath tooling.

Every external tool (mount, umount, fuser, multipath, multipathd, dmsetup,
systemctl) is run through run_command so that callers can inject a fake runner
in tests instead of executing real commands.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Sequence

from .exceptions import MultipathCommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of running a command."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def output(self) -> str:
        """stdout followed by stderr (some tools, like fuser -v, report on stderr)."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


CommandRunner = Callable[..., CommandResult]


def run_command(cmd: Sequence[str], check: bool = True) -> CommandResult:
    """Run a command to completion and capture its output.

    No timeout is applied; a caller wanting one must wrap the whole call.

    Args:
        cmd: Command and arguments
        check: Raise MultipathCommandError on a non-zero exit code

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        MultipathCommandError: If the command cannot be started, or exits
                               non-zero while ``check`` is set
    """
    args: List[str] = list(cmd)
    logger.debug("Running command: %s", " ".join(args))
    try:
        result = subprocess.run(args, capture_output=True, text=True)
    except OSError as e:
        raise MultipathCommandError(args, -1, str(e))

    if check and result.returncode != 0:
        raise MultipathCommandError(args, result.returncode, result.stderr or "")

    return CommandResult(
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        returncode=result.returncode,
    )
