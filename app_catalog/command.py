"""Library for running external commands with asyncio.

Commands are used to query the installer (helm) for the state of releases.
Every command runs under a shared concurrency limit and is abandoned after
its timeout.
"""

import asyncio
from dataclasses import dataclass
import logging
import os
import shlex
import subprocess

from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)

_CONCURRENCY = 10
_SEM = asyncio.Semaphore(_CONCURRENCY)
_TIMEOUT = 60.0


# No public API
__all__: list[str] = []


def _failure(cmd: "Command", returncode: int, stdout: bytes, stderr: bytes) -> str:
    lines = [f"Command '{cmd}' failed with return code {returncode}"]
    lines.extend(output.decode("utf-8") for output in (stdout, stderr) if output)
    return "\n".join(lines)


@dataclass
class Command:
    """An external command and how to report its failure."""

    cmd: list[str]
    """Array of command line arguments."""

    exc: type[CommandException] = CommandException
    """Exception raised when the command can't be run or fails."""

    env: dict[str, str] | None = None
    """Variables added to the environment of the subprocess."""

    timeout: float = _TIMEOUT
    """Seconds before the command is abandoned."""

    def __str__(self) -> str:
        return shlex.join(self.cmd)

    async def _communicate(self) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env={**os.environ, **(self.env or {})},
            )
        except OSError as err:
            raise self.exc(f"Command '{self}' could not be started: {err}") from err
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise
        if proc.returncode:
            message = _failure(self, proc.returncode, stdout, stderr)
            _LOGGER.debug(message)
            raise self.exc(message)
        return stdout

    async def run(self) -> str:
        """Run the command and return its decoded stdout."""
        _LOGGER.debug("Running command: %s", self)
        try:
            stdout = await asyncio.wait_for(self._communicate(), self.timeout)
        except asyncio.TimeoutError as err:
            raise self.exc(
                f"Command '{self}' timed out after {self.timeout} seconds"
            ) from err
        return stdout.decode("utf-8")


async def run(cmd: Command) -> str:
    """Run the command once a concurrency slot is free and return stdout."""
    async with _SEM:
        return await cmd.run()
