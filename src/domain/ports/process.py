"""Process Port - interface for running subprocesses."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass
class ProcessResult:
    """Captured output of a finished process."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessSpawnError(Exception):
    """The process could not be started at all (binary missing, bad cwd)."""


class ProcessTimeoutError(Exception):
    """The process ran longer than allowed and was killed."""


class ProcessRunnerPort(Protocol):
    """Runs commands; used by shell and git steps."""

    async def execute(
        self,
        command: str | Sequence[str],
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``command`` (shell string or argv) to completion.

        A non-zero exit is returned, not raised.

        Raises:
            ProcessSpawnError: could not start
            ProcessTimeoutError: timed out

        """
        ...

    async def terminate(self) -> None:
        """Send a termination signal to any in-flight process."""
        ...
