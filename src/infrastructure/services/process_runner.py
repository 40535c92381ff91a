"""Process runner - executes shell and git commands for workflow steps."""

import asyncio
import logging
from collections.abc import Sequence

from src.domain.ports.process import ProcessResult, ProcessSpawnError, ProcessTimeoutError

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 5.0


class ProcessRunner:
    """ProcessRunnerPort on top of asyncio subprocesses.

    Commands come from workflow files the user wrote, so no whitelist applies
    (unlike chat-triggered commands). A string runs through the shell; a
    sequence runs as argv.
    """

    def __init__(self, cwd: str | None = None, timeout: float = 300.0) -> None:
        self._cwd = cwd
        self._timeout = timeout
        self._running: set[asyncio.subprocess.Process] = set()

    async def execute(
        self,
        command: str | Sequence[str],
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        working_dir = cwd or self._cwd
        cmd_timeout = timeout or self._timeout

        try:
            if isinstance(command, str):
                proc = await asyncio.create_subprocess_shell(
                    command,
                    cwd=working_dir,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            else:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=working_dir,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
        except OSError as e:
            logger.warning("Cannot start command %s: %s", command, e)
            raise ProcessSpawnError(f"{_display(command)}: {e}") from e

        self._running.add(proc)
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=cmd_timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Command timed out after %ss: %s", cmd_timeout, _display(command))
            await self._stop(proc)
            raise ProcessTimeoutError(f"Command timed out after {cmd_timeout}s: {_display(command)}") from e
        finally:
            self._running.discard(proc)

        return ProcessResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
        )

    async def terminate(self) -> None:
        """SIGTERM every in-flight process; SIGKILL the ones that linger."""
        procs = list(self._running)
        if procs:
            logger.info("Terminating %d running process(es)", len(procs))
        await asyncio.gather(*(self._stop(p) for p in procs))

    @staticmethod
    async def _stop(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()


def _display(command: str | Sequence[str]) -> str:
    return command if isinstance(command, str) else " ".join(command)
