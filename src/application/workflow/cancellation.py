"""Cooperative cancellation for workflow sessions."""

import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Iterator

from src.domain.ports.process import ProcessRunnerPort

logger = logging.getLogger(__name__)


class CancellationToken:
    """Checked by the executor between steps. Setting it never interrupts a step."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@contextlib.contextmanager
def forward_interrupts(
    token: CancellationToken,
    runner: ProcessRunnerPort | None = None,
) -> Iterator[CancellationToken]:
    """Route SIGINT/SIGTERM to ``token`` and terminate in-flight subprocesses.

    Must be entered from inside a running event loop. No-op on Windows.
    """
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task] = set()

    def on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, cancelling workflow after the current step", sig.name)
        token.cancel(sig.name)
        if runner is not None:
            task = loop.create_task(runner.terminate())
            pending.add(task)
            task.add_done_callback(pending.discard)

    installed: list[signal.Signals] = []
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, on_signal, sig)
            installed.append(sig)
    try:
        yield token
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
