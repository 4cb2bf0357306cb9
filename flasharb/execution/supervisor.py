"""Owns the orchestrator task and its cancellation token."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from flasharb.execution.orchestrator import ExecutionOrchestrator

log = logging.getLogger(__name__)


class Supervisor:
    def __init__(self, orchestrator: ExecutionOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Spawn the loop; a second call while running only warns."""
        if self.running:
            log.warning("Bot is already running!")
            return self._task  # type: ignore[return-value]
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.orchestrator.run(self._stop), name="flasharb-orchestrator")
        return self._task

    def request_stop(self) -> None:
        log.info("Stop requested")
        self._stop.set()

    async def stop(self) -> None:
        """Signal stop and wait for the current cycle (and any in-flight loan) to finish."""
        self.request_stop()
        if self._task is not None:
            await self._task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler is unavailable on some platforms
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_stop)


__all__ = ["Supervisor"]
