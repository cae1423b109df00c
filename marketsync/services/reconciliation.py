"""
Periodic reconciliation of a NotificationRepository against the server.

Push events are hints; this loop is what guarantees convergence. One loop per
runtime: surfaces call mount()/unmount() and the timer runs while at least
one of them is mounted.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

from marketsync.infra.logging_config import get_logger
from marketsync.services.notification_repository import NotificationRepository

logger = get_logger("reconciliation")

RECONCILE_INTERVAL_SECONDS = 30.0


class ReconciliationLoop:
    def __init__(
        self,
        repository: NotificationRepository,
        interval: float = RECONCILE_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._repository = repository
        self._interval = interval
        self._mounts = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def mounts(self) -> int:
        return self._mounts

    def mount(self) -> None:
        """Register a surface; starts the timer on the first mount."""
        self._mounts += 1
        if self._mounts == 1:
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.debug(
                "Reconciliation started for %s view every %.1fs",
                self._repository.role.value,
                self._interval,
            )

    def unmount(self) -> None:
        """Unregister a surface; cancels the timer when none remain."""
        if self._mounts == 0:
            return
        self._mounts -= 1
        if self._mounts == 0 and self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Reconciliation stopped for %s view", self._repository.role.value)

    async def tick(self) -> None:
        """One pass: unread count always, page 1 only while the list is on screen."""
        await self._repository.refresh(include_list=self._repository.list_visible)

    async def stop(self) -> None:
        self._mounts = 0
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Reconciliation tick failed")
