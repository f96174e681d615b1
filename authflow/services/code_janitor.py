from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..application.services.auth_service import AuthService

logger = logging.getLogger(__name__)


class CodeJanitor:
    """Background task that periodically clears expired pending codes."""

    def __init__(self, auth_service: AuthService, *, interval_seconds: float = 300) -> None:
        self._auth_service = auth_service
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self._shutdown = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        logger.info("Starting pending-code janitor (every %ss).", self._interval)
        self._shutdown.clear()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="code-janitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        logger.info("Stopping pending-code janitor.")
        self._shutdown.set()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    def sweep(self) -> int:
        purged = self._auth_service.purge_expired_codes()
        if purged:
            logger.debug("Purged %s expired pending codes.", purged)
        return purged

    async def _run(self) -> None:
        while not self._shutdown.is_set():
            try:
                self.sweep()
            except Exception:  # pragma: no cover
                logger.exception("Unexpected error while purging expired codes.")
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
