# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Periodic session list refresh.

Push events cover new sessions and messages while the channel is up; this
poller re-reads the session list on a fixed interval so a dropped event or a
reconnect gap heals on the next tick. Each tick is an ordinary idempotent
refetch.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from shared.logger import setup_logger

if TYPE_CHECKING:
    from support_chat.stores import SessionSummaryStore

logger = setup_logger(__name__)


class SummaryPoller:
    """Refetches the session summaries every `interval` seconds."""

    def __init__(self, summaries: "SessionSummaryStore", interval: float):
        self.summaries = summaries
        self.interval = interval

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._consecutive_failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def start(self) -> None:
        """Start polling. An interval of 0 or less leaves the poller off."""
        if self.interval <= 0:
            logger.debug("Summary polling disabled")
            return
        if self._running:
            logger.warning("Summary poller already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Summary poller started: interval={self.interval}s")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Summary poller stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            try:
                ok = await self.summaries.refetch()
            except Exception as e:
                logger.exception(f"Summary poll crashed: {e}")
                ok = False

            if ok:
                self._consecutive_failures = 0
            else:
                self._consecutive_failures += 1
                logger.warning(
                    f"Summary poll failed ({self._consecutive_failures} in a row)"
                )
