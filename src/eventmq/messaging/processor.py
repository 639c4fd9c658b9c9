"""
Exchange Processor

Background task that runs the fan-out pass on an interval.
"""

import os
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from ..shared.exceptions import NotEventMessageError
from .service import MessageService

logger = logging.getLogger(__name__)


class ExchangeProcessor:
    """
    Periodically calls MessageService.exchange_process.

    Features:
    - Treats "no unprocessed events" as idle and sleeps poll_interval
    - Polls again immediately while events keep arriving
    - Logs unexpected errors and keeps running; the failed event stays
      unprocessed and is fanned out again on a later pass
    """

    def __init__(
        self,
        service: MessageService,
        poll_interval: float = 1.0,
        batch_size: Optional[int] = None
    ):
        self.service = service
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_env(cls, service: MessageService) -> "ExchangeProcessor":
        """Build from MQ_EXCHANGE_POLL_INTERVAL and MQ_EXCHANGE_BATCH_SIZE."""
        batch_size = os.getenv("MQ_EXCHANGE_BATCH_SIZE")
        return cls(
            service,
            poll_interval=float(os.getenv("MQ_EXCHANGE_POLL_INTERVAL", "1.0")),
            batch_size=int(batch_size) if batch_size else None
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the processor."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("ExchangeProcessor started")

    async def stop(self):
        """Stop the processor."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("ExchangeProcessor stopped")

    async def run_once(self) -> int:
        """Run one fan-out pass. Returns the number of events processed."""
        try:
            return await self.service.exchange_process(self.batch_size)
        except NotEventMessageError:
            return 0

    async def _run(self):
        """Main processing loop."""
        while self._running:
            try:
                processed = await self.run_once()
                if processed == 0:
                    await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"ExchangeProcessor error: {e}", exc_info=True)
                await asyncio.sleep(self.poll_interval)


@asynccontextmanager
async def exchange_processor(
    service: MessageService,
    poll_interval: Optional[float] = None,
    batch_size: Optional[int] = None
):
    """
    Run an ExchangeProcessor for the duration of the block.

    Usage:
        async with exchange_processor(service, poll_interval=0.5):
            await serve_forever()
    """
    processor = ExchangeProcessor.from_env(service)
    if poll_interval is not None:
        processor.poll_interval = poll_interval
    if batch_size is not None:
        processor.batch_size = batch_size

    await processor.start()
    try:
        yield processor
    finally:
        await processor.stop()
