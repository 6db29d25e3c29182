import asyncio
import logging
from typing import Set

from pingpanel.config import DEFAULT_TICK_INTERVAL_S
from pingpanel.services.scheduler import PingScheduler, utcnow

logger = logging.getLogger(__name__)


def _log_tick_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Ping round failed: %r", exc, exc_info=exc)


async def tick_forever(
    scheduler: PingScheduler, interval_s: float = DEFAULT_TICK_INTERVAL_S
) -> None:
    """
    Drive a scheduler with a tick every interval_s seconds until cancelled.

    Each tick runs as its own task so a slow round does not delay the
    cadence; the scheduler drops ticks that overlap a running round. On
    cancellation any in-flight round is cancelled as well.
    """
    pending: Set[asyncio.Task] = set()
    loop = asyncio.get_running_loop()
    next_tick = loop.time()
    try:
        while True:
            task = asyncio.create_task(scheduler.on_tick(utcnow()))
            pending.add(task)
            task.add_done_callback(pending.discard)
            task.add_done_callback(_log_tick_failure)

            next_tick += interval_s
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
    finally:
        for task in list(pending):
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Tick driver stopped")
