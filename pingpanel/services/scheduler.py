import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from pingpanel.config import (
    DEFAULT_REFRESH_INTERVAL_S,
    parse_host_list,
    parse_refresh_interval,
)
from pingpanel.models.ping import PingReading
from pingpanel.services.aggregator import aggregate
from pingpanel.services.prober import PROBE_TIMEOUT_MS

logger = logging.getLogger(__name__)

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class ScheduleState:
    """Time of the last completed round and the configured refresh interval."""

    refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S
    last_round_at: datetime = field(default=_NEVER)


class PingScheduler:
    """
    Interval gate in front of the aggregator.

    An external driver calls on_tick() on a fixed cadence. A round runs only
    when more than refresh_interval_s seconds have passed since the previous
    round was triggered, and never while another round is still in flight.
    The published PingReading is swapped in as one object so readers always
    see a ping value and timestamp from the same round.
    """

    def __init__(
        self,
        hosts: Sequence[str] = (),
        refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
        timeout_ms: int = PROBE_TIMEOUT_MS,
    ) -> None:
        self._hosts: List[str] = []
        self._schedule = ScheduleState()
        self._timeout_ms = timeout_ms
        self._reading = PingReading()
        # A thread lock, not an asyncio.Lock: tick() may be called from other
        # threads. It is held across the round and must only ever be taken
        # with blocking=False, so overlapping ticks are dropped, not queued.
        self._round_lock = threading.Lock()
        self.configure(hosts, refresh_interval_s)

    def configure(self, hosts: Sequence[str], interval_seconds: float) -> None:
        self._hosts = [host for entry in hosts if entry for host in parse_host_list(entry)]
        self._schedule.refresh_interval_s = parse_refresh_interval(interval_seconds)

    @property
    def hosts(self) -> List[str]:
        return list(self._hosts)

    @property
    def refresh_interval_s(self) -> float:
        return self._schedule.refresh_interval_s

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def last_round_at(self) -> datetime:
        return self._schedule.last_round_at

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.RUNNING if self._round_lock.locked() else SchedulerState.IDLE

    @property
    def reading(self) -> PingReading:
        return self._reading

    @property
    def ping_ms(self) -> int:
        return self._reading.ping_ms

    @property
    def last_update(self) -> Optional[str]:
        return self._reading.last_update

    def is_due(self, now: datetime) -> bool:
        elapsed = (now - self._schedule.last_round_at).total_seconds()
        return elapsed > self._schedule.refresh_interval_s

    async def on_tick(self, now: Optional[datetime] = None) -> bool:
        """
        Run one probing round if the refresh interval has elapsed.

        Returns True if a round ran and was published. A tick that arrives
        while a round is in flight is dropped. If the round is cancelled,
        nothing is published and the schedule is left untouched.
        """
        if now is None:
            now = utcnow()
        elif now.tzinfo is None:
            # naive instants, e.g. datetime.utcnow(), are taken as UTC
            now = now.replace(tzinfo=timezone.utc)

        if not self._round_lock.acquire(blocking=False):
            logger.debug("Tick at %s ignored, round still in flight", now.isoformat())
            return False

        try:
            if not self.is_due(now):
                return False

            hosts = list(self._hosts)
            try:
                result = await aggregate(hosts, self._timeout_ms)
            except asyncio.CancelledError:
                logger.info("Ping round started at %s cancelled", now.isoformat())
                raise

            completed_at = utcnow()
            previous_at = self._reading.last_update_at
            if previous_at is not None and completed_at < previous_at:
                completed_at = previous_at

            self._reading = PingReading(
                ping_ms=result.ping_ms,
                last_update=completed_at.isoformat(),
                last_update_at=completed_at,
                success_count=result.success_count,
                host_count=result.host_count,
            )
            self._schedule.last_round_at = now
            logger.info(
                "Ping updated: %d ms (%d/%d hosts replied)",
                result.ping_ms,
                result.success_count,
                result.host_count,
            )
            return True
        finally:
            self._round_lock.release()

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Blocking variant of on_tick() for callers without an event loop."""
        return asyncio.run(self.on_tick(now))
