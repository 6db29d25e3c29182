import asyncio
import logging
from typing import Iterable, List, Sequence

from pingpanel.models.ping import ProbeOutcome, RoundResult
from pingpanel.services.prober import PROBE_TIMEOUT_MS, probe

logger = logging.getLogger(__name__)


def reduce_outcomes(outcomes: Iterable[ProbeOutcome]) -> RoundResult:
    """
    Reduce the outcomes of one round to a single ping value.

    Only countable outcomes (successful replies within the timeout) enter
    the mean, which is truncated to whole milliseconds. A round without any
    countable outcome yields 0.
    """
    total = 0
    successes = 0
    host_count = 0
    for outcome in outcomes:
        host_count += 1
        if outcome.is_countable:
            total += outcome.round_trip_ms
            successes += 1

    ping_ms = total // successes if successes else 0
    return RoundResult(ping_ms=ping_ms, success_count=successes, host_count=host_count)


async def collect_outcomes(
    hosts: Sequence[str], timeout_ms: int = PROBE_TIMEOUT_MS
) -> List[ProbeOutcome]:
    """Probe all hosts concurrently and wait for every probe to finish."""
    if not hosts:
        return []
    return list(await asyncio.gather(*(probe(host, timeout_ms) for host in hosts)))


async def aggregate(hosts: Sequence[str], timeout_ms: int = PROBE_TIMEOUT_MS) -> RoundResult:
    """
    Run one probing round over all hosts and return the averaged ping.

    A failing or timed out host only drops out of the average; it never
    aborts the round.
    """
    outcomes = await collect_outcomes(hosts, timeout_ms)
    result = reduce_outcomes(outcomes)
    logger.debug(
        "Round over %d hosts: %d ms from %d successful probes",
        result.host_count,
        result.ping_ms,
        result.success_count,
    )
    return result
