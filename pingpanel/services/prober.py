import asyncio
import logging
import math
import re
import sys
from typing import List, Optional, Tuple

from pingpanel.models.ping import ProbeOutcome, ProbeStatus

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_MS = 1000

# Extra wall-clock time granted to the ping process itself (fork/exec, DNS)
# on top of the probe timeout before it is killed.
_PROCESS_GRACE_S = 0.25

_WINDOWS = sys.platform.startswith("win")

# "64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=12.3 ms"
# "Reply from 1.1.1.1: bytes=32 time=12ms TTL=57" / "time<1ms"
_RTT_PATTERN = re.compile(r"time\s*([=<])\s*([\d.]+)\s*ms", re.IGNORECASE)

_NO_REPLY_PATTERN = re.compile(r"request timed out", re.IGNORECASE)

_STATUS_PATTERN = re.compile(
    r"(destination (?:host|net|network|port|protocol) unreachable"
    r"|time to live exceeded"
    r"|ttl expired in transit"
    r"|general failure"
    r"|could not find host"
    r"|unknown host"
    r"|name or service not known"
    r"|temporary failure in name resolution)",
    re.IGNORECASE,
)


def _build_ping_command(host: str, timeout_ms: int) -> List[str]:
    """
    Build a single-echo ping command for the current platform.

    POSIX ping takes its reply timeout (-W) in whole seconds, Windows ping
    takes it (-w) in milliseconds.
    """
    if _WINDOWS:
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), host]


def _parse_round_trip(output: str) -> Optional[int]:
    """Extract the round trip of the first reply in whole milliseconds."""
    for line in output.splitlines():
        match = _RTT_PATTERN.search(line)
        if not match:
            continue
        if match.group(1) == "<":
            return 0
        try:
            return int(float(match.group(2)))
        except ValueError:
            return None
    return None


def _status_text(output: str) -> Optional[str]:
    match = _STATUS_PATTERN.search(output)
    return match.group(1) if match else None


async def _run_ping(command: List[str], timeout_s: float) -> Tuple[int, str, str]:
    """
    Run one ping process and return (returncode, stdout, stderr).

    Raises asyncio.TimeoutError if the process does not finish in time;
    the process is killed in that case and on cancellation.
    """
    proc = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    return (
        proc.returncode,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


async def probe(host: str, timeout_ms: int = PROBE_TIMEOUT_MS) -> ProbeOutcome:
    """
    Send one echo probe to a host and classify the outcome.

    Exactly one attempt is made. Transport errors (ping binary missing,
    permission denied, name resolution failures) are turned into a failed
    outcome and never raised. Only cancellation propagates.
    """
    command = _build_ping_command(host, timeout_ms)
    timeout_s = timeout_ms / 1000 + _PROCESS_GRACE_S

    try:
        returncode, stdout, stderr = await _run_ping(command, timeout_s)
    except asyncio.TimeoutError:
        logger.info("Ping to %s timed out after %d ms", host, timeout_ms)
        return ProbeOutcome(
            host=host,
            status=ProbeStatus.TIMED_OUT,
            reason=f"no reply within {timeout_ms} ms",
        )
    except FileNotFoundError:
        logger.error("Error pinging %s: ping binary not found on host system", host)
        return ProbeOutcome(
            host=host,
            status=ProbeStatus.FAILED,
            reason="ping binary not found on host system",
        )
    except OSError as exc:
        logger.error("Error pinging %s: %s", host, exc)
        return ProbeOutcome(host=host, status=ProbeStatus.FAILED, reason=str(exc))
    except Exception as exc:
        # e.g. ValueError("embedded null byte") from a malformed host
        logger.error("Error pinging %s: %s", host, exc)
        return ProbeOutcome(host=host, status=ProbeStatus.FAILED, reason=str(exc) or type(exc).__name__)

    output = stdout + stderr
    status_text = _status_text(output)
    round_trip_ms = _parse_round_trip(stdout)

    # Windows ping exits 0 for "Destination host unreachable" replies, so an
    # explicit status line wins over the return code.
    if returncode != 0 or status_text is not None or round_trip_ms is None:
        if status_text is not None:
            logger.info("Ping to %s failed: %s", host, status_text)
            return ProbeOutcome(host=host, status=ProbeStatus.FAILED, reason=status_text)
        if returncode == 1 or _NO_REPLY_PATTERN.search(output):
            # POSIX ping exits 1 when no reply arrived before -W expired
            logger.info("Ping to %s timed out after %d ms", host, timeout_ms)
            return ProbeOutcome(
                host=host,
                status=ProbeStatus.TIMED_OUT,
                reason=f"no reply within {timeout_ms} ms",
            )
        if returncode == 0:
            reason = "no round trip time in ping output"
        else:
            reason = stderr.strip() or f"ping failed with return code {returncode}"
        logger.info("Ping to %s failed: %s", host, reason)
        return ProbeOutcome(host=host, status=ProbeStatus.FAILED, reason=reason)

    if round_trip_ms > timeout_ms:
        logger.warning(
            "Ping to %s took longer than %d ms: %d ms", host, timeout_ms, round_trip_ms
        )
        return ProbeOutcome(
            host=host,
            status=ProbeStatus.SKEWED,
            round_trip_ms=round_trip_ms,
            reason=f"round trip above {timeout_ms} ms timeout",
        )

    return ProbeOutcome(host=host, status=ProbeStatus.SUCCESS, round_trip_ms=round_trip_ms)
