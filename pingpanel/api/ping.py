from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from pingpanel.models.ping import DisplayEntry, PingConfig, PingReading
from pingpanel.services.scheduler import PingScheduler

router = APIRouter()


def get_scheduler(request: Request) -> PingScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="ping scheduler is not running")
    return scheduler


@router.get("/status", response_model=PingReading, summary="Current ping")
async def ping_status(scheduler: PingScheduler = Depends(get_scheduler)) -> PingReading:
    """
    Return the average ping of the last completed round and when it finished.

    ping_ms is 0 before the first round and whenever no host replied.
    """
    return scheduler.reading


@router.get("/sensors", response_model=List[DisplayEntry], summary="Display entries")
async def ping_sensors(
    scheduler: PingScheduler = Depends(get_scheduler),
) -> List[DisplayEntry]:
    """Return the ping value and last update time as display entries."""
    reading = scheduler.reading
    return [
        DisplayEntry(id="ping", name="Current ping", value=reading.ping_ms, unit="ms"),
        DisplayEntry(
            id="ping-last",
            name="Last ping time",
            value=reading.last_update or "-",
        ),
    ]


@router.get("/config", response_model=PingConfig, summary="Ping configuration")
async def ping_config(scheduler: PingScheduler = Depends(get_scheduler)) -> PingConfig:
    return PingConfig(
        hosts=scheduler.hosts,
        refresh_interval_s=scheduler.refresh_interval_s,
        probe_timeout_ms=scheduler.timeout_ms,
    )
