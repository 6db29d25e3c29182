import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import health, ping
from .config import get_settings
from .logging_setup import setup_logging
from .services.scheduler import PingScheduler
from .services.ticker import tick_forever

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)

    scheduler = PingScheduler(
        hosts=settings.ping_servers,
        refresh_interval_s=settings.refresh_interval_s,
        timeout_ms=settings.probe_timeout_ms,
    )
    app.state.scheduler = scheduler
    logger.info(
        "Pinging %d hosts every %.1f s",
        len(scheduler.hosts),
        scheduler.refresh_interval_s,
    )

    driver = asyncio.create_task(tick_forever(scheduler, settings.tick_interval_s))
    try:
        yield
    finally:
        driver.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await driver
        app.state.scheduler = None


app = FastAPI(title="Ping Panel", lifespan=lifespan)

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(ping.router, prefix="/ping", tags=["ping"])
