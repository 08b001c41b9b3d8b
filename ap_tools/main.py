"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ap_tools import __version__
from ap_tools.config import settings
from ap_tools.routers import health, operations
from ap_tools.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup hook: logging, and a hint when the AP isn't configured."""
    setup_logging(settings.ssh_debug)
    log.info(
        "startup",
        ap_ip=settings.ap_ip or None,
        ap_username=settings.ap_username,
        ap_password="[SET]" if settings.ap_password else "[NOT SET]",
        transport=settings.ap_transport,
    )
    yield


app = FastAPI(
    title="Ruckus AP Tools API",
    description="Diagnostics for Ruckus access points over the rkscli shell",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(operations.router)
