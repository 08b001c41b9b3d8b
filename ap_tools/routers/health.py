"""Health and configuration-check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ap_tools import __version__
from ap_tools.config import ConfigCheck, Settings, validate_settings
from ap_tools.deps import get_settings
from ap_tools.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health() -> HealthResponse:
    """Basic liveness check; never touches the AP."""
    return HealthResponse(status="ok", version=__version__)


@router.get("/config/check", response_model=ConfigCheck)
async def config_check(cfg: Settings = Depends(get_settings)) -> ConfigCheck:
    """Report missing or suspicious AP connection settings."""
    return validate_settings(cfg)
