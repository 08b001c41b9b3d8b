"""Diagnostic operation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ap_tools.config import Settings
from ap_tools.deps import get_settings, get_transport_factory
from ap_tools.models.responses import OperationInfo, OperationResponse
from ap_tools.services.operations import Operation, list_operations, run_operation
from ap_tools.services.transports import TransportFactory

router = APIRouter(prefix="/operations", tags=["operations"])


@router.get("", response_model=list[OperationInfo])
async def get_operations() -> list[OperationInfo]:
    """List the available diagnostic operations."""
    return list_operations()


@router.post("/{name}", response_model=OperationResponse)
async def call_operation(
    name: str,
    cfg: Settings = Depends(get_settings),
    new_transport: TransportFactory = Depends(get_transport_factory),
) -> OperationResponse:
    """Run one operation; device and parse failures come back as success=false."""
    try:
        op = Operation(name)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown operation: {name}") from None
    return await run_operation(op, cfg, new_transport)
