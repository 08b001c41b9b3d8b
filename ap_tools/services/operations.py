"""Diagnostic operations: device commands, parsers and the response envelope.

Each operation maps to a fixed set of rkscli commands and one parser.  The
commands of an operation run as concurrent, fully independent sessions; the
operation fails as a whole if any of them fails.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from ap_tools.config import ConnectionParameters, Settings, connection_parameters
from ap_tools.models.responses import OperationInfo, OperationResponse
from ap_tools.services.session import run_session
from ap_tools.services.transports import TransportFactory
from ap_tools.utils import rkscli_parser as parser
from ap_tools.utils.logging import get_logger

log = get_logger(__name__)

DUAL_RADIOS = ("wifi0", "wifi1")
ALL_RADIOS = ("wifi0", "wifi1", "wifi2")


class Operation(str, Enum):
    identify = "identify"
    management_status = "management_status"
    antenna_info = "antenna_info"
    admission_control = "admission_control"
    channel_info = "channel_info"


@dataclass(frozen=True)
class OperationSpec:
    subject: str
    description: str
    commands: tuple[str, ...]
    parse: Callable[[Mapping[str, str]], BaseModel]


def _per_radio(outputs: Mapping[str, str], prefix: str, radios: Sequence[str]) -> dict[str, str]:
    return {radio: outputs[f"{prefix} {radio}"] for radio in radios}


def _parse_antenna(outputs: Mapping[str, str]) -> BaseModel:
    return parser.parse_antenna_info(
        _per_radio(outputs, "get extant", DUAL_RADIOS),
        _per_radio(outputs, "get extantgain", DUAL_RADIOS),
    )


REGISTRY: dict[Operation, OperationSpec] = {
    Operation.identify: OperationSpec(
        subject="serial number",
        description="AP serial number and model from the login banner",
        commands=("",),
        parse=lambda out: parser.parse_serial(out[""]),
    ),
    Operation.management_status: OperationSpec(
        subject="ACX status",
        description="ACX management status and connection details",
        commands=("get acx",),
        parse=lambda out: parser.parse_acx_status(out["get acx"]),
    ),
    Operation.antenna_info: OperationSpec(
        subject="external antenna info",
        description="External antenna mode and gain per radio",
        commands=tuple(
            f"{cmd} {radio}" for radio in DUAL_RADIOS for cmd in ("get extant", "get extantgain")
        ),
        parse=_parse_antenna,
    ),
    Operation.admission_control: OperationSpec(
        subject="client admission control info",
        description="Client admission control thresholds per radio",
        commands=tuple(f"get admctl {radio}" for radio in DUAL_RADIOS),
        parse=lambda out: parser.parse_admission_control_info(
            _per_radio(out, "get admctl", DUAL_RADIOS),
        ),
    ),
    Operation.channel_info: OperationSpec(
        subject="WiFi channel info",
        description="Current channel and band per radio",
        commands=tuple(f"get channel {radio}" for radio in ALL_RADIOS),
        parse=lambda out: parser.parse_channel_info(
            _per_radio(out, "get channel", ALL_RADIOS),
        ),
    ),
}


def list_operations() -> list[OperationInfo]:
    return [
        OperationInfo(
            name=op.value,
            description=spec.description,
            commands=[c for c in spec.commands if c],
        )
        for op, spec in REGISTRY.items()
    ]


# ---------------------------------------------------------------------------
# Fan-out / fan-in
# ---------------------------------------------------------------------------


async def collect_outputs(
    params: ConnectionParameters,
    commands: Sequence[str],
    *,
    new_transport: TransportFactory,
    timeout: float,
) -> dict[str, str]:
    """Run one session per command concurrently; keyed by command."""
    tasks = [
        asyncio.ensure_future(
            run_session(params, cmd, transport=new_transport(), timeout=timeout),
        )
        for cmd in commands
    ]
    try:
        outputs = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # Let cancelled sessions close their transports before reporting
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return dict(zip(commands, outputs))


async def execute_operation(
    op: Operation,
    cfg: Settings,
    new_transport: TransportFactory,
) -> BaseModel:
    """Run *op* against the configured AP and return its parsed record."""
    spec = REGISTRY[op]
    params = connection_parameters(cfg)
    outputs = await collect_outputs(
        params,
        spec.commands,
        new_transport=new_transport,
        timeout=cfg.session_timeout,
    )
    return spec.parse(outputs)


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


def _scrub(message: str, cfg: Settings) -> str:
    if cfg.ap_password:
        message = message.replace(cfg.ap_password, "***")
    return message


async def run_operation(
    op: Operation,
    cfg: Settings,
    new_transport: TransportFactory,
) -> OperationResponse:
    """Execute *op* and wrap the outcome; failures never escape."""
    spec = REGISTRY[op]
    log.info("operation.start", operation=op.value)
    try:
        record = await execute_operation(op, cfg, new_transport)
    except Exception as exc:
        message = _scrub(str(exc) or exc.__class__.__name__, cfg)
        log.warning("operation.failed", operation=op.value, error=message)
        return OperationResponse(
            operation=op.value,
            success=False,
            text=f"Error getting {spec.subject}: {message}",
            error=message,
        )

    data = record.model_dump()
    log.info("operation.done", operation=op.value)
    return OperationResponse(
        operation=op.value,
        success=True,
        data=data,
        text=json.dumps(data, indent=2),
    )
