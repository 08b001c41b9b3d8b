"""Typed records produced by the rkscli output parsers."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class SerialInfo(BaseModel):
    """Model and serial number from the login banner."""

    model: str
    serial: str


class ManagementStatus(BaseModel):
    """ACX management-service status from ``get acx``."""

    service_enabled: bool = False
    managed: bool = False
    state: str = ""
    connection_status: str = ""
    server_list: str = ""
    config_update_state: str = ""
    heartbeat_interval_seconds: int = 0
    cert_validation: str = ""


class RadioAntenna(BaseModel):
    mode: str = "Unknown"
    gain: str = "Unknown"


class AntennaInfo(BaseModel):
    radios: dict[str, RadioAntenna]


class RadioAdmissionControl(BaseModel):
    enabled: bool = False
    radio_load_threshold_percent: int = 0
    client_count_threshold: int = 0
    client_throughput_threshold_mbps: float = 0.0


class AdmissionControlInfo(BaseModel):
    radios: dict[str, RadioAdmissionControl]


class RadioChannel(BaseModel):
    radio_enabled: bool
    channel: Optional[int] = None
    status: str
    band: Optional[str] = None


class ChannelInfo(BaseModel):
    """Per-radio channel state; radios the device lacks are omitted."""

    radios: dict[str, RadioChannel]
