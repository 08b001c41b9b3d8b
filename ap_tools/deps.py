"""FastAPI dependencies; overridden in tests."""

from __future__ import annotations

from ap_tools.config import Settings, settings
from ap_tools.services.transports import TransportFactory, transport_factory


def get_settings() -> Settings:
    return settings


def get_transport_factory() -> TransportFactory:
    return transport_factory(settings)
