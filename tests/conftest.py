"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("AP_IP", "192.0.2.10")
os.environ.setdefault("AP_USERNAME", "admin")
os.environ.setdefault("AP_PASSWORD", "s3cret-Pa55word")
os.environ.setdefault("AP_TRANSPORT", "ssh")
os.environ.setdefault("SSH_DEBUG", "false")

import pytest
from httpx import ASGITransport, AsyncClient

from tests.mock_transport import TEST_PASSWORD, FakeTransportFactory


@pytest.fixture(autouse=True)
def no_settle_delay(monkeypatch):
    """Skip the pre-exit settle delays so sessions finish immediately."""
    import ap_tools.services.session as session_mod

    monkeypatch.setattr(session_mod, "COMMAND_SETTLE_SECONDS", 0.0)
    monkeypatch.setattr(session_mod, "BANNER_SETTLE_SECONDS", 0.0)


@pytest.fixture
def test_settings():
    from ap_tools.config import Settings

    return Settings(
        ap_ip="192.0.2.10",
        ap_username="admin",
        ap_password=TEST_PASSWORD,
        ap_session_timeout_seconds=2.0,
        _env_file=None,
    )


@pytest.fixture
def fake_factory():
    """Fresh FakeTransportFactory backed by the simulated AP."""
    return FakeTransportFactory()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(test_settings, fake_factory):
    """Async test client with settings and transports overridden."""
    from ap_tools.deps import get_settings, get_transport_factory
    from ap_tools.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_settings] = lambda: test_settings
    fastapi_app.dependency_overrides[get_transport_factory] = lambda: fake_factory

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
