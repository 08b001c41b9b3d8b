"""Tests for settings and connection parameter construction."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ap_tools.config import Settings, connection_parameters, validate_settings
from ap_tools.errors import ConfigurationError


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestConnectionParameters:
    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("AP_IP", "192.0.2.50")
        monkeypatch.setenv("AP_USERNAME", "super")
        monkeypatch.setenv("AP_PASSWORD", "hunter2-hunter2")
        params = connection_parameters(_settings())
        assert params.host == "192.0.2.50"
        assert params.username == "super"
        assert params.password.get_secret_value() == "hunter2-hunter2"
        assert "hunter2" not in repr(params)

    def test_missing_password(self):
        with pytest.raises(ConfigurationError, match="AP_PASSWORD"):
            connection_parameters(_settings(ap_ip="192.0.2.50", ap_password=""))

    def test_missing_host(self):
        with pytest.raises(ConfigurationError, match="AP_IP"):
            connection_parameters(_settings(ap_ip="", ap_password="x"))

    def test_frozen(self):
        params = connection_parameters(_settings(ap_ip="192.0.2.50", ap_password="x"))
        with pytest.raises(ValidationError):
            params.host = "other"


class TestValidateSettings:
    def test_ok(self):
        check = validate_settings(_settings(ap_ip="192.0.2.50", ap_password="long-enough-pw"))
        assert check.ok
        assert check.warnings == []

    def test_bad_ip_and_missing_password(self):
        check = validate_settings(_settings(ap_ip="ap.local", ap_password=""))
        assert not check.ok
        assert any("AP_PASSWORD" in e for e in check.errors)
        assert any("valid IP" in e for e in check.errors)
        assert check.settings["ap_password"] == "[NOT SET]"

    def test_short_password_warns(self):
        check = validate_settings(_settings(ap_ip="192.0.2.50", ap_password="abc#"))
        assert check.ok
        assert "seems short" in check.warnings[0]
        assert "abc#" not in str(check.model_dump())
