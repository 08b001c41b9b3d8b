"""Application settings loaded from environment variables."""

from __future__ import annotations

import ipaddress
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings

from ap_tools.errors import ConfigurationError


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Access point connection
    ap_ip: str = ""
    ap_port: int = 22
    ap_username: str = "admin"
    ap_password: str = ""

    # Transport: "ssh" connects directly, "docker" runs ssh inside a container
    ap_transport: Literal["ssh", "docker"] = "ssh"
    ap_session_timeout_seconds: float = 10.0
    ap_docker_image: str = "dogkeeper886/ssh-sshrsa"
    ap_docker_timeout_seconds: float = 45.0

    # Verbose session logging
    ssh_debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def session_timeout(self) -> float:
        if self.ap_transport == "docker":
            return self.ap_docker_timeout_seconds
        return self.ap_session_timeout_seconds


class ConnectionParameters(BaseModel):
    """Credentials for one session; never mutated, never persisted."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    username: str
    password: SecretStr
    port: int = 22


def connection_parameters(cfg: Settings) -> ConnectionParameters:
    """Build the per-call connection parameters or raise ConfigurationError."""
    if not cfg.ap_ip:
        raise ConfigurationError("AP_IP environment variable is required")
    if not cfg.ap_password:
        raise ConfigurationError("AP_PASSWORD environment variable is required")
    return ConnectionParameters(
        host=cfg.ap_ip,
        username=cfg.ap_username,
        password=SecretStr(cfg.ap_password),
        port=cfg.ap_port,
    )


# ---------------------------------------------------------------------------
# Configuration check
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 8


class ConfigCheck(BaseModel):
    ok: bool
    errors: list[str] = []
    warnings: list[str] = []
    settings: dict[str, str] = {}


def validate_settings(cfg: Settings) -> ConfigCheck:
    """Report configuration problems without revealing the password."""
    errors: list[str] = []
    warnings: list[str] = []

    for env_name, value in (
        ("AP_IP", cfg.ap_ip),
        ("AP_USERNAME", cfg.ap_username),
        ("AP_PASSWORD", cfg.ap_password),
    ):
        if not value:
            errors.append(f"{env_name} is not set")

    if cfg.ap_ip:
        try:
            ipaddress.IPv4Address(cfg.ap_ip)
        except ValueError:
            errors.append(f"AP_IP doesn't look like a valid IP: {cfg.ap_ip}")

    # '#' starts a comment in unquoted .env values and truncates passwords
    if cfg.ap_password and len(cfg.ap_password) < MIN_PASSWORD_LENGTH:
        warnings.append(
            f"AP_PASSWORD seems short ({len(cfg.ap_password)} chars); "
            "quote it in .env if it contains #, !, $ or \"",
        )

    return ConfigCheck(
        ok=not errors,
        errors=errors,
        warnings=warnings,
        settings={
            "ap_ip": cfg.ap_ip,
            "ap_username": cfg.ap_username,
            "ap_password": "[SET]" if cfg.ap_password else "[NOT SET]",
            "ap_transport": cfg.ap_transport,
            "ssh_debug": str(cfg.ssh_debug).lower(),
        },
    )


# Singleton – import this from anywhere
settings = Settings()
