"""Exception hierarchy shared by the session driver, parsers and API."""

from __future__ import annotations

RAW_EXCERPT_LENGTH = 300


class APToolsError(Exception):
    """Base class for every failure surfaced to API callers."""


class ConfigurationError(APToolsError):
    """A required connection parameter is missing or invalid."""


class DeviceConnectionError(APToolsError):
    """The shell could not be opened or the login handshake failed."""


class SessionTimeoutError(APToolsError):
    """The session deadline fired before the handshake finished."""


class ParseError(APToolsError):
    """Device output did not contain the markers a parser needs."""

    def __init__(
        self,
        message: str,
        raw: str = "",
        *,
        excerpt_length: int = RAW_EXCERPT_LENGTH,
    ) -> None:
        self.raw_excerpt = raw[:excerpt_length]
        if raw:
            message = f"{message}. Raw output: {self.raw_excerpt}"
        super().__init__(message)
