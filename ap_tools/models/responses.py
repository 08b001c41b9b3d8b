"""Common API response models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str


class OperationInfo(BaseModel):
    name: str
    description: str
    commands: list[str]


class OperationResponse(BaseModel):
    """Uniform result of one diagnostic operation.

    ``text`` carries the pretty-printed record on success and a readable
    error line on failure; ``data`` is the record itself.
    """

    operation: str
    success: bool
    data: Optional[dict[str, Any]] = None
    text: str = ""
    error: Optional[str] = None
