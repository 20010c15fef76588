"""Response models for the companion REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str
    records: int
    pinned: int
    paused: bool
    clients: int
    frames: int


class ImportResponse(BaseModel):
    imported: int
    pinned: int


class RecordListResponse(BaseModel):
    total: int
    records: list[dict[str, Any]]
