"""Response schemas for the gateway."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Road(BaseModel):
    id: str
    name: str
    path: Any = None


class ServiceHealth(BaseModel):
    ok: bool = Field(..., description="True when the service answered at all, whatever the status")
    status: Optional[int] = Field(default=None, description="HTTP status of the probe, if any")
    message: Optional[str] = Field(default=None, description="Transport failure message when unreachable")


HealthReport = Dict[str, ServiceHealth]


class HealthResponse(BaseModel):
    services: HealthReport


class ModelInfo(BaseModel):
    name: str
    base_url: str


class ModelsResponse(BaseModel):
    default_model: str
    models: List[ModelInfo]


class ErrorResponse(BaseModel):
    error: str
    detail: Any = None
