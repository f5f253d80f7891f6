"""Registry models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RegistryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str

