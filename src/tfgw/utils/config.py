"""Typed configuration loading for the gateway."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CONFIG_PATH = "configs/gateway.yaml"
SERVICE_ENV_PREFIX = "ML_SERVICE_"


class GatewayConfig(BaseModel):
    name: str = "traffic-flow-gateway"
    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/api"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    # Placeholder until an ensemble model is deployed.
    default_model: str = "xgboost"
    predict_timeout: float = Field(default=30.0, gt=0)
    health_timeout: float = Field(default=3.0, gt=0)
    # Whole-report bound; unset means twice health_timeout.
    health_deadline: Optional[float] = Field(default=None, gt=0)
    pool_maxsize: int = Field(default=10, ge=1)
    models: Dict[str, str] = Field(default_factory=dict)

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @field_validator("models")
    @classmethod
    def _check_addresses(cls, value: Dict[str, str]) -> Dict[str, str]:
        cleaned: Dict[str, str] = {}
        for name, address in value.items():
            address = str(address).strip().rstrip("/")
            if not address.startswith(("http://", "https://")):
                raise ValueError(f"Base address for model '{name}' must be an http(s) URL, got {address!r}")
            cleaned[name] = address
        return cleaned

    @model_validator(mode="after")
    def _check_default_model(self) -> "GatewayConfig":
        if self.models and self.default_model not in self.models:
            raise ValueError(f"default_model '{self.default_model}' is not one of the configured models")
        return self


def load_yaml(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Replace model base addresses from ``ML_SERVICE_<NAME>`` variables.

    Only models already present in the file are overridden; the variable
    suffix is matched case-insensitively against the model identifier.
    """
    env = os.environ if environ is None else environ
    models = dict(data.get("models") or {})
    for name in models:
        override = env.get(SERVICE_ENV_PREFIX + name.upper())
        if override:
            models[name] = override
    if models:
        data = {**data, "models": models}
    return data


def load_gateway_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    env = os.environ if environ is None else environ
    config_path = path or env.get("GATEWAY_CONFIG") or DEFAULT_CONFIG_PATH
    data = load_yaml(config_path)
    if "gateway" not in data:
        raise ValueError(f"Invalid config file, expected 'gateway' root at {config_path}")
    return GatewayConfig(**apply_env_overrides(data["gateway"] or {}, env))
