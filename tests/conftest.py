from __future__ import annotations

import pytest

from tests.stubs import MODELS, stub_client
from tfgw.registry.store import ModelRegistry
from tfgw.serving.relay import RelayEngine


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry.from_mapping(MODELS)


@pytest.fixture
def make_engine(registry):
    def _make(handler, default_model: str = "xgboost"):
        client, adapter = stub_client(handler)
        return RelayEngine(registry, client, default_model), adapter

    return _make
