import json

import pytest
import requests
from fastapi.testclient import TestClient

from tests.stubs import MODELS, make_response
from tfgw.monitoring.metrics import registry as metrics_registry
from tfgw.serving.gateway import create_app
from tfgw.utils.config import GatewayConfig


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig(models=MODELS, default_model="xgboost")


@pytest.fixture
def gateway(config, make_engine):
    def _make(handler):
        engine, adapter = make_engine(handler, default_model=config.default_model)
        return TestClient(create_app(config, engine), raise_server_exceptions=False), adapter

    return _make


def echo_with_url(request):
    return make_response(request, 200, {"url": request.url, "body": json.loads(request.body)})


def test_roads_are_static(gateway) -> None:
    client, adapter = gateway(echo_with_url)
    first = client.get("/api/roads")
    second = client.get("/api/roads")
    assert first.status_code == 200
    assert first.json() == second.json()
    assert [r["id"] for r in first.json()] == ["MG_ROAD_01", "BRIGADE_ROAD_02", "HOSUR_ROAD_03"]
    assert all(set(r) == {"id", "name", "path"} for r in first.json())
    assert adapter.requests == []


def test_simple_predict_uses_default_model(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.post("/api/predict", json={"road_id": "MG_ROAD_01", "model": "lstm"})
    assert resp.status_code == 200
    assert resp.json() == {
        "url": "http://xgboost.test/predict/",
        "body": {"road_id": "MG_ROAD_01", "model": "lstm"},
    }


def test_expert_predict_routes_by_model(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.post("/api/expert-predict", json={"model": "catboost", "hour": 9})
    assert resp.status_code == 200
    assert resp.json()["url"] == "http://catboost.test/predict/"
    assert resp.json()["body"] == {"model": "catboost", "hour": 9}


def test_expert_predict_relays_result_verbatim(gateway) -> None:
    client, _ = gateway(lambda request: make_response(request, 200, {"prediction": 42}))
    resp = client.post("/api/expert-predict", json={"model": "xgboost", "x": 1})
    assert resp.status_code == 200
    assert resp.json() == {"prediction": 42}


@pytest.mark.parametrize("body", [{"x": 1}, {"model": "unknownmodel"}])
def test_expert_predict_unsupported_model(gateway, body) -> None:
    client, adapter = gateway(echo_with_url)
    resp = client.post("/api/expert-predict", json=body)
    assert resp.status_code == 400
    assert "error" in resp.json() and "detail" in resp.json()
    assert adapter.requests == []


def test_unknown_model_error_message(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.post("/api/expert-predict", json={"model": "hybrid"})
    assert resp.json() == {"error": "Model 'hybrid' is not supported.", "detail": None}


def test_downstream_rejection_is_mirrored(gateway) -> None:
    client, _ = gateway(lambda request: make_response(request, 500, {"detail": "bad input"}))
    resp = client.post("/api/predict", json={"x": 1})
    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Prediction service for model xgboost failed",
        "detail": {"detail": "bad input"},
    }


def test_downstream_unreachable_is_503(gateway) -> None:
    def handler(request):
        raise requests.exceptions.ConnectionError("Connection refused")

    client, _ = gateway(handler)
    resp = client.post("/api/expert-predict", json={"model": "lstm"})
    assert resp.status_code == 503
    assert resp.json() == {
        "error": "Prediction service for model lstm unavailable",
        "detail": "Connection refused",
    }


def test_unexpected_error_is_generic_500(gateway) -> None:
    def handler(request):
        raise RuntimeError("boom")

    client, _ = gateway(handler)
    resp = client.post("/api/predict", json={"x": 1})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error", "detail": "boom"}


def test_health_always_200(gateway) -> None:
    def handler(request):
        if "lstm" in request.url:
            raise requests.exceptions.ConnectTimeout("timed out")
        return make_response(request, 503)

    client, _ = gateway(handler)
    resp = client.get("/api/health")
    assert resp.status_code == 200
    services = resp.json()["services"]
    assert set(services) == {"xgboost", "lstm", "catboost"}
    assert services["xgboost"] == {"ok": True, "status": 503, "message": None}
    assert services["lstm"]["ok"] is False
    assert services["lstm"]["status"] is None


def test_models_listing(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.get("/api/models")
    assert resp.status_code == 200
    assert resp.json()["default_model"] == "xgboost"
    assert [m["name"] for m in resp.json()["models"]] == ["xgboost", "lstm", "catboost"]


def relay_count(model: str, route: str, outcome: str) -> float:
    labels = {"model": model, "route": route, "outcome": outcome}
    return metrics_registry.get_sample_value("gateway_relay_total", labels) or 0.0


def test_liveness_and_metrics(gateway) -> None:
    client, _ = gateway(lambda request: make_response(request, 200, {"prediction": 1}))
    before = relay_count("xgboost", "predict", "success")
    client.post("/api/predict", json={})
    assert relay_count("xgboost", "predict", "success") == before + 1
    assert client.get("/healthz").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "gateway_relay_total" in metrics.text


def test_predict_without_body_forwards_empty_object(gateway) -> None:
    client, adapter = gateway(echo_with_url)
    resp = client.post("/api/predict")
    assert resp.status_code == 200
    assert resp.json()["body"] == {}
    assert len(adapter.requests) == 1


def test_predict_forwards_non_object_json(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.post("/api/predict", json=[1, 2, 3])
    assert resp.status_code == 200
    assert resp.json()["body"] == [1, 2, 3]


@pytest.mark.parametrize("kwargs", [{}, {"json": []}, {"json": "lstm"}])
def test_expert_predict_without_object_body_is_400(gateway, kwargs) -> None:
    client, adapter = gateway(echo_with_url)
    resp = client.post("/api/expert-predict", **kwargs)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Request body must include a 'model' field.", "detail": None}
    assert adapter.requests == []


def test_malformed_json_uses_error_shape(gateway) -> None:
    client, adapter = gateway(echo_with_url)
    resp = client.post("/api/predict", content=b"{bad", headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "Invalid request body"
    assert resp.json()["detail"]
    assert adapter.requests == []


def test_cors_headers(gateway) -> None:
    client, _ = gateway(echo_with_url)
    resp = client.get("/api/roads", headers={"Origin": "http://dashboard.local"})
    assert resp.headers["access-control-allow-origin"] == "*"


def test_custom_prefix(make_engine) -> None:
    cfg = GatewayConfig(models=MODELS, api_prefix="/v1")
    engine, _ = make_engine(echo_with_url)
    client = TestClient(create_app(cfg, engine))
    assert client.get("/v1/roads").status_code == 200
    assert client.get("/api/roads").status_code == 404
