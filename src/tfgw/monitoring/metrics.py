"""Prometheus metrics for the gateway."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

RELAY_COUNTER = Counter(
    "gateway_relay_total",
    "Prediction requests relayed, by outcome",
    ["model", "route", "outcome"],
    registry=registry,
)
RELAY_LATENCY = Histogram(
    "gateway_relay_latency_seconds",
    "Round trip to the downstream prediction service",
    ["model", "route"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=registry,
)
SERVICE_UP = Gauge(
    "gateway_service_up",
    "1 if the last health probe reached the service, else 0",
    ["model"],
    registry=registry,
)


def observe_relay(model: str, route: str, outcome: str, latency: float | None = None) -> None:
    RELAY_COUNTER.labels(model=model, route=route, outcome=outcome).inc()
    if latency is not None:
        RELAY_LATENCY.labels(model=model, route=route).observe(latency)


def set_service_up(model: str, up: bool) -> None:
    SERVICE_UP.labels(model=model).set(1 if up else 0)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(registry), CONTENT_TYPE_LATEST
