"""Relay engine: forwards prediction requests and probes downstream services."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Dict, Mapping, Optional

import requests

from tfgw.monitoring.metrics import observe_relay, set_service_up
from tfgw.registry.models import RegistryEntry
from tfgw.registry.store import ModelNotFound, ModelRegistry
from tfgw.serving.client import PredictionServiceClient
from tfgw.serving.errors import (
    GatewayError,
    classify_exception,
    missing_model_field,
    rejected_error,
    unsupported_model,
)
from tfgw.serving.schemas import HealthReport, ServiceHealth
from tfgw.utils.config import GatewayConfig
from tfgw.utils.logging import get_logger

LOG = get_logger(__name__)

PREDICT_PATH = "/predict/"


def relay_body(response: requests.Response) -> Any:
    """Downstream 2xx body as-is: parsed JSON, or the raw text if it is not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RelayEngine:
    def __init__(
        self,
        registry: ModelRegistry,
        client: PredictionServiceClient,
        default_model: str,
        health_deadline: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self.default_model = default_model
        # Bound on a whole health report; probe_timeout applies per connect/read phase.
        self.health_deadline = health_deadline if health_deadline is not None else 2 * client.probe_timeout

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "RelayEngine":
        client = PredictionServiceClient(
            timeout=config.predict_timeout,
            probe_timeout=config.health_timeout,
            pool_maxsize=config.pool_maxsize,
        )
        return cls(ModelRegistry.from_config(config), client, config.default_model, config.health_deadline)

    def relay(self, model: Optional[str], payload: Any, route: str = "predict") -> Any:
        """Forward ``payload`` to the model's ``/predict/`` endpoint.

        ``model=None`` selects the configured default model. Returns the
        downstream result unchanged or raises :class:`GatewayError`.
        """
        name = self.default_model if model is None else model
        try:
            base_url = self.registry.resolve(name)
        except ModelNotFound:
            LOG.error("No service configured for model", extra={"model": str(name), "route": route})
            observe_relay("unsupported", route, "UnsupportedModel")
            raise unsupported_model(name) from None

        url = base_url + PREDICT_PATH
        LOG.info("Forwarding prediction request", extra={"model": name, "route": route, "url": url})
        start = time.perf_counter()
        try:
            try:
                response = self.client.predict(url, payload)
            except (requests.RequestException, TypeError, ValueError) as exc:
                raise classify_exception(name, exc) from exc
            if not 200 <= response.status_code < 300:
                raise rejected_error(name, response)
            result = relay_body(response)
        except GatewayError as err:
            latency = time.perf_counter() - start
            LOG.error(
                "Prediction service call failed",
                extra={
                    "model": name,
                    "route": route,
                    "kind": err.kind.value,
                    "status": err.status_code,
                    "detail": str(err.detail),
                },
            )
            observe_relay(name, route, err.kind.value, latency)
            raise
        latency = time.perf_counter() - start
        observe_relay(name, route, "success", latency)
        LOG.info("Relayed prediction", extra={"model": name, "route": route, "latency_ms": latency * 1000.0})
        return result

    def relay_expert(self, payload: Any) -> Any:
        """Relay using the ``model`` field of the payload, which is forwarded too.

        A body that is not a JSON object has no ``model`` field.
        """
        model = payload.get("model") if isinstance(payload, Mapping) else None
        if model is None:
            LOG.error("Expert request without model field")
            observe_relay("unsupported", "expert-predict", "UnsupportedModel")
            raise missing_model_field()
        if not isinstance(model, str):
            observe_relay("unsupported", "expert-predict", "UnsupportedModel")
            raise unsupported_model(model)
        return self.relay(model, payload, route="expert-predict")

    def _probe(self, entry: RegistryEntry) -> ServiceHealth:
        try:
            status = self.client.probe(entry.base_url)
        except requests.RequestException as exc:
            response = getattr(exc, "response", None)
            LOG.warning("Health probe failed", extra={"model": entry.name, "error": str(exc)})
            return ServiceHealth(
                ok=False,
                status=response.status_code if response is not None else None,
                message=str(exc),
            )
        return ServiceHealth(ok=True, status=status)

    def health_check(self) -> HealthReport:
        """Probe every registered service concurrently.

        Waits for all probes, but no longer than ``health_deadline`` seconds;
        services still pending then are reported unreachable.
        """
        entries = self.registry.all_entries()
        if not entries:
            return {}
        pool = ThreadPoolExecutor(max_workers=len(entries), thread_name_prefix="health-probe")
        try:
            futures = {pool.submit(self._probe, entry): entry for entry in entries}
            _, pending = wait(futures, timeout=self.health_deadline)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        report: Dict[str, ServiceHealth] = {}
        for future, entry in futures.items():
            if future in pending:
                LOG.warning("Health probe exceeded deadline", extra={"model": entry.name})
                report[entry.name] = ServiceHealth(
                    ok=False, status=None, message=f"No response within {self.health_deadline}s"
                )
            else:
                report[entry.name] = future.result()
            set_service_up(entry.name, report[entry.name].ok)
        return report

    def close(self) -> None:
        self.client.close()
