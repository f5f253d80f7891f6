"""Prediction gateway in front of the model microservices."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from tfgw.monitoring.metrics import render_metrics
from tfgw.serving.errors import GatewayError
from tfgw.serving.relay import RelayEngine
from tfgw.serving.roads import list_roads
from tfgw.serving.schemas import ErrorResponse, HealthResponse, ModelInfo, ModelsResponse, Road
from tfgw.utils.config import GatewayConfig, load_gateway_config
from tfgw.utils.logging import configure_logging, get_logger

configure_logging()
LOG = get_logger(__name__)

_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Model not supported"},
    500: {"model": ErrorResponse, "description": "Request could not be sent"},
    503: {"model": ErrorResponse, "description": "Prediction service unavailable"},
}


def build_router(config: GatewayConfig, engine: RelayEngine) -> APIRouter:
    router = APIRouter(prefix=config.api_prefix)

    @router.get("/roads", response_model=List[Road])
    def roads() -> List[Road]:
        return list_roads()

    @router.post("/predict", responses=_ERROR_RESPONSES)
    def predict(payload: Any = Body(default=None)) -> JSONResponse:
        LOG.info("Received request on simple route")
        # A request without a body is forwarded as an empty object.
        result = engine.relay(None, {} if payload is None else payload, route="predict")
        return JSONResponse(status_code=200, content=result)

    @router.post("/expert-predict", responses=_ERROR_RESPONSES)
    def expert_predict(payload: Any = Body(default=None)) -> JSONResponse:
        model = payload.get("model") if isinstance(payload, Mapping) else None
        LOG.info("Received request on expert route", extra={"model": str(model)})
        result = engine.relay_expert(payload)
        return JSONResponse(status_code=200, content=result)

    @router.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(services=engine.health_check())

    @router.get("/models", response_model=ModelsResponse)
    def models() -> ModelsResponse:
        return ModelsResponse(
            default_model=engine.default_model,
            models=[ModelInfo(name=e.name, base_url=e.base_url) for e in engine.registry.all_entries()],
        )

    return router


def create_app(config: Optional[GatewayConfig] = None, engine: Optional[RelayEngine] = None) -> FastAPI:
    cfg = config or load_gateway_config()
    relay_engine = engine or RelayEngine.from_config(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        LOG.info(
            "Gateway starting",
            extra={"models": relay_engine.registry.names(), "default_model": relay_engine.default_model},
        )
        yield
        LOG.info("Gateway shutting down")
        relay_engine.close()

    app = FastAPI(title="Traffic Flow Gateway", version="0.1.0", lifespan=lifespan)
    app.state.config = cfg
    app.state.engine = relay_engine
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        LOG.warning("Rejected request body", extra={"path": request.url.path})
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request body", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        LOG.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"error": "Internal Server Error", "detail": str(exc)})

    @app.get("/healthz")
    def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> PlainTextResponse:
        data, content_type = render_metrics()
        return PlainTextResponse(content=data.decode(), media_type=content_type)

    app.include_router(build_router(cfg, relay_engine))
    return app
