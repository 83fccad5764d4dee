#!/usr/bin/env python3
"""FastAPI service exposing one cached endpoint per market metric."""
from __future__ import annotations

import argparse
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from backend.logging_config import REQUEST_ID_CTX, log_config, setup_logging
from backend.market.cache import MetricCacheStore
from backend.market.config import Settings
from backend.market.fetcher import RetryingFetcher
from backend.market.orchestrator import ResolutionOrchestrator, UnknownMetricError
from backend.market.resolvers import MetricResolver, default_resolvers
from backend.market.schemas import ClearCacheResponse, HealthResponse
from backend.metrics import collect_metrics, render_prometheus

logger = logging.getLogger("market_api")


def build_orchestrator(settings: Settings) -> ResolutionOrchestrator:
    store = MetricCacheStore(freshness_seconds=settings.cache_duration_seconds)
    fetcher = RetryingFetcher(
        max_attempts=settings.fetch_max_attempts,
        base_delay_ms=settings.fetch_base_delay_ms,
        timeout_seconds=settings.fetch_timeout_seconds,
    )
    resolvers = default_resolvers(settings.coingecko_base_url, settings.frankfurter_base_url)
    return ResolutionOrchestrator(
        store,
        fetcher,
        resolvers,
        single_flight=settings.single_flight,
        environment=settings.environment,
    )


def _metric_endpoint(orchestrator: ResolutionOrchestrator, resolver: MetricResolver):
    async def endpoint() -> JSONResponse:
        envelope = await orchestrator.resolve(resolver.name)
        return JSONResponse(envelope.to_response())

    endpoint.__name__ = f"get_{resolver.name}"
    return endpoint


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[ResolutionOrchestrator] = None,
    *,
    configure_logging: bool = True,
    serve_static: bool = True,
) -> FastAPI:
    settings = settings or Settings.from_env()
    orchestrator = orchestrator or build_orchestrator(settings)

    app = FastAPI(title="Market Metrics Cache", version="1.0.0")
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = REQUEST_ID_CTX.set(rid)
        try:
            response = await call_next(request)
        finally:
            REQUEST_ID_CTX.reset(token)
        response.headers["X-Request-ID"] = rid
        return response

    @app.on_event("startup")
    async def _startup_event() -> None:
        if configure_logging:
            setup_logging(level=settings.log_level)
        log_config(settings.as_dict())
        logger.info("API endpoints: %s", ", ".join(r.route for r in orchestrator.resolvers))
        logger.info("Cache enabled: %ss duration", settings.cache_duration_seconds)

    @app.on_event("shutdown")
    async def _shutdown_event() -> None:
        await orchestrator.close()

    for resolver in orchestrator.resolvers:
        app.add_api_route(resolver.route, _metric_endpoint(orchestrator, resolver), methods=["GET"])

    @app.get("/api/metric/{name}")
    async def get_metric(name: str) -> JSONResponse:
        try:
            envelope = await orchestrator.resolve(name)
        except UnknownMetricError:
            raise HTTPException(status_code=404, detail=f"Unknown metric '{name}'")
        return JSONResponse(envelope.to_response())

    @app.api_route("/api/clear-cache", methods=["GET", "POST"], response_model=ClearCacheResponse)
    async def clear_cache() -> ClearCacheResponse:
        orchestrator.clear_all()
        return ClearCacheResponse()

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> Dict[str, Any]:
        return orchestrator.health()

    @app.get("/api/metrics")
    async def metrics_json() -> Dict[str, Any]:
        return collect_metrics(orchestrator, app.state.started_at)

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_prom() -> PlainTextResponse:
        snapshot = collect_metrics(orchestrator, app.state.started_at)
        return PlainTextResponse(render_prometheus(snapshot), media_type="text/plain; version=0.0.4")

    static_dir = Path(settings.static_dir)
    if serve_static and static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="client")

    return app


app = create_app()


def main() -> None:
    defaults = Settings.from_env()
    parser = argparse.ArgumentParser(description="Run the market metrics cache service")
    parser.add_argument("--host", default=defaults.host)
    parser.add_argument("--port", type=int, default=defaults.port)
    parser.add_argument("--log-level", default=defaults.log_level.lower())
    parser.add_argument("--reload", action="store_true", help="Enable uvicorn autoreload (dev only)")
    args = parser.parse_args()

    import uvicorn  # Imported lazily so cli tools don't require it

    uvicorn.run(
        "backend.market_api:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
