"""
HTTP endpoints for warnwatch.

This module implements health, readiness, metrics, and info endpoints
for monitoring and operational visibility, and mounts the warning
query API.
"""

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from warnwatch.settings import Settings
from warnwatch.adapters.storage.warning_cache import WarningCache
from warnwatch.api.routes import router as query_router
from warnwatch.observability.logging_setup import get_logger
from warnwatch.services.query import QueryService

log = get_logger("warnwatch.http")

def create_app(settings: Settings, cache: WarningCache, query_service: QueryService) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="Severe weather warning watcher"
    )
    app.state.query_service = query_service
    app.include_router(query_router)

    start_time = time.time()

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트 (첫 스냅샷 적재 전에는 503)"""
        snapshot = cache.read()
        if not cache.is_primed:
            return JSONResponse({
                "status": "not_ready",
                "service": settings.observability.service_name,
                "timestamp": time.time()
            }, status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "warnings": len(snapshot),
            "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        try:
            return Response(
                generate_latest(),
                media_type=CONTENT_TYPE_LATEST
            )
        except Exception as e:
            log.error(f"메트릭 생성 오류: {e}")
            raise HTTPException(status_code=500, detail="Metrics generation failed")

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "feed_url": settings.feed.url,
            "fetch_interval_sec": settings.feed.interval_sec,
            "severity_threshold": settings.notify.severity_threshold,
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level
        })

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "weather_warnings": "/api/weather-warnings"
            }
        })

    return app
