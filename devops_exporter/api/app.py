"""
FastAPI Application - Prometheus scrape endpoint

Endpoints:
    GET /metrics  Prometheus text exposition of all published families
    GET /health   Latest cycle outcome per collector and project

Usage:
    app = create_app(registry, health, scheduler=scheduler, commits=commits)
    uvicorn.run(app, host="0.0.0.0", port=8080)
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from devops_exporter import __version__
from devops_exporter.api.middleware import RequestIDMiddleware
from devops_exporter.core import CollectorHealth, get_logger
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.metrics.registry import GaugeRegistry
from devops_exporter.scheduler import Scheduler

logger = get_logger(__name__)


def create_app(
    registry: GaugeRegistry,
    health: CollectorHealth,
    scheduler: Scheduler | None = None,
    commits: CommitQueue | None = None,
) -> FastAPI:
    """
    Create and configure the exporter application.

    When a scheduler and commit queue are given they are started with the
    application and stopped on shutdown.

    Args:
        registry: Registry served on /metrics
        health: Cycle outcomes served on /health
        scheduler: Optional scheduler driving the collectors
        commits: Optional commit queue applying cycle results

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Azure DevOps Exporter",
        description="Prometheus metrics for Azure DevOps builds and releases",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )

    app.add_middleware(RequestIDMiddleware)

    @app.on_event("startup")
    async def startup_event():
        """Start the commit queue and collector loops."""
        logger.info("Azure DevOps exporter starting up")
        if commits is not None:
            commits.start()
        if scheduler is not None:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop collector loops, then apply pending commits."""
        logger.info("Azure DevOps exporter shutting down")
        if scheduler is not None:
            await scheduler.stop()
        if commits is not None:
            await commits.stop()

    @app.get("/metrics", tags=["Metrics"])
    def metrics() -> Response:
        """Prometheus scrape endpoint."""
        return Response(content=registry.exposition(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", tags=["Health"])
    def health_check() -> JSONResponse:
        """
        Health check endpoint for monitoring.

        Returns:
            200 "healthy" when every latest cycle succeeded, 503 "degraded" otherwise
        """
        cycles = health.snapshot()
        health_status: dict[str, Any] = {
            "status": "healthy" if health.is_healthy() else "degraded",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "cycles": cycles,
        }
        if commits is not None:
            health_status["commits"] = {"applied": commits.applied, "failed": commits.failed}

        status_code = 200 if health_status["status"] == "healthy" else 503
        return JSONResponse(content=health_status, status_code=status_code)

    return app
