"""Search service main application."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as api_router
from .hybrid.search_manager import HybridSearchManager, create_search_manager
from .ranking.budget import ContextBudgeter
from libs.common.config import SearchConfig
from libs.common.logging import configure_logging, request_context
from libs.common.metrics import MetricsCollector, get_metrics_collector

logger = structlog.get_logger("search_service")


def create_app(
    config: Optional[SearchConfig] = None,
    search_manager: Optional[HybridSearchManager] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Components not passed in are created from configuration at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        service_config = config or SearchConfig()
        configure_logging(
            "search-service",
            service_config.rag_log_level,
            service_config.rag_log_format,
            env=service_config.rag_env,
        )

        logger.info("Starting search service")

        app.state.config = service_config
        app.state.metrics_collector = metrics_collector or get_metrics_collector("search-service")
        app.state.search_manager = search_manager or create_search_manager(
            service_config, metrics=app.state.metrics_collector
        )
        app.state.budgeter = ContextBudgeter(
            max_chunks=service_config.rag_search_max_context_chunks,
            max_tokens=service_config.rag_search_max_context_tokens,
        )

        logger.info(
            "Search service started successfully",
            vector_backend=service_config.rag_vector_backend,
            lexical_backend=service_config.rag_lexical_backend
        )

        yield

        # Shutdown
        logger.info("Shutting down search service")
        await app.state.search_manager.cleanup()
        logger.info("Search service shutdown complete")

    app = FastAPI(
        title="Search Service",
        description="Hybrid semantic and lexical retrieval for RAG",
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests and bind a request id to logs."""
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        with request_context(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
            except Exception as e:
                logger.error("Unhandled request error", path=request.url.path, error=str(e))
                status_code = 500
                response = JSONResponse(
                    status_code=500,
                    content={"error": "Internal server error", "detail": str(e)}
                )

        duration = time.time() - start_time
        response.headers["X-Process-Time"] = str(duration)
        response.headers["X-Request-ID"] = request_id

        if hasattr(app.state, "metrics_collector"):
            app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status=status_code,
                duration=duration
            )

        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        try:
            checks = await app.state.search_manager.health_check()
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "service": "search-service", "error": str(e)}
            )

        body = {"service": "search-service", "checks": checks}
        if all(checks.values()):
            return {"status": "healthy", **body}
        return JSONResponse(status_code=503, content={"status": "unhealthy", **body})

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        if hasattr(app.state, "metrics_collector"):
            return Response(content=app.state.metrics_collector.get_metrics(), media_type="text/plain")
        return Response(content="# No metrics available\n", media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "search-service",
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "metrics": "/metrics",
                "search": "/api/v1/search"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=SearchConfig().rag_search_port,
        reload=True,
        log_level="info"
    )
