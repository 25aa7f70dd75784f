"""
Insights service entry point.

The app serves the insights routes and owns the background analysis
runtime: the worker and backfill tasks live exactly as long as the
lifespan does.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from insights.api import api_router
from insights.core.config import settings
from insights.core.exceptions import ProviderConfigurationError
from insights.core.logging import get_logger, setup_logging
from insights.db.session import check_db_health, close_db, init_db
from insights.workers.runtime import AnalysisRuntime

setup_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Database check, then analysis runtime up; on shutdown the runtime's
    tasks are cancelled and joined before the pool is disposed.
    """
    logger.info("insights_starting", environment=settings.APP_ENV, version=VERSION)
    await init_db()

    runtime = AnalysisRuntime()
    await runtime.start()
    app.state.runtime = runtime

    try:
        yield
    finally:
        logger.info("insights_stopping", queue_depth=runtime.queue.qsize())
        await runtime.stop()
        app.state.runtime = None
        await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Submission image analysis, client review summaries and approval prediction",
    version=VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health", tags=["health"])
async def health_check(request: Request) -> JSONResponse:
    """Database connectivity plus analysis worker state and queue depth."""
    db_healthy = await check_db_health()
    runtime = getattr(request.app.state, "runtime", None)
    worker_running = runtime is not None and runtime.is_running

    return JSONResponse(
        status_code=200 if db_healthy else 503,
        content={
            "status": "healthy" if db_healthy else "unhealthy",
            "version": VERSION,
            "environment": settings.APP_ENV,
            "database": "connected" if db_healthy else "disconnected",
            "analysis_worker": "running" if worker_running else "stopped",
            "analysis_queue_depth": runtime.queue.qsize() if runtime is not None else 0,
        },
    )


@app.exception_handler(ProviderConfigurationError)
async def provider_configuration_handler(request: Request, exc: ProviderConfigurationError) -> JSONResponse:
    # Missing credentials make the feature unavailable; the request itself was fine
    logger.error("provider_not_configured", provider=exc.provider, error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=503,
        content=_error_body("provider_not_configured", "AI provider is not configured for this deployment."),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", "An unexpected error occurred. Please try again later."),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "insights.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
