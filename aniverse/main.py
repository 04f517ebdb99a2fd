"""
Main Application - FastAPI application setup.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest

from aniverse.api.dependencies import close_providers
from aniverse.api.routes import router
from aniverse.config import settings
from aniverse.db.migration_runner import run_migrations
from aniverse.db.session import close_engine
from aniverse.models.api import StatusResponse
from aniverse.observability import get_logger, log_context, metrics, setup_logging, setup_tracing
from aniverse.observability.tracing import instrument_fastapi

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        port=settings.api_port,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.run_migrations:
        await asyncio.to_thread(run_migrations)

    yield

    logger.info("application_shutting_down")
    await close_providers()
    await close_engine()
    logger.info("resources_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors and answer in the common error shape."""
    errors = [
        {"loc": error.get("loc"), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=errors,
    )
    message = "; ".join(
        f"{'.'.join(str(p) for p in e['loc'] or ())}: {e['msg']}" for e in errors
    )
    return JSONResponse(status_code=422, content={"error": message or "Invalid request"})


setup_tracing()
instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    endpoint = request.url.path
    method = request.method

    with log_context(request_id=request_id):
        logger.info("request_started", method=method, path=endpoint)
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

        try:
            response = await call_next(request)
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, response.status_code, duration)

            logger.info(
                "request_completed",
                method=method,
                path=endpoint,
                status_code=response.status_code,
                duration_seconds=duration,
            )
            return response
        except Exception as e:
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, 500, duration)
            metrics.record_error(type(e).__name__, "http_request")

            logger.error(
                "request_failed",
                method=method,
                path=endpoint,
                error=str(e),
                duration_seconds=duration,
                exc_info=True,
            )
            raise
        finally:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


app.include_router(router)


@app.get("/", response_model=StatusResponse)
async def root() -> StatusResponse:
    """Root endpoint."""
    return StatusResponse(status="AniVerse AI backend running")


if settings.metrics_enabled:

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics in text exposition format."""
        return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "aniverse.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
