"""
FastAPI Application — Entry Point

Contract processing API: upload a contract PDF, poll the background job.

Architecture:
  - POST /jobs hands the upload to the PipelineOrchestrator and returns 202
  - The orchestrator runs validate → extract text → extract structure →
    publish in one asyncio task per job; status lives in an in-memory store
  - Provider implementations (live vs demo) are chosen once, at startup
  - Structured JSON error responses on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. CORS: restrict to configured origins
  2. Gzip: compress responses > 1 KB
  3. Request ID + logging: X-Request-ID header and one log line per request
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from contractflow.api.jobs import router as jobs_router
from contractflow.core.config import Settings, get_settings
from contractflow.core.errors import InternalError, NotFoundError, ValidationError
from contractflow.providers.factory import build_providers
from contractflow.schemas.jobs import ErrorResponse, HealthResponse, JobErrors
from contractflow.services.pipeline import PipelineOrchestrator
from contractflow.services.registry import InMemoryJobStore
from contractflow.storage.uploads import UploadStore

logger = logging.getLogger(__name__)

_settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    """Wire the production orchestrator from settings."""
    return PipelineOrchestrator.from_providers(
        store=InMemoryJobStore(),
        uploads=UploadStore(settings.upload_dir),
        providers=build_providers(settings),
    )


# ---------------------------------------------------------------------------
# Application lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run on startup: log config summary.
    Run on shutdown: let in-flight jobs reach a terminal state.
    """
    orchestrator: PipelineOrchestrator = app.state.orchestrator
    settings: Settings = app.state.settings

    logger.info(
        "Starting contract processor | env=%s upload_dir=%s max_file_size_mb=%d demo_mode=%s",
        settings.app_env, settings.upload_dir, settings.max_file_size_mb, settings.demo_mode,
    )

    yield

    if orchestrator.in_flight:
        logger.info("Waiting for %d in-flight job(s) before shutdown", orchestrator.in_flight)
        await orchestrator.drain()
    logger.info("Shutting down contract processor")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings:     Settings | None = None,
    orchestrator: PipelineOrchestrator | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Contract Processor",
        description=(
            "Uploads contract PDFs, extracts key terms with an LLM and publishes "
            "a summary page. Processing is asynchronous; poll the job status."
        ),
        version="1.0.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order; last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app_env == "development" else [],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Job-ID", "Location"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def upload_validation_handler(request: Request, exc: ValidationError):
        logger.info("Rejected upload | code=%s reason=%s", exc.error_code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=JobErrors.invalid_request(exc).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed requests are client errors: 400 with the field-level details."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=JobErrors.request_validation(exc.errors()).model_dump(mode="json"),
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        job_id = getattr(exc, "job_id", None)
        body = JobErrors.job_not_found(job_id) if job_id else JobErrors.endpoint_not_found(request.url.path)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=body.model_dump(mode="json"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            body = JobErrors.endpoint_not_found(request.url.path)
        else:
            body = ErrorResponse(error_code=f"HTTP_{exc.status_code}", message=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(InternalError)
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions; never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=JobErrors.internal_error(request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(jobs_router)

    # ----------------------------------------------------------------
    # Health endpoint (used by load balancer)
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> HealthResponse:
        return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc))

    return app


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "contractflow.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=_settings.app_env == "development",
        log_level="debug" if _settings.debug else "info",
        access_log=True,
    )
