"""
Contract Job API Router

  POST /jobs                 upload a contract PDF, returns 202 + job id
  GET  /jobs/{job_id}/status poll one job
  GET  /jobs                 list every job in submission order

Request lifecycle (POST):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Content-Length guard (413 before reading the body)   │
  │ 2. File presence + declared type/extension check (400)  │
  │ 3. Read body, size guard (413)                          │
  │ 4. orchestrator.submit() → job registered as pending    │
  │ 5. 202 { id, statusUrl }; pipeline runs in background   │
  └─────────────────────────────────────────────────────────┘

The router holds no business logic: document signature validation and
every pipeline stage happen in the orchestrator's background task.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse

from contractflow.core.config import Settings
from contractflow.core.errors import ValidationError
from contractflow.schemas.jobs import (
    ALLOWED_CONTENT_TYPES,
    ALLOWED_EXTENSIONS,
    ErrorResponse,
    JobListResponse,
    JobStatusResponse,
    JobSubmitResponse,
    JobSummary,
)
from contractflow.services.pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/jobs",
    tags=["Contract Jobs"],
)

# Multipart framing overhead tolerated on top of the file size limit
_FORM_OVERHEAD_BYTES = 4096


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    """The single orchestrator instance created by the app factory."""
    return request.app.state.orchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# POST /jobs
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=JobSubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload a contract for processing",
    description=(
        "Accepts a single PDF. Returns 202 immediately; processing is asynchronous. "
        "Poll GET /jobs/{id}/status for the outcome."
    ),
    responses={
        202: {"model": JobSubmitResponse, "description": "Contract accepted for processing"},
        400: {"model": ErrorResponse, "description": "No file, empty file, or not a PDF"},
        413: {"model": ErrorResponse, "description": "File exceeds the size limit"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def submit_job(
    request:        Request,
    file:           Optional[UploadFile] = File(None, description="Contract PDF"),
    publish_target: Optional[str]        = Form(
        None,
        alias="publishTarget",
        description="Optional page URL passed through to the publishing step",
    ),
    orchestrator:   PipelineOrchestrator = Depends(get_orchestrator),
    settings:       Settings             = Depends(get_app_settings),
) -> JSONResponse:
    limit = settings.max_file_size_bytes

    # Guard: reject oversized requests before reading the body
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > limit + _FORM_OVERHEAD_BYTES:
        raise _too_large(int(content_length), limit)

    payload = await _read_upload(file, limit)
    source_name = file.filename or "upload.pdf"
    target = publish_target.strip() if publish_target and publish_target.strip() else None

    job_id = orchestrator.submit(payload, source_name, publish_target=target)

    body = JobSubmitResponse(id=job_id, status_url=f"/jobs/{job_id}/status")
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(mode="json", by_alias=True),
        headers={
            "X-Job-ID": job_id,
            "Location": body.status_url,
        },
    )


# ---------------------------------------------------------------------------
# GET /jobs/{job_id}/status
# ---------------------------------------------------------------------------

@router.get(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
    summary="Poll async processing status",
    responses={
        200: {"model": JobStatusResponse},
        404: {"model": ErrorResponse},
    },
)
async def get_job_status(
    job_id:       str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> JobStatusResponse:
    """A failed job is still a 200: the outcome is in `status`, not the HTTP code."""
    return JobStatusResponse.from_job(orchestrator.get_status(job_id))


# ---------------------------------------------------------------------------
# GET /jobs
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=JobListResponse,
    response_model_exclude_none=True,
    summary="List all jobs",
)
async def list_jobs(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> JobListResponse:
    jobs = orchestrator.list_all()
    return JobListResponse(total=len(jobs), jobs=[JobSummary.from_job(j) for j in jobs])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _read_upload(file: UploadFile | None, limit: int) -> bytes:
    """
    Check presence and declared type, then read with a hard size ceiling.
    The PDF signature itself is checked later, inside the pipeline.
    """
    if file is None or not file.filename:
        raise _missing_file()

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    extension = _get_extension(file.filename)
    if content_type not in ALLOWED_CONTENT_TYPES and extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type '{content_type or extension or 'unknown'}' is not supported.",
            error_code="UNSUPPORTED_FILE_TYPE",
            field="file",
            detail=f"'{file.filename}' is not a PDF. Only PDF files are accepted.",
        )

    data = await file.read()
    if not data:
        raise _missing_file()

    if len(data) > limit:
        raise _too_large(len(data), limit)

    return data


def _get_extension(filename: str) -> str:
    """Return lowercased file extension including the dot."""
    parts = filename.rsplit(".", 1)
    return f".{parts[-1].lower()}" if len(parts) == 2 else ""


def _missing_file() -> ValidationError:
    return ValidationError(
        "No file was provided in the request.",
        error_code="MISSING_FILE",
        field="file",
        detail="The 'file' multipart field is required and must not be empty.",
    )


def _too_large(size_bytes: int, limit_bytes: int) -> ValidationError:
    return ValidationError(
        f"Uploaded file exceeds the {limit_bytes // (1024 * 1024)} MB limit.",
        error_code="FILE_TOO_LARGE",
        field="file",
        detail=f"Received {size_bytes:,} bytes; limit is {limit_bytes:,} bytes.",
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    )
