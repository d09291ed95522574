"""
Job API — Pydantic Request/Response Schemas

Covers:
  - Submission response (202 Accepted)
  - Status response (GET /jobs/{id}/status) with terminal-state fields
    included only when they apply
  - Job list (GET /jobs)
  - Health probe
  - Structured error bodies (400, 404, 413, 500)

Design decisions:
  - Job ids are always server-generated (UUID4); never client-supplied.
  - Job status is the async pipeline state, separate from HTTP status.
    A failed job is returned with 200; callers branch on `status`.
  - Wire keys are camelCase; None-valued optional fields are omitted.
  - All timestamps are ISO-8601 UTC strings.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from contractflow.core.errors import ValidationError
from contractflow.models.jobs import Job, JobStatus
from contractflow.schemas.contracts import ContractRecord

# Only PDFs are accepted at the HTTP boundary
ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset({"application/pdf"})
ALLOWED_EXTENSIONS:    frozenset[str] = frozenset({".pdf"})


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Submission: 202 Accepted
# ---------------------------------------------------------------------------

class JobSubmitResponse(_CamelModel):
    id:         str = Field(..., description="Server-generated job id")
    status_url: str = Field(..., description="Poll this URL for pipeline progress")


# ---------------------------------------------------------------------------
# Status: GET /jobs/{id}/status
# ---------------------------------------------------------------------------

class JobStatusResponse(_CamelModel):
    """
    outputLocation and result appear only when status=completed;
    failureReason only when status=failed.
    """
    id:              str
    source_name:     str
    status:          JobStatus
    created_at:      datetime
    completed_at:    datetime | None       = None
    output_location: str | None            = None
    result:          ContractRecord | None = None
    failure_reason:  str | None            = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        fields: dict = {}
        if job.status is JobStatus.COMPLETED:
            fields = {"output_location": job.output_location, "result": job.result}
        elif job.status is JobStatus.FAILED:
            fields = {"failure_reason": job.failure_reason}

        return cls(
            id=job.id,
            source_name=job.source_name,
            status=job.status,
            created_at=job.created_at,
            completed_at=job.completed_at,
            **fields,
        )


# ---------------------------------------------------------------------------
# List: GET /jobs
# ---------------------------------------------------------------------------

class JobSummary(_CamelModel):
    id:              str
    source_name:     str
    status:          JobStatus
    created_at:      datetime
    completed_at:    datetime | None = None
    output_location: str | None      = None

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(
            id=job.id,
            source_name=job.source_name,
            status=job.status,
            created_at=job.created_at,
            completed_at=job.completed_at,
            output_location=job.output_location if job.status is JobStatus.COMPLETED else None,
        )


class JobListResponse(_CamelModel):
    total: int
    jobs:  list[JobSummary]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status:    str = "healthy"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error; may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps route handlers thin)
# ---------------------------------------------------------------------------

class JobErrors:
    """Factories for every documented error case."""

    @staticmethod
    def invalid_request(exc: ValidationError) -> ErrorResponse:
        return ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=[ErrorDetail(field=exc.field, message=exc.detail or exc.message, code=exc.error_code)],
        )

    @staticmethod
    def request_validation(errors: list[dict]) -> ErrorResponse:
        """Convert FastAPI/Pydantic request validation errors."""
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=[
                ErrorDetail(
                    field=" → ".join(str(loc) for loc in err["loc"]),
                    message=err["msg"],
                    code="VALIDATION_ERROR",
                )
                for err in errors
            ],
        )

    @staticmethod
    def job_not_found(job_id: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="JOB_NOT_FOUND",
            message=f"Job '{job_id}' was not found.",
            details=[],
        )

    @staticmethod
    def endpoint_not_found(path: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="NOT_FOUND",
            message=f"Endpoint '{path}' was not found.",
            details=[],
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            details=[],
            request_id=request_id,
        )

