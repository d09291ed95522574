"""
Error taxonomy for the contract pipeline.

  ContractFlowError
  ├── ValidationError         malformed request or document → 4xx, never reaches the pipeline
  ├── StageError              provider failure during a pipeline stage → job becomes failed
  │   ├── ExtractionError
  │   ├── StructuredExtractionError
  │   └── PublishingError
  ├── NotFoundError           → 404
  │   └── JobNotFoundError
  ├── InvalidTransitionError  job state machine misuse (defect)
  └── InternalError           unexpected defect → 500

Stage errors are converted into a terminal job state by the orchestrator.
They never reach the HTTP layer: the submitting request has already returned.
"""

from __future__ import annotations


class ContractFlowError(Exception):
    """Base class for every error raised by this package."""

    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ContractFlowError):
    """Request-level validation failure (missing file, wrong type, too large)."""

    error_code = "INVALID_REQUEST"

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        field: str | None = None,
        detail: str | None = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message)
        if error_code:
            self.error_code = error_code
        self.field = field
        self.detail = detail
        self.status_code = status_code


class StageError(ContractFlowError):
    """A provider failed while running one pipeline stage."""

    error_code = "STAGE_FAILED"
    stage: str = "unknown"


class ExtractionError(StageError):
    stage = "extract_text"


class StructuredExtractionError(StageError):
    stage = "extract_structure"


class PublishingError(StageError):
    stage = "publish"


class NotFoundError(ContractFlowError):
    error_code = "NOT_FOUND"


class JobNotFoundError(NotFoundError):
    error_code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job '{job_id}' was not found.")
        self.job_id = job_id


class InvalidTransitionError(ContractFlowError):
    """Raised when a job is moved to a state its current state cannot reach."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(f"Job '{job_id}' cannot move from '{current}' to '{target}'.")
        self.job_id = job_id
        self.current = current
        self.target = target


class InternalError(ContractFlowError):
    error_code = "INTERNAL_ERROR"
