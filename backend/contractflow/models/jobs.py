"""
Job — the unit of trackable pipeline work.

Records are immutable. Every state change builds a complete replacement
record and the registry swaps it in with a single assignment, so readers
observe either the old record or the new one, never a mix.

Transitions: pending → running → completed | failed
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from contractflow.core.errors import InvalidTransitionError
from contractflow.schemas.contracts import ContractRecord


class JobStatus(str, Enum):
    PENDING   = "pending"     # registered, background task not yet started
    RUNNING   = "running"     # background task is executing stages
    COMPLETED = "completed"   # all stages succeeded
    FAILED    = "failed"      # a stage raised, or the document was rejected

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    id:              str
    source_name:     str
    status:          JobStatus
    created_at:      datetime
    publish_target:  str | None            = None
    completed_at:    datetime | None       = None
    result:          ContractRecord | None = None
    output_location: str | None            = None
    failure_reason:  str | None            = None

    @classmethod
    def new(cls, source_name: str, publish_target: str | None = None) -> "Job":
        return cls(
            id=str(uuid.uuid4()),
            source_name=source_name,
            status=JobStatus.PENDING,
            created_at=utcnow(),
            publish_target=publish_target,
        )

    # ------------------------------------------------------------------
    # Transitions: each returns a new record
    # ------------------------------------------------------------------

    def started(self) -> "Job":
        self._require(JobStatus.PENDING, JobStatus.RUNNING)
        return replace(self, status=JobStatus.RUNNING)

    def completed(self, result: ContractRecord, output_location: str) -> "Job":
        self._require(JobStatus.RUNNING, JobStatus.COMPLETED)
        return replace(
            self,
            status=JobStatus.COMPLETED,
            completed_at=utcnow(),
            result=result,
            output_location=output_location,
        )

    def failed(self, reason: str) -> "Job":
        # A job may fail before it was marked running only if the task never started
        if self.status.is_terminal:
            raise InvalidTransitionError(self.id, self.status.value, JobStatus.FAILED.value)
        return replace(
            self,
            status=JobStatus.FAILED,
            completed_at=utcnow(),
            failure_reason=reason,
        )

    def _require(self, expected: JobStatus, target: JobStatus) -> None:
        if self.status is not expected:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
