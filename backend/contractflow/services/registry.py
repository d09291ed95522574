"""
Job Registry — single source of truth for job status

Every concrete store implements JobStore. The orchestrator and the HTTP
layer only speak this interface, so the in-memory store can be replaced
by a persistent one without touching pipeline logic.

Concurrency contract (enforced by ALL implementations):
  - create/get/list_all/update are safe under concurrent callers.
  - update() swaps in a complete replacement record; a reader never
    observes a partially-updated job.
  - Records are never deleted.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

from contractflow.core.errors import JobNotFoundError
from contractflow.models.jobs import Job

logger = logging.getLogger(__name__)

JobMutation = Callable[[Job], Job]


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class JobStore(ABC):

    @abstractmethod
    def create(self, source_name: str, publish_target: str | None = None) -> Job:
        """Register a new pending job and return it."""

    @abstractmethod
    def get(self, job_id: str) -> Job | None:
        """Return the current record, or None if the id is unknown."""

    @abstractmethod
    def list_all(self) -> list[Job]:
        """Return every job in insertion order."""

    @abstractmethod
    def update(self, job_id: str, mutation: JobMutation) -> Job:
        """
        Replace the job with mutation(current) and return the new record.
        Raises JobNotFoundError for unknown ids.
        """

    @abstractmethod
    def count(self) -> int:
        """Number of registered jobs."""


# ---------------------------------------------------------------------------
# In-process implementation
# ---------------------------------------------------------------------------

class InMemoryJobStore(JobStore):
    """
    Process-lifetime job map. No eviction, no persistence.

    The lock guards the dict itself. Mutations are computed under the lock
    too, which keeps update() atomic even if a caller ever writes the same
    job from two places.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}   # dicts preserve insertion order
        self._lock = threading.Lock()

    def create(self, source_name: str, publish_target: str | None = None) -> Job:
        job = Job.new(source_name=source_name, publish_target=publish_target)
        with self._lock:
            # uuid4 collisions are not expected; guard anyway so ids stay unique
            while job.id in self._jobs:
                job = Job.new(source_name=source_name, publish_target=publish_target)
            self._jobs[job.id] = job
        logger.debug("Job registered | job=%s source=%s", job.id, source_name)
        return job

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def list_all(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def update(self, job_id: str, mutation: JobMutation) -> Job:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            updated = mutation(current)
            self._jobs[job_id] = updated
        return updated

    def count(self) -> int:
        with self._lock:
            return len(self._jobs)
