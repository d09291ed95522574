"""
Pipeline Orchestrator

Accepts a contract upload, registers a job, and runs the pipeline in a
background asyncio task:

  ┌──────────────────────────────────────────────────────────────────┐
  │ submit()  → stage upload → registry.create (pending) → return id │
  │                                                                  │
  │ background task:                                                 │
  │   pending → running                                              │
  │   1. validate          (sync signature check)                    │
  │   2. extract text      TextExtractionProvider                    │
  │   3. extract structure StructuredExtractionProvider              │
  │   4. publish           PublishingProvider                        │
  │   running → completed | failed                                   │
  │   finally: release staged upload (exactly once)                  │
  └──────────────────────────────────────────────────────────────────┘

Error policy:
  - StageError from any provider → job failed with the provider's message
  - signature mismatch           → job failed with "invalid document"
  - anything else                → logged with traceback, job failed with
                                   "internal error"
Nothing raised inside the background task ever reaches the HTTP layer.

There is no concurrency limit: every submission gets its own task.
"""

from __future__ import annotations

import asyncio
import logging

from contractflow.core.errors import JobNotFoundError, StageError
from contractflow.models.jobs import Job
from contractflow.providers.factory import Providers
from contractflow.providers.publishing import PublishingProvider
from contractflow.providers.structured import StructuredExtractionProvider
from contractflow.providers.text import TextExtractionProvider
from contractflow.services.registry import JobStore
from contractflow.storage.uploads import StagedUpload, UploadStore

logger = logging.getLogger(__name__)

INVALID_DOCUMENT = "invalid document"
INTERNAL_FAILURE = "internal error"


class PipelineOrchestrator:
    """
    Owns job submission and status queries.

    All dependencies are injected (testable, no hidden globals).
    One instance lives for the whole application (app.state.orchestrator).
    """

    def __init__(
        self,
        store:      JobStore,
        uploads:    UploadStore,
        text:       TextExtractionProvider,
        structured: StructuredExtractionProvider,
        publishing: PublishingProvider,
    ) -> None:
        self._store      = store
        self._uploads    = uploads
        self._text       = text
        self._structured = structured
        self._publishing = publishing
        # Strong references: the loop only keeps weak ones to running tasks
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_providers(
        cls,
        store:     JobStore,
        uploads:   UploadStore,
        providers: Providers,
    ) -> "PipelineOrchestrator":
        return cls(
            store=store,
            uploads=uploads,
            text=providers.text,
            structured=providers.structured,
            publishing=providers.publishing,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(
        self,
        payload:        bytes,
        source_name:    str,
        publish_target: str | None = None,
    ) -> str:
        """
        Register a job and schedule its pipeline. Returns the job id.

        The pending record exists before this returns, so the id can be
        polled immediately. Must be called from inside the running loop.
        """
        staged = self._uploads.stage(payload, source_name)
        job = self._store.create(source_name=source_name, publish_target=publish_target)

        task = asyncio.create_task(self._run(job.id, staged), name=f"pipeline-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(
            "Job submitted | job=%s source=%s size=%d target=%s",
            job.id, source_name, staged.size_bytes, publish_target or "-",
        )
        return job.id

    def get_status(self, job_id: str) -> Job:
        job = self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_all(self) -> list[Job]:
        return self._store.list_all()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight pipeline to reach a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    async def _run(self, job_id: str, upload: StagedUpload) -> None:
        try:
            await self._execute(job_id, upload)
        finally:
            await self._release(job_id, upload)

    async def _execute(self, job_id: str, upload: StagedUpload) -> None:
        job = self._store.update(job_id, Job.started)

        try:
            # ---- Stage 1: validate (synchronous) ----------------------
            logger.info("[%s] Validating document", job_id)
            payload = upload.read_bytes()
            if not self._text.validate(payload):
                logger.warning("[%s] Rejected: document signature mismatch", job_id)
                self._fail(job_id, INVALID_DOCUMENT)
                return

            # ---- Stage 2: extract text --------------------------------
            logger.info("[%s] Extracting text", job_id)
            text = await self._text.extract(payload)

            # ---- Stage 3: extract structure ---------------------------
            logger.info("[%s] Extracting contract data", job_id)
            record = await self._structured.extract(text)

            # ---- Stage 4: publish -------------------------------------
            logger.info("[%s] Publishing contract page", job_id)
            location = await self._publishing.publish(record, job.publish_target)

        except StageError as exc:
            logger.error("[%s] Stage %s failed: %s", job_id, exc.stage, exc.message)
            self._fail(job_id, exc.message)
            return
        except Exception:
            logger.exception("[%s] Unexpected pipeline error", job_id)
            self._fail(job_id, INTERNAL_FAILURE)
            return

        self._store.update(job_id, lambda current: current.completed(record, location))
        logger.info("[%s] Processing completed | location=%s", job_id, location)

    def _fail(self, job_id: str, reason: str) -> None:
        self._store.update(job_id, lambda current: current.failed(reason))

    async def _release(self, job_id: str, upload: StagedUpload) -> None:
        try:
            await self._uploads.release(upload)
        except Exception as exc:
            # Terminal status is already recorded; a leftover file is only logged
            logger.warning("[%s] Failed to delete staged upload %s: %s", job_id, upload.path, exc)
