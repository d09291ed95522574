"""
Upload Staging — transient on-disk copies of submitted documents

Every submission is written under settings.upload_dir as
    <upload_dir>/<uuid>.<ext>
and deleted once the job reaches a terminal state.

The on-disk name is always server-generated; the client filename is only
used to pick the extension and is never part of the path.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,8}$")


@dataclass(frozen=True)
class StagedUpload:
    """Handle to one staged document. Released exactly once by the pipeline."""
    path:       Path
    size_bytes: int

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class UploadStore:
    """Writes uploads to a local spool directory and deletes them on release."""

    def __init__(self, upload_dir: Path) -> None:
        self._dir = Path(upload_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def stage(self, payload: bytes, source_name: str) -> StagedUpload:
        """Persist payload under a fresh server-side name."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._dir / f"{uuid.uuid4()}{_safe_extension(source_name)}"
        path.write_bytes(payload)
        logger.debug("Upload staged | path=%s size=%d", path, len(payload))
        return StagedUpload(path=path, size_bytes=len(payload))

    async def release(self, upload: StagedUpload) -> None:
        """Delete the staged file. Raises OSError if the file cannot be removed."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, upload.path.unlink)
        logger.debug("Upload released | path=%s", upload.path)


def _safe_extension(filename: str) -> str:
    """Return a lowercased extension like '.pdf', or '' if it looks unsafe."""
    parts = filename.rsplit(".", 1)
    if len(parts) != 2:
        return ""
    ext = f".{parts[-1].lower()}"
    return ext if _EXTENSION_RE.match(ext) else ""
