"""
Scoped temporary storage for uploaded files.

An upload is written to a uniquely named file for the duration of one
request and removed on every exit path.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated
from uuid import uuid4

import anyio
from fastapi import Depends, UploadFile

from app.config import Settings, get_settings
from app.shared.exceptions import UploadTooLargeError
from app.shared.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StagedUpload:
    """An upload written to the staging directory."""

    path: Path
    filename: str | None
    size: int

    async def read_bytes(self) -> bytes:
        return await anyio.Path(self.path).read_bytes()


class UploadStaging:
    """Stages uploads in a directory and guarantees their removal."""

    def __init__(
        self,
        directory: Path,
        max_bytes: int | None = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        """Initialize staging area.

        Args:
            directory: Where staged files are written; created on demand.
            max_bytes: Optional upper bound on upload size.
            chunk_size: Read size when copying the upload stream.
        """
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size

    def _target_for(self, filename: str | None) -> Path:
        suffix = Path(filename).suffix.lower() if filename else ""
        return self.directory / f"{uuid4().hex}{suffix}"

    @asynccontextmanager
    async def stage(self, upload: UploadFile) -> AsyncGenerator[StagedUpload, None]:
        """Write an upload to disk and yield a handle to it.

        The staged file is deleted when the block exits, whether it returns
        normally or raises.

        Raises:
            UploadTooLargeError: If the upload exceeds ``max_bytes``.
        """
        await anyio.Path(self.directory).mkdir(parents=True, exist_ok=True)
        target = self._target_for(upload.filename)

        try:
            size = 0
            async with await anyio.open_file(target, "wb") as handle:
                while chunk := await upload.read(self.chunk_size):
                    size += len(chunk)
                    if self.max_bytes is not None and size > self.max_bytes:
                        raise UploadTooLargeError(self.max_bytes)
                    await handle.write(chunk)

            logger.debug(
                "Upload staged",
                extra={"staged_path": str(target), "upload_filename": upload.filename, "size": size},
            )
            yield StagedUpload(path=target, filename=upload.filename, size=size)
        finally:
            await anyio.Path(target).unlink(missing_ok=True)
            logger.debug("Staged upload removed", extra={"staged_path": str(target)})


def get_upload_staging(
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadStaging:
    """Dependency for the request's upload staging area."""
    return UploadStaging(
        directory=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
    )


__all__ = ["StagedUpload", "UploadStaging", "get_upload_staging"]
