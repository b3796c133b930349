"""
Ephemeral on-disk staging for packed, not-yet-encrypted archives.

A StagingFile is created when a vault is built and must be gone from disk once
the vault is closed. Closing releases the handle, deletes the file and checks
that the path no longer exists. Any deviation (second close, handle already
closed, file removed behind our back) is reported as StagingDeleteFailedError
so the caller knows whether cleanup really happened.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

from .exceptions import StagingCreateFailedError, StagingDeleteFailedError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "arcsek-"
# Cosmetic only, the staged archive is not compressed.
DEFAULT_SUFFIX = ".tar.gz"


class StagingFile:
    """A uniquely named temporary file owned by exactly one vault."""

    def __init__(self, path: Path | str, handle: BinaryIO):
        self.path = Path(path)
        self.handle = handle
        self._released = False

    @classmethod
    def create(
        cls,
        directory: Optional[Path | str] = None,
        prefix: str = DEFAULT_PREFIX,
        suffix: str = DEFAULT_SUFFIX,
    ) -> "StagingFile":
        """Create and open (``w+b``) a new staging file."""
        try:
            fd, name = tempfile.mkstemp(
                prefix=prefix,
                suffix=suffix,
                dir=str(directory) if directory is not None else None,
            )
        except OSError as e:
            raise StagingCreateFailedError(f"Failed to create staging file: {e}") from e
        try:
            handle = os.fdopen(fd, "w+b")
        except OSError as e:
            os.close(fd)
            os.unlink(name)
            raise StagingCreateFailedError(f"Failed to open staging file {name}: {e}") from e
        logger.debug("created staging file %s", name)
        return cls(name, handle)

    @property
    def released(self) -> bool:
        return self._released

    def rewind(self) -> None:
        self.handle.flush()
        self.handle.seek(0)

    def close(self) -> None:
        """Release the handle and delete the file; raise if either fails."""
        if self._released:
            raise StagingDeleteFailedError(f"Staging file {self.path} was already closed")
        self._released = True

        if self.handle.closed:
            raise StagingDeleteFailedError(
                f"Staging handle for {self.path} was released outside of close()"
            )
        try:
            self.handle.close()
        except OSError as e:
            raise StagingDeleteFailedError(f"Failed to release staging file {self.path}: {e}") from e

        try:
            self.path.unlink()
        except OSError as e:
            raise StagingDeleteFailedError(f"Failed to delete staging file {self.path}: {e}") from e

        if self.path.exists():
            raise StagingDeleteFailedError(f"Staging file {self.path} still exists after delete")
        logger.debug("deleted staging file %s", self.path)

    def discard(self) -> None:
        """Best-effort cleanup on a failing construction path.

        Never raises, so the original construction error is the one that
        propagates. Leftover files are logged.
        """
        if self._released:
            return
        try:
            self.close()
        except StagingDeleteFailedError as e:
            logger.warning("staging cleanup incomplete: %s", e)

    def __enter__(self) -> "StagingFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discard()
        else:
            self.close()
