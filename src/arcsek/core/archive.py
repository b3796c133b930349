"""
Archive packing and reading for vault payloads.

The payload is a plain tar stream (PAX format, no compression). Packing and
reading both go through tarfile's stream modes ("w|" / "r|"), so file content
is copied in blocks and never held in memory as a whole, and the reader never
needs to seek the decrypted stream.
"""

from __future__ import annotations

import logging
import os
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional

from .exceptions import ArchiveFormatError, SourceUnavailableError

logger = logging.getLogger(__name__)

DRAIN_CHUNK_SIZE = 64 * 1024  # 64KB


@dataclass
class ArchiveEntry:
    """One member of a vault archive.

    ``content`` is only readable until the next entry is requested, since the
    underlying archive is consumed as a stream. Directories have no content.
    """

    name: str
    size: int
    content: Optional[BinaryIO] = None
    is_dir: bool = False


def _ensure_readable(path: str) -> None:
    if not os.path.exists(path):
        raise SourceUnavailableError(f"Source path does not exist: {path}")
    mode = os.R_OK | os.X_OK if os.path.isdir(path) else os.R_OK
    if not os.access(path, mode):
        raise SourceUnavailableError(f"Source path is not readable: {path}")


def list_files(root: Path | str) -> List[str]:
    """Return every regular file under ``root``, recursively and sorted."""
    root = os.fspath(root)
    if not os.path.isdir(root):
        raise SourceUnavailableError(f"Not a directory: {root}")
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            if os.path.isfile(path):
                files.append(path)
    return files


def pack(paths: Iterable[Path | str], fileobj: BinaryIO) -> int:
    """Write ``paths`` as a tar stream into ``fileobj`` in the given order.

    Every path is checked before the first byte is written. Returns the number
    of archive members written (directories count, as do their children).

    Raises:
        SourceUnavailableError: a path is missing or unreadable, or reading it
            failed midway.
    """
    sources = [os.fspath(p) for p in paths]
    for path in sources:
        _ensure_readable(path)

    count = 0

    def _track(info: tarfile.TarInfo) -> tarfile.TarInfo:
        nonlocal count
        count += 1
        return info

    try:
        with tarfile.open(fileobj=fileobj, mode="w|", format=tarfile.PAX_FORMAT) as tar:
            for path in sources:
                tar.add(path, recursive=True, filter=_track)
    except OSError as e:
        raise SourceUnavailableError(f"Failed to pack sources: {e}") from e

    logger.debug("packed %d archive member(s) from %d path(s)", count, len(sources))
    return count


class ArchiveReader:
    """Iterate the members of a tar stream read front to back."""

    def __init__(self, fileobj: BinaryIO):
        self._fileobj = fileobj
        try:
            self._tar = tarfile.open(fileobj=fileobj, mode="r|")
        except tarfile.TarError as e:
            raise ArchiveFormatError(f"Not a readable archive: {e}") from e

    def _members(self) -> Iterator[tarfile.TarInfo]:
        try:
            yield from self._tar
        except tarfile.TarError as e:
            raise ArchiveFormatError(f"Corrupt archive: {e}") from e
        self._drain()

    def _drain(self) -> None:
        # tarfile stops at the end-of-archive marker; reading the tail too
        # means a verifying source has checked every byte before we finish
        while self._fileobj.read(DRAIN_CHUNK_SIZE):
            pass

    def entries(self) -> Iterator[ArchiveEntry]:
        for member in self._members():
            content = self._tar.extractfile(member) if member.isfile() else None
            yield ArchiveEntry(
                name=member.name,
                size=member.size,
                content=content,
                is_dir=member.isdir(),
            )

    def __iter__(self) -> Iterator[ArchiveEntry]:
        return self.entries()

    def extract_all(self, destination: Path | str) -> List[str]:
        """Extract every member below ``destination``.

        Uses tarfile's "data" filter: absolute names, ``..`` escapes and
        special files are refused with :class:`ArchiveFormatError`.
        """
        dest = Path(destination)
        dest.mkdir(parents=True, exist_ok=True)
        names = []
        for member in self._members():
            try:
                self._tar.extract(member, path=dest, filter="data")
            except tarfile.TarError as e:
                raise ArchiveFormatError(f"Refusing to extract {member.name}: {e}") from e
            names.append(member.name)
        logger.info("extracted %d archive member(s) into %s", len(names), dest)
        return names

    def close(self) -> None:
        self._tar.close()
        self._fileobj.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
