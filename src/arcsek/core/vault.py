"""
VaultContainer: files in, authenticated ciphertext out.

Building a container packs the given paths into a staging file, draws a fresh
random nonce and binds an encrypting reader over the staged bytes. The
container then behaves like a read-only ciphertext stream (``read`` /
``readinto``) and can push itself into a sink (``write_to``). Both views
produce the same bytes from the current staging position.

The wire framing is up to the caller; ``write_framed_to`` writes the layout
that :func:`arcsek.core.decryptor.open_for_decryption` expects::

    [nonce: 8 bytes][ciphertext segments...]

A container is not safe for concurrent use: the staging read position is
shared state. Separate containers share nothing.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from ..security.keys import create_aesgcm_from_key
from ..security.stream import NONCE_SIZE, EncryptReader, Stream, write_all
from .archive import pack
from .config import VaultSettings
from .staging import StagingFile

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024  # 64KB


class VaultContainer:
    """An encrypted view over a staged archive; owns the staging file."""

    def __init__(
        self,
        staging: StagingFile,
        nonce: bytes,
        stream: Optional[Stream] = None,
    ):
        self.staging = staging
        self.nonce = nonce
        self._stream = stream
        self._reader: Optional[EncryptReader] = None
        if stream is not None:
            self.rewind()

    @classmethod
    def create(
        cls,
        paths: Iterable[Path | str],
        key: bytes,
        *,
        settings: Optional[VaultSettings] = None,
    ) -> "VaultContainer":
        """Pack ``paths`` and prepare them for encryption under ``key``.

        Raises:
            InvalidKeyLengthError: before anything touches the disk.
            StagingCreateFailedError: the staging file could not be created.
            SourceUnavailableError: a path could not be packed; the staging
                file has already been removed.
        """
        cipher = create_aesgcm_from_key(key)
        settings = settings or VaultSettings()

        staging = StagingFile.create(
            directory=settings.staging_dir,
            prefix=settings.staging_prefix,
            suffix=settings.staging_suffix,
        )
        try:
            members = pack(paths, staging.handle)
            staging.rewind()
        except BaseException:
            staging.discard()
            raise

        logger.info("staged %d archive member(s) in %s", members, staging.path)
        return cls(staging, os.urandom(NONCE_SIZE), Stream(cipher))

    def _require_reader(self) -> EncryptReader:
        if self._reader is None:
            raise ValueError("Vault has no cipher stream bound")
        return self._reader

    def rewind(self) -> None:
        """Restart the ciphertext from the beginning of the staged archive.

        The nonce is unchanged, so the same ciphertext is produced again.
        """
        if self._stream is None:
            raise ValueError("Vault has no cipher stream bound")
        self.staging.rewind()
        self._reader = self._stream.encrypt_reader(self.staging.handle, self.nonce)

    def readinto(self, b) -> int:
        return self._require_reader().readinto(b)

    def read(self, size: int = -1) -> bytes:
        reader = self._require_reader()
        if size is None or size < 0:
            return reader.readall()
        return reader.read(size)

    def write_to(self, sink: BinaryIO) -> int:
        """Copy the remaining ciphertext into ``sink``; return bytes written."""
        reader = self._require_reader()
        total = 0
        buf = bytearray(COPY_CHUNK_SIZE)
        view = memoryview(buf)
        while True:
            n = reader.readinto(buf)
            if not n:
                break
            write_all(sink, view[:n])
            total += n
        logger.debug("wrote %d ciphertext byte(s)", total)
        return total

    def write_framed_to(self, sink: BinaryIO) -> int:
        """Write ``nonce || ciphertext`` into ``sink``; return bytes written."""
        write_all(sink, self.nonce)
        return len(self.nonce) + self.write_to(sink)

    def save(self, destination: Path | str) -> int:
        """Write the framed vault to a file at ``destination``."""
        with open(destination, "wb") as f:
            return self.write_framed_to(f)

    def close(self) -> None:
        """Release and delete the staging file.

        Raises StagingDeleteFailedError if the file could not be released and
        removed, including on a second call.
        """
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        self.staging.close()

    @property
    def closed(self) -> bool:
        return self.staging.released

    def __enter__(self) -> "VaultContainer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<VaultContainer staging={str(self.staging.path)!r} {state}>"
