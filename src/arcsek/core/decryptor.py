"""
Opening vaults: nonce-prefixed ciphertext in, archive entries out.

Only authenticated plaintext ever reaches the archive reader. A wrong key or a
tampered first segment fails while the reader is being constructed; damage
further in fails on the read that reaches the bad segment.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, List

from ..security.keys import create_aesgcm_from_key
from ..security.stream import NONCE_SIZE, DecryptReader, Stream, read_full, write_all
from .archive import ArchiveReader
from .exceptions import TruncatedStreamError

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024  # 64KB


def open_plaintext(stream: BinaryIO, key: bytes) -> DecryptReader:
    """Validate ``key``, consume the nonce prefix and return a verifying reader."""
    cipher = create_aesgcm_from_key(key)
    nonce = read_full(stream, NONCE_SIZE)
    if len(nonce) != NONCE_SIZE:
        raise TruncatedStreamError(
            f"Stream holds {len(nonce)} byte(s), a {NONCE_SIZE}-byte nonce is required"
        )
    return Stream(cipher).decrypt_reader(stream, nonce)


def open_for_decryption(stream: BinaryIO, key: bytes) -> ArchiveReader:
    """Return an :class:`ArchiveReader` over the decrypted vault in ``stream``.

    Raises:
        InvalidKeyLengthError: ``key`` is not 16 or 32 bytes.
        TruncatedStreamError: ``stream`` is shorter than one nonce.
        AuthenticationFailedError: the first segment does not verify.
        ArchiveFormatError: the plaintext is not a tar stream.
    """
    plaintext = open_plaintext(stream, key)
    try:
        return ArchiveReader(plaintext)
    except BaseException:
        plaintext.close()
        raise


def decrypt_to_archive(stream: BinaryIO, key: bytes, sink: BinaryIO) -> int:
    """Copy the verified plaintext archive into ``sink``; return bytes written.

    On authentication failure ``sink`` keeps only the segments verified before
    the bad one.
    """
    total = 0
    with open_plaintext(stream, key) as plaintext:
        while True:
            chunk = plaintext.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            write_all(sink, chunk)
            total += len(chunk)
    logger.debug("decrypted %d archive byte(s)", total)
    return total


def extract_vault(stream: BinaryIO, key: bytes, destination: Path | str) -> List[str]:
    """Decrypt ``stream`` and extract every entry below ``destination``."""
    with open_for_decryption(stream, key) as archive:
        return archive.extract_all(destination)
