"""Segmented AEAD stream construction over AES-GCM.

Turns a single-shot AEAD into a cipher for streams of any length. The
plaintext is cut into fixed-size segments and every segment is sealed on its
own, so a stream can be encrypted and verified without holding it in memory.

Segment layout (fixed protocol, both sides must agree):
- plaintext segment size: BUF_SIZE (16 KiB); every segment except the last is
  exactly BUF_SIZE, the last one holds 0..BUF_SIZE bytes
- ciphertext segment: AES-GCM(plaintext) || 16-byte tag
- segment nonce (12 bytes): stream nonce (8 bytes) || uint32 little-endian
  segment counter, starting at 0
- associated data: 1 flag byte || caller associated data, the flag is 0x00
  for every segment but the last and 0x80 for the last

Reordering, dropping, truncating or splicing segments changes either the
counter or the flag of some segment, so it fails authentication.
"""
import io
import logging
import struct
from typing import BinaryIO, Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from arcsek.core.exceptions import AuthenticationFailedError, StreamLimitError

logger = logging.getLogger(__name__)

BUF_SIZE: Final[int] = 16 * 1024
MAX_BUF_SIZE: Final[int] = (1 << 24) - 1
TAG_SIZE: Final[int] = 16
AEAD_NONCE_SIZE: Final[int] = 12
COUNTER_SIZE: Final[int] = 4
NONCE_SIZE: Final[int] = AEAD_NONCE_SIZE - COUNTER_SIZE
MAX_SEGMENTS: Final[int] = 1 << (8 * COUNTER_SIZE)

_FLAG_MORE: Final[bytes] = b"\x00"
_FLAG_FINAL: Final[bytes] = b"\x80"


def read_full(src: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, tolerating short reads; less means EOF."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = src.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def write_all(dst: BinaryIO, data) -> None:
    """Write all of ``data``; raw sinks may take part of it, or nothing (None)."""
    view = memoryview(data)
    while view:
        written = dst.write(view)
        view = view[written or 0:]


class _SegmentCipher:
    """Per-segment nonce and associated-data bookkeeping."""

    def __init__(self, cipher: AESGCM, nonce: bytes, associated_data: bytes):
        self._cipher = cipher
        self._nonce = bytes(nonce)
        self._associated_data = bytes(associated_data)
        self.seq = 0

    def _segment_nonce(self) -> bytes:
        if self.seq >= MAX_SEGMENTS:
            raise StreamLimitError("segment counter exhausted (2**32 segments)")
        return self._nonce + struct.pack("<I", self.seq)

    def _aad(self, final: bool) -> bytes:
        return (_FLAG_FINAL if final else _FLAG_MORE) + self._associated_data

    def seal(self, plaintext: bytes, final: bool) -> bytes:
        ciphertext = self._cipher.encrypt(self._segment_nonce(), plaintext, self._aad(final))
        self.seq += 1
        return ciphertext

    def open(self, ciphertext: bytes, final: bool) -> bytes:
        try:
            plaintext = self._cipher.decrypt(self._segment_nonce(), ciphertext, self._aad(final))
        except InvalidTag as exc:
            raise AuthenticationFailedError(
                f"segment {self.seq} failed authentication"
            ) from exc
        self.seq += 1
        return plaintext


class _SegmentReader(io.RawIOBase):
    """Pull-model reader that hands out one transformed segment at a time.

    Subclasses implement ``_next_segment`` and set ``_done`` once the last
    segment has been produced. The source stream is not closed by this reader.
    """

    def __init__(self, src: BinaryIO, segments: _SegmentCipher, buf_size: int):
        super().__init__()
        self._src = src
        self._segments = segments
        self._buf_size = buf_size
        self._carry = b""
        self._pending = b""
        self._offset = 0
        self._done = False

    def readable(self) -> bool:
        return True

    def _next_segment(self) -> bytes:
        raise NotImplementedError

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        view = memoryview(b).cast("B")
        if not len(view):
            return 0
        while self._offset >= len(self._pending):
            if self._done:
                return 0
            self._pending = self._next_segment()
            self._offset = 0
        n = min(len(view), len(self._pending) - self._offset)
        view[:n] = self._pending[self._offset:self._offset + n]
        self._offset += n
        return n

    def close(self) -> None:
        self._pending = b""
        self._carry = b""
        super().close()


class EncryptReader(_SegmentReader):
    """Reads plaintext from ``src`` and returns the sealed ciphertext stream."""

    def _next_segment(self) -> bytes:
        # one byte of lookahead decides whether this segment is the last
        chunk = self._carry + read_full(self._src, self._buf_size + 1 - len(self._carry))
        if len(chunk) > self._buf_size:
            self._carry = chunk[self._buf_size:]
            return self._segments.seal(chunk[:self._buf_size], final=False)
        self._carry = b""
        self._done = True
        logger.debug("sealed final segment %d", self._segments.seq)
        return self._segments.seal(chunk, final=True)


class DecryptReader(_SegmentReader):
    """Reads ciphertext from ``src`` and returns verified plaintext only.

    The first authentication failure is sticky: every later read raises
    :class:`AuthenticationFailedError` again.
    """

    def __init__(self, src: BinaryIO, segments: _SegmentCipher, buf_size: int):
        super().__init__(src, segments, buf_size)
        self._failure: AuthenticationFailedError | None = None

    def readinto(self, b) -> int:
        if self._failure is not None:
            raise AuthenticationFailedError(
                "stream already failed authentication"
            ) from self._failure
        try:
            return super().readinto(b)
        except AuthenticationFailedError as exc:
            self._failure = exc
            self._pending = b""
            raise

    def _next_segment(self) -> bytes:
        segment_size = self._buf_size + TAG_SIZE
        chunk = self._carry + read_full(self._src, segment_size + 1 - len(self._carry))
        if len(chunk) > segment_size:
            self._carry = chunk[segment_size:]
            return self._segments.open(chunk[:segment_size], final=False)
        self._carry = b""
        if len(chunk) < TAG_SIZE:
            raise AuthenticationFailedError(
                f"stream truncated before final segment {self._segments.seq}"
            )
        plaintext = self._segments.open(chunk, final=True)
        self._done = True
        return plaintext


class EncryptWriter(io.RawIOBase):
    """Push-model encryptor: plaintext written here is sealed into ``dst``.

    ``close()`` seals the final segment and must be called exactly once for
    the ciphertext to be complete. ``dst`` itself is left open.
    """

    def __init__(self, dst: BinaryIO, segments: _SegmentCipher, buf_size: int):
        super().__init__()
        self._dst = dst
        self._segments = segments
        self._buf_size = buf_size
        self._buffer = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        data = bytes(b)
        self._buffer += data
        # keep at least one byte back so the last segment is sealed by close()
        while len(self._buffer) > self._buf_size:
            segment = bytes(self._buffer[:self._buf_size])
            del self._buffer[:self._buf_size]
            write_all(self._dst, self._segments.seal(segment, final=False))
        return len(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            write_all(self._dst, self._segments.seal(bytes(self._buffer), final=True))
        finally:
            self._buffer.clear()
            super().close()


class Stream:
    """AEAD stream cipher bound to one AES-GCM primitive."""

    def __init__(self, cipher: AESGCM, buf_size: int = BUF_SIZE):
        if not 0 < buf_size <= MAX_BUF_SIZE:
            raise ValueError(f"buf_size must be in 1..{MAX_BUF_SIZE}, got {buf_size}")
        self.cipher = cipher
        self.buf_size = buf_size

    @property
    def nonce_size(self) -> int:
        return NONCE_SIZE

    @property
    def overhead(self) -> int:
        return TAG_SIZE

    def _segments(self, nonce: bytes, associated_data: bytes) -> _SegmentCipher:
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        return _SegmentCipher(self.cipher, nonce, associated_data)

    def encrypt_reader(self, src: BinaryIO, nonce: bytes, associated_data: bytes = b"") -> EncryptReader:
        return EncryptReader(src, self._segments(nonce, associated_data), self.buf_size)

    def encrypt_writer(self, dst: BinaryIO, nonce: bytes, associated_data: bytes = b"") -> EncryptWriter:
        return EncryptWriter(dst, self._segments(nonce, associated_data), self.buf_size)

    def decrypt_reader(self, src: BinaryIO, nonce: bytes, associated_data: bytes = b"") -> DecryptReader:
        return DecryptReader(src, self._segments(nonce, associated_data), self.buf_size)
