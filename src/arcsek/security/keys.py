"""Key validation and AES-GCM construction.

Only 128-bit and 256-bit AES keys are accepted. AES-192 is a valid AES key
size but is deliberately rejected so every vault uses one of two variants.
"""
from typing import Final

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from arcsek.core.exceptions import InvalidKeyLengthError


VALID_KEY_SIZES: Final[tuple[int, ...]] = (16, 32)


def validate_key(key) -> bytes:
    """Return ``key`` as immutable bytes or raise :class:`InvalidKeyLengthError`."""
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise InvalidKeyLengthError(
            f"key must be bytes, got {type(key).__name__}"
        )
    key = bytes(key)
    if len(key) not in VALID_KEY_SIZES:
        # never echo the key itself
        raise InvalidKeyLengthError(
            f"key must be 16 or 32 bytes, got {len(key)}"
        )
    return key


def create_aesgcm_from_key(key) -> AESGCM:
    """Validate ``key`` and return an AES-GCM primitive bound to it.

    Pure function: no staging or other I/O happens here, so an invalid key
    fails before any ephemeral resource is created.
    """
    return AESGCM(validate_key(key))
