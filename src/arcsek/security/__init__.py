"""Security helpers: key validation, streaming AEAD and key custody for arcsek.

This package provides:
- AES-GCM key validation (16 or 32 byte keys only)
- a segmented AEAD stream cipher (encrypting/decrypting readers, encrypting writer)
- Argon2id password-to-key derivation
- optional OS keystore custody for vault keys
"""

from .keys import VALID_KEY_SIZES, validate_key, create_aesgcm_from_key
from .stream import BUF_SIZE, NONCE_SIZE, TAG_SIZE, Stream
from .kdf import KdfParams, generate_salt, derive_vault_key
from .keystore import save_vault_key, load_vault_key, delete_vault_key, assess_keyring_backend

__all__ = [
    "VALID_KEY_SIZES",
    "validate_key",
    "create_aesgcm_from_key",
    "BUF_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "Stream",
    "KdfParams",
    "generate_salt",
    "derive_vault_key",
    "save_vault_key",
    "load_vault_key",
    "delete_vault_key",
    "assess_keyring_backend",
]
