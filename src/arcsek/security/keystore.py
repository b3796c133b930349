"""OS keystore custody for vault keys, via keyring.

Optional convenience: a caller may park a vault key in the platform keystore
under a (service, account) pair instead of handling the bytes itself. Keys are
validated on the way in and on the way out, so a corrupted entry never reaches
the cipher. Do not assume keyring is hardware-backed on every platform.
"""
import base64
import binascii
import logging
from typing import Optional

from arcsek.core.exceptions import InvalidKeyLengthError, KeystoreError

from .keys import validate_key

try:
    import keyring
    from keyring.errors import KeyringError, PasswordDeleteError
except ImportError:
    keyring = None

logger = logging.getLogger(__name__)

_INSECURE_BACKENDS = ("Plaintext", "Uncrypted", "Null", "fail")


def _require_keyring():
    if keyring is None:
        raise KeystoreError("keyring package is not available; install keyring to use keystore features")
    return keyring


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the active keyring backend."""
    if keyring is None:
        return False, "keyring package is not installed"

    backend = keyring.get_keyring()
    name = type(backend).__name__
    module = type(backend).__module__
    priority = getattr(backend, "priority", None)

    if any(tok in name or tok in module for tok in _INSECURE_BACKENDS):
        return False, f"insecure backend detected: {name}"
    if priority is not None and priority <= 0:
        return False, f"backend {name} has no usable priority ({priority})"
    return True, f"backend {name} (priority={priority})"


def save_vault_key(service: str, account: str, key: bytes, force: bool = False) -> None:
    """Store ``key`` base64-encoded under (service, account).

    Refuses insecure backends unless ``force`` is set.
    """
    kr = _require_keyring()
    key = validate_key(key)
    if not force:
        secure, msg = assess_keyring_backend()
        if not secure:
            raise KeystoreError(f"refusing to store vault key: {msg}")
    try:
        kr.set_password(service, account, base64.b64encode(key).decode("ascii"))
    except KeyringError as e:
        raise KeystoreError(f"failed to store vault key for {service}/{account}: {e}") from e
    logger.info("stored vault key for %s/%s", service, account)


def load_vault_key(service: str, account: str) -> Optional[bytes]:
    """Return the stored vault key, or None if nothing is stored."""
    kr = _require_keyring()
    try:
        secret = kr.get_password(service, account)
    except KeyringError as e:
        raise KeystoreError(f"failed to read vault key for {service}/{account}: {e}") from e
    if secret is None:
        return None
    try:
        return validate_key(base64.b64decode(secret, validate=True))
    except (binascii.Error, InvalidKeyLengthError) as e:
        raise KeystoreError(f"stored entry for {service}/{account} is not a vault key") from e


def delete_vault_key(service: str, account: str) -> None:
    """Remove the stored vault key; raise KeystoreError if there was none."""
    kr = _require_keyring()
    try:
        kr.delete_password(service, account)
    except PasswordDeleteError as e:
        raise KeystoreError(f"no vault key stored for {service}/{account}") from e
    except KeyringError as e:
        raise KeystoreError(f"failed to delete vault key for {service}/{account}: {e}") from e
