"""Password-based vault key derivation (Argon2id).

This is the one supported way to turn a human password into a vault key.
The salt and parameters are not secret but must be kept next to the vault:
without them the same password cannot reproduce the key.
"""
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict

from argon2.low_level import Type, hash_secret_raw

from arcsek.core.exceptions import InvalidKeyLengthError

from .keys import VALID_KEY_SIZES

ALGORITHM = "argon2id"


@dataclass(frozen=True)
class KdfParams:
    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1
    key_len: int = 32

    def to_dict(self, salt: bytes) -> Dict[str, Any]:
        return {"algo": ALGORITHM, "salt": salt.hex(), **asdict(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> tuple["KdfParams", bytes]:
        """Inverse of :meth:`to_dict`; returns ``(params, salt)``."""
        if data.get("algo") != ALGORITHM:
            raise ValueError(f"Unsupported KDF: {data.get('algo')!r}")
        params = cls(
            time_cost=int(data["time_cost"]),
            memory_cost=int(data["memory_cost"]),
            parallelism=int(data["parallelism"]),
            key_len=int(data["key_len"]),
        )
        return params, bytes.fromhex(data["salt"])


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_vault_key(password, salt: bytes, params: KdfParams = KdfParams()) -> bytes:
    """
    Derive a 16- or 32-byte vault key from a password using Argon2id.
    Returns raw derived key bytes, ready for the key validator.
    """
    if params.key_len not in VALID_KEY_SIZES:
        raise InvalidKeyLengthError(
            f"key_len must be 16 or 32, got {params.key_len}"
        )
    if isinstance(password, str):
        password = password.encode("utf-8")

    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=params.key_len,
        type=Type.ID,
    )
