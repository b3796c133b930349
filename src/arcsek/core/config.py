"""Runtime settings for building vaults.

Settings come from keyword arguments or from ``ARCSEK_*`` environment
variables via :meth:`VaultSettings.from_env`. Protocol constants (segment and
nonce size) are intentionally not configurable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .staging import DEFAULT_PREFIX, DEFAULT_SUFFIX

ENV_STAGING_DIR = "ARCSEK_STAGING_DIR"
ENV_STAGING_PREFIX = "ARCSEK_STAGING_PREFIX"
ENV_STAGING_SUFFIX = "ARCSEK_STAGING_SUFFIX"
ENV_LOG_LEVEL = "ARCSEK_LOG_LEVEL"


@dataclass(frozen=True)
class VaultSettings:
    """Where and how staging files are created, plus the log level."""

    staging_dir: Optional[Path] = None
    staging_prefix: str = DEFAULT_PREFIX
    staging_suffix: str = DEFAULT_SUFFIX
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "VaultSettings":
        env = os.environ if environ is None else environ
        staging_dir = env.get(ENV_STAGING_DIR)
        return cls(
            staging_dir=Path(staging_dir).expanduser() if staging_dir else None,
            staging_prefix=env.get(ENV_STAGING_PREFIX, DEFAULT_PREFIX),
            staging_suffix=env.get(ENV_STAGING_SUFFIX, DEFAULT_SUFFIX),
            log_level=parse_log_level(env.get(ENV_LOG_LEVEL, "INFO")),
        )


def parse_log_level(value: str | int) -> int:
    """Accept ``"debug"``, ``"INFO"``, ``"10"`` or ``10``."""
    if isinstance(value, int):
        return value
    text = value.strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level

