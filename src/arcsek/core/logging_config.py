"""Logging setup for programs embedding arcsek."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

from .config import VaultSettings, parse_log_level

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[Union[int, str, VaultSettings]] = None) -> int:
    """Configure the root logger once and return the level applied.

    ``level`` may be a level number or name, or a :class:`VaultSettings`
    whose ``log_level`` is used. Without one, ``ARCSEK_LOG_LEVEL`` decides.
    """
    if level is None:
        level = VaultSettings.from_env().log_level
    elif isinstance(level, VaultSettings):
        level = level.log_level
    else:
        level = parse_log_level(level)

    # keys and plaintext are never logged
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("arcsek").setLevel(level)
    return level
