from __future__ import annotations

import logging
import os
from typing import Optional

from .config import Settings


def _resolve_level(level_name: str) -> int:
    """Convert a case-insensitive level name to its numeric value (INFO if unknown)."""
    normalized = (level_name or "INFO").upper()
    if normalized.isdigit():
        return int(normalized)
    return getattr(logging, normalized, logging.INFO)


def configure_logging(settings: Settings, level_override: Optional[str] = None) -> None:
    """
    Configure the root logger according to precedence:

    1. ``QRLEAD_LOG_LEVEL`` environment variable (if set)
    2. ``level_override`` provided by the caller (e.g., CLI flag)
    3. ``settings.log_level`` from the YAML config
    4. Default ``WARNING`` level
    """
    env_level = os.getenv("QRLEAD_LOG_LEVEL")
    effective_level_name = env_level or level_override or settings.log_level or "WARNING"
    level_value = _resolve_level(effective_level_name)

    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level_value)
    else:
        logging.basicConfig(
            level=level_value,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
