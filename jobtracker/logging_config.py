"""
Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; this only decides where
records go and how they look.
"""
from __future__ import annotations

import logging

from .config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger from settings (idempotent)."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=settings.LOG_FORMAT,
    )
