"""Notifier that only writes to the log."""

import logging
from typing import Optional

from .base import AbstractNotifier

logger = logging.getLogger(__name__)


class LoggingNotifier(AbstractNotifier):
    """Used when no notes channel is configured. Posts always report False."""

    async def post_summary(self, summary: str, duration_seconds: float, link: Optional[str] = None) -> bool:
        logger.info(f"No notes channel configured; summary ({round(duration_seconds)}s) kept in log:\n{summary}")
        if link:
            logger.info(f"Recording link: {link}")
        return False

    async def post_error(self, message: str) -> bool:
        logger.warning(f"No notes channel configured; error notice: {message}")
        return False
