"""Abstract interfaces for outbound notification and recording upload."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..models.summary import UploadResult


class AbstractNotifier(ABC):
    """Best-effort side channel for summaries and failure notices.

    Implementations never raise: a failed post is logged and reported as False.
    """

    @abstractmethod
    async def post_summary(self, summary: str, duration_seconds: float, link: Optional[str] = None) -> bool:
        """Post a meeting summary, with the recording link when one exists."""
        pass

    @abstractmethod
    async def post_error(self, message: str) -> bool:
        """Post a failure notice for a session."""
        pass


class AbstractUploader(ABC):
    """Object storage for the transcoded recording."""

    @abstractmethod
    async def upload(self, path: Path, display_name: str) -> UploadResult:
        """Upload ``path`` and make it readable through a link.

        Raises:
            UploadFailure: the upload or permission grant failed
        """
        pass
