"""Google Drive upload of the transcoded recording."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiohttp
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .base import AbstractUploader
from ..errors import UploadFailure
from ..models.summary import UploadResult

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.file"]
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FILES_URL = "https://www.googleapis.com/drive/v3/files"


def meeting_file_name(when: Optional[datetime] = None) -> str:
    """Display name for an uploaded recording, e.g. meeting-2024-05-01-14-30-00.mp3."""
    when = when or datetime.now()
    return f"meeting-{when.strftime('%Y-%m-%d-%H-%M-%S')}.mp3"


class GoogleDriveUploader(AbstractUploader):
    """Uploads through the Drive v3 REST API with a service account."""

    def __init__(self,
                 service_account_file: str,
                 folder_id: Optional[str] = None,
                 timeout: float = 300.0):
        """Initialize uploader.

        Args:
            service_account_file: Service account JSON key
            folder_id: Drive folder shared with the service account (optional)
            timeout: Total request timeout in seconds
        """
        if not service_account_file:
            raise ValueError("Google service account file is required for Drive uploads")
        self.service_account_file = service_account_file
        self.folder_id = folder_id
        self.timeout = timeout
        self._credentials = None

    async def _access_token(self) -> str:
        if self._credentials is None:
            logger.info(f"Loading Drive credentials from: {self.service_account_file}")
            self._credentials = await asyncio.to_thread(
                service_account.Credentials.from_service_account_file,
                self.service_account_file,
                scopes=SCOPES,
            )
        if not self._credentials.valid:
            await asyncio.to_thread(self._credentials.refresh, Request())
        return self._credentials.token

    async def upload(self, path: Path, display_name: str) -> UploadResult:
        path = Path(path)
        if not path.exists():
            raise UploadFailure(f"File not found: {path}")

        try:
            token = await self._access_token()
        except Exception as e:
            raise UploadFailure(f"Failed to authenticate with Google Drive: {e}") from e

        data = await asyncio.to_thread(path.read_bytes)
        logger.info(f"Uploading {path.name} as {display_name} ({len(data) / (1024 * 1024):.2f} MB)"
                    f" to folder {self.folder_id or '<root>'}")

        metadata = {"name": display_name}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]

        headers = {"Authorization": f"Bearer {token}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                with aiohttp.MultipartWriter("related") as writer:
                    writer.append_json(metadata)
                    writer.append(data, {"Content-Type": "audio/mpeg"})

                    async with session.post(
                        UPLOAD_URL,
                        params={"uploadType": "multipart", "fields": "id,webViewLink"},
                        data=writer,
                    ) as response:
                        if response.status == 403:
                            error_text = await response.text()
                            raise UploadFailure(
                                f"Permission denied (403). Check the folder id and that the folder "
                                f"is shared with the service account: {error_text[:300]}"
                            )
                        if response.status != 200:
                            error_text = await response.text()
                            raise UploadFailure(f"Drive upload error: {response.status} - {error_text[:300]}")
                        result = await response.json()

                file_id = result.get("id")
                if not file_id:
                    raise UploadFailure("Drive upload response has no file id")

                # Anyone with the link can read
                async with session.post(
                    f"{FILES_URL}/{file_id}/permissions",
                    json={"role": "reader", "type": "anyone"},
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise UploadFailure(f"Drive permission error: {response.status} - {error_text[:300]}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UploadFailure(f"Failed to reach Google Drive: {e}") from e

        view_url = result.get("webViewLink") or f"https://drive.google.com/file/d/{file_id}/view"
        logger.info(f"File uploaded successfully: {view_url}")
        return UploadResult(file_id=file_id, view_url=view_url)
