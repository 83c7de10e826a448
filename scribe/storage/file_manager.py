"""Working-storage management for captured and processed audio."""

import logging
import random
import shutil
import string
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable


logger = logging.getLogger(__name__)

AUDIO_SUFFIXES = {".wav", ".pcm", ".mp3"}


class FileManager:
    """Manages the per-session working directories for audio artifacts."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize file manager with data directory.

        Args:
            data_dir: Base directory for storing all working files
        """
        self.data_dir = Path(data_dir)
        self.recordings_dir = self.data_dir / "recordings"
        self.logs_dir = self.data_dir / "logs"

        # Create directory structure
        self._ensure_directories()

        logger.info(f"FileManager initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.data_dir, self.recordings_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def create_session_directory(self, group_id: str) -> Path:
        """Create a new directory for one recording session.

        Args:
            group_id: Group the session belongs to

        Returns:
            Path to the new session directory
        """
        # Include random suffix to ensure uniqueness
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
        session_path = self.recordings_dir / f"{group_id}_{timestamp}_{random_suffix}"
        session_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"Created session directory: {session_path}")
        return session_path

    def speaker_artifact_path(self, session_dir: Path, speaker_id: str, extension: str = "wav") -> Path:
        """Path of the file a speaker's audio is written to."""
        timestamp = int(time.time() * 1000)
        path = Path(session_dir) / f"user-{speaker_id}-{timestamp}.{extension.lstrip('.')}"
        while path.exists():
            timestamp += 1
            path = Path(session_dir) / f"user-{speaker_id}-{timestamp}.{extension.lstrip('.')}"
        return path

    def output_path(self, session_dir: Path, group_id: str, extension: str) -> Path:
        """Path for a merged or transcoded output in the session directory."""
        timestamp = int(time.time() * 1000)
        return Path(session_dir) / f"meeting-{group_id}-{timestamp}.{extension.lstrip('.')}"

    @staticmethod
    def file_size(path: Path) -> int:
        """Size of a file in bytes, 0 if it does not exist."""
        try:
            return Path(path).stat().st_size
        except FileNotFoundError:
            return 0

    def delete_files(self, paths: Iterable[Path], retain: bool = False) -> int:
        """Delete working files.

        Args:
            paths: Files to delete
            retain: Keep the files and only log (debug / audit deployments)

        Returns:
            Number of files deleted
        """
        unique = list(dict.fromkeys(Path(p) for p in paths))
        if retain:
            logger.info(f"Retaining {len(unique)} audio files (storage.retain_audio enabled)")
            return 0

        deleted = 0
        for path in unique:
            try:
                if path.exists():
                    path.unlink()
                    deleted += 1
                    logger.debug(f"Deleted: {path}")
            except OSError as e:
                logger.error(f"Failed to delete {path}: {e}")

        # Remove session directories left empty
        for directory in {p.parent for p in unique}:
            try:
                if directory.exists() and directory != self.recordings_dir and not any(directory.iterdir()):
                    directory.rmdir()
            except OSError as e:
                logger.debug(f"Could not remove directory {directory}: {e}")

        logger.info(f"Deleted {deleted} working files")
        return deleted

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Clean up old session directories.

        Args:
            max_age_days: Maximum age in days before cleanup

        Returns:
            Number of sessions cleaned up
        """
        cutoff_time = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        try:
            for session_path in self.recordings_dir.iterdir():
                if session_path.is_dir() and session_path.stat().st_mtime < cutoff_time:
                    shutil.rmtree(session_path)
                    cleaned_count += 1
                    logger.info(f"Cleaned up old session: {session_path}")

            logger.info(f"Cleaned up {cleaned_count} old sessions")
            return cleaned_count

        except OSError as e:
            logger.error(f"Error during cleanup: {e}")
            return 0

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics.

        Returns:
            Dictionary with storage statistics
        """
        total_size = 0
        session_count = 0
        audio_files = 0

        for session_path in self.recordings_dir.iterdir():
            if session_path.is_dir():
                session_count += 1
                for file_path in session_path.rglob("*"):
                    if file_path.is_file():
                        total_size += file_path.stat().st_size
                        if file_path.suffix in AUDIO_SUFFIXES:
                            audio_files += 1

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "session_count": session_count,
            "audio_files": audio_files,
            "data_directory": str(self.data_dir)
        }
