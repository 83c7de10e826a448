"""Post-processing and summary data models."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


NO_CONVERSATION_SUMMARY = "No meaningful conversation was captured in this session."


@dataclass
class UploadResult:
    """Reference to an uploaded recording."""
    file_id: str
    view_url: str


@dataclass
class PostProcessArtifact:
    """Files produced by one post-processing run."""
    merged_path: Path
    transcoded_path: Optional[Path] = None
    upload: Optional[UploadResult] = None
    too_large: bool = False
    near_empty: bool = False
    created_paths: List[Path] = field(default_factory=list)

    @property
    def summary_input(self) -> Optional[Path]:
        """File sent to the summarizer: the MP3 when available, else a WAV merge.

        Raw .pcm cannot be consumed by the summarizer, so None is returned
        when transcoding failed for a raw track.
        """
        if self.transcoded_path is not None:
            return self.transcoded_path
        if self.merged_path.suffix == ".pcm":
            return None
        return self.merged_path


@dataclass
class SummaryResult:
    """Generated summary text plus the session duration it covers."""
    text: Optional[str]
    duration_seconds: float
    skipped_reason: Optional[str] = None  # "too_short", "too_large", "no_conversation"

    @property
    def succeeded(self) -> bool:
        return self.text is not None
