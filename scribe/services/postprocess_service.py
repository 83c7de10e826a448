"""Post-recording audio processing: validate, merge, transcode and guard."""

import asyncio
import logging
import wave
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np

from ..audio.ffmpeg import FFmpegError, FFmpegRunner
from ..config import ScribeConfig
from ..errors import MergeFailure, TranscodeFailure
from ..models.session import RecordingResult
from ..models.summary import PostProcessArtifact
from ..storage.file_manager import FileManager

logger = logging.getLogger(__name__)

# Frames read per block when measuring loudness
RMS_BLOCK_FRAMES = 48000


class AudioPostProcessor:
    """Turns a stopped session's speaker files into one summarizable track."""

    def __init__(self, config: ScribeConfig, file_manager: FileManager, ffmpeg: FFmpegRunner):
        self.file_manager = file_manager
        self.ffmpeg = ffmpeg
        self.min_artifact_bytes = int(config.get('postprocess.min_artifact_bytes', 1000))
        self.near_empty_bytes = int(config.get('postprocess.near_empty_bytes', 192000))
        self.silence_rms_threshold = float(config.get('postprocess.silence_rms_threshold', 50.0))
        self.max_summary_bytes = int(config.get('postprocess.max_summary_bytes', 20 * 1024 * 1024))
        self.retain_audio = bool(config.get('storage.retain_audio', False))

    def filter_valid(self, artifacts: Iterable[Path]) -> List[Path]:
        """Drop missing files and noise-floor captures below the size threshold."""
        valid = []
        for path in artifacts:
            size = self.file_manager.file_size(path)
            logger.info(f"Audio file {Path(path).name}: {size} bytes")
            if size < self.min_artifact_bytes:
                logger.info(f"Skipping empty file: {path}")
                continue
            valid.append(Path(path))
        return valid

    async def merge(self, valid_files: List[Path], group_id: str) -> Path:
        """Merge speaker tracks into one.

        Raises:
            MergeFailure: no valid input files
        """
        if not valid_files:
            raise MergeFailure("No valid audio files to merge")

        if len(valid_files) == 1:
            logger.info("Only one file, skipping merge")
            return valid_files[0]

        output = self.file_manager.output_path(valid_files[0].parent, group_id, "wav")
        logger.info(f"Merging {len(valid_files)} audio files...")
        try:
            await self.ffmpeg.mix(valid_files, output)
        except FFmpegError as e:
            logger.error(f"Error merging audio files, falling back to first track: {e}")
            return valid_files[0]

        logger.info(f"Merged audio: {output}")
        return output

    async def transcode(self, source: Path) -> Path:
        """Convert the merged track to MP3 for upload and summarization.

        Raises:
            TranscodeFailure: ffmpeg failed
        """
        output = source.with_suffix(".mp3")
        logger.info("Converting to MP3...")
        try:
            await self.ffmpeg.to_mp3(source, output)
        except FFmpegError as e:
            raise TranscodeFailure(str(e)) from e
        logger.info(f"MP3 created: {output}")
        return output

    def is_near_empty(self, path: Path) -> bool:
        """True when the track is too small or too quiet to hold a conversation."""
        if self.file_manager.file_size(path) < self.near_empty_bytes:
            return True

        rms = self.measure_rms(path)
        if rms is None:
            return False
        logger.debug(f"RMS level of {Path(path).name}: {rms:.1f}")
        return rms < self.silence_rms_threshold

    @staticmethod
    def measure_rms(path: Path) -> Optional[float]:
        """RMS level of 16-bit PCM audio in a .wav or raw .pcm file."""
        path = Path(path)
        total = 0.0
        count = 0

        if path.suffix == ".wav":
            with wave.open(str(path), 'rb') as wf:
                if wf.getsampwidth() != 2:
                    return None
                while True:
                    frames = wf.readframes(RMS_BLOCK_FRAMES)
                    if not frames:
                        break
                    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float64)
                    total += float(np.sum(samples * samples))
                    count += samples.size
        elif path.suffix == ".pcm":
            with open(path, 'rb') as f:
                while True:
                    block = f.read(RMS_BLOCK_FRAMES * 4)
                    if not block:
                        break
                    usable = len(block) - (len(block) % 2)
                    samples = np.frombuffer(block[:usable], dtype=np.int16).astype(np.float64)
                    total += float(np.sum(samples * samples))
                    count += samples.size
        else:
            return None

        if count == 0:
            return 0.0
        return float(np.sqrt(total / count))

    async def process(self, recording: RecordingResult) -> PostProcessArtifact:
        """Run validation, merge, transcode and the size guards.

        Raises:
            MergeFailure: zero valid artifacts
        """
        valid = self.filter_valid(recording.artifacts)
        merged = await self.merge(valid, recording.group_id)

        artifact = PostProcessArtifact(merged_path=merged)
        if merged not in valid:
            artifact.created_paths.append(merged)

        try:
            artifact.transcoded_path = await self.transcode(merged)
            artifact.created_paths.append(artifact.transcoded_path)
        except TranscodeFailure as e:
            logger.error(f"Error converting to MP3, upload will be skipped: {e}")

        artifact.near_empty = await asyncio.to_thread(self.is_near_empty, merged)

        summary_input = artifact.summary_input
        if summary_input is not None and self.file_manager.file_size(summary_input) > self.max_summary_bytes:
            logger.warning(f"{summary_input.name} exceeds {self.max_summary_bytes} bytes, too long to process")
            artifact.too_large = True

        return artifact

    def cleanup(self, recording: RecordingResult, artifact: Optional[PostProcessArtifact] = None) -> int:
        """Delete the session's speaker files and everything this run created."""
        paths = list(recording.artifacts)
        if artifact is not None:
            paths.extend(artifact.created_paths)
        return self.file_manager.delete_files(paths, retain=self.retain_audio)
