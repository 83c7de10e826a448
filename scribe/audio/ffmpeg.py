"""Async wrapper around the ffmpeg executable."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from .sinks import CHANNELS, SAMPLE_RATE

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """ffmpeg exited with a non-zero status or could not be started."""


class FFmpegRunner:
    """Runs ffmpeg jobs as subprocesses without blocking the event loop."""

    def __init__(self, executable: Optional[str] = None, timeout: float = 360.0):
        self.executable = executable or shutil.which("ffmpeg") or "ffmpeg"
        self.timeout = timeout
        logger.info(f"Using ffmpeg: {self.executable}")

    @staticmethod
    def input_args(path: Path) -> List[str]:
        """Input arguments for an artifact; raw .pcm needs its format spelled out."""
        if Path(path).suffix == ".pcm":
            return ["-f", "s16le", "-ar", str(SAMPLE_RATE), "-ac", str(CHANNELS), "-i", str(path)]
        return ["-i", str(path)]

    async def run(self, args: Sequence[str]) -> None:
        cmd = [self.executable, "-y", "-hide_banner", "-loglevel", "error", *args]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise FFmpegError(f"Could not start ffmpeg: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise FFmpegError(f"ffmpeg timed out after {self.timeout}s")

        if process.returncode != 0:
            raise FFmpegError(f"ffmpeg exited with {process.returncode}: {stderr.decode(errors='replace').strip()}")

    async def mix(self, inputs: Sequence[Path], output: Path) -> Path:
        """Mix several tracks into one; length of the longest, gaps are silence."""
        args: List[str] = []
        for path in inputs:
            args.extend(self.input_args(path))
        args.extend([
            "-filter_complex",
            f"amix=inputs={len(inputs)}:duration=longest:dropout_transition=0",
            "-acodec", "pcm_s16le",
            str(output),
        ])
        await self.run(args)
        return output

    async def to_mp3(self, source: Path, output: Path) -> Path:
        await self.run([*self.input_args(source), "-codec:a", "libmp3lame", "-qscale:a", "2", str(output)])
        return output
