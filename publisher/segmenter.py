"""Splits a source media file into independently decodable fragmented-MP4 chunks."""

import math
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

from common.constants import (
    CHUNK_FILE_PREFIX,
    CHUNK_FILE_SUFFIX,
    FRAGMENT_MOVFLAGS,
    SEGMENT_TIME_SECONDS,
)
from common.exceptions import SegmentationFailed
from common.logging_config import get_logger
from common.types import Chunk, SourceAsset

logger = get_logger(__name__)

CommandRunner = Callable[..., subprocess.CompletedProcess]


def expected_segment_count(duration: float, segment_time: float) -> int:
    """
    Number of segments a source of the given duration splits into.

    Args:
        duration: Source duration in seconds
        segment_time: Target segment duration in seconds

    Returns:
        Count of full segments plus one partial segment if any remainder
    """
    if segment_time <= 0:
        raise ValueError("segment_time must be positive")
    if duration <= 0:
        return 0
    return math.ceil(duration / segment_time)


def build_segment_command(
    ffmpeg_binary: str,
    input_path: Path,
    output_pattern: str,
    segment_time: int
) -> list[str]:
    """Build the ffmpeg invocation that segments without re-encoding."""
    return [
        ffmpeg_binary,
        "-hide_banner",
        "-y",
        "-i", str(input_path),
        "-c", "copy",
        "-map", "0",
        "-f", "segment",
        "-segment_time", str(segment_time),
        "-reset_timestamps", "1",
        "-segment_format_options", f"movflags={FRAGMENT_MOVFLAGS}",
        output_pattern,
    ]


class Segmenter:
    """
    Segments a SourceAsset into chunks using ffmpeg stream copy.

    Each chunk is written to a private working directory and read lazily,
    so only one chunk payload needs to be resident at a time.
    """

    def __init__(
        self,
        segment_time: int = SEGMENT_TIME_SECONDS,
        runner: Optional[CommandRunner] = None,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        work_dir: Optional[Path] = None
    ):
        """
        Initialize segmenter.

        Args:
            segment_time: Target segment duration in seconds
            runner: Callable with subprocess.run semantics (injectable for tests)
            ffmpeg_binary: ffmpeg executable name or path
            ffprobe_binary: ffprobe executable name or path
            work_dir: Parent directory for working files (system temp if None)
        """
        if segment_time <= 0:
            raise ValueError("segment_time must be positive")
        self.segment_time = segment_time
        self.runner = runner or subprocess.run
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.work_dir = work_dir
        self._output_dir: Optional[Path] = None

    @property
    def output_dir(self) -> Optional[Path]:
        return self._output_dir

    def probe_duration(self, path: Path) -> Optional[float]:
        """
        Read the container duration with ffprobe.

        Returns:
            Duration in seconds, or None if it cannot be determined
        """
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = self.runner(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            logger.debug(f"{self.ffprobe_binary} not available, skipping duration probe")
            return None
        if result.returncode != 0:
            return None
        try:
            return float((result.stdout or "").strip())
        except ValueError:
            return None

    def segment(self, asset: SourceAsset) -> list[Chunk]:
        """
        Split the asset into chunks indexed 1..N in playback order.

        Args:
            asset: Source media file

        Returns:
            Ordered list of chunks backed by working files

        Raises:
            SegmentationFailed: If ffmpeg is unavailable, fails, or yields no chunks
        """
        self.cleanup()
        self._output_dir = Path(tempfile.mkdtemp(prefix="reelstream_", dir=self.work_dir))
        output_pattern = str(self._output_dir / f"{CHUNK_FILE_PREFIX}%03d{CHUNK_FILE_SUFFIX}")
        cmd = build_segment_command(self.ffmpeg_binary, asset.path, output_pattern, self.segment_time)

        logger.info(
            f"Segmenting {asset.display_name} ({asset.size} bytes) into {self.segment_time}s chunks"
        )
        duration = self.probe_duration(asset.path)

        try:
            result = self.runner(cmd, capture_output=True, text=True)
        except FileNotFoundError as exc:
            self.cleanup()
            raise SegmentationFailed(
                f"{self.ffmpeg_binary} is required to segment media. Please install ffmpeg and retry."
            ) from exc

        if result.returncode != 0:
            stderr = (result.stderr or result.stdout or "unknown error").strip()
            self.cleanup()
            raise SegmentationFailed(f"ffmpeg segmentation failed: {stderr.splitlines()[-1] if stderr else stderr}")

        chunk_files = sorted(
            p for p in self._output_dir.iterdir()
            if p.is_file() and p.name.startswith(CHUNK_FILE_PREFIX) and p.name.endswith(CHUNK_FILE_SUFFIX)
        )
        if not chunk_files:
            self.cleanup()
            raise SegmentationFailed(
                f"No chunks produced for {asset.display_name}: source too short, corrupt, or unsupported"
            )

        chunks = [Chunk(index=i, path=p) for i, p in enumerate(chunk_files, start=1)]

        if duration is not None:
            expected = expected_segment_count(duration, self.segment_time)
            if expected != len(chunks):
                logger.warning(
                    f"Segment count {len(chunks)} differs from expected {expected} "
                    f"for duration {duration:.1f}s (segments split on keyframes)"
                )

        logger.info(f"Segmented {asset.display_name} into {len(chunks)} chunk(s)")
        return chunks

    def cleanup(self) -> None:
        """Remove the working directory and any chunk files still in it."""
        if self._output_dir is not None:
            shutil.rmtree(self._output_dir, ignore_errors=True)
            self._output_dir = None
