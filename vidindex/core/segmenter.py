"""
Size-based audio segmentation using ffprobe/ffmpeg.
Segments only when the downloaded asset is larger than the transcription
upload ceiling. Parts have equal duration and live in a sibling
'<asset>_segments' directory.
"""

import logging
from pathlib import Path

from vidindex.core.security_utils import run_subprocess_capture
from vidindex.core.error_codes import AcquisitionError
from vidindex.core.constants import (
    ErrorCode, SEGMENT_THRESHOLD_BYTES, SEGMENT_TARGET_BYTES,
    SEGMENT_DIR_SUFFIX, SEGMENT_NAME_TEMPLATE,
    PROBE_TIMEOUT_SEC, SPLIT_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


def needs_segmenting(size_bytes: int, threshold: int = SEGMENT_THRESHOLD_BYTES) -> bool:
    """Check if an asset is too large to upload in one piece."""
    return size_bytes > threshold


def segment_count(size_bytes: int, target: int = SEGMENT_TARGET_BYTES) -> int:
    """Number of equal-duration parts for an asset of this size."""
    return size_bytes // target + 1


def segment_dir_for(asset_path: Path) -> Path:
    """Sibling directory holding the parts of an asset."""
    return asset_path.with_name(asset_path.name + SEGMENT_DIR_SUFFIX)


def create_segment_manifest(duration_sec: float, count: int) -> list[dict]:
    """
    Split a duration into `count` equal back-to-back intervals.
    Returns list of dicts with idx, start_sec, end_sec.
    """
    length = duration_sec / count
    return [
        {
            'idx': idx,
            'start_sec': idx * length,
            'end_sec': duration_sec if idx == count - 1 else (idx + 1) * length,
        }
        for idx in range(count)
    ]


def list_segments(segment_dir: Path) -> list[Path]:
    """Segment files in numeric suffix order."""
    return sorted(segment_dir.glob("segment_*.mp3"))


class FfmpegSegmenter:
    """Duration probe and equal-duration splitter backed by ffprobe/ffmpeg."""

    def __init__(self, probe_timeout: int = PROBE_TIMEOUT_SEC,
                 split_timeout: int = SPLIT_TIMEOUT_SEC):
        self.probe_timeout = probe_timeout
        self.split_timeout = split_timeout

    def probe_duration(self, audio_path: Path) -> float:
        """Get audio duration in seconds using ffprobe."""
        args = [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(audio_path),
        ]

        try:
            result = run_subprocess_capture(args, timeout=self.probe_timeout)
        except Exception as e:
            raise AcquisitionError(f"ffprobe failed: {e}", ErrorCode.PROBE_FAILED)

        if result.returncode != 0:
            stderr = result.stderr or ""
            raise AcquisitionError(f"ffprobe failed (rc={result.returncode}): {stderr[:300]}",
                                   ErrorCode.PROBE_FAILED)

        try:
            duration = float(result.stdout.strip())
        except ValueError:
            raise AcquisitionError(f"ffprobe returned no duration: {result.stdout[:100]!r}",
                                   ErrorCode.PROBE_FAILED)

        if duration <= 0:
            raise AcquisitionError(f"ffprobe reported duration {duration}",
                                   ErrorCode.PROBE_FAILED)
        return duration

    def split(self, audio_path: Path, segment_dir: Path,
              manifest_entries: list[dict]) -> list[Path]:
        """
        Split audio into parts using ffmpeg stream copy.
        Returns list of segment file paths in order.
        """
        segment_dir.mkdir(parents=True, exist_ok=True)
        segment_paths = []

        for entry in manifest_entries:
            idx = entry['idx']
            start = entry['start_sec']
            duration = entry['end_sec'] - start

            segment_file = segment_dir / SEGMENT_NAME_TEMPLATE.format(idx=idx)

            args = [
                "ffmpeg",
                "-y",
                "-i", str(audio_path),
                "-ss", f"{start:.3f}",
                "-t", f"{duration:.3f}",
                "-codec:a", "copy",
                str(segment_file),
            ]

            try:
                result = run_subprocess_capture(args, timeout=self.split_timeout)
            except Exception as e:
                raise AcquisitionError(f"Segment {idx} creation failed: {e}",
                                       ErrorCode.SEGMENTING)

            if result.returncode != 0:
                raise AcquisitionError(
                    f"ffmpeg segment {idx} failed: {result.stderr[:200] if result.stderr else 'unknown error'}",
                    ErrorCode.SEGMENTING)

            if not segment_file.exists():
                raise AcquisitionError(f"Segment file {idx} not created", ErrorCode.SEGMENTING)

            segment_paths.append(segment_file)

        logger.info("Created %d segments in %s", len(segment_paths), segment_dir)
        return segment_paths
