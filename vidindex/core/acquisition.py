"""
Audio acquisition via yt-dlp, with segmentation of oversized assets.
"""

import logging
from pathlib import Path
from typing import Protocol

from vidindex.core.security_utils import run_subprocess_capture
from vidindex.core.error_codes import AcquisitionError
from vidindex.core.constants import (
    ErrorCode, DOWNLOAD_TIMEOUT_SEC, SEGMENT_THRESHOLD_BYTES, SEGMENT_TARGET_BYTES,
)
from vidindex.core.models import AcquiredAudio, AudioAsset, SingleAsset, SegmentedAsset
from vidindex.core.segmenter import (
    needs_segmenting, segment_count, segment_dir_for,
    create_segment_manifest, list_segments,
)

logger = logging.getLogger(__name__)


class MediaFetcher(Protocol):
    def fetch(self, video_url: str, destination: Path) -> str: ...


class Segmenter(Protocol):
    def probe_duration(self, audio_path: Path) -> float: ...

    def split(self, audio_path: Path, segment_dir: Path,
              manifest_entries: list[dict]) -> list[Path]: ...


class YtDlpFetcher:
    """Downloads the best available audio stream as MP3 using yt-dlp."""

    def __init__(self, timeout: int = DOWNLOAD_TIMEOUT_SEC):
        self.timeout = timeout

    def fetch(self, video_url: str, destination: Path) -> str:
        """
        Download audio to `destination` (an .mp3 path).
        Returns the video title reported by yt-dlp.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        output_template = str(destination.with_suffix('')) + ".%(ext)s"

        args = [
            "yt-dlp",
            "--no-playlist",
            "--extract-audio",
            "--audio-format", "mp3",
            "--audio-quality", "0",
            "--no-simulate",
            "--print", "after_move:title",
            "-o", output_template,
            video_url,
        ]

        try:
            result = run_subprocess_capture(args, timeout=self.timeout)
        except Exception as e:
            raise AcquisitionError(f"Audio download failed: {e}")

        if result.returncode != 0:
            stderr = result.stderr or ""
            raise AcquisitionError(
                f"yt-dlp download failed (rc={result.returncode}): {stderr[:300]}")

        if not destination.exists():
            # yt-dlp may keep a different extension if conversion was skipped
            candidates = sorted(destination.parent.glob(destination.stem + ".*"))
            if not candidates:
                raise AcquisitionError("No audio file found after download")
            candidates[0].rename(destination)

        lines = [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]
        title = lines[-1] if lines else destination.stem
        logger.info("Downloaded audio: %s (%s)", destination, title)
        return title


def acquire_audio(video_url: str, destination: Path,
                  fetcher: MediaFetcher, segmenter: Segmenter,
                  threshold: int = SEGMENT_THRESHOLD_BYTES,
                  target: int = SEGMENT_TARGET_BYTES) -> AcquiredAudio:
    """
    Fetch audio for a video and segment it if it exceeds the upload ceiling.
    The oversized original is removed once its segments exist.
    """
    title = fetcher.fetch(video_url, destination)

    try:
        size = destination.stat().st_size
    except OSError as e:
        raise AcquisitionError(f"Downloaded audio not readable: {e}")

    if not needs_segmenting(size, threshold):
        logger.info("Audio is %d bytes, no segmenting needed", size)
        return AcquiredAudio(title=title, asset=SingleAsset(destination))

    count = segment_count(size, target)
    duration = segmenter.probe_duration(destination)
    logger.info("Audio is %d bytes (%.0fs), splitting into %d segments",
                size, duration, count)

    segment_dir = segment_dir_for(destination)
    manifest = create_segment_manifest(duration, count)
    paths = segmenter.split(destination, segment_dir, manifest)

    try:
        destination.unlink()
    except OSError as e:
        logger.warning("Failed to remove oversized original %s: %s", destination, e)

    return AcquiredAudio(title=title,
                         asset=SegmentedAsset(directory=segment_dir, paths=tuple(paths)))


def asset_from_path(asset_path: Path) -> AudioAsset:
    """
    Recover the acquisition result from the on-disk layout: a sibling
    '<asset>_segments' directory means the asset was segmented.
    """
    segment_dir = segment_dir_for(asset_path)
    if segment_dir.is_dir():
        paths = list_segments(segment_dir)
        if not paths:
            raise AcquisitionError(f"Segment directory {segment_dir} is empty",
                                   ErrorCode.SEGMENTING)
        return SegmentedAsset(directory=segment_dir, paths=tuple(paths))

    if not asset_path.exists():
        raise AcquisitionError(f"Audio file not found: {asset_path}")
    return SingleAsset(asset_path)
