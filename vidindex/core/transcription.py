"""
Transcription orchestration: one asset or many segments through the
transcription provider, stitched into a single continuous WebVTT document.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Protocol

from vidindex.core.models import AudioAsset, SingleAsset, SegmentedAsset, TimedTextEntry
from vidindex.core.vtt import parse_vtt, serialize_vtt
from vidindex.core.acquisition import asset_from_path

logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    def transcribe(self, audio_path: Path) -> str: ...


def stitch_segments(segments: list[list[TimedTextEntry]]) -> list[TimedTextEntry]:
    """
    Merge per-segment entries onto one timeline. Each segment is shifted by
    the (already shifted) end of the last entry of the segment before it;
    entries are renumbered contiguously.
    """
    stitched: list[TimedTextEntry] = []
    offset = timedelta(0)

    for entries in segments:
        for entry in entries:
            stitched.append(TimedTextEntry(
                sequence_number=len(stitched) + 1,
                start=entry.start + offset,
                end=entry.end + offset,
                text=entry.text,
            ))
        if entries:
            offset = stitched[-1].end

    return stitched


def transcribe_asset(asset: AudioAsset, transcriber: Transcriber) -> str:
    """
    Transcribe an acquired asset.
    A single asset yields the provider's raw output unchanged (validated by
    parsing); segments are parsed, stitched and re-serialized.
    """
    if isinstance(asset, SingleAsset):
        raw = transcriber.transcribe(asset.path)
        entries = parse_vtt(raw)
        logger.info("Transcript for %s has %d entries", asset.path.name, len(entries))
        return raw

    if isinstance(asset, SegmentedAsset):
        per_segment = []
        total = len(asset.paths)
        for i, path in enumerate(asset.paths):
            logger.info("Transcribing segment %d/%d: %s", i + 1, total, path.name)
            per_segment.append(parse_vtt(transcriber.transcribe(path)))

        stitched = stitch_segments(per_segment)
        logger.info("Stitched %d segments into %d entries", total, len(stitched))
        return serialize_vtt(stitched)

    raise TypeError(f"Unsupported asset type: {type(asset).__name__}")


def transcribe_path(asset_path: Path, transcriber: Transcriber) -> str:
    """Transcribe an asset on disk, honouring the segment directory convention."""
    return transcribe_asset(asset_from_path(asset_path), transcriber)
