"""
Data models (plain dataclasses) for vidindex.
"""

import json
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

from vidindex.core.constants import VideoStatus
from vidindex.core.error_codes import PayloadError


@dataclass
class Video:
    id: str                          # UUID
    video_url: str
    slug: Optional[str] = None
    status: str = VideoStatus.PENDING
    transcription: Optional[str] = None
    is_searchable: int = 0
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class TimedTextEntry:
    sequence_number: int             # 1-based, contiguous
    start: timedelta
    end: timedelta
    text: str


@dataclass(frozen=True)
class Chunk:
    text: str
    embedding: list[float] = field(default_factory=list)
    # Character mode
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None
    # Time mode
    start_time: Optional[timedelta] = None
    end_time: Optional[timedelta] = None

    @property
    def is_timed(self) -> bool:
        return self.start_time is not None

    def bounds(self) -> tuple[float, float]:
        """Return (start, end) as characters or seconds, whichever applies."""
        if self.is_timed:
            return self.start_time.total_seconds(), self.end_time.total_seconds()
        return float(self.start_offset), float(self.end_offset)


@dataclass
class SearchResult:
    video_id: str
    chunk_text: str
    chunk_start: float
    chunk_end: float
    chunk_unit: str
    similarity: float


# ── Acquisition result ────────────────────────────────────────────────

@dataclass(frozen=True)
class SingleAsset:
    path: Path


@dataclass(frozen=True)
class SegmentedAsset:
    directory: Path
    paths: tuple[Path, ...]


AudioAsset = Union[SingleAsset, SegmentedAsset]


@dataclass(frozen=True)
class AcquiredAudio:
    title: str
    asset: AudioAsset


# ── Intake event ──────────────────────────────────────────────────────

@dataclass
class VideoEvent:
    id: str
    video_url: str
    slug: Optional[str] = None
    transcription: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    user_id: Optional[str] = None
    is_searchable: bool = False


def decode_video_event(raw: str | bytes) -> VideoEvent:
    """
    Decode a notification payload into a VideoEvent.
    Only 'id' and 'videoUrl' are required; everything else is optional.
    Raises PayloadError on anything that is not a usable JSON object.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PayloadError(f"Payload is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise PayloadError(f"Payload must be a JSON object, got {type(data).__name__}")

    video_id = data.get('id')
    video_url = data.get('videoUrl')
    if not video_id or not isinstance(video_id, str):
        raise PayloadError("Payload is missing 'id'")
    if not video_url or not isinstance(video_url, str):
        raise PayloadError(f"Payload for {video_id} is missing 'videoUrl'")

    is_searchable = data.get('isSearchable')
    if is_searchable is None:
        is_searchable = False
    elif not isinstance(is_searchable, bool):
        raise PayloadError(f"Payload for {video_id} has non-boolean "
                           f"'isSearchable': {is_searchable!r}")

    user_id = data.get('userId')
    return VideoEvent(
        id=video_id,
        video_url=video_url,
        slug=data.get('slug'),
        transcription=data.get('transcription'),
        status=data.get('status'),
        created_at=data.get('createdAt'),
        updated_at=data.get('updatedAt'),
        user_id=str(user_id) if user_id is not None else None,
        is_searchable=is_searchable,
    )


def encode_video_event(video: Video) -> str:
    """Serialize a Video the way the intake side publishes it."""
    return json.dumps({
        'id': video.id,
        'videoUrl': video.video_url,
        'slug': video.slug,
        'transcription': video.transcription,
        'status': video.status,
        'createdAt': video.created_at,
        'updatedAt': video.updated_at,
        'userId': video.user_id,
        'isSearchable': bool(video.is_searchable),
    })
