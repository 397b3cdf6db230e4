"""
Shared constants for vidindex.
Single source of truth — imported by every other module.
"""

import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_DISPLAY_NAME = "Video Transcript Indexer"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_DATA_DIR = HOME / ".vidindex"
DB_PATH = APP_DATA_DIR / "vidindex.db"
WORK_DIR = APP_DATA_DIR / "work"
CONFIG_PATH = APP_DATA_DIR / "config.json"

# ── Video status values ───────────────────────────────────────────────
class VideoStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"
    TRANSCRIBED = "transcribed"
    COMPLETED = "completed"
    CHUNK_PROCESSING_FAILED = "chunk_processing_failed"

# Forward edges of a single run. Re-entering PROCESSING from any state
# starts a new run (reprocessing) and is always allowed.
STATUS_TRANSITIONS = {
    VideoStatus.PENDING: {VideoStatus.PROCESSING},
    VideoStatus.PROCESSING: {VideoStatus.FAILED, VideoStatus.TRANSCRIBED},
    VideoStatus.TRANSCRIBED: {VideoStatus.COMPLETED,
                              VideoStatus.CHUNK_PROCESSING_FAILED},
    VideoStatus.FAILED: set(),
    VideoStatus.COMPLETED: set(),
    VideoStatus.CHUNK_PROCESSING_FAILED: set(),
}

# ── Chunk modes ───────────────────────────────────────────────────────
class ChunkMode:
    CHARACTERS = "characters"
    TIME = "time"

CHUNK_UNITS = {
    ChunkMode.CHARACTERS: "characters",
    ChunkMode.TIME: "seconds",
}

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Non-retryable
    INVALID_URL = "ERR_INVALID_URL"
    VTT_FORMAT = "ERR_VTT_FORMAT"
    INVALID_PAYLOAD = "ERR_INVALID_PAYLOAD"
    PERSISTENCE = "ERR_PERSISTENCE"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"

    # Retryable
    DOWNLOAD_FAILED = "ERR_DOWNLOAD_FAILED"
    PROBE_FAILED = "ERR_PROBE_FAILED"
    SEGMENTING = "ERR_SEGMENTING"
    TRANSCRIBE_FAILED = "ERR_TRANSCRIBE_FAILED"
    EMBEDDING_FAILED = "ERR_EMBEDDING_FAILED"

RETRYABLE_ERRORS = {
    ErrorCode.DOWNLOAD_FAILED,
    ErrorCode.PROBE_FAILED,
    ErrorCode.SEGMENTING,
    ErrorCode.TRANSCRIBE_FAILED,
    ErrorCode.EMBEDDING_FAILED,
}

# ── Audio pipeline defaults ───────────────────────────────────────────
MIB = 1024 * 1024
SEGMENT_THRESHOLD_BYTES = 90 * MIB     # transcription upload ceiling
SEGMENT_TARGET_BYTES = 80 * MIB        # per-segment size budget
SEGMENT_DIR_SUFFIX = "_segments"
SEGMENT_NAME_TEMPLATE = "segment_{idx:03d}.mp3"
AUDIO_FILENAME = "audio.mp3"

# ── Subtitle format ───────────────────────────────────────────────────
VTT_HEADER = "WEBVTT"
VTT_ARROW = " --> "

# ── Chunking defaults ─────────────────────────────────────────────────
CHUNK_MAX_SIZE = 500
CHUNK_OVERLAP = 50
CHUNK_OVERLAP_SENTENCES = 2

# ── Intake channel ────────────────────────────────────────────────────
LISTEN_CHANNEL = "new_video"
PING_INTERVAL_SEC = 60
POLL_INTERVAL_SEC = 0.5

# ── Timeouts (seconds) ────────────────────────────────────────────────
DOWNLOAD_TIMEOUT_SEC = 1800
PROBE_TIMEOUT_SEC = 30
SPLIT_TIMEOUT_SEC = 300
HTTP_TIMEOUT_SEC = 120

# ── Lemonfox (transcription provider) ─────────────────────────────────
LEMONFOX_API_URL = "https://api.lemonfox.ai/v1/audio/transcriptions"
LEMONFOX_LANGUAGE = "english"
LEMONFOX_RESPONSE_FORMAT = "vtt"

# ── OpenAI (embedding provider) ───────────────────────────────────────
EMBEDDING_MODEL = "text-embedding-ada-002"

# ── Search ────────────────────────────────────────────────────────────
DEFAULT_SEARCH_LIMIT = 5
