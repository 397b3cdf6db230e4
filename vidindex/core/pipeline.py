"""
Video pipeline controller.
Runs one Video through acquisition, transcription and chunking, and owns
every status transition along the way.
"""

import logging
from pathlib import Path

from vidindex.core.constants import (
    VideoStatus, STATUS_TRANSITIONS, AUDIO_FILENAME, WORK_DIR, ChunkMode,
    CHUNK_MAX_SIZE, CHUNK_OVERLAP, CHUNK_OVERLAP_SENTENCES,
    DOWNLOAD_TIMEOUT_SEC, PROBE_TIMEOUT_SEC, SPLIT_TIMEOUT_SEC,
)
from vidindex.core.db import Database
from vidindex.core.models import VideoEvent
from vidindex.core.error_codes import JobError, PersistenceError, InvalidTransitionError
from vidindex.core.url_parse import validate_source_url
from vidindex.core.acquisition import (
    MediaFetcher, Segmenter, YtDlpFetcher, acquire_audio,
)
from vidindex.core.segmenter import FfmpegSegmenter
from vidindex.core.transcription import Transcriber, transcribe_asset
from vidindex.core.chunker import Embedder, build_chunks
from vidindex.core.cleanup import cleanup_job_artifacts

logger = logging.getLogger(__name__)


def check_transition(current: str, target: str):
    """Raise InvalidTransitionError unless current → target is lawful."""
    if target == VideoStatus.PROCESSING:
        return  # a new run may start from any state
    if target not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(current, target)


class VideoPipeline:
    """
    Processes intake events one at a time. Each status change is a single
    persisted write; nothing is retried automatically.
    """

    def __init__(self, db: Database, transcriber: Transcriber, embedder: Embedder,
                 fetcher: MediaFetcher | None = None,
                 segmenter: Segmenter | None = None,
                 config: dict | None = None):
        self.db = db
        self.config = config or {}
        self.transcriber = transcriber
        self.embedder = embedder
        self.fetcher = fetcher or YtDlpFetcher(
            timeout=self.config.get('download_timeout_sec', DOWNLOAD_TIMEOUT_SEC))
        self.segmenter = segmenter or FfmpegSegmenter(
            probe_timeout=self.config.get('probe_timeout_sec', PROBE_TIMEOUT_SEC),
            split_timeout=self.config.get('split_timeout_sec', SPLIT_TIMEOUT_SEC))

    # ── Config helpers ────────────────────────────────────────────────

    @property
    def work_dir(self) -> Path:
        return Path(self.config.get('work_dir', str(WORK_DIR))).expanduser()

    @property
    def keep_debug(self) -> bool:
        return self.config.get('keep_debug_artifacts', False)

    @property
    def chunk_mode(self) -> str:
        return self.config.get('chunk_mode', ChunkMode.CHARACTERS)

    # ── State transitions ─────────────────────────────────────────────

    def _transition(self, video_id: str, current: str, target: str,
                    transcript: str | None = None) -> str:
        check_transition(current, target)
        if transcript is not None:
            self.db.save_transcript(video_id, transcript, target)
        else:
            self.db.update_video_status(video_id, target)
        return target

    def _fail(self, video_id: str, current: str, target: str):
        """Record a terminal failure status without masking the original error."""
        try:
            self._transition(video_id, current, target)
        except JobError as e:
            logger.error("Failed to record status %s for video %s: %s", target, video_id, e)

    # ── Run ───────────────────────────────────────────────────────────

    def process_event(self, event: VideoEvent):
        """
        Run the full pipeline for one intake event.
        Failures are written as a terminal status, then re-raised.
        """
        video = self.db.get_video(event.id)
        if video is None:
            raise PersistenceError(f"No video found with ID: {event.id}")

        logger.info("Processing video ID: %s, URL: %s", event.id, event.video_url)
        status = self._transition(event.id, video.status, VideoStatus.PROCESSING)

        transcript = self._obtain_transcript(event.id, event.video_url)
        status = self._transition(event.id, status, VideoStatus.TRANSCRIBED,
                                  transcript=transcript)

        if event.is_searchable:
            self._index(event.id, transcript)
        else:
            # A searchable earlier run may have left chunks behind
            self._store_chunks(event.id, list)
        self._transition(event.id, status, VideoStatus.COMPLETED)

    def _obtain_transcript(self, video_id: str, video_url: str) -> str:
        """Cached transcript for the URL, else download and transcribe."""
        workspace = self.work_dir / video_id
        try:
            cached = self.db.find_cached_transcript(video_url)
            if cached is not None:
                logger.info("Reusing transcript on file for %s", video_url)
                return cached

            validate_source_url(video_url)
            acquired = acquire_audio(video_url, workspace / AUDIO_FILENAME,
                                     self.fetcher, self.segmenter)
            logger.info("Acquired audio for '%s'", acquired.title)
            return transcribe_asset(acquired.asset, self.transcriber)
        except JobError as e:
            logger.error("Transcription run failed for video %s: %s", video_id, e)
            self._fail(video_id, VideoStatus.PROCESSING, VideoStatus.FAILED)
            raise
        except Exception as e:
            logger.error("Unexpected error processing video %s: %s", video_id, e, exc_info=True)
            self._fail(video_id, VideoStatus.PROCESSING, VideoStatus.FAILED)
            raise
        finally:
            cleanup_job_artifacts(workspace, self.keep_debug)

    def _index(self, video_id: str, transcript: str):
        """Chunk, embed and store. The transcript stays saved on failure."""
        self._store_chunks(video_id, lambda: build_chunks(
            transcript, self.embedder,
            mode=self.chunk_mode,
            max_size=self.config.get('chunk_max_size', CHUNK_MAX_SIZE),
            overlap=self.config.get('chunk_overlap', CHUNK_OVERLAP),
            overlap_sentences=self.config.get('chunk_overlap_sentences',
                                              CHUNK_OVERLAP_SENTENCES),
        ))

    def _store_chunks(self, video_id: str, make_chunks):
        """
        Replace the video's chunks with whatever make_chunks() returns.
        Any failure moves the video to chunk_processing_failed.
        """
        try:
            chunks = make_chunks()
            logger.info("Number of chunks for video %s: %d", video_id, len(chunks))
            self.db.replace_chunks(video_id, chunks)
        except JobError as e:
            logger.error("Chunk processing failed for video %s: %s", video_id, e)
            self._fail(video_id, VideoStatus.TRANSCRIBED, VideoStatus.CHUNK_PROCESSING_FAILED)
            raise
        except Exception as e:
            logger.error("Unexpected chunking error for video %s: %s", video_id, e, exc_info=True)
            self._fail(video_id, VideoStatus.TRANSCRIBED, VideoStatus.CHUNK_PROCESSING_FAILED)
            raise

    # ── Backfill ──────────────────────────────────────────────────────

    def reindex_pending(self) -> tuple[int, int]:
        """
        Re-run searchable videos left in 'transcribed' or
        'chunk_processing_failed'. Their own transcript is reused, so only
        chunking runs. Returns (succeeded, failed).
        """
        videos = self.db.get_videos_by_status(
            [VideoStatus.TRANSCRIBED, VideoStatus.CHUNK_PROCESSING_FAILED],
            searchable_only=True,
        )
        succeeded = failed = 0
        for video in videos:
            event = VideoEvent(id=video.id, video_url=video.video_url,
                               slug=video.slug, status=video.status,
                               user_id=video.user_id, is_searchable=True)
            try:
                self.process_event(event)
                succeeded += 1
            except Exception as e:
                logger.error("Reindex failed for video %s: %s", video.id, e)
                failed += 1
        logger.info("Reindex finished: %d succeeded, %d failed", succeeded, failed)
        return succeeded, failed
