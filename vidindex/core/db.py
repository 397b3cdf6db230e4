"""
SQLite persistence layer for vidindex.
Thread-safe via check_same_thread=False + explicit locking.

Besides the Video and chunk tables this provides a small notification
channel (the `notifications` table) with LISTEN/NOTIFY-style semantics:
creating a Video publishes its JSON payload on the 'new_video' channel in
the same transaction, and the intake listener waits on that channel.
"""

import json
import math
import sqlite3
import threading
import time
import uuid
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from vidindex.core.constants import (
    DB_PATH, VideoStatus, CHUNK_UNITS, ChunkMode, LISTEN_CHANNEL,
    POLL_INTERVAL_SEC, DEFAULT_SEARCH_LIMIT,
)
from vidindex.core.error_codes import PersistenceError
from vidindex.core.models import Chunk, SearchResult, Video, encode_video_event
from vidindex.core.url_parse import extract_slug

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    video_url TEXT NOT NULL,
    slug TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    transcription TEXT,
    is_searchable INTEGER DEFAULT 0,
    user_id TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_videos_url ON videos(video_url, updated_at DESC);
CREATE INDEX IF NOT EXISTS idx_videos_status ON videos(status);

CREATE TABLE IF NOT EXISTS video_chunks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    video_id TEXT NOT NULL,
    chunk_text TEXT NOT NULL,
    chunk_embedding TEXT NOT NULL,
    chunk_start REAL NOT NULL,
    chunk_end REAL NOT NULL,
    chunk_unit TEXT NOT NULL,
    FOREIGN KEY (video_id) REFERENCES videos(id)
);

CREATE INDEX IF NOT EXISTS idx_video_chunks_video ON video_chunks(video_id);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    channel TEXT NOT NULL,
    payload TEXT NOT NULL,
    created_at TEXT,
    delivered_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_notifications_pending ON notifications(channel, delivered_at, id);
"""


def cosine_distance(a: list[float], b: list[float]) -> float:
    """Cosine distance (1 - cosine similarity) between two vectors."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 1.0
    return 1.0 - dot / (norm_a * norm_b)


class Database:
    """SQLite database wrapper for vidindex."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or DB_PATH
        self._lock = threading.RLock()
        self._last_ts: datetime | None = None
        self._channels: set[str] = set()
        self._ensure_dirs()
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()

    def _ensure_dirs(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _migrate(self):
        cur = self.conn.cursor()
        cur.executescript(_CREATE_TABLES)
        # Set schema version
        cur.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        self.conn.commit()

    def close(self):
        if self.conn:
            self.conn.close()

    # ── Helpers ───────────────────────────────────────────────────────

    def _now(self) -> str:
        """UTC timestamp that strictly increases across calls."""
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_ts is not None and now <= self._last_ts:
                now = self._last_ts + timedelta(microseconds=1)
            self._last_ts = now
            return now.isoformat(timespec='microseconds')

    @staticmethod
    def _row_to_video(row: sqlite3.Row) -> Video:
        return Video(**dict(row))

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        embedding = json.loads(row['chunk_embedding'])
        if row['chunk_unit'] == CHUNK_UNITS[ChunkMode.TIME]:
            return Chunk(
                text=row['chunk_text'],
                embedding=embedding,
                start_time=timedelta(seconds=row['chunk_start']),
                end_time=timedelta(seconds=row['chunk_end']),
            )
        return Chunk(
            text=row['chunk_text'],
            embedding=embedding,
            start_offset=int(row['chunk_start']),
            end_offset=int(row['chunk_end']),
        )

    def _query(self, sql: str, params, what: str) -> list[sqlite3.Row]:
        """Run a read and wrap driver errors."""
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise PersistenceError(f"Lookup of {what} failed: {e}")

    def _execute_single_row(self, sql: str, params: tuple, video_id: str):
        """Run an UPDATE that must touch exactly one Video row."""
        with self._lock:
            try:
                cur = self.conn.execute(sql, params)
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"Update of video {video_id} failed: {e}")
        if cur.rowcount == 0:
            raise PersistenceError(f"No video found with ID: {video_id}")

    # ── Video CRUD ────────────────────────────────────────────────────

    def create_video(self, video_url: str, is_searchable: bool = False,
                     user_id: str | None = None) -> Video:
        """
        Insert a pending Video and publish it on the intake channel.
        Stands in for the external intake API.
        """
        now = self._now()
        video = Video(
            id=str(uuid.uuid4()),
            video_url=video_url,
            slug=extract_slug(video_url),
            is_searchable=1 if is_searchable else 0,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.conn.execute(
                """INSERT INTO videos
                   (id, video_url, slug, status, is_searchable, user_id,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (video.id, video.video_url, video.slug, video.status,
                 video.is_searchable, video.user_id,
                 video.created_at, video.updated_at),
            )
            self.conn.execute(
                "INSERT INTO notifications (channel, payload, created_at) VALUES (?, ?, ?)",
                (LISTEN_CHANNEL, encode_video_event(video), now),
            )
            self.conn.commit()
        return video

    def get_video(self, video_id: str) -> Video | None:
        rows = self._query("SELECT * FROM videos WHERE id = ?", (video_id,),
                           f"video {video_id}")
        return self._row_to_video(rows[0]) if rows else None

    def get_videos_by_status(self, statuses: list[str],
                             searchable_only: bool = False) -> list[Video]:
        placeholders = ', '.join('?' for _ in statuses)
        sql = f"SELECT * FROM videos WHERE status IN ({placeholders})"
        if searchable_only:
            sql += " AND is_searchable = 1"
        sql += " ORDER BY created_at ASC"
        rows = self._query(sql, list(statuses), "videos by status")
        return [self._row_to_video(r) for r in rows]

    def find_cached_transcript(self, video_url: str) -> str | None:
        """Most recent non-null transcript on file for this URL."""
        rows = self._query(
            """SELECT transcription FROM videos
               WHERE video_url = ? AND transcription IS NOT NULL
               ORDER BY updated_at DESC LIMIT 1""",
            (video_url,),
            f"cached transcript for {video_url}",
        )
        return rows[0]['transcription'] if rows else None

    def update_video_status(self, video_id: str, status: str):
        self._execute_single_row(
            "UPDATE videos SET status = ?, updated_at = ? WHERE id = ?",
            (status, self._now(), video_id),
            video_id,
        )
        logger.info("Updated video %s status to: %s", video_id, status)

    def save_transcript(self, video_id: str, transcription: str,
                        status: str = VideoStatus.TRANSCRIBED):
        """Store the transcript and its status marker in one write."""
        self._execute_single_row(
            "UPDATE videos SET transcription = ?, status = ?, updated_at = ? WHERE id = ?",
            (transcription, status, self._now(), video_id),
            video_id,
        )
        logger.info("Saved transcript for video %s (%d chars)", video_id, len(transcription))

    # ── Chunk CRUD ────────────────────────────────────────────────────

    def replace_chunks(self, video_id: str, chunks: list[Chunk]):
        """
        Swap a video's chunks for a new batch in a single transaction.
        Either every chunk lands or none do.
        """
        rows = []
        for c in chunks:
            start, end = c.bounds()
            unit = CHUNK_UNITS[ChunkMode.TIME if c.is_timed else ChunkMode.CHARACTERS]
            rows.append((video_id, c.text, json.dumps(c.embedding), start, end, unit))

        with self._lock:
            try:
                exists = self.conn.execute(
                    "SELECT 1 FROM videos WHERE id = ?", (video_id,)
                ).fetchone()
                if not exists:
                    raise PersistenceError(f"No video found with ID: {video_id}")
                self.conn.execute("DELETE FROM video_chunks WHERE video_id = ?", (video_id,))
                self.conn.executemany(
                    """INSERT INTO video_chunks
                       (video_id, chunk_text, chunk_embedding, chunk_start, chunk_end, chunk_unit)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    rows,
                )
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"Chunk insert failed for video {video_id}: {e}")
            except PersistenceError:
                self.conn.rollback()
                raise
        logger.info("Stored %d chunks for video %s", len(rows), video_id)

    def get_chunks(self, video_id: str) -> list[Chunk]:
        rows = self._query(
            "SELECT * FROM video_chunks WHERE video_id = ? ORDER BY id",
            (video_id,),
            f"chunks of video {video_id}",
        )
        return [self._row_to_chunk(r) for r in rows]

    def search_chunks(self, query_embedding: list[float],
                      limit: int = DEFAULT_SEARCH_LIMIT) -> list[SearchResult]:
        """
        Rank chunks of completed, searchable videos by ascending cosine
        distance to the query. similarity = 1 - distance.
        """
        rows = self._query(
            """SELECT vc.video_id, vc.chunk_text, vc.chunk_embedding,
                      vc.chunk_start, vc.chunk_end, vc.chunk_unit
               FROM video_chunks vc
               JOIN videos v ON v.id = vc.video_id
               WHERE v.status = ? AND v.is_searchable = 1""",
            (VideoStatus.COMPLETED,),
            "chunks for search",
        )

        scored = []
        for row in rows:
            embedding = json.loads(row['chunk_embedding'])
            if len(embedding) != len(query_embedding):
                logger.warning("Skipping chunk of video %s: embedding size %d != %d",
                               row['video_id'], len(embedding), len(query_embedding))
                continue
            scored.append((cosine_distance(query_embedding, embedding), row))

        scored.sort(key=lambda item: item[0])
        return [
            SearchResult(
                video_id=row['video_id'],
                chunk_text=row['chunk_text'],
                chunk_start=row['chunk_start'],
                chunk_end=row['chunk_end'],
                chunk_unit=row['chunk_unit'],
                similarity=1.0 - distance,
            )
            for distance, row in scored[:limit]
        ]

    # ── Notification channel ──────────────────────────────────────────

    def notify(self, channel: str, payload: str):
        """Publish a raw payload on a channel."""
        with self._lock:
            self.conn.execute(
                "INSERT INTO notifications (channel, payload, created_at) VALUES (?, ?, ?)",
                (channel, payload, self._now()),
            )
            self.conn.commit()

    def listen(self, channel: str):
        """Subscribe this handle to a channel."""
        with self._lock:
            self._channels.add(channel)
        logger.info("Listening on channel '%s'", channel)

    def _claim_notification(self) -> str | None:
        placeholders = ', '.join('?' for _ in self._channels)
        with self._lock:
            try:
                row = self.conn.execute(
                    f"""SELECT id, payload FROM notifications
                        WHERE channel IN ({placeholders}) AND delivered_at IS NULL
                        ORDER BY id ASC LIMIT 1""",
                    list(self._channels),
                ).fetchone()
                if row is None:
                    return None
                self.conn.execute(
                    "UPDATE notifications SET delivered_at = ? WHERE id = ?",
                    (self._now(), row['id']),
                )
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"Notification claim failed: {e}")
        return row['payload']

    def wait_for_notification(self, timeout: float,
                              poll_interval: float = POLL_INTERVAL_SEC) -> str | None:
        """
        Block until a payload arrives on a subscribed channel or the timeout
        elapses. Returns the payload, or None on timeout.
        """
        if not self._channels:
            raise PersistenceError("wait_for_notification called before listen()")

        deadline = time.monotonic() + timeout
        while True:
            payload = self._claim_notification()
            if payload is not None:
                return payload
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(poll_interval, remaining))

    def ping(self):
        """Liveness probe for the connection. Raises PersistenceError."""
        try:
            with self._lock:
                self.conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database ping failed: {e}")
