"""
Intake listener: waits on the new-video channel and hands each event to the
pipeline, one at a time.
"""

import logging
import threading

from vidindex.core.constants import LISTEN_CHANNEL, PING_INTERVAL_SEC, POLL_INTERVAL_SEC
from vidindex.core.db import Database
from vidindex.core.error_codes import PayloadError
from vidindex.core.models import decode_video_event
from vidindex.core.pipeline import VideoPipeline

logger = logging.getLogger(__name__)


class IntakeListener:
    """Single-worker loop over the notification channel."""

    def __init__(self, db: Database, pipeline: VideoPipeline,
                 channel: str = LISTEN_CHANNEL,
                 ping_interval: float = PING_INTERVAL_SEC,
                 poll_interval: float = POLL_INTERVAL_SEC):
        self.db = db
        self.pipeline = pipeline
        self.channel = channel
        self.ping_interval = ping_interval
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._ping_thread: threading.Thread | None = None
        self._subscribed = False

    def _subscribe(self):
        if not self._subscribed:
            self.db.listen(self.channel)
            self._subscribed = True

    def run(self):
        """Block until stop() is called."""
        self._subscribe()
        logger.info("Start monitoring channel '%s'...", self.channel)
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.error("Error waiting on channel '%s': %s", self.channel, e)
                self._stop_event.wait(self.poll_interval)
        logger.info("Listener stopped")

    def stop(self):
        self._stop_event.set()

    def poll_once(self) -> bool:
        """
        Run one wait cycle. Returns True if a payload was received
        (whether or not it could be processed), False on timeout.
        """
        self._subscribe()
        payload = self.db.wait_for_notification(self.ping_interval, self.poll_interval)
        if payload is None:
            self._start_ping()
            return False

        logger.info("Received data from channel [%s]", self.channel)
        self.handle_payload(payload)
        return True

    def handle_payload(self, payload: str):
        try:
            event = decode_video_event(payload)
        except PayloadError as e:
            logger.error("Dropping payload: %s", e)
            return

        try:
            self.pipeline.process_event(event)
            logger.info("Processed video %s", event.id)
        except Exception as e:
            logger.error("Error processing video %s: %s", event.id, e)

    # ── Liveness ──────────────────────────────────────────────────────

    def _start_ping(self):
        logger.debug("Received no events for %s seconds, checking connection",
                     self.ping_interval)
        self._ping_thread = threading.Thread(target=self._ping, daemon=True)
        self._ping_thread.start()

    def _ping(self):
        try:
            self.db.ping()
        except Exception as e:
            logger.error("Connection check failed: %s", e)
