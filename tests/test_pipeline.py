#!/usr/bin/env python3
"""
Integration tests for vidindex: SQLite persistence, the video pipeline and
the intake listener, with stub providers standing in for yt-dlp, Lemonfox
and OpenAI.
"""

import sys
import sqlite3
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from unittest import mock

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

from vidindex.core.constants import VideoStatus, LISTEN_CHANNEL
from vidindex.core.db import Database, cosine_distance
from vidindex.core.error_codes import (
    JobError, FormatError, AcquisitionError, EmbeddingError,
    PersistenceError, InvalidTransitionError,
)
from vidindex.core.models import Chunk, TimedTextEntry, decode_video_event, encode_video_event
from vidindex.core.vtt import serialize_vtt
from vidindex.core.pipeline import VideoPipeline, check_transition
from vidindex.core.listener import IntakeListener

URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

# Five one-sentence cues, each ~31 characters
FIVE_SENTENCE_VTT = serialize_vtt([
    TimedTextEntry(i + 1, timedelta(seconds=i * 2), timedelta(seconds=i * 2 + 2),
                   f"This is sentence number {i} here.")
    for i in range(5)
])

# A budget of 40 characters puts each sentence in its own chunk
SMALL_CHUNKS = {'chunk_max_size': 40, 'chunk_overlap': 0}


class StubFetcher:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    def fetch(self, video_url, destination):
        self.calls.append(video_url)
        if self.error:
            raise self.error
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"\0" * 64)
        return "Stub Video"


class NoSegmenter:
    def probe_duration(self, audio_path):
        raise AssertionError("small assets are never probed")

    def split(self, audio_path, segment_dir, manifest_entries):
        raise AssertionError("small assets are never split")


class StubTranscriber:
    def __init__(self, output: str = FIVE_SENTENCE_VTT):
        self.output = output
        self.calls = []

    def transcribe(self, audio_path):
        self.calls.append(audio_path)
        return self.output


class StubEmbedder:
    def __init__(self, fail_on: int | None = None):
        self.fail_on = fail_on
        self.calls = 0

    def embed(self, text):
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            raise EmbeddingError("stub provider unavailable")
        return [1.0, float(len(text)), 0.0]


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.db = Database(self.root / "test.db")

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()


class TestDatabase(DatabaseTestCase):
    """Test SQLite persistence and the notification channel."""

    def test_create_video(self):
        video = self.db.create_video(URL, is_searchable=True, user_id="u1")
        self.assertEqual(video.status, VideoStatus.PENDING)
        self.assertEqual(video.slug, "dQw4w9WgXcQ")
        fetched = self.db.get_video(video.id)
        self.assertEqual(fetched.video_url, URL)
        self.assertEqual(fetched.is_searchable, 1)
        self.assertEqual(fetched.user_id, "u1")
        self.assertIsNone(fetched.transcription)

    def test_get_missing_video(self):
        self.assertIsNone(self.db.get_video("does-not-exist"))

    def test_create_publishes_notification(self):
        self.db.listen(LISTEN_CHANNEL)
        video = self.db.create_video(URL, is_searchable=True)
        payload = self.db.wait_for_notification(0.5, poll_interval=0.01)
        event = decode_video_event(payload)
        self.assertEqual(event.id, video.id)
        self.assertEqual(event.video_url, URL)
        self.assertTrue(event.is_searchable)
        # Each notification is delivered once
        self.assertIsNone(self.db.wait_for_notification(0.05, poll_interval=0.01))

    def test_wait_before_listen(self):
        with self.assertRaises(PersistenceError):
            self.db.wait_for_notification(0.01)

    def test_other_channels_ignored(self):
        self.db.listen(LISTEN_CHANNEL)
        self.db.notify("something_else", "{}")
        self.assertIsNone(self.db.wait_for_notification(0.05, poll_interval=0.01))

    def test_updated_at_strictly_increases(self):
        video = self.db.create_video(URL)
        stamps = [datetime.fromisoformat(self.db.get_video(video.id).updated_at)]
        for status in [VideoStatus.PROCESSING, VideoStatus.TRANSCRIBED,
                       VideoStatus.COMPLETED, VideoStatus.PROCESSING]:
            self.db.update_video_status(video.id, status)
            stamps.append(datetime.fromisoformat(self.db.get_video(video.id).updated_at))
        self.db.save_transcript(video.id, FIVE_SENTENCE_VTT)
        stamps.append(datetime.fromisoformat(self.db.get_video(video.id).updated_at))
        for earlier, later in zip(stamps, stamps[1:]):
            self.assertLess(earlier, later)

    def test_update_missing_video(self):
        with self.assertRaises(PersistenceError):
            self.db.update_video_status("does-not-exist", VideoStatus.PROCESSING)
        with self.assertRaises(PersistenceError):
            self.db.save_transcript("does-not-exist", FIVE_SENTENCE_VTT)

    def test_save_transcript_sets_status(self):
        video = self.db.create_video(URL)
        self.db.save_transcript(video.id, FIVE_SENTENCE_VTT)
        fetched = self.db.get_video(video.id)
        self.assertEqual(fetched.status, VideoStatus.TRANSCRIBED)
        self.assertEqual(fetched.transcription, FIVE_SENTENCE_VTT)

    def test_cached_transcript(self):
        first = self.db.create_video(URL)
        self.db.create_video(URL)
        self.assertIsNone(self.db.find_cached_transcript(URL))
        self.db.save_transcript(first.id, FIVE_SENTENCE_VTT)
        self.assertEqual(self.db.find_cached_transcript(URL), FIVE_SENTENCE_VTT)
        self.assertIsNone(self.db.find_cached_transcript("https://example.com/other"))

    def test_cached_transcript_most_recent(self):
        a = self.db.create_video(URL)
        b = self.db.create_video(URL)
        self.db.save_transcript(a.id, "WEBVTT\n\nolder")
        self.db.save_transcript(b.id, "WEBVTT\n\nnewer")
        self.assertEqual(self.db.find_cached_transcript(URL), "WEBVTT\n\nnewer")

    def test_videos_by_status(self):
        a = self.db.create_video(URL, is_searchable=True)
        b = self.db.create_video(URL, is_searchable=False)
        self.db.save_transcript(a.id, FIVE_SENTENCE_VTT)
        self.db.save_transcript(b.id, FIVE_SENTENCE_VTT)
        found = self.db.get_videos_by_status([VideoStatus.TRANSCRIBED], searchable_only=True)
        self.assertEqual([v.id for v in found], [a.id])
        self.assertEqual(len(self.db.get_videos_by_status([VideoStatus.TRANSCRIBED])), 2)

    def test_replace_chunks(self):
        video = self.db.create_video(URL)
        self.db.replace_chunks(video.id, [
            Chunk("one", [1.0, 0.0], start_offset=0, end_offset=3),
            Chunk("two", [0.0, 1.0], start_offset=4, end_offset=7),
        ])
        self.assertEqual(len(self.db.get_chunks(video.id)), 2)

        self.db.replace_chunks(video.id, [Chunk("three", [1.0, 1.0], start_offset=0, end_offset=5)])
        chunks = self.db.get_chunks(video.id)
        self.assertEqual([c.text for c in chunks], ["three"])
        self.assertEqual((chunks[0].start_offset, chunks[0].end_offset), (0, 5))
        self.assertEqual(chunks[0].embedding, [1.0, 1.0])

    def test_replace_chunks_is_atomic(self):
        video = self.db.create_video(URL)
        self.db.replace_chunks(video.id, [Chunk("kept", [1.0], start_offset=0, end_offset=4)])
        broken = [
            Chunk("fine", [1.0], start_offset=0, end_offset=4),
            Chunk(None, [1.0], start_offset=5, end_offset=9),  # violates NOT NULL
        ]
        with self.assertRaises(PersistenceError):
            self.db.replace_chunks(video.id, broken)
        self.assertEqual([c.text for c in self.db.get_chunks(video.id)], ["kept"])

    def test_replace_chunks_missing_video(self):
        with self.assertRaises(PersistenceError):
            self.db.replace_chunks("does-not-exist", [Chunk("x", [1.0], start_offset=0, end_offset=1)])

    def test_timed_chunks_round_trip(self):
        video = self.db.create_video(URL)
        self.db.replace_chunks(video.id, [Chunk(
            "timed", [0.5], start_time=timedelta(seconds=2.5), end_time=timedelta(seconds=9)),
        ])
        chunk = self.db.get_chunks(video.id)[0]
        self.assertTrue(chunk.is_timed)
        self.assertEqual(chunk.start_time, timedelta(seconds=2.5))
        self.assertEqual(chunk.end_time, timedelta(seconds=9))

    def _completed_video_with(self, chunks):
        video = self.db.create_video(URL, is_searchable=True)
        self.db.replace_chunks(video.id, chunks)
        self.db.update_video_status(video.id, VideoStatus.COMPLETED)
        return video

    def test_search_ranking(self):
        near = self._completed_video_with([Chunk("near", [1.0, 0.1], start_offset=0, end_offset=4)])
        far = self._completed_video_with([Chunk("far", [0.0, 1.0], start_offset=0, end_offset=3)])
        pending = self.db.create_video(URL, is_searchable=True)
        self.db.replace_chunks(pending.id, [Chunk("hidden", [1.0, 0.0], start_offset=0, end_offset=6)])
        self._completed_video_with([Chunk("odd", [1.0, 0.0, 0.0], start_offset=0, end_offset=3)])

        results = self.db.search_chunks([1.0, 0.0], limit=10)
        self.assertEqual([r.chunk_text for r in results], ["near", "far"])
        self.assertEqual(results[0].video_id, near.id)
        self.assertEqual(results[1].video_id, far.id)
        self.assertGreater(results[0].similarity, results[1].similarity)
        self.assertAlmostEqual(results[1].similarity, 0.0)
        self.assertEqual(results[0].chunk_unit, "characters")

        self.assertEqual(len(self.db.search_chunks([1.0, 0.0], limit=1)), 1)

    def test_cosine_distance(self):
        self.assertAlmostEqual(cosine_distance([1.0, 0.0], [2.0, 0.0]), 0.0)
        self.assertAlmostEqual(cosine_distance([1.0, 0.0], [0.0, 3.0]), 1.0)
        self.assertEqual(cosine_distance([0.0, 0.0], [1.0, 0.0]), 1.0)

    def test_search_skips_unsearchable_videos(self):
        video = self.db.create_video(URL, is_searchable=False)
        self.db.replace_chunks(video.id, [Chunk("stale", [1.0, 0.0], start_offset=0, end_offset=5)])
        self.db.update_video_status(video.id, VideoStatus.COMPLETED)
        self.assertEqual(self.db.search_chunks([1.0, 0.0]), [])

    def test_reads_wrap_driver_errors(self):
        with mock.patch.object(self.db, 'conn') as conn:
            conn.execute.side_effect = sqlite3.OperationalError("database is locked")
            with self.assertRaises(PersistenceError):
                self.db.get_video("any")
            with self.assertRaises(PersistenceError):
                self.db.find_cached_transcript(URL)
            with self.assertRaises(PersistenceError):
                self.db.get_chunks("any")
            with self.assertRaises(PersistenceError):
                self.db.search_chunks([1.0, 0.0])

    def test_claim_wraps_driver_errors(self):
        self.db.listen(LISTEN_CHANNEL)
        with mock.patch.object(self.db, 'conn') as conn:
            conn.execute.side_effect = sqlite3.OperationalError("database is locked")
            with self.assertRaises(PersistenceError):
                self.db.wait_for_notification(0.01, poll_interval=0.01)
        conn.rollback.assert_called_once_with()

    def test_ping(self):
        self.db.ping()
        self.db.close()
        with self.assertRaises(PersistenceError):
            self.db.ping()


class TestTransitions(unittest.TestCase):
    """Test the lawful status graph."""

    def test_forward_edges(self):
        check_transition(VideoStatus.PENDING, VideoStatus.PROCESSING)
        check_transition(VideoStatus.PROCESSING, VideoStatus.TRANSCRIBED)
        check_transition(VideoStatus.PROCESSING, VideoStatus.FAILED)
        check_transition(VideoStatus.TRANSCRIBED, VideoStatus.COMPLETED)
        check_transition(VideoStatus.TRANSCRIBED, VideoStatus.CHUNK_PROCESSING_FAILED)

    def test_reprocessing_allowed(self):
        for status in [VideoStatus.FAILED, VideoStatus.COMPLETED,
                       VideoStatus.CHUNK_PROCESSING_FAILED]:
            check_transition(status, VideoStatus.PROCESSING)

    def test_illegal_edges(self):
        for current, target in [
            (VideoStatus.PENDING, VideoStatus.COMPLETED),
            (VideoStatus.COMPLETED, VideoStatus.TRANSCRIBED),
            (VideoStatus.FAILED, VideoStatus.COMPLETED),
            (VideoStatus.PROCESSING, VideoStatus.COMPLETED),
        ]:
            with self.assertRaises(InvalidTransitionError):
                check_transition(current, target)


class TestPipeline(DatabaseTestCase):
    """Test end-to-end video processing with stub providers."""

    def setUp(self):
        super().setUp()
        self.work_dir = self.root / "work"
        self.fetcher = StubFetcher()
        self.transcriber = StubTranscriber()
        self.embedder = StubEmbedder()

    def _pipeline(self, **config):
        settings = {'work_dir': str(self.work_dir)}
        settings.update(SMALL_CHUNKS)
        settings.update(config)
        return VideoPipeline(self.db, self.transcriber, self.embedder,
                             fetcher=self.fetcher, segmenter=NoSegmenter(),
                             config=settings)

    def _submit(self, url=URL, searchable=False):
        video = self.db.create_video(url, is_searchable=searchable)
        return decode_video_event(encode_video_event(video))

    def test_not_searchable_completes_without_chunks(self):
        event = self._submit(searchable=False)
        pipeline = self._pipeline()
        with mock.patch.object(self.db, 'update_video_status',
                               wraps=self.db.update_video_status) as update, \
                mock.patch.object(self.db, 'save_transcript',
                                  wraps=self.db.save_transcript) as save:
            pipeline.process_event(event)

        video = self.db.get_video(event.id)
        self.assertEqual(video.status, VideoStatus.COMPLETED)
        self.assertEqual(video.transcription, FIVE_SENTENCE_VTT)
        self.assertEqual(self.db.get_chunks(event.id), [])
        self.assertEqual([c.args[1] for c in update.call_args_list],
                         [VideoStatus.PROCESSING, VideoStatus.COMPLETED])
        self.assertEqual(save.call_args.args[2], VideoStatus.TRANSCRIBED)
        self.assertEqual(self.embedder.calls, 0)
        self.assertFalse((self.work_dir / event.id).exists())

    def test_searchable_indexes_chunks(self):
        event = self._submit(searchable=True)
        self._pipeline().process_event(event)

        video = self.db.get_video(event.id)
        self.assertEqual(video.status, VideoStatus.COMPLETED)
        chunks = self.db.get_chunks(event.id)
        self.assertEqual(len(chunks), 5)
        self.assertEqual(chunks[0].text, "This is sentence number 0 here.")
        self.assertEqual(len(self.fetcher.calls), 1)
        self.assertEqual(len(self.transcriber.calls), 1)

    def test_time_mode_chunks(self):
        event = self._submit(searchable=True)
        self._pipeline(chunk_mode="time").process_event(event)
        chunks = self.db.get_chunks(event.id)
        self.assertTrue(chunks)
        self.assertTrue(all(c.is_timed for c in chunks))
        self.assertEqual(chunks[0].start_time, timedelta(0))

    def test_cached_transcript_skips_acquisition(self):
        self._pipeline().process_event(self._submit())
        self.fetcher = StubFetcher()
        self.transcriber = StubTranscriber(output="should never be used")

        second = self._submit()
        self._pipeline().process_event(second)

        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(self.transcriber.calls, [])
        video = self.db.get_video(second.id)
        self.assertEqual(video.status, VideoStatus.COMPLETED)
        self.assertEqual(video.transcription, FIVE_SENTENCE_VTT)

    def test_malformed_transcript_fails(self):
        self.transcriber = StubTranscriber(output="NOT A VTT FILE")
        event = self._submit(searchable=True)
        with self.assertRaises(FormatError):
            self._pipeline().process_event(event)

        video = self.db.get_video(event.id)
        self.assertEqual(video.status, VideoStatus.FAILED)
        self.assertIsNone(video.transcription)
        self.assertFalse((self.work_dir / event.id).exists())

    def test_download_failure_fails(self):
        self.fetcher = StubFetcher(error=AcquisitionError("yt-dlp exited 1"))
        event = self._submit()
        with self.assertRaises(AcquisitionError):
            self._pipeline().process_event(event)
        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.FAILED)
        self.assertEqual(self.transcriber.calls, [])

    def test_unexpected_error_fails(self):
        self.fetcher = StubFetcher(error=RuntimeError("disk on fire"))
        event = self._submit()
        with self.assertRaises(RuntimeError):
            self._pipeline().process_event(event)
        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.FAILED)

    def test_invalid_url_fails_before_fetch(self):
        event = self._submit(url="not a url")
        with self.assertRaises(JobError):
            self._pipeline().process_event(event)
        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.FAILED)
        self.assertEqual(self.fetcher.calls, [])

    def test_embedding_failure_keeps_transcript(self):
        self.embedder = StubEmbedder(fail_on=3)
        event = self._submit(searchable=True)
        with self.assertRaises(EmbeddingError):
            self._pipeline().process_event(event)

        video = self.db.get_video(event.id)
        self.assertEqual(video.status, VideoStatus.CHUNK_PROCESSING_FAILED)
        self.assertEqual(video.transcription, FIVE_SENTENCE_VTT)
        self.assertEqual(self.db.get_chunks(event.id), [])
        self.assertEqual(self.embedder.calls, 3)

    def test_missing_video(self):
        event = decode_video_event('{"id": "ghost", "videoUrl": "%s"}' % URL)
        with self.assertRaises(PersistenceError):
            self._pipeline().process_event(event)
        self.assertEqual(self.fetcher.calls, [])

    def test_reprocess_failed_video(self):
        self.transcriber = StubTranscriber(output="NOT A VTT FILE")
        event = self._submit()
        with self.assertRaises(FormatError):
            self._pipeline().process_event(event)

        self.transcriber = StubTranscriber()
        self._pipeline().process_event(event)
        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.COMPLETED)

    def test_unsearchable_rerun_drops_chunks(self):
        event = self._submit(searchable=True)
        self._pipeline().process_event(event)
        self.assertEqual(len(self.db.get_chunks(event.id)), 5)

        rerun = decode_video_event(
            '{"id": "%s", "videoUrl": "%s", "isSearchable": false}' % (event.id, URL))
        self._pipeline().process_event(rerun)

        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.COMPLETED)
        self.assertEqual(self.db.get_chunks(event.id), [])
        self.assertEqual(self.db.search_chunks([1.0, 31.0, 0.0], limit=10), [])

    def test_cache_lookup_failure_fails(self):
        event = self._submit()
        with mock.patch.object(self.db, 'find_cached_transcript',
                               side_effect=PersistenceError("database is locked")):
            with self.assertRaises(PersistenceError):
                self._pipeline().process_event(event)
        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.FAILED)
        self.assertEqual(self.fetcher.calls, [])

    def test_reindex_pending(self):
        self.embedder = StubEmbedder(fail_on=3)
        event = self._submit(searchable=True)
        with self.assertRaises(EmbeddingError):
            self._pipeline().process_event(event)

        self.fetcher = StubFetcher()
        self.transcriber = StubTranscriber(output="should never be used")
        self.embedder = StubEmbedder()
        self.assertEqual(self._pipeline().reindex_pending(), (1, 0))

        self.assertEqual(self.db.get_video(event.id).status, VideoStatus.COMPLETED)
        self.assertEqual(len(self.db.get_chunks(event.id)), 5)
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(self.transcriber.calls, [])

    def test_reindex_counts_failures(self):
        video = self.db.create_video(URL, is_searchable=True)
        self.db.save_transcript(video.id, FIVE_SENTENCE_VTT)
        self.embedder = StubEmbedder(fail_on=1)
        self.assertEqual(self._pipeline().reindex_pending(), (0, 1))
        self.assertEqual(self.db.get_video(video.id).status,
                         VideoStatus.CHUNK_PROCESSING_FAILED)

    def test_completed_searchable_videos_are_findable(self):
        event = self._submit(searchable=True)
        self._pipeline().process_event(event)
        query = self.embedder.embed("This is sentence number 0 here.")
        results = self.db.search_chunks(query, limit=3)
        self.assertEqual(len(results), 3)
        self.assertTrue(all(r.video_id == event.id for r in results))
        self.assertAlmostEqual(results[0].similarity, 1.0)


class RecordingPipeline:
    def __init__(self, error: Exception | None = None, on_event=None):
        self.error = error
        self.on_event = on_event
        self.events = []

    def process_event(self, event):
        self.events.append(event)
        if self.on_event:
            self.on_event(event)
        if self.error:
            raise self.error


class TestListener(DatabaseTestCase):
    """Test intake dispatch and the liveness probe."""

    def _listener(self, pipeline):
        return IntakeListener(self.db, pipeline, ping_interval=0.05, poll_interval=0.01)

    def test_dispatches_event(self):
        pipeline = RecordingPipeline()
        listener = self._listener(pipeline)
        video = self.db.create_video(URL, is_searchable=True)

        self.assertTrue(listener.poll_once())
        self.assertEqual(len(pipeline.events), 1)
        self.assertEqual(pipeline.events[0].id, video.id)
        self.assertTrue(pipeline.events[0].is_searchable)

    def test_malformed_payload_dropped(self):
        pipeline = RecordingPipeline()
        listener = self._listener(pipeline)
        self.db.notify(LISTEN_CHANNEL, "{not json")
        video = self.db.create_video(URL)

        with self.assertLogs('vidindex.core.listener', level='ERROR'):
            self.assertTrue(listener.poll_once())
        self.assertEqual(pipeline.events, [])

        self.assertTrue(listener.poll_once())
        self.assertEqual([e.id for e in pipeline.events], [video.id])

    def test_pipeline_error_does_not_stop_loop(self):
        pipeline = RecordingPipeline(error=RuntimeError("boom"))
        listener = self._listener(pipeline)
        self.db.create_video(URL)
        self.db.create_video(URL)

        with self.assertLogs('vidindex.core.listener', level='ERROR'):
            self.assertTrue(listener.poll_once())
        self.assertTrue(listener.poll_once())
        self.assertEqual(len(pipeline.events), 2)

    def test_timeout_triggers_ping(self):
        listener = self._listener(RecordingPipeline())
        with mock.patch.object(self.db, 'ping') as ping:
            self.assertFalse(listener.poll_once())
            listener._ping_thread.join(timeout=2)
        ping.assert_called_once_with()

    def test_ping_failure_only_logged(self):
        listener = self._listener(RecordingPipeline())
        with mock.patch.object(self.db, 'ping',
                               side_effect=PersistenceError("connection lost")):
            with self.assertLogs('vidindex.core.listener', level='ERROR'):
                self.assertFalse(listener.poll_once())
                listener._ping_thread.join(timeout=2)

    def test_wait_error_does_not_stop_run(self):
        pipeline = RecordingPipeline()
        listener = self._listener(pipeline)
        pipeline.on_event = lambda event: listener.stop()
        self.db.create_video(URL)

        real_wait = self.db.wait_for_notification
        waits = []

        def flaky_wait(timeout, poll_interval):
            waits.append(timeout)
            if len(waits) == 1:
                raise sqlite3.OperationalError("database is locked")
            return real_wait(timeout, poll_interval)

        with mock.patch.object(self.db, 'wait_for_notification', side_effect=flaky_wait):
            with self.assertLogs('vidindex.core.listener', level='ERROR'):
                worker = threading.Thread(target=listener.run, daemon=True)
                worker.start()
                worker.join(timeout=5)

        self.assertFalse(worker.is_alive())
        self.assertGreaterEqual(len(waits), 2)
        self.assertEqual(len(pipeline.events), 1)

    def test_run_until_stopped(self):
        pipeline = RecordingPipeline()
        listener = self._listener(pipeline)
        pipeline.on_event = lambda event: listener.stop()
        self.db.create_video(URL)

        worker = threading.Thread(target=listener.run, daemon=True)
        worker.start()
        worker.join(timeout=5)
        self.assertFalse(worker.is_alive())
        self.assertEqual(len(pipeline.events), 1)


if __name__ == '__main__':
    unittest.main()
