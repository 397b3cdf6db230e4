"""
Transcript chunking for semantic search.

Two policies:
  - character budget: whole sentences up to max_size characters, the next
    chunk starting `overlap` characters before the previous one ended.
  - time budget: sentences rebuilt across caption entries with their real
    start/end times, emitted once the buffer exceeds max_size characters,
    the next buffer seeded with the last few sentences.

Every finished chunk is embedded straight away. One embedding failure
aborts the whole call; callers never see a partial list.
"""

import re
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from vidindex.core.constants import (
    ChunkMode, CHUNK_MAX_SIZE, CHUNK_OVERLAP, CHUNK_OVERLAP_SENTENCES,
)
from vidindex.core.error_codes import EmbeddingError
from vidindex.core.models import Chunk, TimedTextEntry
from vidindex.core.vtt import parse_vtt, entries_to_text

logger = logging.getLogger(__name__)

# Sentences end at a period followed by whitespace
_SENTENCE_END_RE = re.compile(r'(?<=\.)\s+')


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class _Sentence:
    text: str
    start: timedelta
    end: timedelta


def _embedded(embedder: Embedder, chunk: Chunk) -> Chunk:
    try:
        vector = embedder.embed(chunk.text)
    except EmbeddingError:
        raise
    except Exception as e:
        raise EmbeddingError(f"Embedding request failed: {e}") from e
    if not vector:
        raise EmbeddingError("Embedding provider returned an empty vector")
    return Chunk(
        text=chunk.text,
        embedding=[float(v) for v in vector],
        start_offset=chunk.start_offset,
        end_offset=chunk.end_offset,
        start_time=chunk.start_time,
        end_time=chunk.end_time,
    )


# ── Character budget ──────────────────────────────────────────────────

def sentence_spans(text: str) -> list[tuple[int, int]]:
    """Return (start, end) character spans of each sentence in text."""
    spans = []
    pos = len(text) - len(text.lstrip())
    for m in _SENTENCE_END_RE.finditer(text):
        if m.start() > pos:
            spans.append((pos, m.start()))
        pos = m.end()
    end = len(text.rstrip())
    if end > pos:
        spans.append((pos, end))
    return spans


def chunk_text(text: str, embedder: Embedder,
               max_size: int = CHUNK_MAX_SIZE,
               overlap: int = CHUNK_OVERLAP) -> list[Chunk]:
    """
    Split plain text into sentence-aligned chunks with character offsets.
    chunk.text is always text[start_offset:end_offset].
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    if overlap < 0 or overlap >= max_size:
        raise ValueError("overlap must be between 0 and max_size - 1")

    chunks: list[Chunk] = []
    start = end = None

    def emit(a: int, b: int):
        chunks.append(_embedded(embedder, Chunk(
            text=text[a:b], start_offset=a, end_offset=b,
        )))

    for s_start, s_end in sentence_spans(text):
        if start is None:
            start = s_start
        elif s_end - start > max_size:
            emit(start, end)
            if overlap:
                next_start = max(end - overlap, start)
                while next_start < s_start and text[next_start].isspace():
                    next_start += 1
                start = next_start
            else:
                start = s_start
        end = s_end

    if start is not None:
        emit(start, end)

    logger.debug("Character chunking produced %d chunks", len(chunks))
    return chunks


# ── Time budget ───────────────────────────────────────────────────────

def timed_sentences(entries: list[TimedTextEntry]) -> list[_Sentence]:
    """
    Rebuild sentences across caption entries. A sentence runs from the
    start of the entry it begins in to the end of the entry it finishes in.
    """
    sentences = []
    parts: list[str] = []
    start = last_end = None

    for entry in entries:
        fragments = _SENTENCE_END_RE.split(entry.text.strip())
        for i, fragment in enumerate(fragments):
            fragment = fragment.strip()
            if not fragment:
                continue
            if start is None:
                start = entry.start
            parts.append(fragment)
            last_end = entry.end
            if i < len(fragments) - 1 or fragment.endswith('.'):
                sentences.append(_Sentence(' '.join(parts), start, entry.end))
                parts = []
                start = None

    if parts:
        sentences.append(_Sentence(' '.join(parts), start, last_end))
    return sentences


def chunk_entries(entries: list[TimedTextEntry], embedder: Embedder,
                  max_size: int = CHUNK_MAX_SIZE,
                  overlap_sentences: int = CHUNK_OVERLAP_SENTENCES) -> list[Chunk]:
    """Split timed entries into chunks carrying real start/end times."""
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    if overlap_sentences < 0:
        raise ValueError("overlap_sentences must not be negative")

    chunks: list[Chunk] = []
    buffer: list[_Sentence] = []
    fresh = 0

    def emit():
        chunks.append(_embedded(embedder, Chunk(
            text=' '.join(s.text for s in buffer),
            start_time=buffer[0].start,
            end_time=buffer[-1].end,
        )))

    for sentence in timed_sentences(entries):
        buffer.append(sentence)
        fresh += 1
        if len(' '.join(s.text for s in buffer)) > max_size:
            emit()
            # Seed is always shorter than what was just emitted
            keep = min(overlap_sentences, len(buffer) - 1)
            buffer = buffer[len(buffer) - keep:] if keep else []
            fresh = 0

    if buffer and fresh:
        emit()

    logger.debug("Time chunking produced %d chunks", len(chunks))
    return chunks


def build_chunks(transcript: str, embedder: Embedder,
                 mode: str = ChunkMode.CHARACTERS,
                 max_size: int = CHUNK_MAX_SIZE,
                 overlap: int = CHUNK_OVERLAP,
                 overlap_sentences: int = CHUNK_OVERLAP_SENTENCES) -> list[Chunk]:
    """Parse a serialized transcript and chunk it with the given policy."""
    entries = parse_vtt(transcript)
    if mode == ChunkMode.CHARACTERS:
        return chunk_text(entries_to_text(entries), embedder, max_size, overlap)
    if mode == ChunkMode.TIME:
        return chunk_entries(entries, embedder, max_size, overlap_sentences)
    raise ValueError(f"Unknown chunk mode: {mode!r}")
