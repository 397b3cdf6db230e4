"""
WebVTT parsing and serialization.
Parses provider output into timed entries and writes the canonical form
used for stitched transcripts. No I/O.
"""

import re
from datetime import timedelta

from vidindex.core.constants import VTT_HEADER, VTT_ARROW
from vidindex.core.error_codes import FormatError
from vidindex.core.models import TimedTextEntry

_TIMESTAMP_RE = re.compile(r'^(\d{2}):(\d{2}):(\d{2})\.(\d{3})$')
_BLOCK_SPLIT_RE = re.compile(r'\n[ \t]*\n')
_MS = timedelta(milliseconds=1)


def parse_timestamp(value: str) -> timedelta:
    """Parse HH:MM:SS.mmm into a timedelta. Raises FormatError."""
    m = _TIMESTAMP_RE.match(value)
    if not m:
        if '.' not in value:
            raise FormatError(f"invalid timestamp {value!r}: missing milliseconds")
        raise FormatError(f"invalid timestamp {value!r}: expected HH:MM:SS.mmm")
    hours, minutes, seconds, millis = (int(g) for g in m.groups())
    return timedelta(hours=hours, minutes=minutes, seconds=seconds,
                     milliseconds=millis)


def format_timestamp(value: timedelta) -> str:
    """Format a timedelta as HH:MM:SS.mmm (inverse of parse_timestamp)."""
    total_ms = value // _MS
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    seconds, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def _normalize(content: str) -> str:
    # Providers sometimes hand back a JSON-encoded string
    content = content.strip()
    if len(content) >= 2 and content[0] == '"' and content[-1] == '"':
        content = content[1:-1]
    if '\\n' in content:
        content = content.replace('\\n', '\n')
    return content.replace('\r\n', '\n')


def parse_vtt(content: str) -> list[TimedTextEntry]:
    """
    Parse WebVTT content into ordered timed entries.

    Blocks with fewer than two lines, or whose first line has no
    timestamp range, are skipped. Malformed timestamps are fatal.
    """
    content = _normalize(content)

    if content == VTT_HEADER:
        return []
    if not content.startswith(VTT_HEADER + "\n\n"):
        raise FormatError("missing header")
    body = content[len(VTT_HEADER) + 2:]

    entries = []
    for block in _BLOCK_SPLIT_RE.split(body):
        lines = [line.strip() for line in block.strip('\n').split('\n')]
        lines = [line for line in lines if line]
        if len(lines) < 2:
            continue

        bounds = lines[0].split(VTT_ARROW)
        if len(bounds) != 2:
            continue

        try:
            start = parse_timestamp(bounds[0].strip())
        except FormatError as e:
            raise FormatError(f"invalid start timestamp: {e.message}")
        try:
            end = parse_timestamp(bounds[1].strip())
        except FormatError as e:
            raise FormatError(f"invalid end timestamp: {e.message}")

        text = ' '.join(lines[1:])
        if not text:
            continue

        entries.append(TimedTextEntry(
            sequence_number=len(entries) + 1,
            start=start,
            end=end,
            text=text,
        ))

    return entries


def serialize_vtt(entries: list[TimedTextEntry]) -> str:
    """Write entries back out as a canonical WebVTT document."""
    blocks = [
        f"{format_timestamp(e.start)}{VTT_ARROW}{format_timestamp(e.end)}\n{e.text}"
        for e in entries
    ]
    return VTT_HEADER + "\n\n" + "\n\n".join(blocks) + "\n"


def entries_to_text(entries: list[TimedTextEntry]) -> str:
    """Concatenate entry texts into plain text."""
    return ' '.join(e.text for e in entries)
