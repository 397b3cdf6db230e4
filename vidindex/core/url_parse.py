"""
Source URL parsing: slug derivation and basic validation.
"""

import re
from urllib.parse import urlparse, parse_qs

from vidindex.core.constants import ErrorCode
from vidindex.core.error_codes import JobError

_YOUTUBE_URL_PATTERNS = [
    r'(?:https?://)?(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?youtu\.be/([a-zA-Z0-9_-]{11})',
    r'(?:https?://)?(?:www\.)?youtube\.com/(?:embed|v|shorts)/([a-zA-Z0-9_-]{11})',
]


def extract_slug(url: str) -> str | None:
    """
    Derive a short identifier for a video URL.
    YouTube URLs yield the 11-character video id; other URLs fall back to
    their 'v' query parameter, then to the last path component.
    """
    url = (url or "").strip()
    if not url:
        return None

    for pattern in _YOUTUBE_URL_PATTERNS:
        m = re.search(pattern, url)
        if m:
            return m.group(1)

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    v = parse_qs(parsed.query).get('v', [None])[0]
    if v:
        return v

    tail = parsed.path.rstrip('/').rsplit('/', 1)[-1]
    return tail or None


def validate_source_url(url: str) -> str:
    """
    Check that a URL is an absolute http(s) URL yt-dlp can be pointed at.
    Returns the stripped URL; raises JobError otherwise.
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise JobError(ErrorCode.INVALID_URL, f"Not a valid video URL: {url!r}")
    return url
