"""
Diagnostics: external tool detection before the listener starts.
"""

import logging

from vidindex.core.security_utils import run_subprocess_capture

logger = logging.getLogger(__name__)

NOT_INSTALLED = "Not installed"


def _tool_version(args: list[str], first_line_only: bool = False) -> str:
    try:
        result = run_subprocess_capture(args, timeout=10)
        if result.returncode == 0:
            out = result.stdout.strip()
            return out.splitlines()[0] if first_line_only and out else out
        return f"Error (rc={result.returncode})"
    except FileNotFoundError:
        return NOT_INSTALLED
    except Exception as e:
        return f"Error: {e}"


def get_ytdlp_version() -> str:
    """Return yt-dlp version string, or error message."""
    return _tool_version(["yt-dlp", "--version"])


def get_ffmpeg_version() -> str:
    """Return ffmpeg version string, or error message."""
    return _tool_version(["ffmpeg", "-version"], first_line_only=True)


def get_ffprobe_version() -> str:
    return _tool_version(["ffprobe", "-version"], first_line_only=True)


def get_diagnostics() -> dict:
    """Gather all diagnostic information."""
    return {
        "ytdlp_version": get_ytdlp_version(),
        "ffmpeg_version": get_ffmpeg_version(),
        "ffprobe_version": get_ffprobe_version(),
    }


def missing_tools(diagnostics: dict | None = None) -> list[str]:
    """Names of required tools that are not usable."""
    diagnostics = diagnostics or get_diagnostics()
    names = {
        "ytdlp_version": "yt-dlp",
        "ffmpeg_version": "ffmpeg",
        "ffprobe_version": "ffprobe",
    }
    return [
        names[key] for key, value in diagnostics.items()
        if key in names and (value == NOT_INSTALLED or value.startswith("Error"))
    ]
