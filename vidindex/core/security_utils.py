"""
Security utilities for vidindex.
- External tools (yt-dlp, ffprobe, ffmpeg) run from argument lists, never a shell
- Credential masking for logs
"""

import subprocess
import logging

from vidindex.core.constants import SPLIT_TIMEOUT_SEC

logger = logging.getLogger(__name__)


# ── External tools ────────────────────────────────────────────────────

def run_subprocess(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a tool from an argument list. Shell execution is refused."""
    if isinstance(args, str) or not isinstance(args, (list, tuple)):
        raise TypeError("Tool invocations take an argument list, not a command string")
    if kwargs.pop('shell', False):
        raise ValueError("shell=True is not allowed")

    logger.debug("Running %s with %d args (timeout=%ss)",
                 args[0], len(args) - 1, kwargs.get('timeout'))
    return subprocess.run(list(args), shell=False, **kwargs)


def run_subprocess_capture(args: list[str], timeout: float = SPLIT_TIMEOUT_SEC,
                           **kwargs) -> subprocess.CompletedProcess:
    """
    Run a tool with text-mode stdout/stderr captured. Every call is bounded;
    subprocess.TimeoutExpired propagates to the caller.
    """
    return run_subprocess(args, capture_output=True, text=True,
                          timeout=timeout, **kwargs)


# ── Log hygiene ───────────────────────────────────────────────────────

def mask_secret(secret: str, visible: int = 4) -> str:
    """Show only the last few characters of an API key."""
    if not secret:
        return "(not set)"
    if len(secret) <= visible:
        return "*" * len(secret)
    return "*" * 8 + secret[-visible:]
