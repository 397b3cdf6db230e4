"""
Lemonfox Speech-to-Text integration (OpenAI-compatible transcription API).
Requests WebVTT output so every transcript carries timings.
"""

import logging
import requests
from pathlib import Path

from vidindex.core.error_codes import TranscriptionError
from vidindex.core.constants import (
    LEMONFOX_API_URL, LEMONFOX_LANGUAGE, LEMONFOX_RESPONSE_FORMAT,
    HTTP_TIMEOUT_SEC, MIB,
)

logger = logging.getLogger(__name__)


class LemonfoxTranscriber:
    """Uploads one audio file per call and returns the raw VTT body."""

    def __init__(self, api_key: str, api_url: str = LEMONFOX_API_URL,
                 language: str = LEMONFOX_LANGUAGE,
                 base_timeout: int = HTTP_TIMEOUT_SEC,
                 session: requests.Session | None = None):
        if not api_key:
            raise ValueError("Lemonfox API key is required")
        self.api_key = api_key
        self.api_url = api_url
        self.language = language
        self.base_timeout = base_timeout
        self.session = session or requests.Session()

    def _timeout_for(self, audio_path: Path) -> int:
        # Adaptive timeout: ~1 min per 10MB on top of the base
        file_size = audio_path.stat().st_size
        return self.base_timeout + int(file_size / (10 * MIB) * 60)

    def transcribe(self, audio_path: Path) -> str:
        """
        Transcribe an audio file. Returns the provider's response body
        unmodified (WebVTT text).
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = {
            "language": self.language,
            "response_format": LEMONFOX_RESPONSE_FORMAT,
        }

        try:
            timeout_sec = self._timeout_for(audio_path)
            with open(audio_path, 'rb') as f:
                resp = self.session.post(
                    self.api_url,
                    headers=headers,
                    data=data,
                    files={"file": (audio_path.name, f, "audio/mpeg")},
                    timeout=timeout_sec,
                )
        except requests.exceptions.Timeout as e:
            raise TranscriptionError(f"Lemonfox request timed out for {audio_path.name}", body=str(e))
        except requests.exceptions.ConnectionError as e:
            raise TranscriptionError(f"Network error connecting to Lemonfox: {e}", body=str(e))
        except (requests.exceptions.RequestException, OSError) as e:
            raise TranscriptionError(f"Lemonfox request failed: {e}", body=str(e))

        if resp.status_code != 200:
            # Sanitize error message (never log API key)
            error_body = resp.text[:300] if resp.text else "No response body"
            raise TranscriptionError(
                f"Lemonfox returned {resp.status_code}: {error_body}",
                status=resp.status_code, body=resp.text or "",
            )

        logger.info("Transcribed %s (%d bytes of VTT)", audio_path.name, len(resp.text))
        return resp.text
