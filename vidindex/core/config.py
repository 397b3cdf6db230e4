"""
Application configuration manager.
Defaults, overridden by an optional JSON file, overridden by environment
variables (a .env file is loaded first, without clobbering real env vars).
"""

import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from vidindex.core.constants import (
    CONFIG_PATH, DB_PATH, WORK_DIR, ChunkMode,
    CHUNK_MAX_SIZE, CHUNK_OVERLAP, CHUNK_OVERLAP_SENTENCES,
    LISTEN_CHANNEL, PING_INTERVAL_SEC, POLL_INTERVAL_SEC,
    DOWNLOAD_TIMEOUT_SEC, PROBE_TIMEOUT_SEC, SPLIT_TIMEOUT_SEC, HTTP_TIMEOUT_SEC,
    LEMONFOX_API_URL, LEMONFOX_LANGUAGE, EMBEDDING_MODEL,
)

# Validation bounds
_CHUNK_MAX_SIZE_MIN = 50
_CHUNK_MAX_SIZE_MAX = 8000
_PING_INTERVAL_MIN = 1
_PING_INTERVAL_MAX = 3600

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'database_path': str(DB_PATH),
    'work_dir': str(WORK_DIR),
    'lemonfox_api_key': '',
    'openai_api_key': '',
    'transcription_url': LEMONFOX_API_URL,
    'transcription_language': LEMONFOX_LANGUAGE,
    'embedding_model': EMBEDDING_MODEL,
    'chunk_mode': ChunkMode.CHARACTERS,
    'chunk_max_size': CHUNK_MAX_SIZE,
    'chunk_overlap': CHUNK_OVERLAP,
    'chunk_overlap_sentences': CHUNK_OVERLAP_SENTENCES,
    'listen_channel': LISTEN_CHANNEL,
    'ping_interval_sec': PING_INTERVAL_SEC,
    'poll_interval_sec': POLL_INTERVAL_SEC,
    'download_timeout_sec': DOWNLOAD_TIMEOUT_SEC,
    'probe_timeout_sec': PROBE_TIMEOUT_SEC,
    'split_timeout_sec': SPLIT_TIMEOUT_SEC,
    'http_timeout_sec': HTTP_TIMEOUT_SEC,
    'keep_debug_artifacts': False,
    'log_file': '',
}

# Environment variable → config key
_ENV_KEYS = {
    'VIDINDEX_DATABASE_PATH': 'database_path',
    'VIDINDEX_WORK_DIR': 'work_dir',
    'LEMONFOX_API_KEY': 'lemonfox_api_key',
    'LEMONFOX_API_URL': 'transcription_url',
    'OPENAI_API_KEY': 'openai_api_key',
    'EMBEDDING_MODEL': 'embedding_model',
    'VIDINDEX_CHUNK_MODE': 'chunk_mode',
    'VIDINDEX_LOG_FILE': 'log_file',
}

_INT_KEYS = {
    'chunk_max_size', 'chunk_overlap', 'chunk_overlap_sentences',
    'download_timeout_sec', 'probe_timeout_sec', 'split_timeout_sec',
    'http_timeout_sec',
}


class AppConfig:
    """Manages application configuration stored as JSON plus env overrides."""

    def __init__(self, config_path: Path | None = None, use_env: bool = True):
        self.path = config_path or CONFIG_PATH
        self.use_env = use_env
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk and environment, merging with defaults."""
        self._data = dict(_DEFAULTS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
                for key, value in saved.items():
                    self._data[key] = self._validate(key, value)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load config: %s", e)

        if self.use_env:
            load_dotenv(override=False)
            for env_name, key in _ENV_KEYS.items():
                value = os.getenv(env_name)
                if value:
                    self._data[key] = self._validate(key, value)

        # Overlap must stay below the chunk size
        if self._data['chunk_overlap'] >= self._data['chunk_max_size']:
            logger.warning("chunk_overlap %r >= chunk_max_size — using default",
                           self._data['chunk_overlap'])
            self._data['chunk_overlap'] = min(CHUNK_OVERLAP, self._data['chunk_max_size'] - 1)

    def save(self):
        """Persist config to disk (API keys are never written)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {k: v for k, v in self._data.items() if not k.endswith('_api_key')}
        with open(self.path, 'w') as f:
            json.dump(data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key == 'chunk_max_size':
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning("Invalid chunk_max_size %r — using default", value)
                return CHUNK_MAX_SIZE
            return max(_CHUNK_MAX_SIZE_MIN, min(_CHUNK_MAX_SIZE_MAX, value))

        if key == 'ping_interval_sec':
            try:
                value = float(value)
            except (TypeError, ValueError):
                logger.warning("Invalid ping_interval_sec %r — using default", value)
                return PING_INTERVAL_SEC
            return max(_PING_INTERVAL_MIN, min(_PING_INTERVAL_MAX, value))

        if key == 'poll_interval_sec':
            try:
                return max(0.05, float(value))
            except (TypeError, ValueError):
                logger.warning("Invalid poll_interval_sec %r — using default", value)
                return POLL_INTERVAL_SEC

        if key in _INT_KEYS:
            try:
                return max(0, int(value))
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return _DEFAULTS[key]

        if key == 'chunk_mode':
            if value not in (ChunkMode.CHARACTERS, ChunkMode.TIME):
                logger.warning("Invalid chunk_mode %r — using %s", value, ChunkMode.CHARACTERS)
                return ChunkMode.CHARACTERS

        if key == 'keep_debug_artifacts':
            if isinstance(value, str):
                return value.strip().lower() in ('1', 'true', 'yes', 'on')
            return bool(value)

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def database_path(self) -> Path:
        return Path(self._data['database_path']).expanduser()
