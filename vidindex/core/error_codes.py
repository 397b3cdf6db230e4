"""
Standardised error handling for vidindex.

Every failure the pipeline knows about is a JobError subclass carrying a
stable error code and a retryable hint. Nothing in the core retries on its
own; the hint is for operators and any retry layer added around the
external capabilities.
"""

from vidindex.core.constants import ErrorCode, RETRYABLE_ERRORS


class JobError(Exception):
    """Raised when a job encounters a known error condition."""

    def __init__(self, code: str, message: str, retryable: bool | None = None):
        self.code = code
        self.message = message
        # auto-detect retryable from code if not explicitly set
        self.retryable = retryable if retryable is not None else (code in RETRYABLE_ERRORS)
        super().__init__(f"[{code}] {message}")


class FormatError(JobError):
    """Malformed timed-text input. Upstream data must be fixed."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.VTT_FORMAT, message)


class AcquisitionError(JobError):
    """Source fetch, duration probe or segmentation failed."""

    def __init__(self, message: str, code: str = ErrorCode.DOWNLOAD_FAILED):
        super().__init__(code, message)


class TranscriptionError(JobError):
    """The transcription provider rejected the upload or could not be reached."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(ErrorCode.TRANSCRIBE_FAILED, message)


class EmbeddingError(JobError):
    """The embedding provider failed; the whole chunk batch is discarded."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.EMBEDDING_FAILED, message)


class PersistenceError(JobError):
    """A write did not land, e.g. an update matched no Video row."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.PERSISTENCE, message)


class PayloadError(JobError):
    """An intake notification could not be decoded."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_PAYLOAD, message)


class InvalidTransitionError(JobError):
    """A status change outside the lawful transition graph."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(ErrorCode.INVALID_TRANSITION,
                         f"Cannot move from {current!r} to {target!r}")
