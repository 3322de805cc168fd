"""Error taxonomy shared by the provider gateway and the pronunciation pipeline.

Controllers translate these into HTTP envelopes; the orchestrator uses the
common base class to decide which per-exercise failures it may skip.
"""

from __future__ import annotations

_BODY_LIMIT = 500


def truncate_body(value: str | bytes | None, max_length: int = _BODY_LIMIT) -> str:
    """Return a printable, bounded copy of an upstream error body."""

    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


class PronunciationError(RuntimeError):
    """Base class for every failure raised by the pronunciation core."""


class SchemaViolation(PronunciationError):
    """Provider output failed structural validation."""


class UnsupportedLanguage(PronunciationError):
    """No text-to-speech voice is mapped for the requested language."""

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class InvalidAudio(PronunciationError):
    """Audio payload is missing, empty or larger than allowed."""


class UpstreamError(PronunciationError):
    """A call to an external provider returned an error."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
        body: str | bytes | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = truncate_body(body)
        detail = f"{provider} error"
        if status_code is not None:
            detail += f": {status_code}"
        detail += f" - {message}"
        super().__init__(detail)


class ProviderUnavailable(UpstreamError):
    """Non-2xx response, connection failure or timeout from a provider."""

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class ProviderAuthFailure(UpstreamError):
    """Provider rejected our credentials (HTTP 401/403)."""


class PipelineExhausted(PronunciationError):
    """Synthesis succeeded but no exercise survived materialization."""

    def __init__(self, attempted: int, reasons: list[str] | None = None) -> None:
        super().__init__(
            f"None of the {attempted} generated exercises could be materialized."
        )
        self.attempted = attempted
        self.reasons = list(reasons or [])


class StorageError(PronunciationError):
    """Raised when S3 asset persistence fails."""


class ExercisePersistenceError(PronunciationError):
    """Raised when an exercise row cannot be written."""


class SongNotFound(PronunciationError):
    """Requested song does not exist."""

    def __init__(self, song_id: str) -> None:
        super().__init__(f"Song not found: {song_id}")
        self.song_id = song_id


class LyricsUnavailable(PronunciationError):
    """Song exists but has no lyrics to build exercises from."""


__all__ = [
    "PronunciationError",
    "SchemaViolation",
    "UnsupportedLanguage",
    "InvalidAudio",
    "UpstreamError",
    "ProviderUnavailable",
    "ProviderAuthFailure",
    "PipelineExhausted",
    "StorageError",
    "ExercisePersistenceError",
    "SongNotFound",
    "LyricsUnavailable",
    "truncate_body",
]
