"""Service layer helpers for external integrations."""

from .errors import (
    InvalidAudio,
    PronunciationError,
    ProviderAuthFailure,
    ProviderUnavailable,
    SchemaViolation,
    StorageError,
    UnsupportedLanguage,
)
from .provider_gateway import ProviderGateway, build_provider_gateway
from .storage import ReferenceAudioStorage, StoredAudio, build_reference_audio_storage
from .transcribe import StreamingTranscriber, TranscriptionResult

__all__ = [
    "ProviderGateway",
    "build_provider_gateway",
    "ReferenceAudioStorage",
    "StoredAudio",
    "build_reference_audio_storage",
    "StreamingTranscriber",
    "TranscriptionResult",
    "PronunciationError",
    "SchemaViolation",
    "UnsupportedLanguage",
    "InvalidAudio",
    "ProviderUnavailable",
    "ProviderAuthFailure",
    "StorageError",
]
