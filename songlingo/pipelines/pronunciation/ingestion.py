"""Upload ingestion helpers for learner recordings."""

from __future__ import annotations

import mimetypes
from typing import Final

from fastapi import UploadFile

from songlingo.services.errors import InvalidAudio

_EXTRA_CONTENT_TYPES: Final[set[str]] = {
    # Browsers record with MediaRecorder into WebM/Ogg containers.
    "video/webm",
    "application/ogg",
}
DEFAULT_CONTENT_TYPE = "audio/webm"


def resolve_content_type(audio_file: UploadFile) -> str:
    """Accept audio uploads regardless of whether the client set a content-type."""

    content_type = (audio_file.content_type or "").split(";", 1)[0].strip().lower()
    if (not content_type or content_type == "application/octet-stream") and audio_file.filename:
        guessed_type, _ = mimetypes.guess_type(audio_file.filename)
        content_type = guessed_type or content_type

    content_type = content_type or DEFAULT_CONTENT_TYPE
    if content_type == "application/octet-stream":
        return DEFAULT_CONTENT_TYPE

    if not content_type.startswith("audio/") and content_type not in _EXTRA_CONTENT_TYPES:
        raise InvalidAudio(f"Unsupported audio content type: {content_type}")
    return content_type


async def read_audio_bytes(audio_file: UploadFile) -> bytes:
    """Load the upload fully into memory, rejecting empty payloads."""

    audio_bytes = await audio_file.read()
    await audio_file.close()

    if not audio_bytes:
        raise InvalidAudio("Uploaded audio file is empty")
    return audio_bytes


__all__ = ["resolve_content_type", "read_audio_bytes", "DEFAULT_CONTENT_TYPE"]
