"""Transcription stage for learner recordings."""

from __future__ import annotations

import logging

from songlingo.services.errors import InvalidAudio
from songlingo.services.provider_gateway import ProviderGateway
from songlingo.services.transcribe import TranscriptionResult

logger = logging.getLogger("songlingo.pipelines.pronunciation")
transcript_logger = logging.getLogger("songlingo.logs.transcript")


class TranscriptionService:
    """Stateless single-call wrapper; scoring happens elsewhere."""

    def __init__(self, gateway: ProviderGateway, *, max_bytes: int | None = None) -> None:
        self._gateway = gateway
        self._max_bytes = max_bytes or gateway.max_audio_bytes

    async def transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str,
        *,
        language: str | None = None,
    ) -> TranscriptionResult:
        if not audio_bytes:
            raise InvalidAudio("No audio file provided")
        if len(audio_bytes) > self._max_bytes:
            raise InvalidAudio(
                f"Audio file is too large ({len(audio_bytes)} bytes, limit {self._max_bytes})."
            )

        logger.info("Processing STT size=%s type=%s language=%s", len(audio_bytes), mime_type, language)
        result = await self._gateway.transcribe_speech(audio_bytes, mime_type, language=language)
        transcript_logger.info(
            "learner | language=%s | confidence=%s | text=%s",
            language,
            result.confidence,
            result.text,
        )
        return result


__all__ = ["TranscriptionService"]
