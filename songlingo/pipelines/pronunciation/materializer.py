"""Audio materialization stage: synthesize reference audio and upload it."""

from __future__ import annotations

import logging

from songlingo.services.provider_gateway import ProviderGateway
from songlingo.services.response_contract import GeneratedExercise
from songlingo.services.storage import ReferenceAudioStorage, StoredAudio

logger = logging.getLogger("songlingo.pipelines.pronunciation")


class AudioMaterializer:
    """Turn one exercise into a durable, publicly resolvable audio object."""

    def __init__(self, gateway: ProviderGateway, storage: ReferenceAudioStorage) -> None:
        self._gateway = gateway
        self._storage = storage

    def ensure_supported(self, language: str) -> str:
        """Fail fast with ``UnsupportedLanguage`` before any provider call."""

        return self._gateway.voice_for(language)

    async def materialize(
        self,
        exercise: GeneratedExercise,
        *,
        song_id: str,
        index: int,
        language: str,
    ) -> StoredAudio:
        """Return the uploaded audio; the upload has completed when this returns."""

        voice_id = self.ensure_supported(language)
        audio_bytes = await self._gateway.synthesize_speech(exercise.word_or_phrase, voice_id)
        stored = await self._storage.upload_reference_audio(song_id, index, audio_bytes)
        logger.info(
            "Uploaded reference audio song=%s exercise=%s key=%s bytes=%s",
            song_id,
            index,
            stored.object_key,
            len(audio_bytes),
        )
        return stored


__all__ = ["AudioMaterializer"]
