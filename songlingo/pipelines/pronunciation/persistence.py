"""Persistence stage: insert-only exercise rows and read-only song lookup."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from songlingo.models import PronunciationExercise, Song
from songlingo.services.errors import ExercisePersistenceError, LyricsUnavailable, SongNotFound

from .types import NewExercise, PersistedExercise, SongSnapshot

logger = logging.getLogger("songlingo.pipelines.pronunciation")

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _to_domain(row: PronunciationExercise) -> PersistedExercise:
    return PersistedExercise(
        id=str(row.id),
        song_id=row.song_id,
        word_or_phrase=row.word_or_phrase,
        phonetic_transcription=row.phonetic_transcription or "",
        context_sentence=row.context_sentence or "",
        reference_audio_url=row.reference_audio_url,
        difficulty=row.difficulty_level,
        language=row.language,
        vocabulary_record_id=row.user_vocabulary_id,
        created_at=row.created_at,
    )


class ExerciseRepository:
    """Insert and read pronunciation exercises. There is no update path."""

    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def insert(self, new: NewExercise) -> PersistedExercise:
        if not new.reference_audio_url:
            raise ExercisePersistenceError("Refusing to persist an exercise without audio.")

        row = PronunciationExercise(
            song_id=new.song_id,
            word_or_phrase=new.exercise.word_or_phrase,
            phonetic_transcription=new.exercise.phonetic_transcription,
            context_sentence=new.exercise.context_sentence,
            reference_audio_url=new.reference_audio_url,
            difficulty_level=new.difficulty.value,
            language=new.language,
            user_vocabulary_id=new.exercise.vocabulary_record_id,
        )
        # One session per insert so parallel materialization never shares a session.
        try:
            async with self._session_scope() as session:
                session.add(row)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            # asyncpg connect failures surface as OSError, not DBAPIError.
            raise ExercisePersistenceError(f"Database error: {exc}") from exc

        return _to_domain(row)

    async def list_for_song(
        self,
        song_id: str,
        difficulty: str,
        language: str | None = None,
    ) -> list[PersistedExercise]:
        query = select(PronunciationExercise).where(
            PronunciationExercise.song_id == song_id,
            PronunciationExercise.difficulty_level == difficulty,
        )
        if language:
            query = query.where(PronunciationExercise.language == language)
        async with self._session_scope() as session:
            result = await session.execute(query.order_by(PronunciationExercise.created_at))
            return [_to_domain(row) for row in result.scalars().all()]


class SongRepository:
    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def get_song(self, song_id: str) -> SongSnapshot:
        """Load a song with its lyrics joined line by line."""

        async with self._session_scope() as session:
            result = await session.execute(select(Song).where(Song.id == song_id))
            song = result.scalar_one_or_none()
            if song is None:
                raise SongNotFound(song_id)
            lyrics = "\n".join(line.text for line in song.lyrics if line.text)

        if not lyrics.strip():
            raise LyricsUnavailable("No lyrics available for this song")
        return SongSnapshot(song_id=song_id, title=song.title, artist=song.artist, lyrics=lyrics)


__all__ = ["ExerciseRepository", "SongRepository"]
