"""SQLAlchemy model for persisted pronunciation exercises."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from songlingo.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PronunciationExercise(Base):
    __tablename__ = "pronunciation_exercises"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    song_id = Column(
        String(64),
        nullable=False,
        index=True,
    )
    word_or_phrase = Column(String(255), nullable=False)
    phonetic_transcription = Column(String(255), nullable=True)
    context_sentence = Column(Text, nullable=True)
    reference_audio_url = Column(Text, nullable=False)
    difficulty_level = Column(String(16), nullable=False, index=True)
    language = Column(String(32), nullable=False)
    user_vocabulary_id = Column(String(64), nullable=True)
    created_at = Column(
        DateTime,
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
