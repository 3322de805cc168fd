"""SQLAlchemy models."""

from .base import Base
from .pronunciation_exercise import PronunciationExercise  # noqa: F401
from .song import Lyric, Song  # noqa: F401

__all__ = [
    "Base",
    "Lyric",
    "PronunciationExercise",
    "Song",
]
