"""Typed containers shared across the pronunciation pipeline.

These dataclasses live in their own module so the stages (`prompts`,
`synthesizer`, `materializer`, `persistence`, `orchestrator`) can import them
without creating circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from songlingo.services.response_contract import GeneratedExercise

STRUGGLING_MASTERY_THRESHOLD = 50


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class VocabularyEntry:
    """One item of the learner's vocabulary with its mastery score (0-100)."""

    word: str
    translation: str
    mastery_score: float
    vocabulary_record_id: str

    @property
    def is_struggling(self) -> bool:
        return self.mastery_score < STRUGGLING_MASTERY_THRESHOLD


@dataclass(frozen=True)
class ExerciseRequest:
    song_id: str
    difficulty: Difficulty
    language: str
    vocabulary: tuple[VocabularyEntry, ...] = ()

    @property
    def vocabulary_ids(self) -> frozenset[str]:
        return frozenset(entry.vocabulary_record_id for entry in self.vocabulary)


@dataclass(frozen=True)
class SongSnapshot:
    """Song metadata and full lyrics used to build the prompt."""

    song_id: str
    title: str
    artist: str
    lyrics: str


@dataclass(frozen=True)
class NewExercise:
    """Exercise ready to be written: generated fields plus its uploaded audio."""

    song_id: str
    difficulty: Difficulty
    language: str
    exercise: GeneratedExercise
    reference_audio_url: str


@dataclass(frozen=True)
class PersistedExercise:
    """Immutable stored exercise. Corrections require a new record."""

    id: str
    song_id: str
    word_or_phrase: str
    phonetic_transcription: str
    context_sentence: str
    reference_audio_url: str
    difficulty: str
    language: str
    vocabulary_record_id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExerciseOutcome:
    """Per-exercise result: either persisted or skipped with a reason."""

    index: int
    exercise: GeneratedExercise
    persisted: Optional[PersistedExercise] = None
    skip_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.persisted is not None


@dataclass(frozen=True)
class PipelineResult:
    outcomes: Sequence[ExerciseOutcome] = field(default_factory=tuple)
    cached: bool = False
    cached_exercises: Sequence[PersistedExercise] = field(default_factory=tuple)

    @property
    def exercises(self) -> list[PersistedExercise]:
        if self.cached:
            return list(self.cached_exercises)
        return [o.persisted for o in self.outcomes if o.persisted is not None]

    @property
    def skipped(self) -> list[ExerciseOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


__all__ = [
    "Difficulty",
    "VocabularyEntry",
    "ExerciseRequest",
    "SongSnapshot",
    "NewExercise",
    "PersistedExercise",
    "ExerciseOutcome",
    "PipelineResult",
    "STRUGGLING_MASTERY_THRESHOLD",
]
