"""Schemas for the pronunciation exercise and transcription endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from songlingo.pipelines.pronunciation import (
    Difficulty,
    ExerciseRequest,
    PersistedExercise,
    VocabularyEntry,
)


class VocabularyItem(BaseModel):
    id: Optional[str] = None
    word: str = Field(min_length=1)
    translation: str = ""
    mastery_score: float = Field(default=0, ge=0, le=100)
    user_vocabulary_id: Optional[str] = None

    model_config = {"extra": "ignore"}

    def to_entry(self) -> VocabularyEntry:
        return VocabularyEntry(
            word=self.word,
            translation=self.translation,
            mastery_score=self.mastery_score,
            vocabulary_record_id=self.user_vocabulary_id or self.id or "",
        )


class GenerateExercisesRequest(BaseModel):
    song_id: str = Field(alias="songId", min_length=1)
    difficulty: Difficulty
    language: str = Field(min_length=1)
    user_vocabulary: list[VocabularyItem] = Field(default_factory=list, alias="userVocabulary")

    model_config = {"populate_by_name": True}

    @field_validator("difficulty", mode="before")
    @classmethod
    def lower_difficulty(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("language")
    @classmethod
    def normalize_language(cls, value: str) -> str:
        return value.strip().lower()

    def to_domain(self) -> ExerciseRequest:
        return ExerciseRequest(
            song_id=self.song_id,
            difficulty=self.difficulty,
            language=self.language,
            vocabulary=tuple(item.to_entry() for item in self.user_vocabulary),
        )


class ExerciseResponse(BaseModel):
    id: str
    song_id: str
    word_or_phrase: str
    phonetic_transcription: Optional[str] = None
    context_sentence: Optional[str] = None
    reference_audio_url: str
    difficulty_level: str
    language: str
    user_vocabulary_id: Optional[str] = None

    @classmethod
    def from_domain(cls, exercise: PersistedExercise) -> "ExerciseResponse":
        return cls(
            id=exercise.id,
            song_id=exercise.song_id,
            word_or_phrase=exercise.word_or_phrase,
            phonetic_transcription=exercise.phonetic_transcription,
            context_sentence=exercise.context_sentence,
            reference_audio_url=exercise.reference_audio_url,
            difficulty_level=exercise.difficulty,
            language=exercise.language,
            user_vocabulary_id=exercise.vocabulary_record_id,
        )


class ExerciseListResponse(BaseModel):
    exercises: list[ExerciseResponse]


class TranscriptionResponse(BaseModel):
    text: str
    confidence: Optional[float] = None
