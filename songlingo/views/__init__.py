"""Pydantic schemas used as views."""

from .common import ErrorResponse
from .pronunciation import (
    ExerciseListResponse,
    ExerciseResponse,
    GenerateExercisesRequest,
    TranscriptionResponse,
    VocabularyItem,
)

__all__ = [
    "ErrorResponse",
    "ExerciseListResponse",
    "ExerciseResponse",
    "GenerateExercisesRequest",
    "TranscriptionResponse",
    "VocabularyItem",
]
