"""Pronunciation exercise pipeline package.

Modules are organised by the order in which `/pronunciation/exercises` executes:

1. `prompts` – render the generation prompt from song + vocabulary mastery.
2. `synthesizer` – call the generative model and validate 5-8 exercises.
3. `materializer` – synthesize reference audio and upload it to storage.
4. `persistence` – insert one exercise row per uploaded audio.
5. `orchestrator` – drive the stages with per-exercise isolation.

`ingestion` and `transcription` serve the independent
`/pronunciation/transcriptions` flow.
"""

from .ingestion import read_audio_bytes, resolve_content_type
from .materializer import AudioMaterializer
from .orchestrator import PipelineState, PronunciationExerciseService, PronunciationPipeline
from .persistence import ExerciseRepository, SongRepository
from .prompts import build_exercise_prompt
from .synthesizer import ExerciseSynthesizer, validate_exercises
from .transcription import TranscriptionService
from .types import (
    Difficulty,
    ExerciseOutcome,
    ExerciseRequest,
    NewExercise,
    PersistedExercise,
    PipelineResult,
    SongSnapshot,
    VocabularyEntry,
)

__all__ = [
    "AudioMaterializer",
    "Difficulty",
    "ExerciseOutcome",
    "ExerciseRepository",
    "ExerciseRequest",
    "ExerciseSynthesizer",
    "NewExercise",
    "PersistedExercise",
    "PipelineResult",
    "PipelineState",
    "PronunciationExerciseService",
    "PronunciationPipeline",
    "SongRepository",
    "SongSnapshot",
    "TranscriptionService",
    "VocabularyEntry",
    "build_exercise_prompt",
    "read_audio_bytes",
    "resolve_content_type",
    "validate_exercises",
]
