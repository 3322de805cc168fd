"""End-to-end orchestration of the pronunciation exercise pipeline.

Stage order for one request:

1. ``synthesizer`` – build the prompt, call the model, validate 5-8 exercises.
2. ``materializer`` – per exercise, synthesize reference audio and upload it.
3. ``persistence`` – per exercise, insert the row that points at the upload.

Synthesis is a prerequisite for everything else, so its failure fails the
request. Steps 2 and 3 are isolated per exercise: a failure is recorded on
that exercise's outcome and the remaining exercises still run.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from songlingo.services.errors import PipelineExhausted, PronunciationError
from songlingo.services.response_contract import GeneratedExercise
from songlingo.telemetry import record_exercise_outcome

from .materializer import AudioMaterializer
from .persistence import ExerciseRepository, SongRepository
from .synthesizer import ExerciseSynthesizer
from .types import ExerciseOutcome, ExerciseRequest, NewExercise, PipelineResult, SongSnapshot

logger = logging.getLogger("songlingo.pipelines.pronunciation")


class PipelineState(str, Enum):
    STARTED = "started"
    SYNTHESIZING = "synthesizing"
    MATERIALIZING_AUDIO = "materializing_audio"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class PronunciationPipeline:
    """Drive synthesize → materialize → persist for one request."""

    def __init__(
        self,
        synthesizer: ExerciseSynthesizer,
        materializer: AudioMaterializer,
        repository: ExerciseRepository,
        *,
        parallel: bool = False,
    ) -> None:
        self._synthesizer = synthesizer
        self._materializer = materializer
        self._repository = repository
        self._parallel = parallel

    def _transition(self, request: ExerciseRequest, state: PipelineState, **extra) -> None:
        details = " ".join(f"{key}={value}" for key, value in extra.items())
        logger.info(
            "song=%s difficulty=%s state=%s %s",
            request.song_id,
            request.difficulty.value,
            state.value,
            details,
        )

    async def run(self, request: ExerciseRequest, song: SongSnapshot) -> PipelineResult:
        self._transition(request, PipelineState.STARTED)
        try:
            self._materializer.ensure_supported(request.language)
        except PronunciationError as exc:
            self._transition(request, PipelineState.FAILED, reason=type(exc).__name__)
            raise
        self._transition(request, PipelineState.SYNTHESIZING)
        try:
            exercises = await self._synthesizer.synthesize(request, song)
        except PronunciationError as exc:
            self._transition(request, PipelineState.FAILED, reason=type(exc).__name__)
            raise

        if self._parallel:
            outcomes = await asyncio.gather(
                *(
                    self._process_exercise(request, index, exercise)
                    for index, exercise in enumerate(exercises, start=1)
                )
            )
        else:
            outcomes = []
            for index, exercise in enumerate(exercises, start=1):
                outcomes.append(await self._process_exercise(request, index, exercise))

        result = PipelineResult(outcomes=tuple(outcomes))
        if not result.exercises:
            self._transition(request, PipelineState.FAILED, reason="exhausted")
            raise PipelineExhausted(
                len(exercises),
                [o.skip_reason or "" for o in result.skipped],
            )

        self._transition(
            request,
            PipelineState.COMPLETED,
            persisted=len(result.exercises),
            skipped=len(result.skipped),
        )
        return result

    async def _process_exercise(
        self,
        request: ExerciseRequest,
        index: int,
        exercise: GeneratedExercise,
    ) -> ExerciseOutcome:
        """Materialize then persist one exercise; failures become a skipped outcome."""

        try:
            self._transition(request, PipelineState.MATERIALIZING_AUDIO, exercise=index)
            stored = await self._materializer.materialize(
                exercise,
                song_id=request.song_id,
                index=index,
                language=request.language,
            )
            self._transition(request, PipelineState.PERSISTING, exercise=index)
            persisted = await self._repository.insert(
                NewExercise(
                    song_id=request.song_id,
                    difficulty=request.difficulty,
                    language=request.language,
                    exercise=exercise,
                    reference_audio_url=stored.url,
                )
            )
        except PronunciationError as exc:
            return self._skip(request, index, exercise, exc)
        except Exception as exc:
            # Driver and network faults that escaped the collaborators.
            logger.exception("Unexpected failure on exercise %s song=%s", index, request.song_id)
            return self._skip(request, index, exercise, exc)

        record_exercise_outcome("persisted")
        return ExerciseOutcome(index=index, exercise=exercise, persisted=persisted)

    def _skip(
        self,
        request: ExerciseRequest,
        index: int,
        exercise: GeneratedExercise,
        exc: Exception,
    ) -> ExerciseOutcome:
        reason = f"{type(exc).__name__}: {exc}"
        logger.error(
            "Skipped exercise %s (%r) song=%s: %s",
            index,
            exercise.word_or_phrase,
            request.song_id,
            reason,
        )
        record_exercise_outcome("skipped")
        return ExerciseOutcome(index=index, exercise=exercise, skip_reason=reason)


class PronunciationExerciseService:
    """Request-level entry point: cached lookup, song load, pipeline run."""

    def __init__(
        self,
        pipeline: PronunciationPipeline,
        songs: SongRepository,
        exercises: ExerciseRepository,
        *,
        reuse_cached: bool = True,
    ) -> None:
        self._pipeline = pipeline
        self._songs = songs
        self._exercises = exercises
        self._reuse_cached = reuse_cached

    async def cached(self, song_id: str, difficulty: str, language: str | None = None):
        return await self._exercises.list_for_song(song_id, difficulty, language)

    async def generate(self, request: ExerciseRequest) -> PipelineResult:
        if self._reuse_cached:
            existing = await self.cached(
                request.song_id, request.difficulty.value, request.language
            )
            if existing:
                logger.info(
                    "Returning %s cached exercises song=%s difficulty=%s language=%s",
                    len(existing),
                    request.song_id,
                    request.difficulty.value,
                    request.language,
                )
                return PipelineResult(cached=True, cached_exercises=tuple(existing))

        song = await self._songs.get_song(request.song_id)
        return await self._pipeline.run(request, song)


__all__ = ["PipelineState", "PronunciationPipeline", "PronunciationExerciseService"]
