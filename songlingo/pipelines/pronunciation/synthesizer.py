"""Exercise synthesis stage: prompt, generate, validate."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from songlingo.services.errors import SchemaViolation
from songlingo.services.provider_gateway import ProviderGateway
from songlingo.services.response_contract import (
    MAX_EXERCISES,
    MIN_EXERCISES,
    PRONUNCIATION_EXERCISE_SCHEMA,
    GeneratedExercise,
)

from .prompts import build_exercise_prompt
from .types import ExerciseRequest, SongSnapshot

logger = logging.getLogger("songlingo.pipelines.pronunciation")


class ExerciseSynthesizer:
    """Produce the validated, ordered exercise list for one request."""

    def __init__(self, gateway: ProviderGateway) -> None:
        self._gateway = gateway

    async def synthesize(
        self,
        request: ExerciseRequest,
        song: SongSnapshot,
    ) -> list[GeneratedExercise]:
        prompt = build_exercise_prompt(request, song)
        payload = await self._gateway.generate_exercises(prompt, PRONUNCIATION_EXERCISE_SCHEMA)
        return validate_exercises(payload, request)


def validate_exercises(
    payload: Mapping[str, Any],
    request: ExerciseRequest,
) -> list[GeneratedExercise]:
    """Filter invalid items, clamp to the maximum and enforce the minimum.

    Items whose ``word_or_phrase`` is empty or longer than three tokens are
    rejected one by one. Vocabulary ids the learner does not own are cleared.
    """

    raw_items = payload.get("exercises")
    if not isinstance(raw_items, list):
        raise SchemaViolation("Model response has no 'exercises' array.")

    known_ids = request.vocabulary_ids
    valid: list[GeneratedExercise] = []
    for position, item in enumerate(raw_items, start=1):
        if not isinstance(item, Mapping):
            logger.warning("Rejected exercise %s: not an object", position)
            continue
        try:
            exercise = GeneratedExercise.model_validate(item)
        except ValidationError as exc:
            logger.warning(
                "Rejected exercise %s (%r): %s",
                position,
                item.get("word_or_phrase"),
                exc.errors()[0].get("msg") if exc.errors() else exc,
            )
            continue

        if exercise.vocabulary_record_id and exercise.vocabulary_record_id not in known_ids:
            logger.info(
                "Cleared unknown vocabulary id %s on exercise %s",
                exercise.vocabulary_record_id,
                position,
            )
            exercise = exercise.model_copy(update={"vocabulary_record_id": None})
        valid.append(exercise)

    if len(valid) > MAX_EXERCISES:
        logger.info("Model over-produced %s exercises; keeping %s", len(valid), MAX_EXERCISES)
        valid = valid[:MAX_EXERCISES]

    if len(valid) < MIN_EXERCISES:
        raise SchemaViolation(
            f"Only {len(valid)} of {len(raw_items)} generated exercises are valid; "
            f"at least {MIN_EXERCISES} are required."
        )

    logger.info("Validated %s of %s generated exercises", len(valid), len(raw_items))
    return valid


__all__ = ["ExerciseSynthesizer", "validate_exercises"]
