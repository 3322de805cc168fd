"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from songlingo.config.settings import settings
from songlingo.database import session_scope
from songlingo.pipelines.pronunciation import (
    AudioMaterializer,
    ExerciseRepository,
    ExerciseSynthesizer,
    PronunciationExerciseService,
    PronunciationPipeline,
    SongRepository,
    TranscriptionService,
)
from songlingo.services.provider_gateway import ProviderGateway, build_provider_gateway
from songlingo.services.storage import build_reference_audio_storage
from songlingo.utils import AuthenticationError, TokenPayload, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> TokenPayload:
    """Validate the bearer token before any provider work happens."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization required",
        )

    try:
        return decode_access_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from None


@lru_cache
def get_provider_gateway() -> ProviderGateway:
    return build_provider_gateway(settings)


@lru_cache
def get_exercise_service() -> PronunciationExerciseService:
    gateway = get_provider_gateway()
    exercises = ExerciseRepository(session_scope)
    pipeline = PronunciationPipeline(
        ExerciseSynthesizer(gateway),
        AudioMaterializer(gateway, build_reference_audio_storage(settings)),
        exercises,
        parallel=settings.pipeline.parallel_materialization,
    )
    return PronunciationExerciseService(
        pipeline,
        SongRepository(session_scope),
        exercises,
        reuse_cached=settings.pipeline.reuse_cached,
    )


@lru_cache
def get_transcription_service() -> TranscriptionService:
    return TranscriptionService(
        get_provider_gateway(),
        max_bytes=settings.transcribe.max_audio_bytes,
    )


CurrentUserDep = Annotated[TokenPayload, Depends(get_current_user)]
ExerciseServiceDep = Annotated[PronunciationExerciseService, Depends(get_exercise_service)]
TranscriptionServiceDep = Annotated[TranscriptionService, Depends(get_transcription_service)]


__all__ = [
    "bearer_scheme",
    "get_current_user",
    "get_provider_gateway",
    "get_exercise_service",
    "get_transcription_service",
    "CurrentUserDep",
    "ExerciseServiceDep",
    "TranscriptionServiceDep",
]
