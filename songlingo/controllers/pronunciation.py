"""Pronunciation exercise and transcription endpoints.

`POST /pronunciation/exercises` runs the pipeline documented in
`songlingo.pipelines.pronunciation`; `POST /pronunciation/transcriptions`
forwards one learner recording to speech-to-text.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status

from songlingo.controllers.dependencies import (
    CurrentUserDep,
    ExerciseServiceDep,
    TranscriptionServiceDep,
)
from songlingo.pipelines.pronunciation import (
    Difficulty,
    read_audio_bytes,
    resolve_content_type,
)
from songlingo.services.errors import (
    InvalidAudio,
    LyricsUnavailable,
    PronunciationError,
    ProviderAuthFailure,
    ProviderUnavailable,
    SongNotFound,
    UnsupportedLanguage,
)
from songlingo.views import (
    ExerciseListResponse,
    ExerciseResponse,
    GenerateExercisesRequest,
    TranscriptionResponse,
)

router = APIRouter(prefix="/pronunciation", tags=["pronunciation"])

logger = logging.getLogger(__name__)

_AUDIO_UPLOAD = File(default=None)
_LANGUAGE_FORM = Form(default=None)


def _generation_error(exc: PronunciationError) -> HTTPException:
    """Map pipeline failures onto the public status codes."""

    if isinstance(exc, SongNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")
    if isinstance(exc, (LyricsUnavailable, UnsupportedLanguage)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ProviderAuthFailure):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed with AI service.",
        )
    if isinstance(exc, ProviderUnavailable) and exc.is_rate_limited:
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc) or "Pronunciation exercise generation failed",
    )


@router.post("/exercises", response_model=ExerciseListResponse)
async def generate_exercises(
    payload: GenerateExercisesRequest,
    current_user: CurrentUserDep,
    service: ExerciseServiceDep,
) -> ExerciseListResponse:
    """Generate, voice and store pronunciation exercises for a song."""

    request = payload.to_domain()
    logger.info(
        "Generating pronunciation exercises user=%s song=%s language=%s difficulty=%s",
        current_user.sub,
        request.song_id,
        request.language,
        request.difficulty.value,
    )
    try:
        result = await service.generate(request)
    except PronunciationError as exc:
        logger.exception("Pronunciation exercise generation failed song=%s", request.song_id)
        raise _generation_error(exc) from exc

    if result.skipped:
        logger.warning(
            "Returning %s exercises; %s skipped song=%s",
            len(result.exercises),
            len(result.skipped),
            request.song_id,
        )
    return ExerciseListResponse(
        exercises=[ExerciseResponse.from_domain(e) for e in result.exercises]
    )


@router.get("/exercises", response_model=ExerciseListResponse)
async def list_exercises(
    _current_user: CurrentUserDep,
    service: ExerciseServiceDep,
    song_id: str = Query(alias="songId", min_length=1),
    difficulty: Difficulty = Query(),
    language: Optional[str] = Query(default=None),
) -> ExerciseListResponse:
    """Return previously generated exercises without generating new ones."""

    language = language.strip().lower() if language else None
    exercises = await service.cached(song_id, difficulty.value, language)
    return ExerciseListResponse(
        exercises=[ExerciseResponse.from_domain(e) for e in exercises]
    )


@router.post("/transcriptions", response_model=TranscriptionResponse)
async def transcribe_recording(
    _current_user: CurrentUserDep,
    service: TranscriptionServiceDep,
    audio: Optional[UploadFile] = _AUDIO_UPLOAD,
    language: Optional[str] = _LANGUAGE_FORM,
) -> TranscriptionResponse:
    """Transcribe one learner recording for downstream scoring."""

    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")

    try:
        content_type = resolve_content_type(audio)
        audio_bytes = await read_audio_bytes(audio)
        result = await service.transcribe(audio_bytes, content_type, language=language)
    except InvalidAudio as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PronunciationError as exc:
        logger.exception("STT processing error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return TranscriptionResponse(text=result.text, confidence=result.confidence)
